"""
Ledger reads for pool and auction state.

Every public read returns a ``ResultTask`` so callers can hand it straight
to a ``RetryPolicy``; RPC failures come back as ``Err(OperatorError)``.
"""

import asyncio
import logging
from typing import Dict, Optional

from web3 import AsyncWeb3

from ..contracts import AUCTION_HOOK_ABI, POOL_MANAGER_ABI, load_abi
from ..core.task import ResultTask, attempt
from ..core.types import (
    ZERO_ADDRESS,
    AuctionState,
    PoolKey,
    PoolState,
    Slot0,
    normalize_address,
    normalize_pool_id,
    optional_address,
    pool_id_bytes,
)

logger = logging.getLogger(__name__)


class StateReader:
    """
    Reads pool facts from the pool manager and auction facts from the hook.

    Token addresses are not stored on-chain by pool id, so they come from
    the registered pool keys; unknown pools report the zero address.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        pool_manager_address: str,
        hook_address: str,
        pool_keys: Optional[Dict[str, PoolKey]] = None,
    ):
        self.web3 = web3
        self.pool_manager = web3.eth.contract(
            address=normalize_address(pool_manager_address),
            abi=load_abi(POOL_MANAGER_ABI),
        )
        self.hook = web3.eth.contract(
            address=normalize_address(hook_address),
            abi=load_abi(AUCTION_HOOK_ABI),
        )
        self._pool_keys: Dict[str, PoolKey] = {}
        for pool_id, pool_key in (pool_keys or {}).items():
            self.register_pool(pool_key, pool_id)

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def register_pool(self, pool_key: PoolKey, pool_id: Optional[str] = None):
        """Remember the key of a pool so its tokens can be reported."""
        self._pool_keys[normalize_pool_id(pool_id or pool_key.pool_id)] = pool_key

    def pool_key(self, pool_id: str) -> Optional[PoolKey]:
        return self._pool_keys.get(normalize_pool_id(pool_id))

    # Raw reads

    async def _get_slot0(self, pool_id: str) -> Slot0:
        return Slot0.from_call(await self.pool_manager.functions.getSlot0(pool_id_bytes(pool_id)).call())

    async def _get_liquidity(self, pool_id: str) -> int:
        return await self.pool_manager.functions.getLiquidity(pool_id_bytes(pool_id)).call()

    async def _get_pool_auction(self, pool_id: str):
        return await self.hook.functions.poolAuctions(pool_id_bytes(pool_id)).call()

    async def _get_next_bid(self, pool_id: str):
        return await self.hook.functions.nextBid(pool_id_bytes(pool_id)).call()

    async def _fetch_pool_state(self, pool_id: str) -> PoolState:
        pool_id = normalize_pool_id(pool_id)
        self.logger.debug(f"Fetching pool state for {pool_id}")

        slot0, liquidity, auction = await asyncio.gather(
            self._get_slot0(pool_id),
            self._get_liquidity(pool_id),
            self._get_pool_auction(pool_id),
        )
        block_number = await self.web3.eth.block_number

        current_manager, rent_per_block, _deposit, _last_rent_block, _collected, current_fee = auction
        pool_key = self.pool_key(pool_id)

        return PoolState(
            pool_id=pool_id,
            token0=pool_key.currency0 if pool_key else ZERO_ADDRESS,
            token1=pool_key.currency1 if pool_key else ZERO_ADDRESS,
            current_manager=optional_address(current_manager),
            rent_per_block=rent_per_block,
            swap_fee=current_fee,
            liquidity=liquidity,
            sqrt_price_x96=slot0.sqrt_price_x96,
            tick=slot0.tick,
            last_update_block=block_number,
        )

    async def _fetch_auction_state(self, pool_id: str) -> AuctionState:
        pool_id = normalize_pool_id(pool_id)
        self.logger.debug(f"Fetching auction state for {pool_id}")

        auction, next_bid = await asyncio.gather(
            self._get_pool_auction(pool_id),
            self._get_next_bid(pool_id),
        )

        current_manager, rent_per_block, manager_deposit = auction[0], auction[1], auction[2]
        bidder, next_rent, _deposit, activation_block, _timestamp = next_bid

        return AuctionState(
            current_manager=optional_address(current_manager),
            current_rent=rent_per_block,
            next_bidder=optional_address(bidder),
            next_rent=next_rent,
            activation_block=activation_block,
            manager_deposit=manager_deposit,
        )

    # Result-returning reads

    def read_pool_state(self, pool_id: str) -> ResultTask:
        """Slot0, liquidity, auction record and block number as a PoolState."""
        return attempt(lambda: self._fetch_pool_state(pool_id), f"Failed to fetch pool state for {pool_id}")

    def read_auction_state(self, pool_id: str) -> ResultTask:
        """Current manager and pending challenger as an AuctionState."""
        return attempt(lambda: self._fetch_auction_state(pool_id), f"Failed to fetch auction state for {pool_id}")
