"""
Transaction executor for hook writes and operator account reads.

Writes follow gas price -> gas estimate -> sign -> broadcast -> wait for one
confirmation, under the transaction retry policy. Each signed transaction is
recorded in the outstanding table before it is broadcast, so a retry after a
timeout resumes waiting on that transaction (re-broadcasting the same signed
bytes if the node dropped it) and never races it with a second submission.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional

from eth_account.signers.local import LocalAccount
from eth_utils import to_hex, to_wei
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from ..contracts import AUCTION_HOOK_ABI, POOL_MANAGER_ABI, load_abi
from ..core.errors import ErrorHandler, TransactionError
from ..core.result import Err, Ok, Result
from ..core.retry import TRANSACTION_POLICY, RetryPolicy
from ..core.task import attempt
from ..core.types import PoolKey, Slot0, TransactionOutcome, normalize_address, pool_id_bytes
from .pending import CallSignature, PendingKey, PendingTransaction, PendingTransactionTracker, call_signature

FALLBACK_GAS_PRICE = to_wei(20, "gwei")
GAS_LIMIT_BUFFER = 1.2


def apply_multiplier(value: int, multiplier: float) -> int:
    """Scale an integer by a multiplier with two-decimal precision."""
    return value * math.floor(multiplier * 100) // 100


class TransactionExecutor:
    """
    Signs and submits hook transactions for the operator account.

    Writes from one account take nonces from a local counter that is
    resynced with the node's pending count whenever a submission fails.

    Attributes:
        pending: Outstanding transactions keyed by (pool id, operation)
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        account: LocalAccount,
        hook_address: str,
        pool_manager_address: str,
        gas_price_multiplier: float = 1.2,
        tx_timeout: float = 120,
        policy: RetryPolicy = TRANSACTION_POLICY,
        chain_id: Optional[int] = None,
    ):
        self.web3 = web3
        self.account = account
        self.address = account.address
        self.hook = web3.eth.contract(address=normalize_address(hook_address), abi=load_abi(AUCTION_HOOK_ABI))
        self.pool_manager = web3.eth.contract(
            address=normalize_address(pool_manager_address),
            abi=load_abi(POOL_MANAGER_ABI),
        )
        self.gas_price_multiplier = gas_price_multiplier
        self.tx_timeout = tx_timeout
        self.policy = policy
        self.chain_id = chain_id
        self.pending = PendingTransactionTracker()
        self._locks: Dict[PendingKey, asyncio.Lock] = {}
        self._nonce_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.error_handler = ErrorHandler(self.logger)

    # Writes

    async def submit_bid(self, pool_key: PoolKey, rent_per_block: int, deposit: int) -> Result:
        """Bid ``rent_per_block`` for pool management, sending ``deposit`` with the bid."""
        self.logger.info(f"Submitting bid for {pool_key.pool_id[:10]}: rent={rent_per_block} deposit={deposit}")
        function = self.hook.functions.submitBid(pool_key.as_tuple(), rent_per_block)
        return await self.send_transaction(pool_key.pool_id, "submitBid", function, value=deposit)

    async def set_swap_fee(self, pool_key: PoolKey, new_fee: int) -> Result:
        self.logger.info(f"Setting swap fee for {pool_key.pool_id[:10]} to {new_fee}")
        function = self.hook.functions.setSwapFee(pool_key.as_tuple(), new_fee)
        return await self.send_transaction(pool_key.pool_id, "setSwapFee", function)

    async def withdraw_manager_fees(self, pool_key: PoolKey) -> Result:
        self.logger.info(f"Withdrawing manager fees for {pool_key.pool_id[:10]}")
        function = self.hook.functions.withdrawManagerFees(pool_key.as_tuple())
        return await self.send_transaction(pool_key.pool_id, "withdrawManagerFees", function)

    async def send_transaction(self, scope: str, operation: str, function, value: int = 0) -> Result:
        """
        Submit a contract call under the transaction policy.

        Calls sharing (scope, operation) are serialised. If one is still
        outstanding, the same call resumes it; a different call first waits
        for the outstanding transaction to settle and then submits its own.

        Args:
            scope: Pool id or other label grouping related writes
            operation: Name of the contract function
            function: Bound contract function to send
            value: Wei attached to the call

        Returns:
            ``Ok(TransactionOutcome)`` (status ``failed`` when reverted) or ``Err(OperatorError)``
        """
        key = (scope, operation)
        call = call_signature(function, value)
        lock = self._locks.setdefault(key, asyncio.Lock())

        async with lock:
            result = await self.policy.run(
                lambda: self._attempt(key, call, function, value),
                f"{operation} for {scope[:10]}",
            )

        if isinstance(result, Ok):
            status = "✓" if result.value.succeeded else "✗ reverted"
            self.logger.info(f"{operation} {status} in block {result.value.block_number} ({result.value.hash})")
        else:
            self.logger.error(f"{operation} for {scope[:10]} failed: {result.error}")
        return result

    async def _attempt(self, key: PendingKey, call: CallSignature, function, value: int) -> Result:
        try:
            pending = self.pending.get(key)
            if pending is not None and not pending.matches(call):
                await self._settle(key, pending)
                pending = None

            if pending is None:
                pending = await self._submit(key, call, function, value)
                receipt = await self._wait_for_receipt(pending)
            else:
                receipt = await self._resume(key, pending)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return Err(self.error_handler.to_operator_error(e, f"{key[1]} failed"))

        self.pending.clear(key)
        return Ok(self._to_outcome(receipt))

    async def _settle(self, key: PendingKey, pending: PendingTransaction):
        """
        Wait out an outstanding transaction left by a different call on the same key.

        Raises:
            OperatorError: (retryable) while the old transaction is still in flight
        """
        self.logger.info(f"{key[1]} has outstanding {pending.tx_hash} for another call, settling it first")
        try:
            receipt = await self._resume(key, pending)
        except TransactionError as e:
            if e.retryable:
                raise
            self.logger.warning(f"Dropped outstanding {key[1]} {pending.tx_hash}: {e}")
            return

        self.pending.clear(key)
        status = "confirmed" if receipt["status"] == 1 else "reverted"
        self.logger.info(f"Earlier {key[1]} {pending.tx_hash} {status} in block {receipt['blockNumber']}")

    async def _allocate_nonce(self) -> int:
        """Next nonce for the account; the caller holds the nonce lock."""
        node_nonce = await self.web3.eth.get_transaction_count(self.address, "pending")
        if self._next_nonce is None or node_nonce > self._next_nonce:
            self._next_nonce = node_nonce
        nonce = self._next_nonce
        self._next_nonce += 1
        return nonce

    async def _submit(self, key: PendingKey, call: CallSignature, function, value: int) -> PendingTransaction:
        gas_price = await self.current_gas_price()
        estimated_gas = await function.estimate_gas({"from": self.address, "value": value})
        gas_limit = apply_multiplier(estimated_gas, GAS_LIMIT_BUFFER)

        # One signer per account: nonces are handed out and broadcast in order
        async with self._nonce_lock:
            nonce = await self._allocate_nonce()
            params: Dict[str, Any] = {
                "from": self.address,
                "value": value,
                "gas": gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
            }
            if self.chain_id is not None:
                params["chainId"] = self.chain_id

            try:
                tx = await function.build_transaction(params)
            except Exception:
                self._next_nonce = None
                raise
            signed = self.account.sign_transaction(tx)

            pending = PendingTransaction(
                key=key,
                tx_hash=to_hex(signed.hash),
                nonce=nonce,
                raw_transaction=bytes(signed.raw_transaction),
                call=call,
            )
            self.pending.record(pending)

            try:
                await self._broadcast(pending)
            except Exception as e:
                # Resync with the node on the next allocation
                self._next_nonce = None
                # Rejected outright: nothing is outstanding
                if not self.error_handler.to_operator_error(e, "broadcast").retryable:
                    self.pending.clear(key)
                raise

        self.logger.info(f"{key[1]} submitted: {pending.tx_hash} (nonce {nonce}, gas {gas_limit} @ {gas_price})")
        return pending

    async def _broadcast(self, pending: PendingTransaction):
        try:
            await self.web3.eth.send_raw_transaction(pending.raw_transaction)
        except Exception as e:
            # The node already has these exact bytes
            if "already known" in str(e).lower():
                return
            raise

    async def _wait_for_receipt(self, pending: PendingTransaction):
        return await self.web3.eth.wait_for_transaction_receipt(pending.tx_hash, timeout=self.tx_timeout)

    async def _find_receipt(self, tx_hash: str):
        try:
            return await self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def _is_known(self, tx_hash: str) -> bool:
        try:
            await self.web3.eth.get_transaction(tx_hash)
            return True
        except TransactionNotFound:
            return False

    async def _resume(self, key: PendingKey, pending: PendingTransaction):
        """
        Continue tracking an outstanding transaction.

        Raises:
            TransactionError: (not retryable) if the nonce was used by
                another transaction
        """
        self.logger.info(f"Resuming {key[1]} on {pending.tx_hash} (nonce {pending.nonce})")

        receipt = await self._find_receipt(pending.tx_hash)
        if receipt is not None:
            return receipt

        if not await self._is_known(pending.tx_hash):
            confirmed_nonce = await self.web3.eth.get_transaction_count(self.address, "latest")
            if confirmed_nonce > pending.nonce:
                # Mined between the two lookups?
                receipt = await self._find_receipt(pending.tx_hash)
                if receipt is not None:
                    return receipt
                self.pending.clear(key)
                raise TransactionError(
                    f"Nonce {pending.nonce} was consumed without a receipt for {pending.tx_hash}",
                    retryable=False,
                )

            self.logger.warning(f"{pending.tx_hash} dropped by the node, re-broadcasting with nonce {pending.nonce}")
            await self._broadcast(pending)

        return await self._wait_for_receipt(pending)

    def _to_outcome(self, receipt) -> TransactionOutcome:
        return TransactionOutcome(
            hash=to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            effective_gas_price=receipt.get("effectiveGasPrice", 0),
            status="success" if receipt["status"] == 1 else "failed",
        )

    # Reads (not retried)

    async def current_gas_price(self) -> int:
        """Node gas price (20 gwei when it reports none) scaled by the multiplier."""
        base_gas_price = await self.web3.eth.gas_price
        if not base_gas_price:
            base_gas_price = FALLBACK_GAS_PRICE
        return apply_multiplier(base_gas_price, self.gas_price_multiplier)

    async def get_gas_price(self) -> Result:
        return await attempt(self.current_gas_price, "Failed to get gas price")()

    async def get_block_number(self) -> Result:
        async def _block_number():
            return await self.web3.eth.block_number

        return await attempt(_block_number, "Failed to get block number")()

    async def get_balance(self) -> Result:
        return await attempt(lambda: self.web3.eth.get_balance(self.address), "Failed to get balance")()

    async def get_manager_fees(self, pool_id: str, manager: Optional[str] = None) -> Result:
        """Fees accrued to ``manager`` (default: the operator) in a pool."""
        manager = normalize_address(manager or self.address)
        return await attempt(
            lambda: self.hook.functions.managerFees(manager, pool_id_bytes(pool_id)).call(),
            "Failed to check manager fees",
        )()

    async def get_pending_rent(self, pool_id: str, lp: str) -> Result:
        return await attempt(
            lambda: self.hook.functions.getPendingRent(pool_id_bytes(pool_id), normalize_address(lp)).call(),
            "Failed to check pending rent",
        )()

    async def get_slot0(self, pool_id: str) -> Result:
        async def _slot0():
            return Slot0.from_call(await self.pool_manager.functions.getSlot0(pool_id_bytes(pool_id)).call())

        return await attempt(_slot0, "Failed to get pool slot0")()
