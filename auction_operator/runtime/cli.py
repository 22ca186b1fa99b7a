#!/usr/bin/env python3
"""
Command-line interface for the auction operator.

Usage:
    auction-operator                       # same as `run`
    auction-operator run --dry-run
    auction-operator inspect --pool-id 0x...
    python -m auction_operator.runtime.cli run
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from eth_account import Account
from web3 import AsyncWeb3

from ..config import ConfigError, ConfigManager
from ..core.result import Err
from ..core.types import ZERO_ADDRESS, PoolTarget, normalize_pool_id
from ..execution.executor import FALLBACK_GAS_PRICE, TransactionExecutor
from ..monitor.market_data import MarketDataCalculator, fixed_volume_source
from ..monitor.pool_monitor import PoolMonitor
from ..monitor.state_reader import StateReader
from ..registration.service import RegistrationService
from ..strategies.bid_strategy import BidStrategyInput, adaptive_bid_strategy
from ..strategies.fee_optimization import FeeOptimizationInput, run_all_strategies, select_best_strategy
from .operator import OperatorRuntime

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auction-operator",
        description="Compete in pool rent auctions and manage swap fees",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the operator loops (default)")
    run_parser.add_argument("--dry-run", action="store_true", help="Log decisions without sending transactions")

    inspect_parser = subparsers.add_parser("inspect", help="Show one snapshot with fee and bid recommendations")
    inspect_parser.add_argument("--pool-id", required=True, help="Pool identifier (0x-prefixed bytes32)")

    return parser


def build_web3(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))


def build_monitor(web3: AsyncWeb3, config: ConfigManager, targets: List[PoolTarget]) -> PoolMonitor:
    """Monitor over the configured contracts with fixed market defaults."""
    network, monitoring = config.network, config.monitoring
    reader = StateReader(
        web3,
        network.POOL_MANAGER_ADDRESS,
        network.HOOK_ADDRESS,
        {target.pool_id: target.pool_key for target in targets},
    )

    def calculator_factory() -> MarketDataCalculator:
        return MarketDataCalculator(
            fixed_volume_source(monitoring.MARKET_VOLUME_24H_WEI),
            spread=monitoring.MARKET_SPREAD,
            trades=monitoring.MARKET_TRADE_COUNT,
        )

    return PoolMonitor(reader, calculator_factory, refresh_interval=monitoring.POOL_REFRESH_INTERVAL)


async def check_connection(web3: AsyncWeb3, rpc_url: str) -> bool:
    if await web3.is_connected():
        return True
    logger.error(f"❌ Cannot reach RPC endpoint {rpc_url}")
    return False


async def run_operator(config: ConfigManager, dry_run: bool = False) -> int:
    """Boot the operator and run until interrupted."""
    try:
        config.validate_configuration(require_pools=True)
        private_key = config.network.require_private_key()
        targets = config.network.get_pool_targets()
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    logger.debug(f"Configuration: {config.to_dict()}")
    if dry_run:
        config.monitoring.DRY_RUN = True

    network, monitoring = config.network, config.monitoring
    web3 = build_web3(network.RPC_URL)
    if not await check_connection(web3, network.RPC_URL):
        return 1

    account = Account.from_key(private_key)
    executor = TransactionExecutor(
        web3,
        account,
        network.HOOK_ADDRESS,
        network.POOL_MANAGER_ADDRESS,
        gas_price_multiplier=monitoring.GAS_PRICE_MULTIPLIER,
        tx_timeout=monitoring.TX_TIMEOUT_SECONDS,
        chain_id=network.CHAIN_ID,
    )
    registration = RegistrationService(web3, network.REGISTRY_ADDRESS, executor) if network.has_registry else None
    runtime = OperatorRuntime(config, build_monitor(web3, config, targets), executor, registration)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, runtime.stop)

    logger.info("=" * 80)
    logger.info("Auction Operator Starting")
    logger.info("=" * 80)
    logger.info(f"Operator: {account.address} | chain {network.CHAIN_ID} | hook {network.HOOK_ADDRESS}")
    for target in targets:
        logger.info(f"  📊 {target.pool_id} (fee {target.pool_key.fee}, tick spacing {target.pool_key.tick_spacing})")

    await runtime.run(targets)

    logger.info("Operator stopped")
    return 0


async def inspect_pool(config: ConfigManager, pool_id: str) -> int:
    """Print a one-shot snapshot with the fee and bid the operator would choose."""
    try:
        config.validate_configuration()
        pool_id = normalize_pool_id(pool_id)
        targets = config.network.get_pool_targets()
    except (ConfigError, ValueError) as e:
        logger.error(f"❌ {e}")
        return 1

    network = config.network
    web3 = build_web3(network.RPC_URL)
    if not await check_connection(web3, network.RPC_URL):
        return 1

    monitor = build_monitor(web3, config, targets)
    snapshot = await monitor.snapshot(pool_id)
    if isinstance(snapshot, Err):
        logger.error(f"❌ Failed to read pool {pool_id}: {snapshot.error}")
        return 1
    snapshot = snapshot.value

    pool, auction, market = snapshot.pool_state, snapshot.auction_state, snapshot.market_data
    logger.info(f"Pool {pool_id} at block {snapshot.block}")
    logger.info(f"  Manager: {pool.current_manager.unwrap_or('none')} | rent {auction.current_rent}/block")
    logger.info(f"  Next bidder: {auction.next_bidder.unwrap_or('none')} | rent {auction.next_rent} "
                f"from block {auction.activation_block}")
    logger.info(f"  Swap fee: {pool.swap_fee} | liquidity {pool.liquidity}")

    strategy = config.strategy
    best = select_best_strategy(run_all_strategies(FeeOptimizationInput(
        pool_state=pool,
        market_data=market,
        auction_state=auction,
        config=strategy.to_optimization_config(),
    )))
    if isinstance(best, Err):
        logger.warning(f"⚠️  No fee recommendation: {best.error}")
        return 0
    optimal_fee = best.value
    logger.info(f"  Recommended fee: {optimal_fee.fee} ({optimal_fee.reasoning})")

    gas_price = await web3.eth.gas_price or FALLBACK_GAS_PRICE
    operator = (
        Account.from_key(network.OPERATOR_PRIVATE_KEY).address if network.OPERATOR_PRIVATE_KEY else ZERO_ADDRESS
    )
    decision = adaptive_bid_strategy(BidStrategyInput(
        pool_state=pool,
        market_data=market,
        auction_state=auction,
        optimal_fee=optimal_fee,
        config=strategy.to_bid_config(operator),
        current_block=snapshot.block,
        gas_price=gas_price,
    ))
    if isinstance(decision, Err):
        logger.warning(f"⚠️  No bid recommendation: {decision.error}")
        return 0

    decision = decision.value
    marker = "✅" if decision.should_bid else "⏸️ "
    logger.info(f"  {marker} Bid: {decision.should_bid} | rent {decision.rent_amount} | {decision.reasoning}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager()
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    if args.command == "inspect":
        return asyncio.run(inspect_pool(config, args.pool_id))
    return asyncio.run(run_operator(config, dry_run=getattr(args, "dry_run", False)))


if __name__ == "__main__":
    sys.exit(main())
