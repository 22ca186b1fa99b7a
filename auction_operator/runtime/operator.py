"""
Operator runtime: wires the monitor, engines and executor into per-pool loops.

Per monitored pool three loops run concurrently:
- fee update: retunes the swap fee while the operator manages the pool
- bid evaluation: bids for management when the economics work
- withdrawal: collects accrued manager fees when worth the gas

Once per process a health check logs the operator balance and, when a
registry task is configured, an attestation loop submits tracked metrics.
A failed step is logged and the loop moves on to its next tick.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from eth_utils import from_wei

from ..config import ConfigManager
from ..core.errors import ErrorHandler
from ..core.result import Err, Ok, Result
from ..core.types import FEE_DENOMINATOR, BidDecision, OptimalFee, PoolTarget, Snapshot, same_address
from ..execution.executor import TransactionExecutor
from ..execution.heuristics import calculate_fee_update_frequency, is_withdrawal_profitable
from ..monitor.pool_monitor import PoolMonitor
from ..registration.service import PerformanceTracker, RegistrationService
from ..strategies.bid_strategy import BidStrategyInput, adaptive_bid_strategy
from ..strategies.fee_optimization import (
    FeeOptimizationInput,
    run_all_strategies,
    select_best_strategy,
    should_update_fee,
)


class OperatorRuntime:
    """
    Runs the operator loops for a set of pools.

    Args:
        config: Loaded configuration
        monitor: Shared pool monitor
        executor: Transaction executor holding the operator account
        registration: Registry client; enables attestations when a task is configured
        tracker: Performance tracker fed by the loops
        clock: Millisecond wall clock for market data freshness
    """

    def __init__(
        self,
        config: ConfigManager,
        monitor: PoolMonitor,
        executor: TransactionExecutor,
        registration: Optional[RegistrationService] = None,
        tracker: Optional[PerformanceTracker] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config
        self.monitor = monitor
        self.executor = executor
        self.registration = registration
        self.tracker = tracker or PerformanceTracker()
        self.clock = clock or (lambda: int(time.time() * 1000))

        self.address = executor.address
        self.optimization_config = config.strategy.to_optimization_config()
        self.bid_config = config.strategy.to_bid_config(self.address)
        self.dry_run = config.monitoring.DRY_RUN

        self._tasks: List[asyncio.Task] = []
        self._last_fee_update_block: Dict[str, int] = {}
        self._last_bid_evaluation: Dict[str, float] = {}

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.error_handler = ErrorHandler(self.logger)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run(self, pools: List[PoolTarget]):
        """Start every loop and wait until they are stopped."""
        if self.running:
            raise RuntimeError("Operator runtime is already running")

        monitoring = self.config.monitoring
        for target in pools:
            label = target.pool_id[:10]
            self._spawn(self.fee_update_loop(target), f"fee-{label}")
            self._spawn(self.bid_evaluation_loop(target), f"bid-{label}")
            self._spawn(self.withdrawal_loop(target), f"withdraw-{label}")

        self._spawn(self.health_check_loop(), "health-check")

        task_id = monitoring.attestation_task_id
        if self.registration is not None and task_id is not None:
            self._spawn(self.attestation_loop(task_id), "attestation")

        mode = "DRY RUN" if self.dry_run else "LIVE"
        self.logger.info(f"Operator {self.address} running on {len(pools)} pools ({mode})")

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self.stop()

    def stop(self):
        """Cancel every loop and close the monitor."""
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        self.monitor.close()

    def _spawn(self, coro, name: str):
        self._tasks.append(asyncio.create_task(coro, name=name))

    async def _guarded(self, operation: str, step, *args):
        """Run one loop step; failures are logged, never raised."""
        try:
            return await step(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error_handler.log_error(e, {"operation": operation})
            return None

    # Decisions

    def optimize_fee(self, snapshot: Snapshot) -> Result:
        """Best fee across all strategies for a snapshot."""
        inputs = FeeOptimizationInput(
            pool_state=snapshot.pool_state,
            market_data=snapshot.market_data,
            auction_state=snapshot.auction_state,
            config=self.optimization_config,
        )
        return select_best_strategy(run_all_strategies(inputs, self.clock()))

    def decide_bid(self, snapshot: Snapshot, optimal_fee: OptimalFee, current_block: int, gas_price: int) -> Result:
        inputs = BidStrategyInput(
            pool_state=snapshot.pool_state,
            market_data=snapshot.market_data,
            auction_state=snapshot.auction_state,
            optimal_fee=optimal_fee,
            config=self.bid_config,
            current_block=current_block,
            gas_price=gas_price,
        )
        return adaptive_bid_strategy(inputs)

    # Fee updates

    async def fee_update_loop(self, target: PoolTarget):
        async with self.monitor.observe(target.pool_id) as subscription:
            async for result in subscription:
                if isinstance(result, Err):
                    self.logger.warning(f"Pool {target.pool_id[:10]} observation error: {result.error}")
                    continue
                await self._guarded("fee_update", self.process_fee_update, target, result.value)

    async def process_fee_update(self, target: PoolTarget, snapshot: Snapshot) -> Optional[Result]:
        """
        Retune the swap fee for one snapshot.

        Returns:
            The transaction result when an update was sent, otherwise None
        """
        pool_state = snapshot.pool_state
        pool_id = target.pool_id

        if not same_address(snapshot.auction_state.current_manager, self.address):
            self.logger.debug(f"Not the current manager of {pool_id[:10]}, skipping fee optimization")
            return None

        best = self.optimize_fee(snapshot)
        if isinstance(best, Err):
            self.logger.warning(f"Fee optimization failed for {pool_id[:10]}: {best.error}")
            return None
        optimal_fee = best.value

        self.logger.info(
            f"Fee optimization for {pool_id[:10]}: {pool_state.swap_fee} -> {optimal_fee.fee} "
            f"(confidence {optimal_fee.confidence * 100:.1f}%) {optimal_fee.reasoning}"
        )

        last_update = self._last_fee_update_block.get(pool_id)
        if last_update is not None:
            min_blocks = calculate_fee_update_frequency(
                snapshot.market_data.volatility, snapshot.market_data.volume_change
            )
            if snapshot.block - last_update < min_blocks:
                self.logger.debug(
                    f"Fee for {pool_id[:10]} updated at block {last_update}, next update after {min_blocks} blocks"
                )
                return None

        gas_price = await self.executor.get_gas_price()
        if isinstance(gas_price, Err):
            self.logger.warning(f"Skipping fee update for {pool_id[:10]}: {gas_price.error}")
            return None

        current_revenue = pool_state.liquidity * pool_state.swap_fee // FEE_DENOMINATOR
        revenue_delta = optimal_fee.expected_revenue - current_revenue

        if not should_update_fee(pool_state.swap_fee, optimal_fee.fee, gas_price.value, revenue_delta):
            self.logger.debug(f"Fee update for {pool_id[:10]} not warranted: change too small or not cost-effective")
            return None

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would set fee for {pool_id[:10]}: {pool_state.swap_fee} -> {optimal_fee.fee}")
            self._last_fee_update_block[pool_id] = snapshot.block
            return None

        result = await self.executor.set_swap_fee(target.pool_key, optimal_fee.fee)
        if isinstance(result, Ok):
            self.tracker.record_transaction(result.value)
            if result.value.succeeded:
                self._last_fee_update_block[pool_id] = snapshot.block
                self.tracker.increment_fee_optimizations()
                self.logger.info(f"✅ Fee for {pool_id[:10]} set to {optimal_fee.fee} ({result.value.hash})")
            else:
                self.logger.error(f"❌ Fee update for {pool_id[:10]} reverted ({result.value.hash})")
        else:
            self.logger.error(f"❌ Fee update for {pool_id[:10]} failed: {result.error}")
        return result

    # Bidding

    async def bid_evaluation_loop(self, target: PoolTarget):
        async with self.monitor.observe(target.pool_id) as subscription:
            async for result in subscription:
                if isinstance(result, Err) or not self._bid_due(target.pool_id):
                    continue
                await self._guarded("bid_evaluation", self.process_bid, target, result.value)

    def _bid_due(self, pool_id: str) -> bool:
        now = time.monotonic()
        last = self._last_bid_evaluation.get(pool_id)
        if last is not None and now - last < self.config.monitoring.BID_EVALUATION_INTERVAL:
            return False
        self._last_bid_evaluation[pool_id] = now
        return True

    async def evaluate_bid(self, snapshot: Snapshot) -> Result:
        """Bid decision for a snapshot using live block and gas data."""
        best = self.optimize_fee(snapshot)
        if isinstance(best, Err):
            return best

        block_number = await self.executor.get_block_number()
        if isinstance(block_number, Err):
            return block_number
        gas_price = await self.executor.get_gas_price()
        if isinstance(gas_price, Err):
            return gas_price

        return self.decide_bid(snapshot, best.value, block_number.value, gas_price.value)

    async def process_bid(self, target: PoolTarget, snapshot: Snapshot) -> Optional[Result]:
        """
        Evaluate and, when worthwhile, submit a bid.

        Returns:
            The transaction result when a bid was sent, otherwise None
        """
        pool_id = target.pool_id
        result = await self.evaluate_bid(snapshot)
        if isinstance(result, Err):
            self.logger.warning(f"Bid calculation failed for {pool_id[:10]}: {result.error}")
            return None

        decision: BidDecision = result.value
        self.logger.info(
            f"Bid decision for {pool_id[:10]}: bid={decision.should_bid} rent={decision.rent_amount} "
            f"margin={decision.profit_margin * 100:.2f}% risk={decision.risk_score * 100:.1f}% - {decision.reasoning}"
        )
        if not decision.should_bid:
            return None

        deposit = decision.rent_amount * self.bid_config.min_deposit_blocks
        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would bid {decision.rent_amount}/block on {pool_id[:10]} with deposit {deposit}")
            return None

        tx_result = await self.executor.submit_bid(target.pool_key, decision.rent_amount, deposit)
        if isinstance(tx_result, Ok):
            self.tracker.record_transaction(tx_result.value)
            status = "✅ Bid submitted" if tx_result.value.succeeded else "❌ Bid reverted"
            self.logger.info(f"{status} for {pool_id[:10]} in block {tx_result.value.block_number}")
        else:
            self.logger.error(f"❌ Bid submission for {pool_id[:10]} failed: {tx_result.error}")
        return tx_result

    # Fee withdrawal

    async def withdrawal_loop(self, target: PoolTarget):
        while True:
            await self._guarded("withdrawal", self.check_withdrawal, target)
            await asyncio.sleep(self.config.monitoring.WITHDRAWAL_CHECK_INTERVAL)

    async def check_withdrawal(self, target: PoolTarget) -> Optional[Result]:
        pool_id = target.pool_id
        fees = await self.executor.get_manager_fees(pool_id)
        if isinstance(fees, Err):
            self.logger.warning(f"Could not read manager fees for {pool_id[:10]}: {fees.error}")
            return None
        if not fees.value:
            return None

        self.logger.debug(f"Accumulated fees for {pool_id[:10]}: {fees.value}")

        gas_price = await self.executor.get_gas_price()
        if isinstance(gas_price, Err):
            self.logger.warning(f"Skipping withdrawal for {pool_id[:10]}: {gas_price.error}")
            return None
        if not is_withdrawal_profitable(fees.value, gas_price.value):
            return None

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would withdraw {fees.value} wei of fees from {pool_id[:10]}")
            return None

        result = await self.executor.withdraw_manager_fees(target.pool_key)
        if isinstance(result, Ok):
            self.tracker.record_transaction(result.value)
            if result.value.succeeded:
                self.tracker.add_revenue(fees.value)
                self.logger.info(f"✅ Withdrew {fees.value} wei of fees from {pool_id[:10]} ({result.value.hash})")
            else:
                self.logger.error(f"❌ Fee withdrawal for {pool_id[:10]} reverted ({result.value.hash})")
        else:
            self.logger.error(f"❌ Fee withdrawal for {pool_id[:10]} failed: {result.error}")
        return result

    # Process-wide

    async def health_check_loop(self):
        while True:
            await self._guarded("health_check", self.health_check)
            await asyncio.sleep(self.config.monitoring.HEALTH_CHECK_INTERVAL)

    async def health_check(self) -> bool:
        balance = await self.executor.get_balance()
        if isinstance(balance, Err):
            self.tracker.record_health_check(False)
            self.logger.warning(f"Health check failed: {balance.error}")
            return False

        self.tracker.record_health_check(True)
        self.logger.info(f"Health check: balance {float(from_wei(balance.value, 'ether')):.4f} ETH")
        if balance.value < self.config.monitoring.low_balance_warning_wei:
            self.logger.warning(
                f"⚠️  Low balance: {from_wei(balance.value, 'ether')} ETH "
                f"(warning below {self.config.monitoring.LOW_BALANCE_WARNING_ETH} ETH)"
            )
        return True

    async def attestation_loop(self, task_id: int):
        while True:
            await asyncio.sleep(self.config.monitoring.ATTESTATION_INTERVAL)
            await self._guarded("attestation", self.submit_attestation, task_id)

    async def submit_attestation(self, task_id: int) -> Optional[Result]:
        """Submit tracked metrics for ``task_id``; the tracker resets on success."""
        registered = await self.registration.is_registered()
        if isinstance(registered, Err):
            self.logger.warning(f"Could not check registration: {registered.error}")
            return None
        if not registered.value:
            self.logger.warning(f"Operator {self.address} is not registered, skipping attestation")
            return None

        metrics = self.tracker.get_metrics()
        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would attest task {task_id}: {metrics}")
            return None

        result = await self.registration.submit_performance_proof(task_id, metrics)
        if isinstance(result, Ok):
            self.tracker.reset()
            self.logger.info(f"✅ Performance proof for task {task_id} submitted ({result.value.proof_hash})")
        else:
            self.logger.error(f"❌ Performance proof for task {task_id} failed: {result.error}")
        return result
