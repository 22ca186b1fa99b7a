"""Tests for the operator runtime loops."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from auction_operator.config import ConfigManager
from auction_operator.conftest import HOOK, NOW_MS, OPERATOR
from auction_operator.core.errors import NetworkError
from auction_operator.core.result import Err, Ok, Some
from auction_operator.core.types import (
    WEI_PER_ETH,
    BidDecision,
    OptimalFee,
    PoolTarget,
    Snapshot,
    TransactionOutcome,
    normalize_address,
)
from auction_operator.registration.service import ProofSubmission
from auction_operator.runtime.operator import OperatorRuntime

GWEI = 10**9
OUTCOME = TransactionOutcome(
    hash="0x" + "01" * 32, block_number=1001, gas_used=45_000, effective_gas_price=GWEI, status="success"
)
REVERTED = TransactionOutcome(
    hash="0x" + "02" * 32, block_number=1001, gas_used=30_000, effective_gas_price=GWEI, status="failed"
)


class FakeSubscription:
    """Subscription stand-in that yields a fixed list of results."""

    def __init__(self, results):
        self.results = list(results)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for result in self.results:
            yield result


@pytest.fixture
def make_config(monkeypatch):
    def _make(**env):
        for key in ("DRY_RUN", "MONITORED_POOLS", "ATTESTATION_TASK_ID", "REGISTRY_ADDRESS",
                    "BID_EVALUATION_INTERVAL", "LOW_BALANCE_WARNING_ETH", "ENVIRONMENT", "LOG_FILE"):
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("POOL_MANAGER_ADDRESS", "0x" + "cd" * 20)
        monkeypatch.setenv("HOOK_ADDRESS", HOOK)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return ConfigManager()

    return _make


@pytest.fixture
def executor():
    executor = MagicMock()
    executor.address = normalize_address(OPERATOR)
    executor.get_gas_price = AsyncMock(return_value=Ok(GWEI))
    executor.get_block_number = AsyncMock(return_value=Ok(1000))
    executor.get_balance = AsyncMock(return_value=Ok(WEI_PER_ETH))
    executor.get_manager_fees = AsyncMock(return_value=Ok(0))
    executor.set_swap_fee = AsyncMock(return_value=Ok(OUTCOME))
    executor.submit_bid = AsyncMock(return_value=Ok(OUTCOME))
    executor.withdraw_manager_fees = AsyncMock(return_value=Ok(OUTCOME))
    return executor


@pytest.fixture
def monitor():
    return MagicMock()


@pytest.fixture
def make_runtime(make_config, monitor, executor):
    def _make(registration=None, **env):
        return OperatorRuntime(make_config(**env), monitor, executor, registration, clock=lambda: NOW_MS)

    return _make


@pytest.fixture
def target(pool_key):
    return PoolTarget(pool_key=pool_key)


@pytest.fixture
def make_snapshot(make_pool_state, make_auction_state, make_market_data):
    def _make(block=1000, manager=None, swap_fee=3000):
        current_manager = Some(manager) if manager else make_auction_state().current_manager
        return Snapshot(
            pool_state=make_pool_state(last_update_block=block, swap_fee=swap_fee),
            auction_state=make_auction_state(current_manager=current_manager),
            market_data=make_market_data(),
        )

    return _make


def recommend(fee, revenue=WEI_PER_ETH):
    return lambda snapshot: Ok(OptimalFee(fee=fee, confidence=1.0, expected_volume=0,
                                          expected_revenue=revenue, reasoning="test"))


def decision(should_bid, rent=10**12):
    return BidDecision(should_bid=should_bid, rent_amount=rent if should_bid else 0, expected_profit=10**9,
                       profit_margin=0.05, risk_score=0.1, reasoning="test")


class TestFeeUpdates:
    """Test the fee update step."""

    @pytest.mark.asyncio
    async def test_skipped_when_not_manager(self, make_runtime, executor, target, make_snapshot):
        runtime = make_runtime()
        runtime.optimize_fee = MagicMock()

        assert await runtime.process_fee_update(target, make_snapshot()) is None
        runtime.optimize_fee.assert_not_called()
        executor.set_swap_fee.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_sent_when_manager(self, make_runtime, executor, target, make_snapshot):
        """Test a significant, profitable change is applied and tracked."""
        runtime = make_runtime()
        runtime.optimize_fee = recommend(5000)

        result = await runtime.process_fee_update(target, make_snapshot(manager=OPERATOR))

        assert result == Ok(OUTCOME)
        executor.set_swap_fee.assert_awaited_once_with(target.pool_key, 5000)
        assert runtime.tracker.fee_optimizations == 1
        assert runtime.tracker.gas_used == 45_000

    @pytest.mark.asyncio
    async def test_real_engines_with_manager(self, make_runtime, executor, target, make_snapshot):
        """Test the unpatched engines run end to end for the sitting manager."""
        runtime = make_runtime()
        await runtime.process_fee_update(target, make_snapshot(manager=OPERATOR))
        executor.get_gas_price.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_small_change_not_sent(self, make_runtime, executor, target, make_snapshot):
        runtime = make_runtime()
        runtime.optimize_fee = recommend(3050)

        assert await runtime.process_fee_update(target, make_snapshot(manager=OPERATOR)) is None
        executor.set_swap_fee.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_frequency_gate(self, make_runtime, executor, target, make_snapshot):
        """Test a second update waits for the computed number of blocks."""
        runtime = make_runtime()
        runtime.optimize_fee = recommend(5000)

        await runtime.process_fee_update(target, make_snapshot(block=1000, manager=OPERATOR))
        await runtime.process_fee_update(target, make_snapshot(block=1005, manager=OPERATOR))
        assert executor.set_swap_fee.await_count == 1

        await runtime.process_fee_update(target, make_snapshot(block=1100, manager=OPERATOR))
        assert executor.set_swap_fee.await_count == 2

    @pytest.mark.asyncio
    async def test_reverted_update_not_counted(self, make_runtime, executor, target, make_snapshot):
        executor.set_swap_fee.return_value = Ok(REVERTED)
        runtime = make_runtime()
        runtime.optimize_fee = recommend(5000)

        await runtime.process_fee_update(target, make_snapshot(manager=OPERATOR))

        assert runtime.tracker.fee_optimizations == 0
        assert runtime.tracker.gas_used == 30_000

    @pytest.mark.asyncio
    async def test_dry_run_sends_nothing(self, make_runtime, executor, target, make_snapshot):
        runtime = make_runtime(DRY_RUN="true")
        runtime.optimize_fee = recommend(5000)

        assert await runtime.process_fee_update(target, make_snapshot(manager=OPERATOR)) is None
        executor.set_swap_fee.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_loop_survives_step_failure(self, make_runtime, monitor, target, make_snapshot):
        """Test errors are skipped and a raising step does not end the loop."""
        subscription = FakeSubscription([
            Err(NetworkError("read failed")),
            Ok(make_snapshot(block=1000)),
            Ok(make_snapshot(block=1001)),
        ])
        monitor.observe.return_value = subscription
        runtime = make_runtime()
        runtime.process_fee_update = AsyncMock(side_effect=[RuntimeError("boom"), None])

        await runtime.fee_update_loop(target)

        assert runtime.process_fee_update.await_count == 2
        assert subscription.closed


class TestBidding:
    """Test the bid evaluation step."""

    @pytest.mark.asyncio
    async def test_bid_submitted_with_deposit(self, make_runtime, executor, target, make_snapshot):
        """Test the deposit covers the minimum deposit blocks."""
        runtime = make_runtime()
        runtime.evaluate_bid = AsyncMock(return_value=Ok(decision(True)))

        result = await runtime.process_bid(target, make_snapshot())

        assert result == Ok(OUTCOME)
        executor.submit_bid.assert_awaited_once_with(target.pool_key, 10**12, 10**12 * 100)

    @pytest.mark.asyncio
    async def test_no_bid(self, make_runtime, executor, target, make_snapshot):
        runtime = make_runtime()
        runtime.evaluate_bid = AsyncMock(return_value=Ok(decision(False)))

        assert await runtime.process_bid(target, make_snapshot()) is None
        executor.submit_bid.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_evaluate_bid_uses_live_block_and_gas(self, make_runtime, executor, make_snapshot):
        runtime = make_runtime()

        result = await runtime.evaluate_bid(make_snapshot())

        assert isinstance(result, Ok)
        assert isinstance(result.value, BidDecision)
        executor.get_block_number.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_evaluate_bid_read_failure(self, make_runtime, executor, make_snapshot):
        executor.get_gas_price.return_value = Err(NetworkError("timeout"))
        runtime = make_runtime()

        result = await runtime.evaluate_bid(make_snapshot())

        assert result == Err(NetworkError("timeout"))

    @pytest.mark.asyncio
    async def test_current_manager_never_bids(self, make_runtime, executor, target, make_snapshot):
        runtime = make_runtime()
        assert await runtime.process_bid(target, make_snapshot(manager=OPERATOR)) is None
        executor.submit_bid.assert_not_awaited()

    def test_bid_interval(self, make_runtime, target):
        """Test evaluations are spaced by the bid interval."""
        runtime = make_runtime(BID_EVALUATION_INTERVAL="3600")
        assert runtime._bid_due(target.pool_id) is True
        assert runtime._bid_due(target.pool_id) is False


class TestWithdrawal:
    """Test manager fee withdrawal."""

    @pytest.mark.asyncio
    async def test_nothing_accrued(self, make_runtime, executor, target):
        runtime = make_runtime()
        assert await runtime.check_withdrawal(target) is None
        executor.get_gas_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_below_gas_threshold(self, make_runtime, executor, target):
        executor.get_manager_fees.return_value = Ok(GWEI * 100_000)
        runtime = make_runtime()

        assert await runtime.check_withdrawal(target) is None
        executor.withdraw_manager_fees.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_withdraws_and_tracks_revenue(self, make_runtime, executor, target):
        executor.get_manager_fees.return_value = Ok(10**16)
        runtime = make_runtime()

        result = await runtime.check_withdrawal(target)

        assert result == Ok(OUTCOME)
        executor.withdraw_manager_fees.assert_awaited_once_with(target.pool_key)
        assert runtime.tracker.revenue_generated == 10**16


class TestHealthAndAttestation:
    """Test the process-wide loops."""

    @pytest.mark.asyncio
    async def test_low_balance_warning(self, make_runtime, executor, caplog):
        executor.get_balance.return_value = Ok(10**16)
        runtime = make_runtime()

        with caplog.at_level(logging.WARNING):
            assert await runtime.health_check() is True

        assert "Low balance" in caplog.text
        assert runtime.tracker.health_checks == 1

    @pytest.mark.asyncio
    async def test_failed_health_check_lowers_uptime(self, make_runtime, executor):
        executor.get_balance.return_value = Err(NetworkError("connection refused"))
        runtime = make_runtime()

        assert await runtime.health_check() is False
        assert runtime.tracker.get_metrics().uptime == 0.0

    @pytest.mark.asyncio
    async def test_attestation_requires_registration(self, make_runtime):
        registration = MagicMock()
        registration.is_registered = AsyncMock(return_value=Ok(False))
        registration.submit_performance_proof = AsyncMock()
        runtime = make_runtime(registration=registration)

        assert await runtime.submit_attestation(7) is None
        registration.submit_performance_proof.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_attestation_submits_and_resets(self, make_runtime):
        registration = MagicMock()
        registration.is_registered = AsyncMock(return_value=Ok(True))
        registration.submit_performance_proof = AsyncMock(
            return_value=Ok(ProofSubmission(outcome=OUTCOME, proof_hash="0x" + "aa" * 32))
        )
        runtime = make_runtime(registration=registration)
        runtime.tracker.increment_fee_optimizations()

        await runtime.submit_attestation(7)

        task_id, metrics = registration.submit_performance_proof.await_args.args
        assert task_id == 7
        assert metrics.fee_optimizations == 1
        assert runtime.tracker.fee_optimizations == 0


class TestLifecycle:
    """Test starting and stopping the runtime."""

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, make_runtime, monitor, target):
        """Test stop cancels every loop and closes the monitor."""
        monitor.observe.side_effect = lambda pool_id: FakeSubscription([])
        runtime = make_runtime()

        run = asyncio.create_task(runtime.run([target]))
        await asyncio.sleep(0.01)
        runtime.stop()
        await asyncio.wait_for(run, timeout=1.0)

        assert not runtime.running
        monitor.close.assert_called()

    @pytest.mark.asyncio
    async def test_attestation_loop_only_with_task(self, make_runtime, monitor):
        registration = MagicMock()
        runtime = make_runtime(registration=registration, ATTESTATION_TASK_ID="3")

        run = asyncio.create_task(runtime.run([]))
        await asyncio.sleep(0.01)
        names = {task.get_name() for task in runtime._tasks}
        runtime.stop()
        await asyncio.wait_for(run, timeout=1.0)

        assert names == {"health-check", "attestation"}
