"""
Client for the operator registry contract.

Registration, staking and performance proofs are writes and go through the
executor's submission path; status queries are single reads.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import ujson
from eth_utils import keccak, to_hex
from web3 import AsyncWeb3

from ..contracts import OPERATOR_REGISTRY_ABI, load_abi
from ..core.result import Err, Result
from ..core.task import attempt, gather
from ..core.types import TransactionOutcome, normalize_address, normalize_pool_id
from ..execution.executor import TransactionExecutor

REGISTRY_SCOPE = "registry"


@dataclass(frozen=True)
class OperatorStatus:
    is_registered: bool
    staked_amount: int
    registration_block: int
    total_tasks_completed: int
    total_tasks_failed: int
    performance_score: int  # basis points, 0-10000
    is_slashed: bool


@dataclass(frozen=True)
class TaskInfo:
    task_id: int
    pool_id: str
    assigned_operator: str
    start_block: int
    end_block: int
    expected_fee_optimizations: int
    is_completed: bool


@dataclass(frozen=True)
class PerformanceMetrics:
    fee_optimizations: int
    revenue_generated: int
    gas_used: int
    uptime: float  # percent


@dataclass(frozen=True)
class ProofSubmission:
    outcome: TransactionOutcome
    proof_hash: str


def performance_proof_hash(metrics: PerformanceMetrics, timestamp_ms: int) -> str:
    """keccak256 of the JSON-encoded metrics; wei amounts are encoded as strings."""
    proof_data = {
        "feeOptimizations": metrics.fee_optimizations,
        "revenueGenerated": str(metrics.revenue_generated),
        "gasUsed": str(metrics.gas_used),
        "uptime": metrics.uptime,
        "timestamp": timestamp_ms,
    }
    return to_hex(keccak(text=ujson.dumps(proof_data)))


class RegistrationService:
    """
    Operator registry client.

    Args:
        web3: Connected AsyncWeb3 instance
        registry_address: Operator registry contract
        executor: Executor whose account signs registry writes
        clock: Millisecond clock used to timestamp proofs
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        registry_address: str,
        executor: TransactionExecutor,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.web3 = web3
        self.executor = executor
        self.address = executor.address
        self.registry = web3.eth.contract(
            address=normalize_address(registry_address),
            abi=load_abi(OPERATOR_REGISTRY_ABI),
        )
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def register_operator(self, stake: Optional[int] = None) -> Result:
        """Register the operator, staking ``stake`` wei (the registry minimum by default)."""
        if stake is None:
            min_stake = await self.get_min_stake()
            if isinstance(min_stake, Err):
                return min_stake
            stake = min_stake.value

        self.logger.info(f"Registering operator {self.address} with stake {stake}")
        return await self.executor.send_transaction(
            REGISTRY_SCOPE, "registerOperator", self.registry.functions.registerOperator(), value=stake
        )

    async def deregister_operator(self) -> Result:
        self.logger.info(f"Deregistering operator {self.address}")
        return await self.executor.send_transaction(
            REGISTRY_SCOPE, "deregisterOperator", self.registry.functions.deregisterOperator()
        )

    async def increase_stake(self, amount: int) -> Result:
        self.logger.info(f"Increasing stake by {amount}")
        return await self.executor.send_transaction(
            REGISTRY_SCOPE, "increaseStake", self.registry.functions.increaseStake(), value=amount
        )

    async def submit_performance_proof(self, task_id: int, metrics: PerformanceMetrics) -> Result:
        """
        Submit tracked metrics for a registry task.

        Returns:
            ``Ok(ProofSubmission)`` or ``Err(OperatorError)``
        """
        proof_hash = performance_proof_hash(metrics, self.clock())
        self.logger.info(
            f"Submitting performance proof for task {task_id}: "
            f"{metrics.fee_optimizations} optimizations, revenue {metrics.revenue_generated}, "
            f"gas {metrics.gas_used}, uptime {metrics.uptime:.1f}% ({proof_hash})"
        )

        function = self.registry.functions.submitPerformanceProof(
            task_id,
            metrics.fee_optimizations,
            metrics.revenue_generated,
            metrics.gas_used,
            bytes.fromhex(proof_hash[2:]),
        )
        result = await self.executor.send_transaction(f"task:{task_id}", "submitPerformanceProof", function)
        return result.map(lambda outcome: ProofSubmission(outcome=outcome, proof_hash=proof_hash))

    # Reads

    async def get_min_stake(self) -> Result:
        return await attempt(self.registry.functions.minStakeAmount().call, "Failed to read minimum stake")()

    async def is_registered(self, address: Optional[str] = None) -> Result:
        operator = normalize_address(address or self.address)
        return await attempt(
            self.registry.functions.isOperatorRegistered(operator).call,
            "Failed to check registration",
        )()

    async def get_performance_score(self, address: Optional[str] = None) -> Result:
        operator = normalize_address(address or self.address)
        return await attempt(
            self.registry.functions.getOperatorPerformanceScore(operator).call,
            "Failed to read performance score",
        )()

    async def get_operator_status(self, address: Optional[str] = None) -> Result:
        operator = normalize_address(address or self.address)
        result = await gather(
            attempt(self.registry.functions.operators(operator).call, "Failed to read operator"),
            attempt(
                self.registry.functions.getOperatorPerformanceScore(operator).call,
                "Failed to read performance score",
            ),
        )

        def _to_status(values) -> OperatorStatus:
            info, score = values
            registered, staked, registration_block, completed, failed, _last_update, slashed = info
            return OperatorStatus(
                is_registered=registered,
                staked_amount=staked,
                registration_block=registration_block,
                total_tasks_completed=completed,
                total_tasks_failed=failed,
                performance_score=score,
                is_slashed=slashed,
            )

        return result.map(_to_status)

    async def get_task_info(self, task_id: int) -> Result:
        result = await attempt(self.registry.functions.tasks(task_id).call, "Failed to read task")()

        def _to_task(values) -> TaskInfo:
            pool_id, assigned, start_block, end_block, expected, _actual, _revenue, completed, _validated = values
            return TaskInfo(
                task_id=task_id,
                pool_id=normalize_pool_id(pool_id),
                assigned_operator=normalize_address(assigned),
                start_block=start_block,
                end_block=end_block,
                expected_fee_optimizations=expected,
                is_completed=completed,
            )

        return result.map(_to_task)


@dataclass
class PerformanceTracker:
    """
    Accumulates the operator's activity between performance proofs.

    Uptime is the share of health checks that succeeded since the last reset.
    """

    fee_optimizations: int = 0
    revenue_generated: int = 0
    gas_used: int = 0
    health_checks: int = 0
    healthy_checks: int = 0

    def increment_fee_optimizations(self):
        self.fee_optimizations += 1

    def add_revenue(self, amount: int):
        self.revenue_generated += amount

    def add_gas_used(self, gas: int):
        self.gas_used += gas

    def record_transaction(self, outcome: TransactionOutcome):
        self.add_gas_used(outcome.gas_used)

    def record_health_check(self, healthy: bool):
        self.health_checks += 1
        if healthy:
            self.healthy_checks += 1

    def get_metrics(self) -> PerformanceMetrics:
        uptime = 100.0 if not self.health_checks else self.healthy_checks * 100.0 / self.health_checks
        return PerformanceMetrics(
            fee_optimizations=self.fee_optimizations,
            revenue_generated=self.revenue_generated,
            gas_used=self.gas_used,
            uptime=min(100.0, uptime),
        )

    def reset(self):
        self.fee_optimizations = 0
        self.revenue_generated = 0
        self.gas_used = 0
        self.health_checks = 0
        self.healthy_checks = 0
