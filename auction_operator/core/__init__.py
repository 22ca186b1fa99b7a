"""
Core primitives for the auction operator.

Usage:
    from auction_operator.core import Ok, Err, RetryPolicy, attempt

    task = attempt(lambda: contract.functions.getLiquidity(pool_id).call(), "read liquidity")
    result = await MONITOR_READ_POLICY.run(task)
"""

from .errors import (
    ContractError,
    ErrorHandler,
    NetworkError,
    OperatorError,
    RateLimitError,
    TransactionError,
    ValidationError,
)
from .result import Err, Nothing, Ok, Option, Result, Some, from_nullable, sequence
from .retry import MONITOR_READ_POLICY, TRANSACTION_POLICY, RetryPolicy
from .task import ResultTask, attempt, chain_task, fail, gather, map_task, succeed
from .types import (
    FEE_DENOMINATOR,
    WEI_PER_ETH,
    ZERO_ADDRESS,
    AuctionState,
    BidConfig,
    BidDecision,
    MarketData,
    OptimalFee,
    OptimizationConfig,
    PoolKey,
    PoolState,
    PoolTarget,
    Slot0,
    Snapshot,
    StrategyResult,
    TransactionOutcome,
)

__all__ = [
    'Ok',
    'Err',
    'Result',
    'Some',
    'Nothing',
    'Option',
    'from_nullable',
    'sequence',
    'ResultTask',
    'attempt',
    'succeed',
    'fail',
    'map_task',
    'chain_task',
    'gather',
    'RetryPolicy',
    'MONITOR_READ_POLICY',
    'TRANSACTION_POLICY',
    'OperatorError',
    'ValidationError',
    'NetworkError',
    'RateLimitError',
    'ContractError',
    'TransactionError',
    'ErrorHandler',
    'FEE_DENOMINATOR',
    'WEI_PER_ETH',
    'ZERO_ADDRESS',
    'PoolKey',
    'PoolTarget',
    'PoolState',
    'AuctionState',
    'MarketData',
    'Snapshot',
    'Slot0',
    'OptimizationConfig',
    'OptimalFee',
    'StrategyResult',
    'BidConfig',
    'BidDecision',
    'TransactionOutcome',
]
