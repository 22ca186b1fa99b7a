"""
Pure decision engines: fee optimization and rent bidding.
"""

from .bid_strategy import (
    BidStrategyInput,
    adaptive_bid_strategy,
    aggressive_bid_strategy,
    calculate_bid_decision,
    conservative_bid_strategy,
)
from .fee_optimization import (
    FeeOptimizationInput,
    adaptive_fee_strategy,
    aggressive_fee_strategy,
    calculate_optimal_fee,
    conservative_fee_strategy,
    run_all_strategies,
    select_best_strategy,
    should_update_fee,
)

__all__ = [
    "FeeOptimizationInput",
    "calculate_optimal_fee",
    "aggressive_fee_strategy",
    "conservative_fee_strategy",
    "adaptive_fee_strategy",
    "run_all_strategies",
    "select_best_strategy",
    "should_update_fee",
    "BidStrategyInput",
    "calculate_bid_decision",
    "aggressive_bid_strategy",
    "conservative_bid_strategy",
    "adaptive_bid_strategy",
]
