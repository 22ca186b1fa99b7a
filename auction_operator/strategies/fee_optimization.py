"""
Fee optimization strategies.

Every function here is pure: inputs arrive as arguments and the only clock
dependency (data staleness in the confidence score) can be pinned with
``now_ms``.
"""

import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from ..core.errors import ValidationError
from ..core.result import Err, Ok, Result
from ..core.types import (
    FEE_DENOMINATOR,
    WEI_PER_ETH,
    AuctionState,
    MarketData,
    OptimalFee,
    OptimizationConfig,
    PoolState,
    StrategyResult,
)

# Demand elasticity: a 10% fee cut is assumed to lift volume ~20%
VOLUME_ELASTICITY = 2

# Gas used by setSwapFee
SET_FEE_GAS = 40_000

STALE_DATA_MS = 60_000


@dataclass(frozen=True)
class FeeOptimizationInput:
    """Everything a fee strategy looks at."""

    pool_state: PoolState
    market_data: MarketData
    auction_state: AuctionState
    config: OptimizationConfig


def _interpolate(position: float, config: OptimizationConfig) -> float:
    return config.min_fee + position * (config.max_fee - config.min_fee)


def calculate_volatility_based_fee(volatility: float, config: OptimizationConfig) -> float:
    """Higher volatility -> higher fee (impermanent loss protection)."""
    normalized_volatility = min(volatility / 2, 1)  # Cap at 200% volatility
    return _interpolate(normalized_volatility, config)


def calculate_volume_based_fee(volume24h: int, volume_change: float, config: OptimizationConfig) -> float:
    """Higher volume -> lower fee; growing volume is nudged further down."""
    volume_eth = volume24h / WEI_PER_ETH
    volume_score = min(volume_eth / 1000, 1)  # 1000 ETH = max

    growth_multiplier = 0.9 if volume_change > 0 else 1.1

    fee_range = config.max_fee - config.min_fee
    return config.min_fee + ((1 - volume_score) * fee_range) * growth_multiplier


def calculate_spread_based_fee(spread: float, config: OptimizationConfig) -> float:
    """Tighter spread -> higher fee (price discovery is good)."""
    normalized_spread = min(spread / 0.01, 1)  # 1% spread = max
    return _interpolate(1 - normalized_spread, config)


def calculate_weighted_fee(
    volatility_fee: float,
    volume_fee: float,
    spread_fee: float,
    config: OptimizationConfig,
) -> float:
    """Weighted combination of the component fees, clamped to the fee bounds."""
    weighted = (
        volatility_fee * config.volatility_weight
        + volume_fee * config.volume_weight
        + spread_fee * config.spread_weight
    )
    return max(config.min_fee, min(config.max_fee, weighted))


def estimate_volume(current_volume: int, current_fee: int, proposed_fee: int) -> int:
    """Constant-elasticity demand: volume scales with (fee ratio) ** -2."""
    fee_ratio = proposed_fee / max(current_fee, 1)
    if fee_ratio <= 0:
        return current_volume
    volume_multiplier = fee_ratio ** -VOLUME_ELASTICITY
    return current_volume * math.floor(volume_multiplier * 1000) // 1000


def calculate_expected_revenue(estimated_volume: int, fee: int) -> int:
    """Revenue = volume * fee, fee in hundredths of a basis point."""
    return estimated_volume * fee // FEE_DENOMINATOR


def calculate_confidence(market_data: MarketData, pool_state: PoolState, now_ms: Optional[int] = None) -> float:
    """Data-quality confidence in [0.1, 1.0]."""
    confidence = 1.0

    if market_data.trades < 10:
        confidence *= 0.5

    if pool_state.liquidity / WEI_PER_ETH < 10:
        confidence *= 0.7

    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    if now_ms - market_data.timestamp > STALE_DATA_MS:
        confidence *= 0.8

    return max(0.1, min(1.0, confidence))


def calculate_optimal_fee(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> Result:
    """
    Calculate the optimal fee from volatility, volume and spread signals.

    Args:
        inputs: Pool, market and auction state plus optimization config
        now_ms: Clock override for the staleness check (milliseconds)

    Returns:
        ``Ok(OptimalFee)``, or ``Err(ValidationError)`` for an empty pool
    """
    pool_state = inputs.pool_state
    market_data = inputs.market_data
    config = inputs.config

    if pool_state.liquidity == 0:
        return Err(ValidationError("Cannot optimize fee for pool with zero liquidity"))

    volatility_fee = calculate_volatility_based_fee(market_data.volatility, config)
    volume_fee = calculate_volume_based_fee(market_data.volume24h, market_data.volume_change, config)
    spread_fee = calculate_spread_based_fee(market_data.spread, config)

    optimal_fee = calculate_weighted_fee(volatility_fee, volume_fee, spread_fee, config)

    # Half-up rounding to whole fee units
    rounded_fee = int(math.floor(optimal_fee + 0.5))

    estimated_volume = estimate_volume(market_data.volume24h, pool_state.swap_fee, rounded_fee)
    expected_revenue = calculate_expected_revenue(estimated_volume, rounded_fee)
    confidence = calculate_confidence(market_data, pool_state, now_ms)

    reasoning = " | ".join([
        f"Volatility: {market_data.volatility * 100:.2f}% → {volatility_fee:.0f} fee (weight: {config.volatility_weight})",
        f"Volume: {market_data.volume24h} → {volume_fee:.0f} fee (weight: {config.volume_weight})",
        f"Spread: {market_data.spread * 100:.2f}% → {spread_fee:.0f} fee (weight: {config.spread_weight})",
        f"Weighted average: {rounded_fee}",
        f"Expected volume: {estimated_volume}",
        f"Expected revenue: {expected_revenue}",
        f"Confidence: {confidence * 100:.1f}%",
    ])

    return Ok(OptimalFee(
        fee=rounded_fee,
        confidence=confidence,
        expected_volume=estimated_volume,
        expected_revenue=expected_revenue,
        reasoning=reasoning,
    ))


def balanced_fee_strategy(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> Result:
    """Configured weights, unchanged."""
    return calculate_optimal_fee(inputs, now_ms)


def aggressive_fee_strategy(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> Result:
    """Maximize fees: emphasize volatility."""
    config = inputs.config.with_weights(volatility=0.6, volume=0.2, spread=0.2)
    return calculate_optimal_fee(replace(inputs, config=config), now_ms)


def conservative_fee_strategy(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> Result:
    """Attract volume with lower fees."""
    config = inputs.config.with_weights(volatility=0.2, volume=0.6, spread=0.2)
    return calculate_optimal_fee(replace(inputs, config=config), now_ms)


def adaptive_fee_strategy(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> Result:
    """Pick a preset from current market conditions."""
    market_data = inputs.market_data

    if market_data.volatility > 0.5:
        return aggressive_fee_strategy(inputs, now_ms)

    # Strong volume growth: keep it going
    if market_data.volume_change > 20:
        return conservative_fee_strategy(inputs, now_ms)

    return calculate_optimal_fee(inputs, now_ms)


FEE_STRATEGIES: Dict[str, Callable[..., Result]] = {
    "balanced": balanced_fee_strategy,
    "aggressive": aggressive_fee_strategy,
    "conservative": conservative_fee_strategy,
    "adaptive": adaptive_fee_strategy,
}


def run_all_strategies(inputs: FeeOptimizationInput, now_ms: Optional[int] = None) -> List[StrategyResult]:
    """Run every named strategy against the same inputs."""
    return [
        StrategyResult(strategy_name=name, outcome=strategy(inputs, now_ms))
        for name, strategy in FEE_STRATEGIES.items()
    ]


def select_best_strategy(strategies: Sequence[StrategyResult]) -> Result:
    """
    Select the strategy with the highest expected revenue.

    Failed strategies are discarded; on ties the earliest strategy wins.

    Returns:
        ``Ok(OptimalFee)`` with reasoning prefixed by the strategy name, or
        ``Err(ValidationError)`` when no strategy succeeded
    """
    best_name = None
    best_fee = None

    for strategy in strategies:
        outcome = strategy.outcome
        if isinstance(outcome, Err):
            continue
        if best_fee is None or outcome.value.expected_revenue > best_fee.expected_revenue:
            best_name = strategy.strategy_name
            best_fee = outcome.value

    if best_fee is None:
        return Err(ValidationError("No valid strategies produced results"))

    return Ok(replace(best_fee, reasoning=f"[{best_name}] {best_fee.reasoning}"))


def should_update_fee(
    current_fee: int,
    optimal_fee: int,
    gas_price: int,
    expected_revenue_delta: int,
) -> bool:
    """
    Check if a fee change is significant enough to be worth the gas.

    Changes below 5% are never applied. Otherwise the expected revenue gain
    must exceed twice the setSwapFee gas cost.
    """
    if current_fee == 0:
        fee_change_pct = math.inf if optimal_fee != 0 else 0.0
    else:
        fee_change_pct = abs(optimal_fee - current_fee) / current_fee

    if fee_change_pct < 0.05:
        return False

    gas_cost = gas_price * SET_FEE_GAS
    return expected_revenue_delta > gas_cost * 2
