"""
Bid strategy engine: decides whether to bid for pool management and how much.

All amounts are integer wei and every division truncates, matching how the
hook does its own accounting. Decisions not to bid are ordinary values
carrying a reason, not errors.
"""

import math
from dataclasses import dataclass, replace

from ..core.errors import ValidationError
from ..core.result import Err, Ok, Result
from ..core.types import (
    FEE_DENOMINATOR,
    WEI_PER_ETH,
    AuctionState,
    BidConfig,
    BidDecision,
    MarketData,
    OptimalFee,
    PoolState,
    div_trunc,
    same_address,
)

BLOCKS_PER_DAY = 7200  # 12s blocks
BLOCKS_PER_YEAR = 2_628_000

# Withdrawal fee charged to LPs, hundredths of a basis point (0.001%)
WITHDRAWAL_FEE = 10
# Share of liquidity assumed withdrawn per day, percent
DAILY_WITHDRAWAL_PCT = 5

# Averaged over fee updates (~40k gas every 10 blocks) and withdrawals (~100k every 100)
AVG_GAS_PER_BLOCK = 4000

# 5% APY on the locked deposit, per block, scaled by 1e18
YIELD_PER_BLOCK = 5 * 10**16 // BLOCKS_PER_YEAR


@dataclass(frozen=True)
class BidStrategyInput:
    """Everything the bid engine looks at."""

    pool_state: PoolState
    market_data: MarketData
    auction_state: AuctionState
    optimal_fee: OptimalFee
    config: BidConfig
    current_block: int
    gas_price: int


# Revenue

def estimate_swap_fee_revenue(volume24h: int, fee: int) -> int:
    """Swap fee revenue per block."""
    volume_per_block = volume24h // BLOCKS_PER_DAY
    return volume_per_block * fee // FEE_DENOMINATOR


def estimate_withdrawal_fee_revenue(liquidity: int, withdrawal_fee: int = WITHDRAWAL_FEE) -> int:
    """Withdrawal fee revenue per block."""
    daily_withdrawals = liquidity * DAILY_WITHDRAWAL_PCT // 100
    withdrawals_per_block = daily_withdrawals // BLOCKS_PER_DAY
    return withdrawals_per_block * withdrawal_fee // FEE_DENOMINATOR


def estimate_arbitrage_revenue(volatility: float, liquidity: int) -> int:
    """Fee-free arbitrage captured by the manager: 0.01% of volatility-scaled liquidity."""
    arbitrage_factor = math.floor(volatility * 1000)
    return liquidity * arbitrage_factor // 1000 * 10 // 100000


def calculate_expected_revenue_per_block(
    market_data: MarketData,
    pool_state: PoolState,
    optimal_fee: OptimalFee,
) -> int:
    return (
        estimate_swap_fee_revenue(optimal_fee.expected_volume, optimal_fee.fee)
        + estimate_withdrawal_fee_revenue(pool_state.liquidity)
        + estimate_arbitrage_revenue(market_data.volatility, pool_state.liquidity)
    )


# Cost

def calculate_required_deposit(rent_per_block: int, min_deposit_blocks: int) -> int:
    return rent_per_block * min_deposit_blocks


def estimate_operation_gas_costs(gas_price: int) -> int:
    return gas_price * AVG_GAS_PER_BLOCK


def calculate_opportunity_cost(deposit: int) -> int:
    """Yield forgone per block on the locked deposit."""
    return deposit * YIELD_PER_BLOCK // WEI_PER_ETH


def calculate_expected_cost_per_block(rent_per_block: int, deposit: int, gas_price: int) -> int:
    return rent_per_block + estimate_operation_gas_costs(gas_price) + calculate_opportunity_cost(deposit)


# Profit

def calculate_profit_margin(profit: int, revenue: int) -> float:
    """profit / revenue, truncated to four decimals; 0 without revenue."""
    if revenue == 0:
        return 0.0
    return div_trunc(profit * 10000, revenue) / 10000


def estimate_total_profit(profit_per_block: int, deposit: int, rent_per_block: int) -> int:
    """Profit over the management period the deposit pays for."""
    if rent_per_block == 0:
        return 0
    management_period = deposit // rent_per_block
    return profit_per_block * management_period


# Risk

def calculate_risk_score(
    market_data: MarketData,
    pool_state: PoolState,
    auction_state: AuctionState,
    optimal_fee: OptimalFee,
) -> float:
    """Additive risk score capped at 1.0."""
    risk = 0.0

    if market_data.volatility > 0.5:
        risk += 0.3
    elif market_data.volatility > 0.3:
        risk += 0.15

    liquidity_eth = pool_state.liquidity / WEI_PER_ETH
    if liquidity_eth < 10:
        risk += 0.3
    elif liquidity_eth < 50:
        risk += 0.15

    if optimal_fee.confidence < 0.5:
        risk += 0.2
    elif optimal_fee.confidence < 0.7:
        risk += 0.1

    # Someone is already queued to take over
    if auction_state.has_challenger:
        risk += 0.1

    if market_data.volume_change < -20:
        risk += 0.2

    return min(1.0, risk)


def calculate_optimal_rent(
    reference_rent: int,
    expected_revenue: int,
    risk_score: float,
    risk_tolerance: float,
    min_bid_increment: int,
) -> int:
    """Outbid the reference rent by up to half the expected revenue, scaled down by risk."""
    max_bid_increase = expected_revenue // 2
    risk_multiplier = max(0.1, 1 - risk_score + risk_tolerance)
    risk_adjusted_increase = max_bid_increase * math.floor(risk_multiplier * 1000) // 1000
    return reference_rent + min_bid_increment + risk_adjusted_increase


def _no_bid(reasoning: str, rent_amount: int = 0, expected_profit: int = 0,
            profit_margin: float = 0.0, risk_score: float = 0.0) -> Result:
    return Ok(BidDecision(
        should_bid=False,
        rent_amount=rent_amount,
        expected_profit=expected_profit,
        profit_margin=profit_margin,
        risk_score=risk_score,
        reasoning=reasoning,
    ))


def calculate_bid_decision(inputs: BidStrategyInput) -> Result:
    """
    Decide whether to bid and for how much rent per block.

    Args:
        inputs: Pool, market and auction state, the recommended fee,
            bidding config, current block and gas price

    Returns:
        ``Ok(BidDecision)``; ``Err(ValidationError)`` only for unusable inputs
    """
    pool_state = inputs.pool_state
    market_data = inputs.market_data
    auction_state = inputs.auction_state
    optimal_fee = inputs.optimal_fee
    config = inputs.config

    if same_address(auction_state.current_manager, config.operator_address):
        return _no_bid("Already the current manager")

    if (
        same_address(auction_state.next_bidder, config.operator_address)
        and inputs.current_block < auction_state.activation_block
    ):
        return _no_bid("Already the next bidder, waiting for activation")

    if config.min_deposit_blocks < 1:
        return Err(ValidationError(f"min_deposit_blocks must be >= 1, got {config.min_deposit_blocks}"))
    if inputs.gas_price < 0:
        return Err(ValidationError(f"gas_price must be non-negative, got {inputs.gas_price}"))

    expected_revenue = calculate_expected_revenue_per_block(market_data, pool_state, optimal_fee)
    risk_score = calculate_risk_score(market_data, pool_state, auction_state, optimal_fee)

    proposed_rent = calculate_optimal_rent(
        auction_state.reference_rent,
        expected_revenue,
        risk_score,
        config.risk_tolerance,
        config.min_bid_increment,
    )

    required_deposit = calculate_required_deposit(proposed_rent, config.min_deposit_blocks)
    if required_deposit > config.max_bid_amount_wei:
        return _no_bid(
            f"Required deposit ({required_deposit}) exceeds maximum ({config.max_bid_amount_wei})",
            rent_amount=proposed_rent,
            risk_score=risk_score,
        )

    expected_cost = calculate_expected_cost_per_block(proposed_rent, required_deposit, inputs.gas_price)
    profit_per_block = expected_revenue - expected_cost
    profit_margin = calculate_profit_margin(profit_per_block, expected_revenue)

    if profit_margin < config.min_profit_margin:
        return _no_bid(
            f"Profit margin ({profit_margin * 100:.2f}%) below minimum ({config.min_profit_margin * 100:.2f}%)",
            rent_amount=proposed_rent,
            expected_profit=profit_per_block,
            profit_margin=profit_margin,
            risk_score=risk_score,
        )

    total_profit = estimate_total_profit(profit_per_block, required_deposit, proposed_rent)

    reasoning = " | ".join([
        f"Revenue: {expected_revenue} wei/block",
        f"Cost: {expected_cost} wei/block (rent: {proposed_rent})",
        f"Profit: {profit_per_block} wei/block ({profit_margin * 100:.2f}%)",
        f"Total expected: {total_profit} wei",
        f"Risk: {risk_score * 100:.1f}%",
        f"Confidence: {optimal_fee.confidence * 100:.1f}%",
    ])

    return Ok(BidDecision(
        should_bid=True,
        rent_amount=proposed_rent,
        expected_profit=profit_per_block,
        profit_margin=profit_margin,
        risk_score=risk_score,
        reasoning=reasoning,
        total_expected_profit=total_profit,
    ))


def aggressive_bid_strategy(inputs: BidStrategyInput) -> Result:
    """Bid higher to outcompete, accepting a thinner margin."""
    config = inputs.config.adjusted(
        risk_tolerance=min(1.0, inputs.config.risk_tolerance + 0.3),
        min_profit_margin=inputs.config.min_profit_margin * 0.7,
    )
    return calculate_bid_decision(replace(inputs, config=config))


def conservative_bid_strategy(inputs: BidStrategyInput) -> Result:
    """Bid lower and demand a wider margin."""
    config = inputs.config.adjusted(
        risk_tolerance=max(0.0, inputs.config.risk_tolerance - 0.3),
        min_profit_margin=inputs.config.min_profit_margin * 1.5,
    )
    return calculate_bid_decision(replace(inputs, config=config))


def adaptive_bid_strategy(inputs: BidStrategyInput) -> Result:
    """Aggressive against a pending challenger, conservative in volatile markets."""
    if inputs.auction_state.has_challenger:
        return aggressive_bid_strategy(inputs)

    if inputs.market_data.volatility > 0.5:
        return conservative_bid_strategy(inputs)

    return calculate_bid_decision(inputs)
