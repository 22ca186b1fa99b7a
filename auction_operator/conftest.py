"""Shared test fixtures: factories for domain values."""

import pytest

from auction_operator.core.result import Nothing, Some
from auction_operator.core.types import (
    WEI_PER_ETH,
    AuctionState,
    BidConfig,
    MarketData,
    OptimalFee,
    OptimizationConfig,
    PoolKey,
    PoolState,
)

OPERATOR = "0x" + "0a" * 20
OTHER_MANAGER = "0x" + "0b" * 20
HOOK = "0x" + "ab" * 20
TOKEN0 = "0x" + "11" * 20
TOKEN1 = "0x" + "22" * 20
POOL_ID = "0x" + "33" * 32
NOW_MS = 1_700_000_000_000


@pytest.fixture
def operator_address():
    return OPERATOR


@pytest.fixture
def pool_key():
    return PoolKey(currency0=TOKEN0, currency1=TOKEN1, fee=3000, tick_spacing=60, hooks=HOOK)


@pytest.fixture
def make_pool_state():
    """Factory for pool states; keyword overrides replace defaults."""

    def _make(**overrides):
        values = dict(
            pool_id=POOL_ID,
            token0=TOKEN0,
            token1=TOKEN1,
            current_manager=Nothing(),
            rent_per_block=10**12,
            swap_fee=3000,
            liquidity=100 * WEI_PER_ETH,
            sqrt_price_x96=2**96,
            tick=0,
            last_update_block=1000,
        )
        values.update(overrides)
        return PoolState(**values)

    return _make


@pytest.fixture
def make_auction_state():
    """Factory for auction states with no manager and no challenger."""

    def _make(**overrides):
        values = dict(
            current_manager=Nothing(),
            current_rent=10**12,
            next_bidder=Nothing(),
            next_rent=0,
            activation_block=0,
            manager_deposit=0,
        )
        values.update(overrides)
        return AuctionState(**values)

    return _make


@pytest.fixture
def make_market_data():
    """Factory for fresh market data at NOW_MS."""

    def _make(**overrides):
        values = dict(
            pool_id=POOL_ID,
            timestamp=NOW_MS,
            volatility=0.2,
            volume24h=WEI_PER_ETH,
            volume_change=0.0,
            price_change=0.0,
            spread=0.001,
            trades=100,
        )
        values.update(overrides)
        return MarketData(**values)

    return _make


@pytest.fixture
def make_optimal_fee():
    def _make(**overrides):
        values = dict(
            fee=3000,
            confidence=1.0,
            expected_volume=100 * WEI_PER_ETH,
            expected_revenue=3 * 10**17,
            reasoning="test",
        )
        values.update(overrides)
        return OptimalFee(**values)

    return _make


@pytest.fixture
def optimization_config():
    return OptimizationConfig()


@pytest.fixture
def bid_config():
    return BidConfig(
        operator_address=OPERATOR,
        min_profit_margin=0.001,
        max_bid_amount_wei=WEI_PER_ETH,
        risk_tolerance=0.5,
    )


@pytest.fixture
def managed_by_operator():
    return Some(OPERATOR)
