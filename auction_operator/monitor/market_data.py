"""
Market signals derived from a pool's rolling price and volume history.
"""

import logging
import math
import time
from collections import deque
from typing import Callable, Deque, Optional, Sequence

from ..core.types import MarketData, PoolState, div_trunc

logger = logging.getLogger(__name__)

PRICE_HISTORY_SIZE = 100
VOLUME_HISTORY_SIZE = 24

Q96 = 2**96

# Returns the current 24h volume (wei) for a pool id
VolumeSource = Callable[[str], int]


def fixed_volume_source(volume24h: int) -> VolumeSource:
    """Volume source reporting the same figure for every pool."""
    return lambda pool_id: volume24h


def sqrt_price_to_price(sqrt_price_x96: int) -> float:
    """Spot price token1/token0 from the Q64.96 square root price."""
    return (sqrt_price_x96 / Q96) ** 2


def calculate_volatility(prices: Sequence[float]) -> float:
    """
    Annualised volatility of log returns.

    Population variance over consecutive positive samples, scaled by 365.
    Returns 0 with fewer than two usable samples.
    """
    returns = [
        math.log(current / previous)
        for previous, current in zip(prices, prices[1:])
        if previous > 0 and current > 0
    ]
    if not returns:
        return 0.0

    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    return math.sqrt(variance * 365)


def calculate_price_change(current: float, previous: float) -> float:
    """Percent change; 0 when there is no previous price."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def calculate_volume_change(current: int, previous: int) -> int:
    """Whole-percent change truncated toward zero; 0 when previous is 0."""
    if previous == 0:
        return 0
    return div_trunc((current - previous) * 100, previous)


class MarketDataCalculator:
    """
    Rolling market history for one pool.

    Holds the last 100 price samples and the last 24 volume samples; the
    oldest sample is evicted when a buffer is full. Only the owning poll
    loop appends.
    """

    def __init__(
        self,
        volume_source: VolumeSource,
        spread: float = 0.001,
        trades: int = 100,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.volume_source = volume_source
        self.spread = spread
        self.trades = trades
        self._clock = clock or time.time
        self.prices: Deque[float] = deque(maxlen=PRICE_HISTORY_SIZE)
        self.volumes: Deque[int] = deque(maxlen=VOLUME_HISTORY_SIZE)

    def calculate(self, pool_state: PoolState) -> MarketData:
        """Append the pool's current price and volume, then derive signals."""
        self.prices.append(sqrt_price_to_price(pool_state.sqrt_price_x96))
        volume24h = self.volume_source(pool_state.pool_id)
        self.volumes.append(volume24h)

        prices = list(self.prices)
        volatility = calculate_volatility(prices)
        price_change = calculate_price_change(prices[-1], prices[-2]) if len(prices) > 1 else 0.0
        volume_change = (
            calculate_volume_change(self.volumes[-1], self.volumes[-2])
            if len(self.volumes) > 1 else 0
        )

        logger.debug(
            f"Market data for {pool_state.pool_id}: volatility={volatility:.4f} "
            f"price_change={price_change:.4f}% samples={len(prices)}"
        )

        return MarketData(
            pool_id=pool_state.pool_id,
            timestamp=int(self._clock() * 1000),
            volatility=volatility,
            volume24h=volume24h,
            volume_change=float(volume_change),
            price_change=price_change,
            spread=self.spread,
            trades=self.trades,
        )

    def reset(self):
        self.prices.clear()
        self.volumes.clear()
