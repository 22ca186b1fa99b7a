"""
Pool monitoring: ledger reads, rolling market data and shared snapshot feeds.
"""

from .market_data import MarketDataCalculator, fixed_volume_source
from .pool_monitor import PoolMonitor, Subscription
from .state_reader import StateReader

__all__ = [
    "StateReader",
    "MarketDataCalculator",
    "fixed_volume_source",
    "PoolMonitor",
    "Subscription",
]
