"""
Configuration management for the auction operator.

Settings come from environment variables (a ``.env`` file is loaded first).
Build a ConfigManager to access all configuration settings.

Example:
    from auction_operator.config import ConfigManager

    config = ConfigManager()
    config.validate_configuration()

    rpc_url = config.network.RPC_URL
    pools = config.network.get_pool_targets()
    optimization = config.strategy.to_optimization_config()
    interval = config.monitoring.POOL_REFRESH_INTERVAL
"""

from .base import BaseConfig, ConfigError
from .manager import ConfigManager
from .monitoring import MonitoringConfig
from .network import NetworkConfig
from .strategy import StrategyConfig

__all__ = [
    "BaseConfig",
    "ConfigError",
    "NetworkConfig",
    "StrategyConfig",
    "MonitoringConfig",
    "ConfigManager",
]
