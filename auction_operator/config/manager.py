"""
Configuration manager for the auction operator.

This module provides a centralized way to access all configuration settings
across the application. It combines all configuration classes into a single
easy-to-use interface.
"""

import logging
from typing import Dict, Any, Optional

from .base import BaseConfig, ConfigError
from .monitoring import MonitoringConfig
from .network import NetworkConfig
from .strategy import StrategyConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Centralized configuration manager that combines all configuration classes.

    Sections are built from the current environment when the manager is
    created; build a new manager to pick up changes.
    """

    def __init__(self, environment: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            environment: Override the environment (local, dev, staging, production)
        """
        self._environment = environment
        self._base_config = None
        self._network_config = None
        self._strategy_config = None
        self._monitoring_config = None
        self._initialize_configs()

    def _initialize_configs(self):
        """Initialize all configuration objects."""
        try:
            self._base_config = BaseConfig()
            if self._environment:
                self._base_config.ENVIRONMENT = self._environment
                self._base_config._validate_config()

            self._network_config = NetworkConfig()
            self._strategy_config = StrategyConfig()
            self._monitoring_config = MonitoringConfig()

            logger.info(f"Configuration initialized for environment: {self.environment}")

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize configuration: {e}")
            raise ConfigError(f"Configuration initialization failed: {e}")

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self._base_config.ENVIRONMENT

    @property
    def base(self) -> BaseConfig:
        return self._base_config

    @property
    def network(self) -> NetworkConfig:
        return self._network_config

    @property
    def strategy(self) -> StrategyConfig:
        return self._strategy_config

    @property
    def monitoring(self) -> MonitoringConfig:
        return self._monitoring_config

    def validate_configuration(self, require_pools: bool = False) -> bool:
        """
        Validate cross-section settings.

        Args:
            require_pools: Fail when MONITORED_POOLS is empty

        Returns:
            True if all configurations are valid

        Raises:
            ConfigError: If any configuration is invalid
        """
        try:
            self.network.validate_addresses()
            targets = self.network.get_pool_targets()
            if require_pools and not targets:
                raise ConfigError("No pools configured (MONITORED_POOLS is empty)")

            logger.info("Configuration validation successful")
            return True

        except ConfigError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def to_dict(self) -> Dict[str, Any]:
        """Convert all configurations to dictionary format."""
        return {
            "environment": self.environment,
            "base": self.base.to_dict() if self.base else {},
            "network": self.network.to_dict() if self.network else {},
            "strategy": self.strategy.to_dict() if self.strategy else {},
            "monitoring": self.monitoring.to_dict() if self.monitoring else {},
        }

    def __repr__(self) -> str:
        """String representation of the configuration manager."""
        return f"ConfigManager(environment={self.environment})"
