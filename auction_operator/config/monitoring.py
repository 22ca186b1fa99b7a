"""
Runtime timing, execution and market-default configuration.
"""

from dataclasses import dataclass
from typing import Optional

from eth_utils import to_wei

from .base import BaseConfig, ConfigError, env_field


@dataclass
class MonitoringConfig(BaseConfig):
    """Loop intervals, transaction settings and market data defaults."""

    # Seconds
    POOL_REFRESH_INTERVAL: float = env_field(BaseConfig.get_env_float, "POOL_REFRESH_INTERVAL", 12.0)  # ~1 block
    HEALTH_CHECK_INTERVAL: float = env_field(BaseConfig.get_env_float, "HEALTH_CHECK_INTERVAL", 60.0)
    BID_EVALUATION_INTERVAL: float = env_field(BaseConfig.get_env_float, "BID_EVALUATION_INTERVAL", 120.0)
    WITHDRAWAL_CHECK_INTERVAL: float = env_field(BaseConfig.get_env_float, "WITHDRAWAL_CHECK_INTERVAL", 60.0)
    ATTESTATION_INTERVAL: float = env_field(BaseConfig.get_env_float, "ATTESTATION_INTERVAL", 3600.0)
    # Registry task the attestation loop reports against; unset disables the loop
    ATTESTATION_TASK_ID: Optional[str] = env_field(BaseConfig.get_env, "ATTESTATION_TASK_ID")

    GAS_PRICE_MULTIPLIER: float = env_field(BaseConfig.get_env_float, "GAS_PRICE_MULTIPLIER", 1.2)
    TX_TIMEOUT_SECONDS: int = env_field(BaseConfig.get_env_int, "TX_TIMEOUT_SECONDS", 120)

    # No volume indexer yet, so market inputs default to fixed values
    MARKET_VOLUME_24H_WEI: int = env_field(BaseConfig.get_env_int, "MARKET_VOLUME_24H_WEI", 10**18)
    MARKET_SPREAD: float = env_field(BaseConfig.get_env_float, "MARKET_SPREAD", 0.001)
    MARKET_TRADE_COUNT: int = env_field(BaseConfig.get_env_int, "MARKET_TRADE_COUNT", 100)

    LOW_BALANCE_WARNING_ETH: float = env_field(BaseConfig.get_env_float, "LOW_BALANCE_WARNING_ETH", 0.1)
    DRY_RUN: bool = env_field(BaseConfig.get_env_bool, "DRY_RUN", False)

    def _validate_config(self):
        """Validate intervals and multipliers."""
        super()._validate_config()

        for key in (
            "POOL_REFRESH_INTERVAL",
            "HEALTH_CHECK_INTERVAL",
            "BID_EVALUATION_INTERVAL",
            "WITHDRAWAL_CHECK_INTERVAL",
            "ATTESTATION_INTERVAL",
        ):
            if getattr(self, key) <= 0:
                raise ConfigError(f"{key} must be positive, got {getattr(self, key)}")

        if self.GAS_PRICE_MULTIPLIER < 1.0:
            raise ConfigError(f"GAS_PRICE_MULTIPLIER must be >= 1.0, got {self.GAS_PRICE_MULTIPLIER}")

        if self.TX_TIMEOUT_SECONDS <= 0:
            raise ConfigError(f"TX_TIMEOUT_SECONDS must be positive, got {self.TX_TIMEOUT_SECONDS}")

        if self.MARKET_VOLUME_24H_WEI < 0 or self.MARKET_TRADE_COUNT < 0 or self.MARKET_SPREAD < 0:
            raise ConfigError("Market defaults must be non-negative")

        if self.ATTESTATION_TASK_ID is not None and not self.ATTESTATION_TASK_ID.isdigit():
            raise ConfigError(f"ATTESTATION_TASK_ID must be a non-negative integer, got: {self.ATTESTATION_TASK_ID}")

    @property
    def attestation_task_id(self) -> Optional[int]:
        return int(self.ATTESTATION_TASK_ID) if self.ATTESTATION_TASK_ID is not None else None

    @property
    def low_balance_warning_wei(self) -> int:
        return to_wei(str(self.LOW_BALANCE_WARNING_ETH), "ether")
