"""
Fee optimization and bidding configuration.
"""

from dataclasses import dataclass

from eth_utils import to_wei

from ..core.types import BidConfig, OptimizationConfig
from .base import BaseConfig, ConfigError, env_field


@dataclass
class StrategyConfig(BaseConfig):
    """Weights and bounds for the fee engine, economics for the bid engine."""

    VOLATILITY_WEIGHT: float = env_field(BaseConfig.get_env_float, "VOLATILITY_WEIGHT", 0.4)
    VOLUME_WEIGHT: float = env_field(BaseConfig.get_env_float, "VOLUME_WEIGHT", 0.3)
    SPREAD_WEIGHT: float = env_field(BaseConfig.get_env_float, "SPREAD_WEIGHT", 0.3)

    # Hundredths of a basis point
    MIN_FEE: int = env_field(BaseConfig.get_env_int, "MIN_FEE", 100)  # 0.01%
    MAX_FEE: int = env_field(BaseConfig.get_env_int, "MAX_FEE", 10000)  # 1%

    MIN_PROFIT_MARGIN: float = env_field(BaseConfig.get_env_float, "MIN_PROFIT_MARGIN", 0.001)
    MAX_BID_AMOUNT_ETH: float = env_field(BaseConfig.get_env_float, "MAX_BID_AMOUNT_ETH", 1.0)
    RISK_TOLERANCE: float = env_field(BaseConfig.get_env_float, "RISK_TOLERANCE", 0.5)

    # Mirrors the hook's constants
    MIN_DEPOSIT_BLOCKS: int = env_field(BaseConfig.get_env_int, "MIN_DEPOSIT_BLOCKS", 100)
    ACTIVATION_DELAY: int = env_field(BaseConfig.get_env_int, "ACTIVATION_DELAY", 5)

    def _validate_config(self):
        """Validate weights and bounds."""
        super()._validate_config()

        weight_sum = self.VOLATILITY_WEIGHT + self.VOLUME_WEIGHT + self.SPREAD_WEIGHT
        if abs(weight_sum - 1.0) > 0.01:
            raise ConfigError(f"Optimization weights must sum to 1.0, got {weight_sum:.3f}")

        if not 0 <= self.MIN_FEE <= self.MAX_FEE <= 1_000_000:
            raise ConfigError(f"Fee bounds must satisfy 0 <= MIN_FEE <= MAX_FEE <= 1000000, got {self.MIN_FEE}/{self.MAX_FEE}")

        if not 0 < self.MIN_PROFIT_MARGIN < 1:
            raise ConfigError(f"MIN_PROFIT_MARGIN must be between 0 and 1, got {self.MIN_PROFIT_MARGIN}")

        if not 0 <= self.RISK_TOLERANCE <= 1:
            raise ConfigError(f"RISK_TOLERANCE must be between 0 and 1, got {self.RISK_TOLERANCE}")

        if self.MAX_BID_AMOUNT_ETH <= 0:
            raise ConfigError(f"MAX_BID_AMOUNT_ETH must be positive, got {self.MAX_BID_AMOUNT_ETH}")

        if self.MIN_DEPOSIT_BLOCKS < 1:
            raise ConfigError(f"MIN_DEPOSIT_BLOCKS must be >= 1, got {self.MIN_DEPOSIT_BLOCKS}")

    @property
    def max_bid_amount_wei(self) -> int:
        return to_wei(str(self.MAX_BID_AMOUNT_ETH), "ether")

    def to_optimization_config(self) -> OptimizationConfig:
        return OptimizationConfig(
            volatility_weight=self.VOLATILITY_WEIGHT,
            volume_weight=self.VOLUME_WEIGHT,
            spread_weight=self.SPREAD_WEIGHT,
            min_fee=self.MIN_FEE,
            max_fee=self.MAX_FEE,
        )

    def to_bid_config(self, operator_address: str) -> BidConfig:
        return BidConfig(
            operator_address=operator_address,
            min_profit_margin=self.MIN_PROFIT_MARGIN,
            max_bid_amount_wei=self.max_bid_amount_wei,
            risk_tolerance=self.RISK_TOLERANCE,
            min_deposit_blocks=self.MIN_DEPOSIT_BLOCKS,
            activation_delay=self.ACTIVATION_DELAY,
        )
