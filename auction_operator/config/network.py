"""
Ledger connection and contract address configuration.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_utils import is_address

from ..core.types import PoolKey, PoolTarget
from .base import BaseConfig, ConfigError, env_field


@dataclass
class NetworkConfig(BaseConfig):
    """RPC endpoint, operator credential and the contracts the operator talks to."""

    RPC_URL: str = env_field(BaseConfig.get_env, "RPC_URL", "http://localhost:8545")
    CHAIN_ID: int = env_field(BaseConfig.get_env_int, "CHAIN_ID", 1)

    # Required for `run`; `inspect` works without it
    OPERATOR_PRIVATE_KEY: Optional[str] = env_field(BaseConfig.get_env, "OPERATOR_PRIVATE_KEY")

    POOL_MANAGER_ADDRESS: Optional[str] = env_field(BaseConfig.get_env, "POOL_MANAGER_ADDRESS")
    HOOK_ADDRESS: Optional[str] = env_field(BaseConfig.get_env, "HOOK_ADDRESS")
    REGISTRY_ADDRESS: Optional[str] = env_field(BaseConfig.get_env, "REGISTRY_ADDRESS")

    # currency0:currency1:fee:tickSpacing, comma separated
    MONITORED_POOLS: List[str] = env_field(BaseConfig.get_env_list, "MONITORED_POOLS")

    @property
    def has_registry(self) -> bool:
        return bool(self.REGISTRY_ADDRESS)

    def require_private_key(self) -> str:
        """
        Return the operator key or fail.

        Raises:
            ConfigError: If OPERATOR_PRIVATE_KEY is not set
        """
        if not self.OPERATOR_PRIVATE_KEY:
            raise ConfigError("Required environment variable 'OPERATOR_PRIVATE_KEY' is not set")
        return self.OPERATOR_PRIVATE_KEY

    def validate_addresses(self):
        """
        Check contract addresses.

        Raises:
            ConfigError: If a required address is missing or malformed
        """
        for key in ("POOL_MANAGER_ADDRESS", "HOOK_ADDRESS"):
            value = getattr(self, key)
            if not value:
                raise ConfigError(f"Required environment variable '{key}' is not set")
            if not is_address(value):
                raise ConfigError(f"{key} is not a valid address: {value}")

        if self.REGISTRY_ADDRESS and not is_address(self.REGISTRY_ADDRESS):
            raise ConfigError(f"REGISTRY_ADDRESS is not a valid address: {self.REGISTRY_ADDRESS}")

    def get_pool_targets(self) -> List[PoolTarget]:
        """
        Parse MONITORED_POOLS into pool targets keyed on the configured hook.

        Raises:
            ConfigError: If an entry is malformed
        """
        targets = []
        for entry in self.MONITORED_POOLS:
            try:
                pool_key = PoolKey.parse(entry, self.HOOK_ADDRESS)
            except (ValueError, TypeError) as e:
                raise ConfigError(f"Invalid MONITORED_POOLS entry '{entry}': {e}")
            targets.append(PoolTarget(pool_key=pool_key))
        return targets

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary, hiding the private key."""
        data = super().to_dict()
        if data.get("OPERATOR_PRIVATE_KEY"):
            data["OPERATOR_PRIVATE_KEY"] = "***"
        return data
