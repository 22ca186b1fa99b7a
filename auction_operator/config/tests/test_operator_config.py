"""
Test suite for the operator configuration system.

Tests environment loading, section validation and manager integration.
"""

import pytest

from auction_operator.config import (
    BaseConfig,
    ConfigError,
    ConfigManager,
    MonitoringConfig,
    NetworkConfig,
    StrategyConfig,
)

HOOK = "0x" + "ab" * 20
POOL_MANAGER = "0x" + "cd" * 20
TOKEN0 = "0x" + "11" * 20
TOKEN1 = "0x" + "22" * 20

ENV_KEYS = [
    "ENVIRONMENT", "LOG_LEVEL", "LOG_FILE", "RPC_URL", "CHAIN_ID",
    "OPERATOR_PRIVATE_KEY", "POOL_MANAGER_ADDRESS", "HOOK_ADDRESS",
    "REGISTRY_ADDRESS", "MONITORED_POOLS", "VOLATILITY_WEIGHT",
    "VOLUME_WEIGHT", "SPREAD_WEIGHT", "MIN_FEE", "MAX_FEE",
    "MIN_PROFIT_MARGIN", "MAX_BID_AMOUNT_ETH", "RISK_TOLERANCE",
    "POOL_REFRESH_INTERVAL", "GAS_PRICE_MULTIPLIER", "DRY_RUN", "ATTESTATION_TASK_ID",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from a known environment."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("POOL_MANAGER_ADDRESS", POOL_MANAGER)
    monkeypatch.setenv("HOOK_ADDRESS", HOOK)


class TestEnvHelpers:
    """Test the BaseConfig environment accessors."""

    def test_get_env_required_missing(self):
        """Test that a missing required variable raises ConfigError."""
        with pytest.raises(ConfigError, match="MISSING_KEY"):
            BaseConfig.get_env("MISSING_KEY", required=True)

    def test_get_env_int_invalid(self, monkeypatch):
        """Test that a non-integer value raises ConfigError."""
        monkeypatch.setenv("CHAIN_ID", "mainnet")
        with pytest.raises(ConfigError, match="must be an integer"):
            BaseConfig.get_env_int("CHAIN_ID", 1)

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("yes", True), ("false", False), ("0", False),
    ])
    def test_get_env_bool(self, monkeypatch, raw, expected):
        """Test boolean parsing."""
        monkeypatch.setenv("DRY_RUN", raw)
        assert BaseConfig.get_env_bool("DRY_RUN") is expected

    def test_get_env_list_strips_items(self, monkeypatch):
        """Test list parsing drops blanks and whitespace."""
        monkeypatch.setenv("MONITORED_POOLS", " a , b ,, c ")
        assert BaseConfig.get_env_list("MONITORED_POOLS") == ["a", "b", "c"]

    def test_invalid_environment(self, monkeypatch):
        """Test that an unknown ENVIRONMENT is rejected."""
        monkeypatch.setenv("ENVIRONMENT", "qa")
        with pytest.raises(ConfigError, match="Invalid environment"):
            BaseConfig()


class TestStrategyConfig:
    """Test fee and bid settings."""

    def test_defaults(self):
        """Test default weights, bounds and budget."""
        config = StrategyConfig()
        assert config.VOLATILITY_WEIGHT == 0.4
        assert config.MIN_FEE == 100
        assert config.MAX_FEE == 10000
        assert config.max_bid_amount_wei == 10**18

    def test_weights_must_sum_to_one(self, monkeypatch):
        """Test that weights outside 1.0 +- 0.01 are rejected."""
        monkeypatch.setenv("VOLATILITY_WEIGHT", "0.5")
        with pytest.raises(ConfigError, match="sum to 1.0"):
            StrategyConfig()

    def test_weights_within_tolerance(self, monkeypatch):
        """Test that a small rounding error is tolerated."""
        monkeypatch.setenv("VOLATILITY_WEIGHT", "0.405")
        assert StrategyConfig().VOLATILITY_WEIGHT == 0.405

    @pytest.mark.parametrize("margin", ["0", "1", "1.5"])
    def test_profit_margin_bounds(self, monkeypatch, margin):
        """Test MIN_PROFIT_MARGIN must lie strictly between 0 and 1."""
        monkeypatch.setenv("MIN_PROFIT_MARGIN", margin)
        with pytest.raises(ConfigError, match="MIN_PROFIT_MARGIN"):
            StrategyConfig()

    def test_risk_tolerance_bounds(self, monkeypatch):
        """Test RISK_TOLERANCE outside [0, 1] is rejected."""
        monkeypatch.setenv("RISK_TOLERANCE", "1.2")
        with pytest.raises(ConfigError, match="RISK_TOLERANCE"):
            StrategyConfig()

    def test_fee_bounds_order(self, monkeypatch):
        """Test MIN_FEE above MAX_FEE is rejected."""
        monkeypatch.setenv("MIN_FEE", "20000")
        with pytest.raises(ConfigError, match="Fee bounds"):
            StrategyConfig()

    def test_to_bid_config(self):
        """Test conversion into the bid engine's config."""
        bid_config = StrategyConfig().to_bid_config("0x" + "01" * 20)
        assert bid_config.operator_address == "0x" + "01" * 20
        assert bid_config.max_bid_amount_wei == 10**18
        assert bid_config.min_deposit_blocks == 100
        assert bid_config.activation_delay == 5


class TestNetworkConfig:
    """Test addresses and pool parsing."""

    def test_pool_targets(self, monkeypatch):
        """Test MONITORED_POOLS entries become pool targets on the hook."""
        monkeypatch.setenv("MONITORED_POOLS", f"{TOKEN0}:{TOKEN1}:3000:60")
        targets = NetworkConfig().get_pool_targets()

        assert len(targets) == 1
        assert targets[0].pool_key.fee == 3000
        assert targets[0].pool_key.tick_spacing == 60
        assert targets[0].pool_key.hooks.lower() == HOOK
        assert targets[0].pool_id == targets[0].pool_key.pool_id

    def test_malformed_pool_entry(self, monkeypatch):
        """Test a malformed entry raises ConfigError."""
        monkeypatch.setenv("MONITORED_POOLS", f"{TOKEN0}:{TOKEN1}:3000")
        with pytest.raises(ConfigError, match="Invalid MONITORED_POOLS entry"):
            NetworkConfig().get_pool_targets()

    def test_missing_hook_address(self, monkeypatch):
        """Test address validation requires the hook."""
        monkeypatch.delenv("HOOK_ADDRESS")
        with pytest.raises(ConfigError, match="HOOK_ADDRESS"):
            NetworkConfig().validate_addresses()

    def test_require_private_key(self):
        """Test the operator key is only demanded on request."""
        config = NetworkConfig()
        with pytest.raises(ConfigError, match="OPERATOR_PRIVATE_KEY"):
            config.require_private_key()

    def test_to_dict_masks_key(self, monkeypatch):
        """Test the private key never appears in dumps."""
        monkeypatch.setenv("OPERATOR_PRIVATE_KEY", "0x" + "99" * 32)
        assert NetworkConfig().to_dict()["OPERATOR_PRIVATE_KEY"] == "***"


class TestMonitoringConfig:
    """Test runtime settings."""

    def test_defaults(self):
        """Test documented defaults."""
        config = MonitoringConfig()
        assert config.POOL_REFRESH_INTERVAL == 12.0
        assert config.GAS_PRICE_MULTIPLIER == 1.2
        assert config.TX_TIMEOUT_SECONDS == 120
        assert config.MARKET_VOLUME_24H_WEI == 10**18
        assert config.DRY_RUN is False

    def test_multiplier_below_one(self, monkeypatch):
        """Test a gas multiplier below 1.0 is rejected."""
        monkeypatch.setenv("GAS_PRICE_MULTIPLIER", "0.9")
        with pytest.raises(ConfigError, match="GAS_PRICE_MULTIPLIER"):
            MonitoringConfig()

    def test_attestation_task_id(self, monkeypatch):
        """Test the attestation task is optional and must be an integer."""
        assert MonitoringConfig().attestation_task_id is None

        monkeypatch.setenv("ATTESTATION_TASK_ID", "42")
        assert MonitoringConfig().attestation_task_id == 42

        monkeypatch.setenv("ATTESTATION_TASK_ID", "task-42")
        with pytest.raises(ConfigError, match="ATTESTATION_TASK_ID"):
            MonitoringConfig()


class TestConfigManager:
    """Test the combined manager."""

    def test_sections_available(self):
        """Test every section is initialized."""
        manager = ConfigManager()
        assert manager.environment == "local"
        assert manager.network.RPC_URL == "http://localhost:8545"
        assert manager.strategy.MIN_FEE == 100
        assert manager.monitoring.HEALTH_CHECK_INTERVAL == 60.0

    def test_environment_override(self):
        """Test the environment can be overridden."""
        assert ConfigManager(environment="staging").environment == "staging"

    def test_validate_requires_pools(self):
        """Test validation can demand at least one pool."""
        manager = ConfigManager()
        assert manager.validate_configuration() is True
        with pytest.raises(ConfigError, match="No pools configured"):
            manager.validate_configuration(require_pools=True)

    def test_invalid_section_propagates(self, monkeypatch):
        """Test a section error surfaces as ConfigError."""
        monkeypatch.setenv("SPREAD_WEIGHT", "0.9")
        with pytest.raises(ConfigError):
            ConfigManager()

    def test_to_dict_groups_sections(self, monkeypatch):
        """Test the combined dump has every section and masks the key."""
        monkeypatch.setenv("OPERATOR_PRIVATE_KEY", "0x" + "99" * 32)
        data = ConfigManager().to_dict()

        assert set(data) == {"environment", "base", "network", "strategy", "monitoring"}
        assert data["network"]["OPERATOR_PRIVATE_KEY"] == "***"
        assert data["strategy"]["MIN_FEE"] == 100
