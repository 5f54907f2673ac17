"""Unit tests for configuration management."""

from dataclasses import replace
from pathlib import Path

import pytest
import yaml

from tradebot_app.config.defaults import ExecutionParams, get_default_config
from tradebot_app.config.loader import ConfigLoader
from tradebot_app.config.validation import ConfigValidator
from tradebot_app.errors import ConfigurationError


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test that default configuration carries the documented defaults."""
        config = get_default_config()

        assert config.broker.max_retries == 2
        assert config.broker.backoff_unit_seconds == 2.0
        assert config.watcher.poll_interval_seconds == 1.2
        assert config.watcher.timeout_seconds == 900.0
        assert config.watcher.min_poll_interval_seconds == 0.1
        assert config.execution.slippage_pct == 0.2
        assert config.execution.max_spread_bps is None
        assert config.execution.stop_loss_policy == "signal"
        assert config.reconciler.interval_seconds == 10.0
        assert config.reconciler.lookback_minutes == 60
        assert config.settings.cache_ttl_seconds == 10.0

    def test_defaults_are_valid(self) -> None:
        """Test that defaults pass validation."""
        assert ConfigValidator.validate_config(get_default_config()) == []


class TestConfigLoader:
    """Test suite for configuration loader."""

    def write_config(self, config_dir: Path, data) -> None:
        (config_dir / "tradebot.yaml").write_text(yaml.safe_dump(data), encoding="utf-8")

    def test_defaults_without_file(self, tmp_path) -> None:
        """Test that a missing config file yields the defaults."""
        loader = ConfigLoader.create(tmp_path)

        assert loader.load(environ={}) == get_default_config()

    def test_file_overrides_defaults(self, tmp_path) -> None:
        """Test that tradebot.yaml overrides individual defaults."""
        self.write_config(tmp_path, {
            "watcher": {"poll_interval_seconds": 2.0},
            "execution": {"max_spread_bps": 50, "stop_loss_policy": "shift_with_fill"},
        })

        config = ConfigLoader.create(tmp_path).load(environ={})

        assert config.watcher.poll_interval_seconds == 2.0
        assert config.watcher.timeout_seconds == 900.0
        assert config.execution.max_spread_bps == 50
        assert config.execution.stop_loss_policy == "shift_with_fill"

    def test_environment_overrides_file(self, tmp_path) -> None:
        """Test that credential environment variables win over the file."""
        self.write_config(tmp_path, {"broker": {"api_key_id": "from-file", "base_url": "https://file"}})
        environ = {"APCA_API_KEY_ID": "from-env", "APCA_API_SECRET_KEY": "secret"}

        config = ConfigLoader.create(tmp_path).load(environ=environ)

        assert config.broker.api_key_id == "from-env"
        assert config.broker.api_secret_key == "secret"
        assert config.broker.base_url == "https://file"

    def test_explicit_overrides_win(self, tmp_path) -> None:
        """Test that explicit overrides have the highest priority."""
        environ = {"APCA_BASE_URL": "https://env"}

        config = ConfigLoader.create(tmp_path).load(
            overrides={"broker": {"base_url": "https://override"}}, environ=environ
        )

        assert config.broker.base_url == "https://override"

    def test_unknown_option_rejected(self, tmp_path) -> None:
        """Test that typos in the config file are reported."""
        self.write_config(tmp_path, {"watcher": {"poll_interval": 2.0}})

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.create(tmp_path).load(environ={})
        assert exc_info.value.field == "watcher"

    def test_non_mapping_file_rejected(self, tmp_path) -> None:
        """Test that a YAML list at the top level is rejected."""
        self.write_config(tmp_path, ["not", "a", "mapping"])

        with pytest.raises(ConfigurationError):
            ConfigLoader.create(tmp_path).load_file_config()

    def test_empty_env_values_ignored(self, tmp_path) -> None:
        """Test that blank environment variables do not override."""
        assert ConfigLoader.create(tmp_path).load_env_config({"APCA_API_KEY_ID": ""}) == {}

    def test_deep_merge(self, tmp_path) -> None:
        """Test nested dictionary merging."""
        loader = ConfigLoader.create(tmp_path)

        merged = loader._deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"c": 5}})

        assert merged == {"a": {"b": 1, "c": 5}, "d": 3}


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_valid_trading_settings(self) -> None:
        """Test validation of valid trading settings."""
        settings = {
            "regex_enabled": True,
            "ai_enabled": False,
            "fixed_budget": "200.00",
            "take_profit_percent": 5,
            "extended_hours_allowed": True,
        }

        assert ConfigValidator.validate_trading_settings(settings) == []

    def test_missing_budget(self) -> None:
        """Test that a missing sizing budget is reported."""
        errors = ConfigValidator.validate_trading_settings({"take_profit_percent": 5})

        assert len(errors) == 1
        assert errors[0].field == "fixed_budget"
        assert errors[0].message == "Required"

    @pytest.mark.parametrize("budget", [0, -5, "abc", "nan", True])
    def test_invalid_budget(self, budget) -> None:
        """Test validation of non-positive or non-numeric budgets."""
        errors = ConfigValidator.validate_trading_settings(
            {"fixed_budget": budget, "take_profit_percent": 5}
        )

        assert [e.field for e in errors] == ["fixed_budget"]

    @pytest.mark.parametrize("pct", [0, 101, "x"])
    def test_invalid_take_profit_percent(self, pct) -> None:
        """Test validation of take-profit percent range."""
        errors = ConfigValidator.validate_trading_settings(
            {"fixed_budget": 200, "take_profit_percent": pct}
        )

        assert [e.field for e in errors] == ["take_profit_percent"]

    def test_invalid_flag(self) -> None:
        """Test validation of boolean toggles."""
        errors = ConfigValidator.validate_trading_settings(
            {"fixed_budget": 200, "take_profit_percent": 5, "ai_enabled": "yes"}
        )

        assert len(errors) == 1
        assert errors[0].field == "ai_enabled"
        assert "Must be a boolean" in errors[0].message

    def test_invalid_runtime_config(self) -> None:
        """Test validation of loaded runtime parameters."""
        config = get_default_config()
        config = replace(
            config,
            execution=ExecutionParams(slippage_pct=-1, max_spread_bps=-5, stop_loss_policy="trailing"),
            watcher=replace(config.watcher, poll_interval_seconds=0),
        )

        fields = {e.field for e in ConfigValidator.validate_config(config)}

        assert fields == {
            "execution.slippage_pct",
            "execution.max_spread_bps",
            "execution.stop_loss_policy",
            "watcher.poll_interval_seconds",
        }
