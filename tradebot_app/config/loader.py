"""Configuration loader: defaults, YAML file, then environment overrides."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ..errors import ConfigurationError
from .defaults import (
    AppConfig,
    BrokerParams,
    ExecutionParams,
    LoggingParams,
    ReconcilerParams,
    SettingsParams,
    WatcherParams,
    get_default_config,
)

CONFIG_FILENAME = "tradebot.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "APCA_API_KEY_ID": ("broker", "api_key_id"),
    "APCA_API_SECRET_KEY": ("broker", "api_secret_key"),
    "APCA_BASE_URL": ("broker", "base_url"),
    "APCA_DATA_URL": ("broker", "data_url"),
}

_SECTIONS = {
    "broker": BrokerParams,
    "watcher": WatcherParams,
    "execution": ExecutionParams,
    "reconciler": ReconcilerParams,
    "settings": SettingsParams,
    "logging": LoggingParams,
}


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: AppConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load ``tradebot.yaml`` overrides, empty when the file is absent."""
        config_file = self.config_dir / CONFIG_FILENAME

        if not config_file.exists():
            return {}

        with open(config_file, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"{config_file} must contain a mapping at the top level",
                field=CONFIG_FILENAME
            )
        return loaded

    def load_env_config(self, environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
        """Collect broker credential/URL overrides from the environment."""
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value:
                overrides.setdefault(section, {})[key] = value
        return overrides

    def merge_config(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides and environment variables (highest priority)
        2. ``tradebot.yaml`` in the config directory
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)
        config = self._deep_merge(config, self.load_file_config())
        config = self._deep_merge(config, self.load_env_config(environ))

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> AppConfig:
        """Load and build the typed application configuration."""
        merged = self.merge_config(overrides, environ)
        sections = {}
        for name, params_cls in _SECTIONS.items():
            section = merged.get(name) or {}
            known = {f.name for f in fields(params_cls)}
            unknown = set(section) - known
            if unknown:
                raise ConfigurationError(
                    f"Unknown {name} option(s): {', '.join(sorted(unknown))}",
                    field=name
                )
            sections[name] = params_cls(**section)
        return AppConfig(**sections)

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
