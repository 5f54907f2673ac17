"""
Configuration management: defaults, YAML loading, validation and the
cached trading-settings provider.
"""
from .defaults import AppConfig, get_default_config
from .loader import ConfigLoader
from .settings import CachedSettingsProvider, TradingSettings, YamlSettingsSource

__all__ = [
    "AppConfig",
    "get_default_config",
    "ConfigLoader",
    "CachedSettingsProvider",
    "TradingSettings",
    "YamlSettingsSource",
]
