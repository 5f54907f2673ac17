"""
Trading settings and their short-lived cache.

Trading settings (parser toggles, sizing budget, take-profit percent and
extended-hours permission) are owned by an external store. The core reads
them through ``CachedSettingsProvider``, which refreshes lazily once the
cached copy is older than its TTL.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
import yaml

from ..errors import ConfigurationError
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TradingSettings:
    """User-editable trading settings."""
    fixed_budget: Decimal
    take_profit_percent: Decimal
    regex_enabled: bool = True
    ai_enabled: bool = False
    extended_hours_allowed: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradingSettings":
        """Build settings from a raw mapping, raising ConfigurationError when invalid."""
        errors = ConfigValidator.validate_trading_settings(data)
        if errors:
            first = errors[0]
            raise ConfigurationError(
                f"Invalid trading settings: {first.field}: {first.message} (got: {first.value})",
                field=first.field,
                context={"errors": [f"{e.field}: {e.message}" for e in errors]}
            )

        return cls(
            fixed_budget=Decimal(str(data["fixed_budget"])),
            take_profit_percent=Decimal(str(data["take_profit_percent"])),
            regex_enabled=data.get("regex_enabled", True),
            ai_enabled=data.get("ai_enabled", False),
            extended_hours_allowed=data.get("extended_hours_allowed", True),
        )


class SettingsSource(ABC):
    """Backing store for trading settings."""

    @abstractmethod
    def load(self) -> TradingSettings:
        """Load the current settings from the store."""

    def save(self, settings: TradingSettings) -> None:
        """Persist settings; read-only sources reject writes."""
        raise ConfigurationError(f"{type(self).__name__} is read-only")


class YamlSettingsSource(SettingsSource):
    """Reads the ``settings:`` section of a YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> TradingSettings:
        if not self.path.exists():
            raise ConfigurationError(
                f"Settings file not found: {self.path}",
                field="settings_file"
            )

        with open(self.path, encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}

        section = document.get("settings", document) if isinstance(document, dict) else None
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"Settings file {self.path} must contain a mapping",
                field="settings_file"
            )
        return TradingSettings.from_dict(section)

    def save(self, settings: TradingSettings) -> None:
        document = {
            "settings": {
                "regex_enabled": settings.regex_enabled,
                "ai_enabled": settings.ai_enabled,
                "fixed_budget": str(settings.fixed_budget),
                "take_profit_percent": str(settings.take_profit_percent),
                "extended_hours_allowed": settings.extended_hours_allowed,
            }
        }
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(document, f, sort_keys=False, allow_unicode=True)


class CachedSettingsProvider:
    """Thread-safe settings cache with lazy refresh after ``ttl_seconds``."""

    def __init__(
        self,
        source: SettingsSource,
        ttl_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[TradingSettings] = None
        self._loaded_at = 0.0

    def get(self) -> TradingSettings:
        """Return cached settings, reloading from the source once stale."""
        with self._lock:
            now = self._clock()
            if self._cached is None or now - self._loaded_at >= self.ttl_seconds:
                self._cached = self.source.load()
                self._loaded_at = now
                logger.debug(
                    "Trading settings refreshed",
                    regex_enabled=self._cached.regex_enabled,
                    ai_enabled=self._cached.ai_enabled,
                    fixed_budget=str(self._cached.fixed_budget),
                    take_profit_percent=str(self._cached.take_profit_percent)
                )
            return self._cached

    def update(self, settings: TradingSettings) -> TradingSettings:
        """Persist new settings and make them visible immediately."""
        with self._lock:
            self.source.save(settings)
            self._cached = settings
            self._loaded_at = self._clock()
        logger.info("Trading settings updated")
        return settings

    def invalidate(self) -> None:
        """Drop the cached copy so the next read hits the source."""
        with self._lock:
            self._cached = None
