"""Default configuration parameters for the signal execution system."""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class BrokerParams:
    """Brokerage REST endpoint and retry parameters."""
    base_url: str = "https://paper-api.alpaca.markets"
    data_url: str = "https://data.alpaca.markets/v2"
    api_key_id: str = ""
    api_secret_key: str = ""
    timeout_seconds: float = 20.0
    max_retries: int = 2                 # 2 retries => 3 attempts
    backoff_unit_seconds: float = 2.0    # sleep = unit * (attempt_index + 1)


@dataclass(frozen=True)
class WatcherParams:
    """Price-trigger watcher parameters."""
    poll_interval_seconds: float = 1.2
    timeout_seconds: float = 900.0       # 15 minutes
    min_poll_interval_seconds: float = 0.1
    max_workers: int = field(default_factory=lambda: max(2, (os.cpu_count() or 2) // 2))


@dataclass(frozen=True)
class ExecutionParams:
    """Entry/exit execution parameters."""
    slippage_pct: float = 0.2                 # marketable limit = trigger * (1 + pct/100)
    max_spread_bps: Optional[int] = None      # None => never skip on spread
    stop_loss_policy: str = "signal"          # "signal" | "shift_with_fill"


@dataclass(frozen=True)
class ReconcilerParams:
    """Exit reconciliation poller parameters."""
    interval_seconds: float = 10.0
    initial_delay_seconds: float = 5.0
    lookback_minutes: int = 60
    list_limit: int = 100
    seen_capacity: int = 10000


@dataclass(frozen=True)
class SettingsParams:
    """Trading-settings cache parameters."""
    cache_ttl_seconds: float = 10.0
    settings_file: str = "settings.yaml"


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    broker: BrokerParams
    watcher: WatcherParams
    execution: ExecutionParams
    reconciler: ReconcilerParams
    settings: SettingsParams
    logging: LoggingParams


def get_default_config() -> AppConfig:
    """Get the default configuration instance."""
    return AppConfig(
        broker=BrokerParams(),
        watcher=WatcherParams(),
        execution=ExecutionParams(),
        reconciler=ReconcilerParams(),
        settings=SettingsParams(),
        logging=LoggingParams(),
    )
