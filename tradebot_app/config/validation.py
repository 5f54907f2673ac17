"""Configuration validation utilities."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .defaults import AppConfig

STOP_LOSS_POLICIES = ("signal", "shift_with_fill")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _as_decimal(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_trading_settings(settings: dict[str, Any]) -> list[ValidationError]:
        """Validate the user-editable trading settings."""
        errors = []

        for flag in ("regex_enabled", "ai_enabled", "extended_hours_allowed"):
            if flag in settings and not isinstance(settings[flag], bool):
                errors.append(ValidationError(
                    field=flag,
                    message="Must be a boolean",
                    value=settings[flag]
                ))

        if "fixed_budget" not in settings or settings["fixed_budget"] is None:
            errors.append(ValidationError(
                field="fixed_budget",
                message="Required",
                value=None
            ))
        else:
            budget = _as_decimal(settings["fixed_budget"])
            if budget is None or budget <= 0:
                errors.append(ValidationError(
                    field="fixed_budget",
                    message="Must be a positive number",
                    value=settings["fixed_budget"]
                ))

        if "take_profit_percent" not in settings or settings["take_profit_percent"] is None:
            errors.append(ValidationError(
                field="take_profit_percent",
                message="Required",
                value=None
            ))
        else:
            pct = _as_decimal(settings["take_profit_percent"])
            if pct is None or pct <= 0 or pct > 100:
                errors.append(ValidationError(
                    field="take_profit_percent",
                    message="Must be a number in (0, 100]",
                    value=settings["take_profit_percent"]
                ))

        return errors

    @staticmethod
    def validate_config(config: AppConfig) -> list[ValidationError]:
        """Validate runtime parameters of a loaded configuration."""
        errors = []

        if not config.broker.base_url or not config.broker.data_url:
            errors.append(ValidationError(
                field="broker.base_url",
                message="Broker base_url and data_url are required",
                value=(config.broker.base_url, config.broker.data_url)
            ))

        if config.broker.max_retries < 0:
            errors.append(ValidationError(
                field="broker.max_retries",
                message="Must be a non-negative integer",
                value=config.broker.max_retries
            ))

        positives = {
            "broker.timeout_seconds": config.broker.timeout_seconds,
            "watcher.poll_interval_seconds": config.watcher.poll_interval_seconds,
            "watcher.timeout_seconds": config.watcher.timeout_seconds,
            "watcher.max_workers": config.watcher.max_workers,
            "reconciler.interval_seconds": config.reconciler.interval_seconds,
            "reconciler.lookback_minutes": config.reconciler.lookback_minutes,
            "reconciler.list_limit": config.reconciler.list_limit,
            "reconciler.seen_capacity": config.reconciler.seen_capacity,
            "settings.cache_ttl_seconds": config.settings.cache_ttl_seconds,
        }
        for name, value in positives.items():
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field=name,
                    message="Must be a positive number",
                    value=value
                ))

        if config.execution.slippage_pct < 0:
            errors.append(ValidationError(
                field="execution.slippage_pct",
                message="Must be a non-negative number",
                value=config.execution.slippage_pct
            ))

        max_spread = config.execution.max_spread_bps
        if max_spread is not None and (not isinstance(max_spread, int) or max_spread < 0):
            errors.append(ValidationError(
                field="execution.max_spread_bps",
                message="Must be a non-negative integer or null",
                value=max_spread
            ))

        if config.execution.stop_loss_policy not in STOP_LOSS_POLICIES:
            errors.append(ValidationError(
                field="execution.stop_loss_policy",
                message=f"Must be one of {', '.join(STOP_LOSS_POLICIES)}",
                value=config.execution.stop_loss_policy
            ))

        return errors
