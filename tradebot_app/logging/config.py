"""
Centralized logging configuration for the TradeBot system.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the system should use this
configuration to ensure consistent formatting and structured logging.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_watch_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound to the trigger watcher subsystem.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for watch lifecycle events
    """
    return get_logger(name).bind(subsystem="trigger_watcher")


def get_execution_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound to the order execution subsystem.

    Execution logs double as an audit trail, so they carry the
    ``audit_trail`` marker for downstream filtering.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for execution events
    """
    return get_logger(name).bind(
        subsystem="execution",
        audit_trail=True
    )


def log_watch_transition(
    logger: FilteringBoundLogger,
    watch_id: str,
    key: str,
    from_state: str,
    to_state: str,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a watch state transition with standardized format.

    Args:
        logger: Structlog logger instance
        watch_id: ID of the watch transitioning
        key: Watch de-duplication key (``SYMBOL|trigger``)
        from_state: Current state
        to_state: Target state
        reason: What caused the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        watch_id=watch_id,
        watch_key=key,
        from_state=from_state,
        to_state=to_state,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("Watch transition")
