"""
DataGuard - Structured Logging

Logging configuration using structlog.

Features:
- JSON output for production
- Console output for development
- Redaction of secrets and personal data
- Context binding for correlation IDs
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from dataguard import __version__
from dataguard.core.config import DataGuardConfig

# Keys whose values never reach log output
SENSITIVE_KEYS = frozenset({
    # Credentials and keys
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "api_key",
    "authorization",
    "encryption_key",
    "master_key",
    "private_key",
    # Personal data
    "email",
    "phone",
    "credit_card",
    "creditcard",
    "ssn",
    "social_security",
    "socialsecurity",
    "passport",
    "plaintext",
})


# =============================================================================
# Custom Processors
# =============================================================================

def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO8601 timestamp to log entry."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def add_service_info(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add service identification info."""
    event_dict["service"] = "dataguard"
    event_dict["version"] = __version__
    return event_dict


def sanitize_sensitive_data(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask sensitive values anywhere in the event."""

    def _sanitize(obj: Any, depth: int = 0) -> Any:
        if depth > 10:
            return obj

        if isinstance(obj, dict):
            return {
                k: "[REDACTED]"
                if isinstance(k, str) and any(s in k.lower() for s in SENSITIVE_KEYS)
                else _sanitize(v, depth + 1)
                for k, v in obj.items()
            }
        elif isinstance(obj, list):
            return [_sanitize(item, depth + 1) for item in obj]
        return obj

    result: EventDict = _sanitize(event_dict)
    return result


# =============================================================================
# Logging Configuration
# =============================================================================

def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    include_timestamps: bool = True,
    include_service_info: bool = True,
    sanitize_logs: bool = True,
) -> None:
    """
    Configure structured logging for DataGuard.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON format (for production)
        include_timestamps: Add timestamps to logs
        include_service_info: Add service name/version
        sanitize_logs: Redact sensitive keys
    """
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamps:
        processors.insert(0, add_timestamp)

    if include_service_info:
        processors.insert(0, add_service_info)

    if sanitize_logs:
        processors.append(sanitize_sensitive_data)

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    log_level = getattr(logging, level.upper())
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(log_level)


def configure_logging_from_config(config: DataGuardConfig) -> None:
    """
    Configure logging from a DataGuardConfig.

    Uses ``config.log_level``; production renders JSON, other
    environments render console output.
    """
    configure_logging(
        level=config.log_level,
        json_output=config.is_production,
        include_timestamps=True,
        include_service_info=True,
        sanitize_logs=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    bound_logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return bound_logger


# =============================================================================
# Context Management
# =============================================================================

def bind_context(**kwargs: Any) -> None:
    """Bind context variables that will appear in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
