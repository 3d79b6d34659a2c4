"""Logging and observability configuration using Pydantic Logfire.

All modules should use Python's standard logging library (logging.getLogger(__name__));
Logfire captures and enriches these records once configured.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})

Structured logging utilities:
    log_with_context(logger, "info", "Message", task_id="123", member_id="abc")
"""

import logging

import logfire

from questlog.core.config import settings


def configure_logfire() -> None:
    """Configure Pydantic Logfire with token from environment.

    Nothing is sent unless a token is configured; spans still work locally.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="questlog",
        service_version="0.1.0",
        send_to_logfire="if-token-present",
    )

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def span(name: str) -> logfire.LogfireSpan:
    """Create a custom span for engine and service functions.

    Usage:
        with span("task_manager.add_task"):
            ...
    """
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    log_level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        log_level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Additional context fields (task_id, member_id, operation, etc.)
    """
    log_method = getattr(logger, log_level.lower())
    log_method(message, extra=context)


def log_with_member_context(
    logger: logging.Logger,
    log_level: str,
    message: str,
    member_id: str | None = None,
    **extra: object,
) -> None:
    """Log a message with member context.

    Usage:
        log_with_member_context(logger, "info", "XP awarded", member_id="m1", amount=50)
    """
    context = {"member_id": member_id, **extra} if member_id else extra
    log_with_context(logger, log_level, message, **context)
