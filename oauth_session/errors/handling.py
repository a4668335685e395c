from __future__ import annotations

import logging

from ..logging_config import log_structured_error
from .internal import (
    ConfigurationError,
    InternalError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitError,
)
from .session import SessionError


def classify_error(error: BaseException) -> str:
    """Return the structured-log category for an exception."""
    if isinstance(error, NetworkError | OSError | ConnectionError):
        return "network"
    if isinstance(error, OAuthError):
        return "auth"
    if isinstance(error, RateLimitError):
        return "ratelimit"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, ConfigurationError):
        return "config"
    if isinstance(error, SessionError):
        return "session"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(
    message: str,
    error: Exception,
    context: dict = None,
    *,
    level: int = logging.ERROR,
    logger: logging.Logger | None = None,
) -> None:
    """Logs an error message with the associated exception details.

    The error category is derived from the exception type so aggregated
    summaries group storage, network and auth failures separately.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
        level: Logging level for the record.
        logger: Logger to write to (defaults to the root logger).
    """
    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=context,
        level=level,
        logger=logger,
    )
