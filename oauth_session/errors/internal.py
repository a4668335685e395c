"""Centralized internal error hierarchy.

These exceptions provide semantic categories for retry logic and higher-level
error handling. Only raise these inside application/network boundaries – never
directly surface raw aiohttp / JSON errors to retry code; wrap them instead.

Classes:
  InternalError        – Base for all internal errors.
  NetworkError         – Transient network/IO issues (safe to retry).
  OAuthError           – Authentication / authorization related failures.
  ParsingError         – Response parsing / schema validation issues.
  RateLimitError       – Explicit rate limiting signalled by remote service.
  ConfigurationError   – Missing or invalid configuration.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


class InternalError(Exception):
    """Base class for all internal errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class NetworkError(InternalError):
    """Exception raised for network or transport layer errors.

    This includes connection timeouts, resets, unexpected HTTP statuses and
    other transient failures that may be retried.
    """


class OAuthError(InternalError):
    """Exception raised for OAuth authentication or authorization failures.

    These errors indicate rejected credentials, denied consent or expired
    device codes and are not suitable for automatic retry.
    """


class ParsingError(InternalError):
    """Exception raised for response parsing or schema validation errors."""


class ConfigurationError(InternalError):
    """Exception raised when configuration is missing or invalid."""


@dataclass
class RateLimitContext:
    """Context information for rate limiting errors.

    Attributes:
        retry_after: Seconds the server asked us to wait, or None if unknown.
    """

    retry_after: float | None = None


class RateLimitError(InternalError):
    """Exception raised when the identity provider rate limits a request.

    Args:
        message: Optional error message, defaults to "Rate limited".
        context: Optional RateLimitContext with additional rate limit details.
    """

    def __init__(
        self, message: str = "Rate limited", *, context: RateLimitContext | None = None
    ):
        super().__init__(message, data={"rate_limit": context})


__all__ = [
    "InternalError",
    "NetworkError",
    "OAuthError",
    "ParsingError",
    "ConfigurationError",
    "RateLimitError",
    "RateLimitContext",
]
