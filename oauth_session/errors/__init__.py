"""Error hierarchy for the OAuth session package."""

from .internal import (
    ConfigurationError,
    InternalError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitContext,
    RateLimitError,
)
from .session import (
    BlockedError,
    ImplausibleStateError,
    InteractivePresentationError,
    SessionError,
)

__all__ = [
    "InternalError",
    "NetworkError",
    "OAuthError",
    "ParsingError",
    "ConfigurationError",
    "RateLimitError",
    "RateLimitContext",
    "SessionError",
    "BlockedError",
    "InteractivePresentationError",
    "ImplausibleStateError",
]
