"""
Configuration constants for the OAuth session coordinator

This module contains all tunable constants used throughout the package.
Each constant can be overridden by setting an environment variable with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Attempts to parse the environment variable as an integer. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Attempts to parse the environment variable as a float. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Token expiry handling
TOKEN_EXPIRY_LEEWAY_SECONDS = _get_env_int(
    "TOKEN_EXPIRY_LEEWAY_SECONDS", 30
)  # Access token counts as expired this many seconds early
DEFAULT_TOKEN_LIFETIME_SECONDS = _get_env_int(
    "DEFAULT_TOKEN_LIFETIME_SECONDS", 3600
)  # Used when a token response omits expires_in

# Network/HTTP constants
HTTP_REQUEST_TIMEOUT_SECONDS = _get_env_int(
    "HTTP_REQUEST_TIMEOUT_SECONDS", 30
)  # Default HTTP request timeout

# Retry/backoff constants
DEFAULT_MAX_RETRY_ATTEMPTS = _get_env_int(
    "DEFAULT_MAX_RETRY_ATTEMPTS", 3
)  # Attempts for transient gateway failures
RETRY_BACKOFF_MULTIPLIER = _get_env_float(
    "RETRY_BACKOFF_MULTIPLIER", 0.5
)  # Exponential backoff multiplier
RETRY_MAX_BACKOFF_SECONDS = _get_env_int(
    "RETRY_MAX_BACKOFF_SECONDS", 10
)  # Maximum backoff time in seconds

# Device authorization (interactive sign-in) constants
DEVICE_FLOW_POLL_INTERVAL_SECONDS = _get_env_int(
    "DEVICE_FLOW_POLL_INTERVAL_SECONDS", 5
)  # Poll interval when the provider does not send one
DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS = _get_env_int(
    "DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS", 5
)  # Added to the interval on slow_down (RFC 8628 section 3.5)
DEVICE_FLOW_MAX_POLL_INTERVAL_SECONDS = _get_env_int(
    "DEVICE_FLOW_MAX_POLL_INTERVAL_SECONDS", 30
)  # Upper bound for the poll interval
DEVICE_FLOW_LOG_EVERY_POLLS = _get_env_int(
    "DEVICE_FLOW_LOG_EVERY_POLLS", 6
)  # Emit a waiting message every N pending polls

# Persistence constants
CREDENTIAL_FILE_MODE = 0o600  # Owner-only read/write for stored tokens
