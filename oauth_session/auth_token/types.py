"""Shared types and constants for auth_token module."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class AuthenticationStatus(str, Enum):
    """Authentication state derived from the stored token record.

    Attributes:
        UNKNOWN: Never produced by a working coordinator.
        SIGNED_OUT: No stored identity or credentials.
        CREDENTIALS_INVALID: Some identity state exists but never authorized.
        EXPIRED: Access token expired and no refresh token is available.
        EXPIRED_REFRESH_AVAILABLE: Access token expired, refresh token present.
        PRIOR_CREDENTIALS_SAVED: Access token unexpired but not checked online
            since it was restored.
        CREDENTIALS_VALIDATED: Access token unexpired and confirmed online.
    """

    UNKNOWN = "unknown"
    SIGNED_OUT = "signed_out"
    CREDENTIALS_INVALID = "credentials_invalid"
    EXPIRED = "expired"
    EXPIRED_REFRESH_AVAILABLE = "expired_refresh_available"
    PRIOR_CREDENTIALS_SAVED = "prior_credentials_saved"
    CREDENTIALS_VALIDATED = "credentials_validated"

    @property
    def was_signed_in(self) -> bool:
        """True if the client authorized at some point and was not signed out since."""
        return self not in (AuthenticationStatus.UNKNOWN, AuthenticationStatus.SIGNED_OUT)

    @property
    def is_usable(self) -> bool:
        """True if the stored access token may be attached to requests."""
        return self in (
            AuthenticationStatus.PRIOR_CREDENTIALS_SAVED,
            AuthenticationStatus.CREDENTIALS_VALIDATED,
        )


class ClientOption(str, Enum):
    """Actions a status update may take without asking the caller.

    Attributes:
        REFRESH_IF_NEEDED: Use the refresh token when the access token expired.
            Never presents UI.
        REAUTHENTICATE_IF_NEEDED: Present interactive sign-in when there is no
            usable token and refreshing is impossible or failed.
        REQUIRE_ONLINE_VALIDATION: Confirm the access token with the identity
            provider if that has not happened since it was restored.
    """

    REFRESH_IF_NEEDED = "refresh_if_needed"
    REAUTHENTICATE_IF_NEEDED = "reauthenticate_if_needed"
    REQUIRE_ONLINE_VALIDATION = "require_online_validation"


def parse_options(values: Iterable[str | ClientOption]) -> frozenset[ClientOption]:
    """Convert option names (as found in config files) to ClientOption members.

    Accepts enum values (``refresh_if_needed``), member names
    (``REFRESH_IF_NEEDED``) and hyphenated forms (``refresh-if-needed``).

    Raises:
        ValueError: If a value does not name a known option.
    """
    options: set[ClientOption] = set()
    for value in values:
        if isinstance(value, ClientOption):
            options.add(value)
            continue
        key = str(value).strip().lower().replace("-", "_")
        try:
            options.add(ClientOption(key))
        except ValueError:
            raise ValueError(f"Unknown client option: {value!r}") from None
    return frozenset(options)


# Keys of the persisted startup markers (kept outside the credential store).
MIGRATION_ATTEMPTED_MARKER = "legacy_credential_migration_attempted"
REINSTALL_CHECKED_MARKER = "reinstall_cleanup_performed"

# Options used by ``authorize`` unless configured otherwise. An unexpired
# saved token is trusted without an online check.
DEFAULT_REQUEST_OPTIONS: frozenset[ClientOption] = frozenset(
    {ClientOption.REFRESH_IF_NEEDED, ClientOption.REAUTHENTICATE_IF_NEEDED}
)
