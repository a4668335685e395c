"""Token record held by the credential store."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime, timedelta
from typing import Any

from ..constants import DEFAULT_TOKEN_LIFETIME_SECONDS, TOKEN_EXPIRY_LEEWAY_SECONDS


def _new_record_id() -> str:
    return uuid.uuid4().hex


def decode_id_token_subject(id_token: str | None) -> str | None:
    """Return the ``sub`` claim of a JWT id token, or None.

    The payload is decoded without verifying the signature. The id token was
    received directly from the token endpoint over TLS; it is only used here
    to tell accounts apart, never to make trust decisions.
    """
    if not id_token:
        return None
    parts = id_token.split(".")
    if len(parts) < 2:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError) as e:
        logging.debug(f"⚠️ Could not decode id token payload type={type(e).__name__}")
        return None
    if not isinstance(claims, dict):
        return None
    sub = claims.get("sub")
    return str(sub) if sub else None


@dataclass
class TokenRecord:
    """OAuth 2.0 token set for the signed-in principal.

    Attributes:
        access_token: Current access token.
        refresh_token: Refresh token, if the provider issued one.
        token_type: Authorization scheme for the access token.
        expires_at: Access token expiry (aware UTC), None if unknown.
        id_token: Raw OpenID Connect id token, if any.
        subject: Subject identifier of the principal.
        scopes: Granted scopes.
        issued_at: When this record was created.
        id: Identifier used by the credential store.
    """

    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_at: datetime | None = None
    id_token: str | None = None
    subject: str | None = None
    scopes: list[str] = field(default_factory=list)
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: str = field(default_factory=_new_record_id)

    @property
    def is_valid(self) -> bool:
        """Whether the access token has not yet expired (clock based, not server verified)."""
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        leeway = timedelta(seconds=TOKEN_EXPIRY_LEEWAY_SECONDS)
        return datetime.now(UTC) + leeway < self.expires_at

    @property
    def refresh_token_present(self) -> bool:
        return bool(self.refresh_token)

    @property
    def subject_identifier(self) -> str | None:
        return self.subject or decode_id_token_subject(self.id_token)

    @classmethod
    def from_token_response(
        cls, data: dict[str, Any], previous: TokenRecord | None = None
    ) -> TokenRecord:
        """Build a record from an OAuth token endpoint response.

        Refresh responses may omit ``refresh_token`` and ``id_token``; the
        values of ``previous`` are carried over in that case.

        Raises:
            KeyError: If the response has no access token.
        """
        access_token = data["access_token"]
        expires_in = data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        refresh_token = data.get("refresh_token") or (
            previous.refresh_token if previous else None
        )
        id_token = data.get("id_token") or (previous.id_token if previous else None)
        subject = decode_id_token_subject(id_token) or (
            previous.subject_identifier if previous else None
        )
        raw_scope = data.get("scope")
        if isinstance(raw_scope, str):
            scopes = raw_scope.split()
        elif isinstance(raw_scope, list):
            scopes = [str(s) for s in raw_scope]
        else:
            scopes = list(previous.scopes) if previous else []
        now = datetime.now(UTC)
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=data.get("token_type") or "Bearer",
            expires_at=now + timedelta(seconds=int(expires_in)),
            id_token=id_token,
            subject=subject,
            scopes=scopes,
            issued_at=now,
        )

    def authorization_value(self, scheme: str | None = None) -> str:
        """Header value for this token, e.g. ``Bearer abc``."""
        prefix = scheme or self.token_type or "Bearer"
        # Providers commonly return the type lower-cased ("bearer").
        if prefix.lower() == "bearer":
            prefix = "Bearer"
        return f"{prefix} {self.access_token}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["expires_at"] = self.expires_at.isoformat() if self.expires_at else None
        data["issued_at"] = self.issued_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        values = dict(data)
        for key in ("expires_at", "issued_at"):
            raw = values.get(key)
            if isinstance(raw, str):
                parsed = datetime.fromisoformat(raw)
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=UTC)
                values[key] = parsed
        if values.get("issued_at") is None:
            values.pop("issued_at", None)
        if not values.get("id"):
            values.pop("id", None)
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def __repr__(self) -> str:
        # Never leak token material into logs.
        return (
            f"TokenRecord(id={self.id!r}, subject={self.subject_identifier!r}, "
            f"expires_at={self.expires_at!r}, refresh_token_present={self.refresh_token_present})"
        )
