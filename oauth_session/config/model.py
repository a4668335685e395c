from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from ..auth_token.types import DEFAULT_REQUEST_OPTIONS, ClientOption, parse_options


def _check_url(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        raise ValueError(f"{field_name} must be an http(s) URL")
    return value


class ProviderConfig(BaseModel):
    """Identity provider endpoints and client registration.

    Attributes:
        client_id: OAuth client ID.
        client_secret: OAuth client secret (confidential clients only).
        device_authorization_url: RFC 8628 device authorization endpoint.
        token_url: Token endpoint used for device polling and refresh.
        introspection_url: RFC 7662 endpoint for online validation.
        revocation_url: RFC 7009 endpoint used on sign-out.
        scopes: Scopes requested at sign-in.
    """

    client_id: str = Field(min_length=1)
    client_secret: str | None = None
    device_authorization_url: str
    token_url: str
    introspection_url: str | None = None
    revocation_url: str | None = None
    scopes: list[str] = Field(default_factory=lambda: ["openid", "offline_access"])

    @field_validator(
        "device_authorization_url", "token_url", "introspection_url", "revocation_url"
    )
    @classmethod
    def validate_urls(cls, v: str | None, info: ValidationInfo) -> str | None:
        return _check_url(v, info.field_name)

    @field_validator("scopes", mode="before")
    @classmethod
    def validate_scopes(cls, v: Any) -> list[str]:
        """Accept a list or a space separated string; dedupe keeping order."""
        if isinstance(v, str):
            v = v.split()
        if not isinstance(v, list):
            raise ValueError("scopes must be a list or a space separated string")
        cleaned = [s.strip() for s in v if isinstance(s, str) and s.strip()]
        return list(dict.fromkeys(cleaned))

    @model_validator(mode="after")
    def validate_required_urls(self) -> ProviderConfig:
        if not self.device_authorization_url or not self.token_url:
            raise ValueError("device_authorization_url and token_url are required")
        return self


class SessionSettings(BaseModel):
    """How the coordinator persists state and authorizes requests.

    ``request_options`` are the permissions used by ``authorize``. The
    default trusts an unexpired saved token without an online check; add
    ``require_online_validation`` for a stricter policy.
    """

    credential_file: str = "credentials.json"
    markers_file: str = "session_markers.json"
    legacy_credential_file: str | None = None
    legacy_username: str | None = None
    request_options: frozenset[ClientOption] = Field(
        default_factory=lambda: DEFAULT_REQUEST_OPTIONS
    )
    header_name: str = Field(default="Authorization", min_length=1)
    header_scheme: str | None = None

    @field_validator("request_options", mode="before")
    @classmethod
    def validate_request_options(cls, v: Any) -> frozenset[ClientOption]:
        if isinstance(v, str):
            v = [p for p in v.replace(",", " ").split() if p]
        if not isinstance(v, list | tuple | set | frozenset):
            raise ValueError("request_options must be a list of option names")
        return parse_options(v)


class AppConfig(BaseModel):
    provider: ProviderConfig
    session: SessionSettings = Field(default_factory=SessionSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppConfig:
        return cls.model_validate(dict(data))

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["session"]["request_options"] = sorted(
            o.value for o in self.session.request_options
        )
        return data
