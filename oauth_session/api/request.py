"""Outbound API request value and the authorizers that decorate it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Protocol


@dataclass(frozen=True)
class APIRequest:
    """An outbound HTTP request before transport.

    Attributes:
        method: HTTP method.
        url: Absolute request URL.
        headers: Header mapping; treat as read-only.
        body: Optional JSON-serializable body.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def with_header(self, name: str, value: str) -> APIRequest:
        """Return a copy with ``name`` set, replacing any header of the same name."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return replace(self, headers=headers)

    def header(self, name: str) -> str | None:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


class RequestAuthorizer(Protocol):
    async def authorize(self, request: APIRequest) -> APIRequest:
        """Return ``request`` carrying credentials, or raise."""
        ...


class APIKeyAuthorizer:
    """Adds a static API key header; for endpoints that do not use OAuth."""

    def __init__(self, key: str, value: str) -> None:
        if not key or not value:
            raise ValueError("API key header name and value are required")
        self.key = key
        self.value = value

    async def authorize(self, request: APIRequest) -> APIRequest:
        logging.debug(f"🔑 API key attached header={self.key} url={request.url}")
        return request.with_header(self.key, self.value)
