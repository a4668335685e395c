"""Import of credentials saved by the previous storage scheme.

Earlier releases kept tokens inline in the JSON config file, either as a
single object or as a ``{"users": [...]}`` list with ``access_token`` /
``refresh_token`` fields per entry. The importer turns the first usable
entry into a TokenRecord; the coordinator stores it as the default record.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from ..errors.internal import ParsingError
from ..utils.files import read_json
from .models import TokenRecord


class LegacyCredentialImporter(Protocol):
    async def import_record(self) -> TokenRecord | None:
        """Return a record built from legacy storage, or None if there is nothing to import.

        Raises:
            Exception: Any failure reading legacy storage; the caller logs it.
        """
        ...


class NullImporter:
    """Importer used when no legacy storage is configured."""

    async def import_record(self) -> TokenRecord | None:
        return None


def _parse_expiry(raw: Any) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, int | float):
        return datetime.fromtimestamp(raw, UTC)
    if isinstance(raw, str):
        parsed = datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise ParsingError(f"Unsupported expiry value type={type(raw).__name__}")


def _entries(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict) and "users" in data:
        users = data["users"]
        return [u for u in users if isinstance(u, dict)] if isinstance(users, list) else []
    if isinstance(data, list):
        return [u for u in data if isinstance(u, dict)]
    if isinstance(data, dict):
        return [data]
    return []


class LegacyFileImporter:
    """Reads tokens from a legacy JSON config file.

    Args:
        path: Legacy config file location.
        username: When set, only the entry with this ``username`` is used.
    """

    def __init__(self, path: str | os.PathLike[str], username: str | None = None) -> None:
        self.path = Path(path)
        self.username = username.lower() if username else None

    def _load_sync(self) -> TokenRecord | None:
        data = read_json(self.path)
        if data is None:
            logging.debug(f"🔍 No legacy credential file path={self.path}")
            return None
        for entry in _entries(data):
            if self.username and str(entry.get("username", "")).lower() != self.username:
                continue
            access = entry.get("access_token")
            if not access:
                continue
            return TokenRecord(
                access_token=str(access),
                refresh_token=entry.get("refresh_token") or None,
                token_type=entry.get("token_type") or "Bearer",
                expires_at=_parse_expiry(entry.get("expires_at") or entry.get("token_expiry")),
                id_token=entry.get("id_token"),
                subject=entry.get("subject") or entry.get("user_id"),
                scopes=list(entry.get("scopes") or []),
            )
        return None

    async def import_record(self) -> TokenRecord | None:
        loop = asyncio.get_running_loop()
        record = await loop.run_in_executor(None, self._load_sync)
        if record is not None:
            logging.info(f"📦 Legacy credential found path={self.path.name}")
        return record
