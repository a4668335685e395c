"""Credential store interface and implementations.

The coordinator is the only writer of the store's default record. Stores
keep any number of records but report exactly one as current: the one
whose id was last passed to ``set_default``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from ..utils.files import atomic_write_json, read_json
from .models import TokenRecord


class CredentialStore(Protocol):
    """Persistence for token records."""

    async def current_record(self) -> TokenRecord | None:
        """Return the default record, or None if there is none."""
        ...

    async def default_record_id(self) -> str | None:
        ...

    async def store(self, record: TokenRecord) -> None:
        """Save (or overwrite) a record. Does not change the default."""
        ...

    async def remove(self, record: TokenRecord) -> None:
        """Delete a record; clears the default if it pointed at it."""
        ...

    async def set_default(self, record_id: str | None) -> None:
        """Make ``record_id`` the current record, or clear it with None.

        Raises:
            KeyError: If no record with that id is stored.
        """
        ...


class InMemoryCredentialStore:
    """Process-local store, for tests and ephemeral sessions."""

    def __init__(self, records: list[TokenRecord] | None = None, default_id: str | None = None) -> None:
        self._records: dict[str, TokenRecord] = {r.id: r for r in records or []}
        self._default_id = default_id

    async def current_record(self) -> TokenRecord | None:
        if self._default_id is None:
            return None
        return self._records.get(self._default_id)

    async def default_record_id(self) -> str | None:
        return self._default_id

    async def store(self, record: TokenRecord) -> None:
        self._records[record.id] = record

    async def remove(self, record: TokenRecord) -> None:
        self._records.pop(record.id, None)
        if self._default_id == record.id:
            self._default_id = None

    async def set_default(self, record_id: str | None) -> None:
        if record_id is not None and record_id not in self._records:
            raise KeyError(record_id)
        self._default_id = record_id

    @property
    def records(self) -> dict[str, TokenRecord]:
        return dict(self._records)


class FileCredentialStore:
    """JSON file backed store.

    Document layout::

        {"default": "<id>" | null, "records": {"<id>": {...}}}

    Writes are atomic (temp file + rename under an exclusive ``fcntl``
    lock) and the file is owner read/write only. Blocking file IO runs in
    the default executor so store access is an await point like any other.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        if not isinstance(path, str | os.PathLike):
            raise TypeError("path must be str or os.PathLike")
        self.path = Path(path)
        self._lock = asyncio.Lock()

    # ------------------------- async API ------------------------- #
    async def current_record(self) -> TokenRecord | None:
        doc = await self._read()
        default_id = doc.get("default")
        if not default_id:
            return None
        raw = doc["records"].get(default_id)
        if raw is None:
            logging.warning(f"⚠️ Default credential missing from store id={default_id}")
            return None
        return TokenRecord.from_dict(raw)

    async def default_record_id(self) -> str | None:
        doc = await self._read()
        return doc.get("default")

    async def store(self, record: TokenRecord) -> None:
        async with self._lock:
            doc = await self._read()
            doc["records"][record.id] = record.to_dict()
            await self._write(doc)
        logging.debug(f"💾 Credential stored id={record.id}")

    async def remove(self, record: TokenRecord) -> None:
        async with self._lock:
            doc = await self._read()
            if doc["records"].pop(record.id, None) is None:
                return
            if doc.get("default") == record.id:
                doc["default"] = None
            await self._write(doc)
        logging.debug(f"🗑️ Credential removed id={record.id}")

    async def set_default(self, record_id: str | None) -> None:
        async with self._lock:
            doc = await self._read()
            if record_id is not None and record_id not in doc["records"]:
                raise KeyError(record_id)
            doc["default"] = record_id
            await self._write(doc)

    # ------------------------- file IO ------------------------- #
    async def _read(self) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_sync)

    async def _write(self, doc: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, atomic_write_json, self.path, doc)

    def _load_sync(self) -> dict[str, Any]:
        data = read_json(self.path)
        if data is None:
            return {"default": None, "records": {}}
        if not isinstance(data, dict) or not isinstance(data.get("records"), dict):
            raise ValueError(f"Malformed credential file: {self.path}")
        data.setdefault("default", None)
        return data
