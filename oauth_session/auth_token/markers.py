"""Persisted boolean markers checked once at coordinator startup.

Markers live outside the credential store on purpose: the credential file
may survive an uninstall (e.g. a shared secrets directory) while the marker
file lives with the application's own data and disappears with it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol

from ..utils.files import atomic_write_json, read_json


class MarkerStore(Protocol):
    async def get(self, key: str) -> bool | None:
        """Return the stored flag, or None if it was never written."""
        ...

    async def set(self, key: str, value: bool) -> None:
        ...


class InMemoryMarkerStore:
    def __init__(self, initial: dict[str, bool] | None = None) -> None:
        self.values: dict[str, bool] = dict(initial or {})

    async def get(self, key: str) -> bool | None:
        return self.values.get(key)

    async def set(self, key: str, value: bool) -> None:
        self.values[key] = value


class FileMarkerStore:
    """Markers kept as a flat JSON object of booleans."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load_sync(self) -> dict[str, bool]:
        data = read_json(self.path)
        if not isinstance(data, dict):
            if data is not None:
                logging.warning(f"⚠️ Ignoring malformed marker file path={self.path}")
            return {}
        return {k: bool(v) for k, v in data.items() if isinstance(k, str)}

    async def get(self, key: str) -> bool | None:
        loop = asyncio.get_running_loop()
        values = await loop.run_in_executor(None, self._load_sync)
        return values.get(key)

    async def set(self, key: str, value: bool) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            values = await loop.run_in_executor(None, self._load_sync)
            values[key] = value
            await loop.run_in_executor(None, atomic_write_json, self.path, values, 0o644)
        logging.debug(f"🏷️ Marker written key={key} value={value}")
