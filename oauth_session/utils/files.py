"""Small file helpers shared by the JSON-backed stores."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from ..constants import CREDENTIAL_FILE_MODE

__all__ = ["atomic_write_json", "read_json"]


def read_json(path: str | os.PathLike[str]) -> Any | None:
    """Load JSON from ``path``; None if the file does not exist."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None


def _prepare_dir(directory: Path) -> None:
    if str(directory) and not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        try:
            os.chmod(directory, stat.S_IRWXU)
        except PermissionError:
            pass


def atomic_write_json(
    path: str | os.PathLike[str], data: Any, mode: int = CREDENTIAL_FILE_MODE
) -> None:
    """Write ``data`` as JSON atomically.

    The document is written to a temp file in the target directory, fsynced,
    chmodded and renamed over ``path`` while holding an exclusive lock file.

    Raises:
        OSError: If the file cannot be written.
        TypeError: If ``data`` is not JSON serializable.
    """
    target = Path(path)
    _prepare_dir(target.parent)
    lock_path = target.with_suffix(target.suffix + ".lock")
    temp_path: str | None = None
    try:
        with open(lock_path, "w", encoding="utf-8") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp:
                temp_path = tmp.name
                json.dump(data, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(temp_path, mode)
            os.replace(temp_path, target)
    except (OSError, ValueError, TypeError) as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                pass
        logging.error(f"💥 Atomic save failed path={target.name} type={type(e).__name__}")
        raise
    finally:
        try:
            os.unlink(lock_path)
        except OSError:
            pass
