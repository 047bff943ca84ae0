"""
JSON file storage.

One file per key under a data directory. Writes go to a temporary file
first and are moved into place, so a crash mid-write leaves the previous
value intact. Blocking file I/O runs in a worker thread so the event
loop keeps serving mutations.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from eventplanner.services.storage.interface import (
    KeyValueStore,
    StorageReadError,
    StorageWriteError,
)


logger = structlog.get_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStore(KeyValueStore):
    """Key-value store backed by one file per key."""

    def __init__(self, directory: Path | str):
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    # =========================================================================
    # BLOCKING HELPERS (run in a thread)
    # =========================================================================

    def _read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(key, str(e)) from e

    def _write(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageWriteError(key, str(e)) from e

    def _remove(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteError(key, str(e)) from e

    # =========================================================================
    # KeyValueStore
    # =========================================================================

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)
        logger.debug("storage_key_written", key=key, size=len(value))

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
        logger.debug("storage_key_removed", key=key)
