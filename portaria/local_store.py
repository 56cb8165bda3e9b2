"""
JSON-file backend for a single front desk.

The file keeps the `{"visitors": [...], "access_logs": [...]}` layout, so an
exported `db.json` seed loads unchanged. The file is the source of truth:
every read reloads it and every write is a read-modify-write under an
exclusive lock, so several processes (the desk, the log watcher, the ban
script) can share one file without losing each other's rows.

Guarantees:
- Atomic: writes to a temp file, fsyncs, then renames
- Locked: an exclusive portalocker lock serializes writers on the same file
- Backed up: a timestamped copy is kept before the first overwrite per process
"""

import json
import logging
import os
import shutil
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import portalocker

from portaria.stores import (
    InMemoryAccessLogStore,
    InMemoryVisitorStore,
    MemoryDatabase,
    StoreResult,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Unreadable or corrupt file
_FILE_ERRORS = (OSError, json.JSONDecodeError)


class JsonFileDatabase(MemoryDatabase):
    """MemoryDatabase mirrored from a JSON file."""

    def __init__(self, path: Path, backup_dir: Path = None):
        self.path = Path(path)
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"
        self._backed_up = False
        visitors, access_logs = self._read()
        super().__init__(visitors=visitors, access_logs=access_logs)
        logger.info(
            "Loaded %d visitors and %d access logs from %s",
            len(self.visitors), len(self.access_logs), self.path,
        )

    def _read(self) -> tuple[list[dict], list[dict]]:
        if not self.path.exists():
            return [], []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get("visitors", []), data.get("access_logs", [])

    def refresh(self) -> None:
        self._load(*self._read())

    @contextmanager
    def _locked(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.path.with_suffix(".lock")
        lock_path.touch(exist_ok=True)
        with open(lock_path, "r+") as lock_file:
            portalocker.lock(lock_file, portalocker.LOCK_EX)
            try:
                yield
            finally:
                portalocker.unlock(lock_file)

    @contextmanager
    def transaction(self):
        with self._locked():
            self.refresh()
            with super().transaction() as db:
                yield db

    def commit(self) -> None:
        """Write the current rows. Callers hold the lock (see transaction)."""
        if self.path.exists() and not self._backed_up:
            self._create_backup()
            self._backed_up = True
        self._atomic_write({"schema_version": SCHEMA_VERSION, **self.snapshot()})

    def _create_backup(self) -> None:
        """Create timestamped backup of the existing file."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        shutil.copy2(self.path, self.backup_dir / f"{self.path.name}.{timestamp}")

    def _atomic_write(self, data: dict) -> None:
        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, self.path)


def _file_failure(error: Exception) -> StoreResult:
    logger.error("Local database file error: %s", error)
    return StoreResult.failure(f"Local database file error: {error}")


async def _guarded(call) -> StoreResult:
    """Await a store call, turning file errors into a failed StoreResult."""
    try:
        return await call
    except _FILE_ERRORS as e:
        return _file_failure(e)


class LocalVisitorStore(InMemoryVisitorStore):
    """Visitor store persisted through a JsonFileDatabase.

    File errors come back as StoreResult failures like any other store error.
    A failed write leaves the rows as they are on disk.
    """

    async def find_by_national_id(self, national_id):
        return await _guarded(super().find_by_national_id(national_id))

    async def find_banned(self, national_id):
        return await _guarded(super().find_banned(national_id))

    async def get(self, visitor_id):
        return await _guarded(super().get(visitor_id))

    async def create(self, visitor):
        return await _guarded(super().create(visitor))

    async def update(self, visitor_id, changes):
        return await _guarded(super().update(visitor_id, changes))

    async def list_all(self):
        return await _guarded(super().list_all())


class LocalAccessLogStore(InMemoryAccessLogStore):
    async def create(self, entry):
        return await _guarded(super().create(entry))

    async def list_recent(self, limit):
        return await _guarded(super().list_recent(limit))
