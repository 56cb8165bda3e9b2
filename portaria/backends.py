"""
Backend selection at startup.

STORE_BACKEND picks where visitors and access logs live; STORAGE_MODE picks
where photos go. Each call to create_backend() builds fresh store objects,
so tests and scripts never share state through module globals.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from portaria import config
from portaria.access_log import AccessLogWriter
from portaria.bans import BanAdministration
from portaria.entrance import EntranceWorkflow
from portaria.event_recorder import EventRecorder
from portaria.local_store import JsonFileDatabase, LocalAccessLogStore, LocalVisitorStore
from portaria.storage import LocalDirectoryStorage, R2ObjectStorage
from portaria.stores import (
    AccessLogStore,
    InMemoryAccessLogStore,
    InMemoryObjectStorage,
    InMemoryVisitorStore,
    MemoryDatabase,
    ObjectStorage,
    VisitorStore,
)
from portaria.supabase_store import (
    SupabaseAccessLogStore,
    SupabaseClient,
    SupabaseObjectStorage,
    SupabaseVisitorStore,
)

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "local", "supabase")
STORAGE_MODES = ("memory", "local", "supabase", "r2")


@dataclass
class Backend:
    visitors: VisitorStore
    logs: AccessLogStore
    storage: ObjectStorage
    supabase: SupabaseClient | None = None

    def workflow(self, recorder: EventRecorder = None) -> EntranceWorkflow:
        return EntranceWorkflow(self.visitors, self.logs, self.storage, recorder=recorder)

    def ban_admin(self, recorder: EventRecorder = None) -> BanAdministration:
        return BanAdministration(self.visitors, recorder=recorder)

    def log_writer(self) -> AccessLogWriter:
        return AccessLogWriter(self.logs, self.visitors, self.storage)


def _make_storage(mode: str, client: SupabaseClient | None) -> ObjectStorage:
    if mode == "memory":
        return InMemoryObjectStorage()
    if mode == "local":
        return LocalDirectoryStorage(Path(config.PHOTOS_DIR))
    if mode == "supabase":
        return SupabaseObjectStorage(client or SupabaseClient())
    if mode == "r2":
        if not config.can_write_r2():
            logger.warning("R2 credentials incomplete; uploads will fail and photos stay inline")
        return R2ObjectStorage()
    raise ValueError(f"Unknown STORAGE_MODE {mode!r}, expected one of {STORAGE_MODES}")


def create_backend(store_backend: str = None, storage_mode: str = None, data_path: Path = None) -> Backend:
    """
    Build the stores for the configured backend.

    Args:
        store_backend: "memory", "local" or "supabase" (default: STORE_BACKEND)
        storage_mode: "memory", "local", "supabase" or "r2" (default: STORAGE_MODE)
        data_path: JSON file for the local backend (default: DATA_DIR/db.json)
    """
    store_backend = store_backend or config.STORE_BACKEND
    storage_mode = storage_mode or config.STORAGE_MODE
    client = None

    if store_backend == "memory":
        db = MemoryDatabase()
        visitors, logs = InMemoryVisitorStore(db), InMemoryAccessLogStore(db)
    elif store_backend == "local":
        db = JsonFileDatabase(data_path or Path(config.DATA_DIR) / "db.json")
        visitors, logs = LocalVisitorStore(db), LocalAccessLogStore(db)
    elif store_backend == "supabase":
        if not config.is_supabase_configured():
            raise ValueError("STORE_BACKEND=supabase needs SUPABASE_URL and SUPABASE_ANON_KEY")
        client = SupabaseClient()
        visitors, logs = SupabaseVisitorStore(client), SupabaseAccessLogStore(client)
    else:
        raise ValueError(f"Unknown STORE_BACKEND {store_backend!r}, expected one of {STORE_BACKENDS}")

    storage = _make_storage(storage_mode, client)
    logger.info("Using %s store with %s photo storage", store_backend, storage_mode)
    return Backend(visitors=visitors, logs=logs, storage=storage, supabase=client)
