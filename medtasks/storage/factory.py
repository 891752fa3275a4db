# medtasks/storage/factory.py

from __future__ import annotations

import logging

from medtasks.config import Settings
from medtasks.storage.base import StorageBackend
from medtasks.storage.fallback import FallbackStorage
from medtasks.storage.object_backend import ObjectStorage
from medtasks.storage.sql_backend import SqlStorage

logger = logging.getLogger("medtasks.storage")


def build_storage(settings: Settings) -> StorageBackend:
    """Pick the backend named by STORAGE_BACKEND; the caller runs initialize()."""
    if settings.storage_backend == "sql":
        storage: StorageBackend = SqlStorage(settings.database_url, echo=settings.sql_echo)
    elif settings.storage_backend == "object":
        storage = ObjectStorage(settings.object_store_path)
    else:
        storage = FallbackStorage(
            SqlStorage(settings.database_url, echo=settings.sql_echo),
            ObjectStorage(settings.object_store_path),
        )

    logger.info("storage_selected", extra={"backend": storage.name})
    return storage


def relational_backend(storage: StorageBackend) -> SqlStorage | None:
    """The SqlStorage behind `storage`, if there is one (database image features need it)."""
    if isinstance(storage, SqlStorage):
        return storage
    if isinstance(storage, FallbackStorage) and isinstance(storage.primary, SqlStorage):
        return storage.primary
    return None
