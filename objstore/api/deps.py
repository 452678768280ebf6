from __future__ import annotations

import logging
import threading

from fastapi import Depends

from objstore.common.config import get_settings
from objstore.infra.storage.aio import AsyncObjectStore
from objstore.infra.storage.client import ObjectStore
from objstore.infra.storage.factory import build_object_store
from objstore.infra.storage.health import StorageHealthCheck

logger = logging.getLogger("objstore.deps")

_store: ObjectStore | None = None
_store_lock = threading.Lock()


def get_object_store() -> ObjectStore:
    """Return the process-wide object store, building it on first use.

    Lazy construction keeps imports and app creation free of credential
    lookups and bucket validation.
    """
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = build_object_store(get_settings())
    return _store


def get_async_object_store(
    store: ObjectStore = Depends(get_object_store),
) -> AsyncObjectStore:
    # the shared store is closed by reset_object_store on shutdown
    return AsyncObjectStore(store, owns_store=False)


def get_storage_health_check(
    store: ObjectStore = Depends(get_object_store),
) -> StorageHealthCheck:
    return StorageHealthCheck(store)


def reset_object_store() -> None:
    """Close and forget the shared store."""
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        store.close()
        logger.info("object_store_reset bucket=%s", store.bucket)
