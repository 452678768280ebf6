"""asyncio adapter for ObjectStore implementations.

boto3 is blocking, so every call runs in the event loop's default executor.
Task cancellation is forwarded to the worker thread through a per-call
``threading.Event``; the adapter waits for the worker to unwind before
re-raising ``asyncio.CancelledError`` so no temporary files outlive the call.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from typing import Any, Callable, TypeVar

from objstore.infra.storage.client import ObjectInfo, ObjectStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncObjectStore:
    """Awaitable facade over a synchronous ObjectStore.

    With ``owns_store=False`` the wrapper never closes the underlying store,
    which stays with whoever built it.
    """

    def __init__(self, store: ObjectStore, *, owns_store: bool = True) -> None:
        self._store = store
        self._owns_store = owns_store
        self._closed = False

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def bucket(self) -> str:
        return self._store.bucket

    def locator(self, key: str) -> str:
        return self._store.locator(key)

    async def __aenter__(self) -> "AsyncObjectStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_store:
            await asyncio.to_thread(self._store.close)

    async def list_objects(self, prefix: str = "") -> list[ObjectInfo]:
        return await self._run(self._store.list_objects, prefix)

    async def upload_from_bytes(
        self, key: str, data: bytes, content_type: str | None = None
    ) -> str:
        return await self._run(self._store.upload_from_bytes, key, data, content_type)

    async def upload_from_path(
        self, key: str, local_path: str, content_type: str | None = None
    ) -> str:
        return await self._run(
            self._store.upload_from_path, key, local_path, content_type
        )

    async def download(self, key: str) -> bytes:
        return await self._run(self._store.download, key)

    async def download_to_path(self, key: str, destination_path: str) -> None:
        await self._run(self._store.download_to_path, key, destination_path)

    async def delete(self, key: str) -> bool:
        return await self._run(self._store.delete, key)

    async def exists(self, key: str) -> bool:
        return await self._run(self._store.exists, key)

    async def _run(self, method: Callable[..., T], *args: Any) -> T:
        cancel = threading.Event()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None, functools.partial(method, *args, cancel=cancel)
        )
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            cancel.set()
            logger.debug(
                "storage_call_cancelled method=%s bucket=%s",
                getattr(method, "__name__", method),
                self._store.bucket,
            )
            await asyncio.wait([future])
            if not future.cancelled():
                # mark the worker's OperationCancelled as retrieved
                future.exception()
            raise


__all__ = ["AsyncObjectStore"]
