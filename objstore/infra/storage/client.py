"""Object store protocol, data types and error taxonomy.

This module defines the storage-backend-agnostic interface for a single
bucket: listing, uploading, downloading, existence checks and deletes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(
        self,
        message: str,
        *,
        op: str | None = None,
        bucket: str | None = None,
        key: str | None = None,
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        self.message = message
        self.op = op
        self.bucket = bucket
        self.key = key
        self.code = code
        self.status = status
        super().__init__(message)


class ConfigurationError(StorageError):
    """Invalid bucket name, closed store or unresolved credentials."""


class NotFoundError(StorageError):
    """The requested key (or local upload path) does not exist."""


class TransientBackendError(StorageError):
    """Network, throttling or 5xx-class failure reported by the backend."""


class StoragePermissionError(StorageError):
    """The backend refused the request for authorization reasons."""


class OperationCancelled(StorageError):
    """The caller aborted the operation through its cancel signal."""


class BackendError(StorageError):
    """Any other backend failure."""


@dataclass(frozen=True, slots=True)
class ObjectInfo:
    """Snapshot of one stored object taken at listing time."""

    key: str
    size: int
    last_modified: datetime
    etag: str


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for single-bucket object storage backends.

    Every operation accepts an optional ``cancel`` event. Implementations
    check it before each backend request and during transfers, and raise
    OperationCancelled once it is set.
    """

    @property
    def bucket(self) -> str:
        ...

    def locator(self, key: str) -> str:
        """Return the display locator ``<scheme>://<bucket>/<key>``."""
        ...

    def list_objects(
        self, prefix: str = "", *, cancel: threading.Event | None = None
    ) -> list[ObjectInfo]:
        """List every object whose key starts with ``prefix``.

        Args:
            prefix: Key prefix filter, empty for the whole bucket.
            cancel: Optional cancellation signal.

        Returns:
            All matching objects in backend order. Pages and continuation
            cursors are never exposed.

        Raises:
            StorageError: If any page request fails.
        """
        ...

    def upload_from_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> str:
        """Write an in-memory payload to ``key`` in a single request.

        Returns:
            The object locator.
        """
        ...

    def upload_from_path(
        self,
        key: str,
        local_path: str,
        content_type: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> str:
        """Write a local file to ``key`` using the managed transfer.

        Returns:
            The object locator.

        Raises:
            NotFoundError: If ``local_path`` is not an existing file.
        """
        ...

    def download(self, key: str, *, cancel: threading.Event | None = None) -> bytes:
        """Fetch the whole object body into memory.

        Raises:
            NotFoundError: If the key does not exist.
        """
        ...

    def download_to_path(
        self,
        key: str,
        destination_path: str,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        """Stream the object body to a local file.

        The destination is either fully written or left untouched.

        Raises:
            NotFoundError: If the key does not exist.
        """
        ...

    def delete(self, key: str, *, cancel: threading.Event | None = None) -> bool:
        """Delete ``key``. Deleting an absent key counts as success."""
        ...

    def exists(self, key: str, *, cancel: threading.Event | None = None) -> bool:
        """Probe object metadata without transferring the body.

        Raises:
            StorageError: For any failure other than "not found".
        """
        ...

    def close(self) -> None:
        """Release pooled backend connections. Idempotent."""
        ...


__all__ = [
    "BackendError",
    "ConfigurationError",
    "NotFoundError",
    "ObjectInfo",
    "ObjectStore",
    "OperationCancelled",
    "StorageError",
    "StoragePermissionError",
    "TransientBackendError",
]
