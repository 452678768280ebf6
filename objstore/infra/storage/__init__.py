"""Object storage abstraction layer.

This module provides a protocol-based abstraction for a single-bucket object
store, backed by S3, MinIO, or other S3-compatible services.
"""

from .aio import AsyncObjectStore
from .client import (
    BackendError,
    ConfigurationError,
    NotFoundError,
    ObjectInfo,
    ObjectStore,
    OperationCancelled,
    StorageError,
    StoragePermissionError,
    TransientBackendError,
)
from .s3_client import S3ObjectStore

__all__ = [
    "AsyncObjectStore",
    "BackendError",
    "ConfigurationError",
    "NotFoundError",
    "ObjectInfo",
    "ObjectStore",
    "OperationCancelled",
    "S3ObjectStore",
    "StorageError",
    "StoragePermissionError",
    "TransientBackendError",
]
