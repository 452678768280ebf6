"""S3-compatible object store facade.

This module provides a single-bucket object store that works with AWS S3,
MinIO, and other S3-compatible services. Pagination, managed transfers and
retries are left to boto3; the facade shapes results and errors.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator

from boto3.exceptions import Boto3Error, RetriesExceededError, S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError
from botocore.exceptions import NoCredentialsError

from objstore.infra.observability.metrics import STORAGE_LATENCY, STORAGE_OPERATIONS
from objstore.infra.storage.client import (
    BackendError,
    ConfigurationError,
    NotFoundError,
    ObjectInfo,
    OperationCancelled,
    StorageError,
    StoragePermissionError,
    TransientBackendError,
)

if TYPE_CHECKING:
    from boto3.s3.transfer import TransferConfig

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
# A missing bucket is a deployment error, never an absent key
_MISSING_BUCKET_CODES = frozenset({"NoSuchBucket"})
_PERMISSION_CODES = frozenset(
    {
        "403",
        "AccessDenied",
        "AllAccessDisabled",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "ExpiredToken",
        "InvalidToken",
    }
)
_TRANSIENT_CODES = frozenset(
    {
        "SlowDown",
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "RequestTimeout",
        "ServiceUnavailable",
        "InternalError",
    }
)
_OUTCOMES: dict[type[StorageError], str] = {
    NotFoundError: "not_found",
    StoragePermissionError: "denied",
    TransientBackendError: "transient",
    OperationCancelled: "cancelled",
    ConfigurationError: "misconfigured",
}


def _unwrap(exc: BaseException) -> BaseException:
    """Return the SDK error hidden behind boto3 managed-transfer wrappers."""
    if isinstance(exc, RetriesExceededError) and exc.last_exception is not None:
        return exc.last_exception
    if isinstance(exc, S3UploadFailedError):
        inner = exc.__cause__ or exc.__context__
        if inner is not None:
            return inner
    return exc


def translate_error(
    exc: BaseException, *, op: str, bucket: str | None, key: str | None
) -> StorageError:
    """Map a boto3/botocore exception onto the storage error taxonomy."""
    if isinstance(exc, StorageError):
        return exc

    cause = _unwrap(exc)
    if isinstance(cause, ClientError):
        error = cause.response.get("Error", {}) or {}
        code = str(error.get("Code") or "") or None
        status = (cause.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
        detail = error.get("Message") or str(cause)

        error_cls: type[StorageError]
        if code in _MISSING_BUCKET_CODES:
            error_cls = ConfigurationError
        elif code in _NOT_FOUND_CODES or status == 404:
            error_cls = NotFoundError
        elif code in _PERMISSION_CODES or status == 403:
            error_cls = StoragePermissionError
        elif (
            code in _TRANSIENT_CODES
            or status == 429
            or (status is not None and status >= 500)
        ):
            error_cls = TransientBackendError
        else:
            error_cls = BackendError
        return error_cls(
            f"{op} failed for bucket={bucket} key={key}: {detail}",
            op=op,
            bucket=bucket,
            key=key,
            code=code,
            status=status,
        )

    if isinstance(cause, NoCredentialsError):
        error_cls = StoragePermissionError
    elif isinstance(cause, (BotoConnectionError, HTTPClientError)):
        error_cls = TransientBackendError
    else:
        error_cls = BackendError
    return error_cls(
        f"{op} failed for bucket={bucket} key={key}: {cause}",
        op=op,
        bucket=bucket,
        key=key,
    )


def _raise_if_cancelled(
    cancel: threading.Event | None, *, op: str, bucket: str, key: str | None
) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(
            f"{op} cancelled for bucket={bucket} key={key}",
            op=op,
            bucket=bucket,
            key=key,
        )


def _progress_callback(
    cancel: threading.Event | None, *, op: str, bucket: str, key: str
) -> Callable[[int], None] | None:
    """Build a managed-transfer callback that aborts the transfer on cancel."""
    if cancel is None:
        return None

    def callback(_bytes_transferred: int) -> None:
        _raise_if_cancelled(cancel, op=op, bucket=bucket, key=key)

    return callback


class _CancellableBody(io.BytesIO):
    """Request payload that stops the upload once the cancel event is set."""

    def __init__(
        self, data: bytes, cancel: threading.Event, *, bucket: str, key: str
    ) -> None:
        super().__init__(data)
        self._cancel = cancel
        self._bucket = bucket
        self._key = key

    def read(self, size: int | None = -1) -> bytes:
        _raise_if_cancelled(
            self._cancel, op="upload_from_bytes", bucket=self._bucket, key=self._key
        )
        return super().read(size)


def _to_object_info(entry: dict[str, Any]) -> ObjectInfo:
    return ObjectInfo(
        key=entry["Key"],
        size=int(entry.get("Size") or 0),
        last_modified=entry["LastModified"],
        etag=entry.get("ETag") or "",
    )


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class S3ObjectStore:
    """Object store bound to one S3 bucket.

    The boto3 client must already be authenticated; construction performs no
    network I/O. The client is shared by concurrent calls and released by
    ``close()``.
    """

    def __init__(
        self,
        *,
        client: Any,
        bucket: str,
        transfer_config: "TransferConfig | None" = None,
        page_size: int | None = None,
        scheme: str = "s3",
    ) -> None:
        """Bind the facade to a bucket.

        Args:
            client: A boto3 S3 client.
            bucket: Target bucket name.
            transfer_config: Managed-transfer tuning for path uploads/downloads.
            page_size: ``MaxKeys`` sent with each listing request.
            scheme: Scheme used in returned locators.

        Raises:
            ConfigurationError: If the bucket name or client is missing.
        """
        if client is None:
            raise ConfigurationError("S3 client is required", bucket=bucket)
        if not isinstance(bucket, str) or not bucket.strip():
            raise ConfigurationError("Bucket name must be a non-empty string")
        if page_size is not None and page_size <= 0:
            raise ConfigurationError("page_size must be positive", bucket=bucket)

        self._client = client
        self._bucket = bucket
        self._transfer_config = transfer_config
        self._page_size = page_size
        self._scheme = scheme
        self._closed = False

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def closed(self) -> bool:
        return self._closed

    def locator(self, key: str) -> str:
        return f"{self._scheme}://{self._bucket}/{key}"

    def __enter__(self) -> "S3ObjectStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections held by the client."""
        if self._closed:
            return
        self._closed = True
        self._client.close()
        logger.info("object_store_closed bucket=%s", self._bucket)

    # --------------
    # ObjectStore API
    # --------------
    def list_objects(
        self, prefix: str = "", *, cancel: threading.Event | None = None
    ) -> list[ObjectInfo]:
        """List every object under ``prefix``, following continuation tokens.

        Pages are fetched one after another without snapshot isolation, so a
        bucket mutated during enumeration may yield a mix of old and new state.
        """
        results: list[ObjectInfo] = []
        with self._operation("list_objects", prefix, cancel):
            continuation_token: str | None = None
            while True:
                _raise_if_cancelled(
                    cancel, op="list_objects", bucket=self._bucket, key=prefix
                )
                params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
                if continuation_token:
                    params["ContinuationToken"] = continuation_token
                if self._page_size:
                    params["MaxKeys"] = self._page_size

                response = self._client.list_objects_v2(**params)
                results.extend(
                    _to_object_info(entry) for entry in response.get("Contents", [])
                )

                if not response.get("IsTruncated"):
                    break
                continuation_token = response.get("NextContinuationToken")
                if not continuation_token:
                    raise BackendError(
                        "S3 response truncated without NextContinuationToken",
                        op="list_objects",
                        bucket=self._bucket,
                        key=prefix,
                    )
        return results

    def upload_from_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> str:
        """Write ``data`` to ``key`` with a single PUT request."""
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if cancel is not None:
            params["Body"] = _CancellableBody(
                data, cancel, bucket=self._bucket, key=key
            )
        else:
            params["Body"] = data
        if content_type:
            params["ContentType"] = content_type

        with self._operation("upload_from_bytes", key, cancel):
            self._client.put_object(**params)
        logger.debug(
            "storage_object_uploaded bucket=%s key=%s size=%s",
            self._bucket,
            key,
            len(data),
        )
        return self.locator(key)

    def upload_from_path(
        self,
        key: str,
        local_path: str,
        content_type: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> str:
        """Upload a local file through the boto3 managed transfer.

        boto3 switches between a single PUT and a multipart upload based on the
        transfer config's threshold.
        """
        extra_args = {"ContentType": content_type} if content_type else None

        with self._operation("upload_from_path", key, cancel):
            if not os.path.isfile(local_path):
                raise NotFoundError(
                    f"Local file not found: {local_path}",
                    op="upload_from_path",
                    bucket=self._bucket,
                    key=key,
                )
            self._client.upload_file(
                local_path,
                self._bucket,
                key,
                ExtraArgs=extra_args,
                Callback=_progress_callback(
                    cancel, op="upload_from_path", bucket=self._bucket, key=key
                ),
                Config=self._transfer_config,
            )
        return self.locator(key)

    def download(self, key: str, *, cancel: threading.Event | None = None) -> bytes:
        """Read the whole object into memory and release the response stream."""
        with self._operation("download", key, cancel):
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body = response["Body"]
            buffer = io.BytesIO()
            try:
                for chunk in body.iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    _raise_if_cancelled(
                        cancel, op="download", bucket=self._bucket, key=key
                    )
                    buffer.write(chunk)
            finally:
                body.close()
        return buffer.getvalue()

    def download_to_path(
        self,
        key: str,
        destination_path: str,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        """Download ``key`` to ``destination_path`` through the managed transfer.

        Data lands in a temporary sibling file that is renamed into place only
        after the transfer completes.
        """
        destination = os.path.abspath(destination_path)
        with self._operation("download_to_path", key, cancel):
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(destination)}.",
                suffix=".part",
                dir=os.path.dirname(destination),
            )
            os.close(fd)
            committed = False
            try:
                self._client.download_file(
                    self._bucket,
                    key,
                    temp_path,
                    Callback=_progress_callback(
                        cancel, op="download_to_path", bucket=self._bucket, key=key
                    ),
                    Config=self._transfer_config,
                )
                os.replace(temp_path, destination)
                committed = True
            finally:
                if not committed:
                    _remove_quietly(temp_path)

    def delete(self, key: str, *, cancel: threading.Event | None = None) -> bool:
        """Delete ``key``; an absent key counts as removed."""
        try:
            with self._operation("delete", key, cancel, missing_ok=True):
                response = self._client.delete_object(Bucket=self._bucket, Key=key)
        except NotFoundError:
            return True
        status = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
        return status in (200, 204)

    def exists(self, key: str, *, cancel: threading.Event | None = None) -> bool:
        """HEAD the object; only "not found" maps to ``False``."""
        try:
            with self._operation("exists", key, cancel, missing_ok=True):
                self._client.head_object(Bucket=self._bucket, Key=key)
        except NotFoundError:
            return False
        return True

    # -------
    # helpers
    # -------
    @contextmanager
    def _operation(
        self,
        op: str,
        key: str | None,
        cancel: threading.Event | None,
        *,
        missing_ok: bool = False,
    ) -> Iterator[None]:
        if self._closed:
            raise ConfigurationError(
                "Object store is closed", op=op, bucket=self._bucket, key=key
            )

        start = time.perf_counter()
        outcome = "ok"
        try:
            _raise_if_cancelled(cancel, op=op, bucket=self._bucket, key=key)
            yield
        except (ClientError, BotoCoreError, Boto3Error) as exc:
            error = translate_error(exc, op=op, bucket=self._bucket, key=key)
            outcome = _OUTCOMES.get(type(error), "error")
            self._log_failure(error, missing_ok=missing_ok)
            raise error from exc
        except StorageError as exc:
            outcome = _OUTCOMES.get(type(exc), "error")
            self._log_failure(exc, missing_ok=missing_ok)
            raise
        except Exception:
            outcome = "error"
            raise
        finally:
            STORAGE_OPERATIONS.labels(op, outcome).inc()
            STORAGE_LATENCY.labels(op).observe(time.perf_counter() - start)

    def _log_failure(self, error: StorageError, *, missing_ok: bool) -> None:
        if isinstance(error, NotFoundError):
            level = logging.DEBUG if missing_ok else logging.INFO
        elif isinstance(error, OperationCancelled):
            level = logging.WARNING
        else:
            level = logging.ERROR
        logger.log(
            level,
            "storage_op_failed op=%s bucket=%s key=%s error=%s code=%s status=%s",
            error.op,
            self._bucket,
            error.key,
            type(error).__name__,
            error.code,
            error.status,
            extra={
                "extra": {
                    "op": error.op,
                    "bucket": self._bucket,
                    "key": error.key,
                    "error": type(error).__name__,
                    "code": error.code,
                    "status": error.status,
                }
            },
        )


__all__ = ["DOWNLOAD_CHUNK_SIZE", "S3ObjectStore", "translate_error"]
