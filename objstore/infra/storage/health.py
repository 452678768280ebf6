"""Storage health check used by the readiness probe."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from objstore.infra.storage.client import ObjectStore, StorageError

logger = logging.getLogger(__name__)

HEALTHCHECK_PREFIX = "__healthcheck__"


@dataclass(frozen=True, slots=True)
class HealthReport:
    healthy: bool
    detail: str | None = None


class StorageHealthCheck:
    """Verify that credentials work and the bucket is reachable.

    A prefix listing is the cheapest call that exercises both.
    """

    def __init__(self, store: ObjectStore, *, prefix: str = HEALTHCHECK_PREFIX) -> None:
        self._store = store
        self._prefix = prefix

    def check(self) -> HealthReport:
        try:
            self._store.list_objects(self._prefix)
        except StorageError as exc:
            logger.error(
                "storage_health_check_failed bucket=%s error=%s",
                self._store.bucket,
                exc,
                extra={
                    "extra": {
                        "bucket": self._store.bucket,
                        "error": type(exc).__name__,
                        "code": exc.code,
                    }
                },
            )
            return HealthReport(healthy=False, detail=str(exc))
        logger.info("storage_health_check_passed bucket=%s", self._store.bucket)
        return HealthReport(healthy=True)


__all__ = ["HEALTHCHECK_PREFIX", "HealthReport", "StorageHealthCheck"]
