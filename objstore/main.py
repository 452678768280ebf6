import logging

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from objstore.api.deps import get_storage_health_check, reset_object_store
from objstore.common.config import get_settings
from objstore.common.logging import setup_logging
from objstore.infra.observability.metrics import metrics_app
from objstore.infra.observability.middleware import MetricsMiddleware
from objstore.infra.storage.client import (
    ConfigurationError,
    NotFoundError,
    OperationCancelled,
    StorageError,
    StoragePermissionError,
    TransientBackendError,
)
from objstore.infra.storage.health import StorageHealthCheck

STATUS_BY_ERROR: list[tuple[type[StorageError], int, str]] = [
    (ConfigurationError, 503, "storage_misconfigured"),
    (NotFoundError, 404, "object_not_found"),
    (StoragePermissionError, 403, "storage_forbidden"),
    (TransientBackendError, 503, "storage_unavailable"),
    (OperationCancelled, 503, "storage_cancelled"),
]


def _resolve_storage_error(exc: StorageError) -> tuple[int, str]:
    for error_cls, status_code, error_code in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code, error_code
    return 502, "bad_gateway"


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="Object Store Service",
        version="v1.0",
        description="Single-bucket object store with workload-identity credentials",
    )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("objstore.startup")
        startup_logger.info(
            "object store service starting [event=startup] "
            "(bucket=%s, region=%s, endpoint=%s, credential_providers=%s)",
            settings.S3_BUCKET or "<unset>",
            settings.S3_REGION,
            settings.S3_ENDPOINT_URL or "<aws>",
            ",".join(settings.S3_CREDENTIAL_PROVIDERS),
        )

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        reset_object_store()

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        logger = logging.getLogger("http")
        status_code, error_code = _resolve_storage_error(exc)
        request_id = getattr(request.state, "request_id", None) or request.headers.get(
            "X-Request-Id"
        )
        logger.log(
            logging.WARNING if status_code < 500 else logging.ERROR,
            "storage_exception status=%s error=%s detail=%s method=%s path=%s request_id=%s",
            status_code,
            type(exc).__name__,
            exc.message,
            request.method,
            request.url.path,
            request_id,
            extra={
                "extra": {
                    "status": status_code,
                    "error": type(exc).__name__,
                    "detail": exc.message,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request_id,
                }
            },
        )
        return JSONResponse(
            status_code=status_code,
            media_type="application/problem+json",
            content={
                "type": "about:blank",
                "title": "Storage Error",
                "status": status_code,
                "detail": exc.message,
                "error_code": error_code,
                "instance": str(request.url),
                "request_id": request_id,
            },
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/ready")
    def ready(health_check: StorageHealthCheck = Depends(get_storage_health_check)):
        report = health_check.check()
        if report.healthy:
            return {"status": "ready"}
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "detail": {"storage": report.detail}},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("objstore.main:app", host="0.0.0.0", port=8000, reload=True)
