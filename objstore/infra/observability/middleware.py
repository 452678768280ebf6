import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from objstore.infra.observability.metrics import LATENCY, REQUESTS

# Polled by the kubelet every few seconds
PROBE_ROUTES = frozenset({"/health", "/ready", "/metrics"})

logger = logging.getLogger("http")


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None and hasattr(route, "path"):
        return route.path
    return request.url.path


def _level_for(route: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if route in PROBE_ROUTES:
        return logging.DEBUG
    return logging.INFO


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request metrics, assign X-Request-Id and log one line per request.

    The request id is stored on ``request.state`` so exception handlers can
    echo it in error bodies.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception as exc:
            self._log(
                request,
                route=request.url.path,
                status_code=500,
                elapsed=time.perf_counter() - start,
                request_id=request_id,
                exc=exc,
            )
            raise

        elapsed = time.perf_counter() - start
        route = _route_label(request)
        REQUESTS.labels(request.method, route, str(response.status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)

        if "X-Request-Id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        self._log(
            request,
            route=route,
            status_code=response.status_code,
            elapsed=elapsed,
            request_id=request_id,
        )
        return response

    @staticmethod
    def _log(
        request: Request,
        *,
        route: str,
        status_code: int,
        elapsed: float,
        request_id: str,
        exc: Exception | None = None,
    ) -> None:
        duration_ms = round(elapsed * 1000, 3)
        client_ip = _client_ip(request)
        fields = {
            "method": request.method,
            "route": route,
            "status": status_code,
            "duration_ms": duration_ms,
            "request_id": request_id,
            "client_ip": client_ip,
            "user_agent": request.headers.get("User-Agent"),
        }
        if exc is not None:
            fields["exception"] = repr(exc)
        logger.log(
            _level_for(route, status_code),
            "%s method=%s route=%s status=%s duration_ms=%.3f request_id=%s client_ip=%s",
            "request_error" if exc is not None else "request",
            request.method,
            route,
            status_code,
            duration_ms,
            request_id,
            client_ip or "-",
            exc_info=exc,
            extra={"extra": fields},
        )
