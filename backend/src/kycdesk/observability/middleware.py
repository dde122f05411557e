"""FastAPI middleware for observability.

Binds a request context (correlation id) for every HTTP request, logs its
outcome and records its latency.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .context import bind_request, resolve_request_id
from .logging_config import get_logger
from .metrics import http_request_duration_seconds

logger = get_logger(__name__)

# Probed by load balancers and scrapers; logged at DEBUG only
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _route_label(request: Request) -> str:
    """Route template (``/api/v1/submissions/{submission_id}``), never the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Correlation id, access log and latency histogram per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        bind_request(request_id)
        log = logger.debug if request.url.path in QUIET_PATHS else logger.info

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start_time
            http_request_duration_seconds.labels(
                method=request.method, route=_route_label(request), status="500"
            ).observe(elapsed)
            logger.error(
                f"{request.method} {request.url.path} failed",
                extra={"method": request.method, "path": request.url.path,
                       "duration_ms": round(elapsed * 1000, 2)},
                exc_info=True,
            )
            raise

        elapsed = time.perf_counter() - start_time
        http_request_duration_seconds.labels(
            method=request.method,
            route=_route_label(request),
            status=str(response.status_code),
        ).observe(elapsed)
        log(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response
