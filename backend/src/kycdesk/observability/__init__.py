"""Observability for the KYC desk: logging, request context, metrics, health."""

from .context import bind_reviewer, current_request_id, current_reviewer_id
from .health import HealthReport, HealthStatus, collect_health
from .logging_config import configure_logging, get_logger
from .middleware import RequestContextMiddleware

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_reviewer",
    "current_request_id",
    "current_reviewer_id",
    "HealthReport",
    "HealthStatus",
    "collect_health",
    "RequestContextMiddleware",
]
