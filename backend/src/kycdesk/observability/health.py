"""Health checks for the KYC desk.

Two components are probed: the database (a trivial SELECT) and the attachment
store the process was started with (an existence check for an id that is
never issued). A component that answers but slower than SLOW_PROBE_MS is
reported as degraded.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.attachments.errors import StorageError
from ..domain.attachments.ports.attachment_store_port import AttachmentStorePort
from .logging_config import get_logger

logger = get_logger(__name__)

PROBE_ATTACHMENT_ID = "0" * 32

SLOW_PROBE_MS = 1000.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "message": self.message, "latency_ms": self.latency_ms}


@dataclass
class HealthReport:
    """Component results plus the overall verdict."""
    components: Dict[str, ComponentHealth] = field(default_factory=dict)

    @property
    def status(self) -> HealthStatus:
        statuses = {component.status for component in self.components.values()}
        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY
        if HealthStatus.DEGRADED in statuses:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    @property
    def http_status(self) -> int:
        # Degraded still serves traffic
        return 503 if self.status == HealthStatus.UNHEALTHY else 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "components": {name: c.to_dict() for name, c in self.components.items()},
        }


def _timed(ok_message: str, started: float) -> ComponentHealth:
    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    if latency_ms > SLOW_PROBE_MS:
        return ComponentHealth(HealthStatus.DEGRADED, f"{ok_message} (slow)", latency_ms)
    return ComponentHealth(HealthStatus.HEALTHY, ok_message, latency_ms)


def check_database_health(db: Session) -> ComponentHealth:
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, f"Database error: {e}")
    return _timed("Database connection OK", started)


async def check_attachment_store_health(store: Optional[AttachmentStorePort]) -> ComponentHealth:
    if store is None:
        return ComponentHealth(HealthStatus.UNHEALTHY, "Attachment store not initialized")

    started = time.perf_counter()
    try:
        await store.exists(PROBE_ATTACHMENT_ID)
    except StorageError as e:
        logger.error(f"Attachment store health check failed: {e}", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, f"Attachment store error: {e}")
    return _timed(f"Attachment store ({store.backend_name}) OK", started)


async def collect_health(db: Session, store: Optional[AttachmentStorePort]) -> HealthReport:
    return HealthReport(components={
        "database": check_database_health(db),
        "attachment_store": await check_attachment_store_health(store),
    })
