"""Health and Prometheus endpoints (outside the /api/v1 prefix)."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

from ..database import get_db
from .health import collect_health

router = APIRouter(tags=["Observability"])


@router.get("/metrics", include_in_schema=False)
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/health",
    summary="Database and attachment store health",
    responses={503: {"description": "A component is unhealthy"}},
)
async def health_check(request: Request, db: Session = Depends(get_db)):
    """200 when every component answers (healthy or degraded), 503 otherwise."""
    report = await collect_health(db, getattr(request.app.state, "attachment_store", None))
    return JSONResponse(content=report.to_dict(), status_code=report.http_status)
