"""Global FastAPI dependencies for the attachment store and services.

The attachment store is built once in the application lifespan and kept on
``app.state``; request handlers receive it (and services bound to it) through
these dependencies.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .config import get_settings
from .database import SessionLocal, get_db
from .domain.attachments.ports.attachment_store_port import AttachmentStorePort
from .submissions.registry import SubmissionRegistry
from .submissions.statistics import StatisticsAggregator


def get_attachment_store(request: Request) -> AttachmentStorePort:
    """Return the store initialized at startup.

    Raises:
        HTTPException 503: If the application started without a store
    """
    store = getattr(request.app.state, "attachment_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Attachment store is not initialized",
        )
    return store


def get_registry(
    db: Session = Depends(get_db),
    store: AttachmentStorePort = Depends(get_attachment_store),
) -> SubmissionRegistry:
    return SubmissionRegistry(db=db, store=store)


def get_session_factory():
    """Session factory for work that runs outside the request session."""
    return SessionLocal


def get_statistics_aggregator(
    session_factory=Depends(get_session_factory),
) -> StatisticsAggregator:
    settings = get_settings()
    return StatisticsAggregator(
        session_factory=session_factory,
        recent_window_days=settings.STATS_RECENT_WINDOW_DAYS,
        top_k=settings.STATS_TOP_K,
    )
