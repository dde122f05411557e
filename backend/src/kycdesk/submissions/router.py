"""Submission API endpoints

Intake (multipart form + two files), listing, applicant self-lookup, statistics,
review status updates, deletion, attachment info and download/view.

Domain errors raised here are turned into JSON error bodies by the exception
handlers registered in ``kycdesk.main``.
"""

import logging
from datetime import timedelta
from typing import Any, Iterator, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.datastructures import UploadFile

from ..auth.dependencies import get_actor, get_applicant_email
from ..config import get_settings
from ..dependencies import get_registry, get_statistics_aggregator
from ..domain.attachments.attachment_ref import AttachmentUpload
from ..domain.attachments.validation import sanitize_filename
from ..domain.submissions.errors import InvalidQuery, ValidationFailed
from ..domain.submissions.ingress import (
    collect_form_fields,
    normalize_fields,
    parse_datetime,
    parse_decimal,
    resolve_uploads,
)
from ..domain.submissions.kinds import parse_kind
from ..domain.submissions.models import (
    ActorContext,
    FieldError,
    SortSpec,
    SubmissionFilter,
)
from ..domain.submissions.status import parse_status
from ..observability.context import bind_reviewer
from .intake import submit_submission
from .registry import SubmissionRegistry
from .schemas import (
    AttachmentInfoResponse,
    StatisticsResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from .statistics import StatisticsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/submissions", tags=["Submissions"])

STREAM_CHUNK_SIZE = 64 * 1024


async def _read_form(request: Request) -> tuple[dict[str, list[Any]], dict[str, list[AttachmentUpload]]]:
    """Split a multipart/urlencoded body into text fields and file uploads."""
    form = await request.form()
    fields: list[tuple[str, Any]] = []
    files: dict[str, list[AttachmentUpload]] = {}

    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            if not value.filename and not value.size:
                continue  # empty file input
            files.setdefault(name, []).append(AttachmentUpload(
                stream=value.file,
                filename=value.filename or "",
                media_type=value.content_type or "",
                declared_size=value.size,
            ))
        else:
            fields.append((name, value))

    return collect_form_fields(fields), files


def _iter_stream(stream) -> Iterator[bytes]:
    try:
        while True:
            chunk = stream.read(STREAM_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


def _content_disposition(disposition: str, filename: str) -> str:
    safe_name = sanitize_filename(filename)
    return f"{disposition}; filename=\"{safe_name}\"; filename*=UTF-8''{quote(filename or safe_name)}"


# =============================================================================
# INTAKE
# =============================================================================

@router.post(
    "/{kind}",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_submission(
    kind: str,
    request: Request,
    registry: SubmissionRegistry = Depends(get_registry),
):
    """Register a new submission

    Accepts multipart/form-data with the applicant fields and two files
    (``primary_id_document`` and ``signature_or_second_document``; the legacy
    field names ``aadharFile``/``signatureFile`` and friends are accepted).

    Example:
        curl -X POST http://localhost:8000/api/v1/submissions/registration \\
             -F firstName=Asha -F lastName=Verma -F email=asha@gmail.com \\
             -F phone=9876543210 -F aadharNumber="1234 5678 9012" \\
             -F dateOfBirth=2007-03-01 -F address="12 MG Road" -F city=Pune \\
             -F state=Maharashtra -F pincode=411001 -F courseName="Options 101" \\
             -F agreeTerms=true -F aadharFile=@aadhar.pdf -F signatureFile=@sign.png
    """
    raw_fields, files = await _read_form(request)
    submission = await submit_submission(registry, kind, raw_fields, files)
    return submission.to_dict()


# =============================================================================
# QUERIES
# =============================================================================

@router.get("", response_model=SubmissionListResponse)
def list_submissions(
    status_filter: Optional[str] = Query(None, alias="status"),
    kind: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Name, email, phone, city or state contains"),
    course: Optional[str] = Query(None, description="Course name contains"),
    created_from: Optional[str] = Query(None, description="ISO date or datetime (inclusive)"),
    created_to: Optional[str] = Query(None, description="ISO date or datetime (inclusive)"),
    min_investment: Optional[str] = Query(None),
    max_investment: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", description="asc or desc"),
    registry: SubmissionRegistry = Depends(get_registry),
):
    """List submissions with filters, sorting and offset pagination"""
    settings = get_settings()
    page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    if sort_order.lower() not in ("asc", "desc"):
        raise InvalidQuery("sort_order must be asc or desc")

    filters = SubmissionFilter(
        status=parse_status(status_filter) if status_filter else None,
        search=search,
        course_name=course,
    )

    try:
        if kind:
            filters.kind = parse_kind(kind)
        if created_from:
            filters.created_from = parse_datetime(created_from)
        if created_to:
            filters.created_to = parse_datetime(created_to)
            if "T" not in created_to and len(created_to.strip()) == 10:
                # Date-only upper bound covers the whole day
                filters.created_to += timedelta(days=1) - timedelta(microseconds=1)
        if min_investment:
            filters.min_investment = parse_decimal(min_investment)
        if max_investment:
            filters.max_investment = parse_decimal(max_investment)
    except ValueError as e:
        raise InvalidQuery(f"Invalid query parameter: {e}")

    result = registry.list_submissions(
        filters=filters,
        sort=SortSpec(field=sort_by, descending=sort_order.lower() == "desc"),
        page=page,
        page_size=page_size,
    )

    return {
        "items": [submission.to_dict() for submission in result.items],
        "page": result.page,
        "page_size": result.page_size,
        "total_count": result.total_count,
        "total_pages": result.total_pages,
        "has_next": result.has_next,
        "has_prev": result.has_prev,
    }


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    aggregator: StatisticsAggregator = Depends(get_statistics_aggregator),
):
    """Dashboard statistics over all submissions"""
    stats = await aggregator.aggregate(timeout=get_settings().STATS_TIMEOUT_SECONDS)
    return stats.to_dict()


@router.get("/mine", response_model=SubmissionResponse)
def get_own_submission(
    email: str = Depends(get_applicant_email),
    registry: SubmissionRegistry = Depends(get_registry),
):
    """The caller's own submission, matched on the token's email claim"""
    return registry.find_by_email(email).to_dict()


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: str,
    registry: SubmissionRegistry = Depends(get_registry),
):
    return registry.get(submission_id).to_dict()


# =============================================================================
# REVIEW
# =============================================================================

@router.patch("/{submission_id}/status", response_model=SubmissionResponse)
async def update_submission_status(
    submission_id: str,
    request: Request,
    registry: SubmissionRegistry = Depends(get_registry),
    actor: ActorContext = Depends(get_actor),
):
    """Update review status, notes and optionally replace attachments

    Accepts JSON (``{"status": "approved", "admin_notes": "..."}``) or a
    multipart form with the same fields plus replacement files. The reviewer
    is taken from the bearer token; without one the update is recorded as
    ``system``.
    """
    bind_reviewer(actor.reviewer_id)
    files: dict[str, list[AttachmentUpload]] = {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationFailed([FieldError("body", "invalid_json", "Request body is not valid JSON")])
        raw_fields = body if isinstance(body, dict) else {}
    else:
        raw_fields, files = await _read_form(request)

    fields = normalize_fields(raw_fields)
    if "status" not in fields:
        raise ValidationFailed([FieldError("status", "required", "status is required")])

    submission = await registry.update_status(
        submission_id,
        fields["status"],
        notes=fields.get("admin_notes"),
        actor=actor,
        replacements=resolve_uploads(files),
    )
    return submission.to_dict()


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: str,
    registry: SubmissionRegistry = Depends(get_registry),
):
    """Delete a submission and its attachments"""
    await registry.delete(submission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ATTACHMENTS
# =============================================================================

async def _attachment_response(
    registry: SubmissionRegistry,
    submission_id: str,
    slot: str,
    disposition: str,
) -> StreamingResponse:
    download = await registry.open_attachment(submission_id, slot, disposition=disposition)
    logger.info(
        f"Attachment served: submission={submission_id}, slot={slot}, disposition={disposition}",
        extra={"submission_id": submission_id},
    )
    return StreamingResponse(
        _iter_stream(download.stream),
        media_type=download.media_type,
        headers={
            "Content-Disposition": _content_disposition(download.disposition, download.filename),
            "Content-Length": str(download.byte_size),
        },
    )


@router.get("/{submission_id}/attachments/{slot}", response_model=AttachmentInfoResponse)
async def get_attachment_info(
    submission_id: str,
    slot: str,
    registry: SubmissionRegistry = Depends(get_registry),
):
    """Attachment metadata without downloading the bytes"""
    return await registry.describe_attachment(submission_id, slot)


@router.get("/{submission_id}/attachments/{slot}/download")
async def download_attachment(
    submission_id: str,
    slot: str,
    registry: SubmissionRegistry = Depends(get_registry),
):
    """Download an attachment (Content-Disposition: attachment)"""
    return await _attachment_response(registry, submission_id, slot, "attachment")


@router.get("/{submission_id}/attachments/{slot}/view")
async def view_attachment(
    submission_id: str,
    slot: str,
    registry: SubmissionRegistry = Depends(get_registry),
):
    """View an attachment in the browser (Content-Disposition: inline)"""
    return await _attachment_response(registry, submission_id, slot, "inline")
