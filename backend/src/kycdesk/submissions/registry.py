"""Submission registry - creation, lookup, listing, review and deletion.

The registry owns the mapping from a submission to its attachments. Stored
attachments that end up unreferenced (rejected create, failed update,
replaced slot, deleted record) are removed from the attachment store on a
best-effort basis: cleanup failures are logged and counted, never raised.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from sqlalchemy import asc, desc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.attachments.attachment_ref import (
    AttachmentDownload,
    AttachmentRef,
    AttachmentSlot,
    AttachmentUpload,
)
from ..domain.attachments.errors import (
    AttachmentNotFound,
    EmptyAttachment,
    LegacyAttachmentRef,
    SizeLimitExceeded,
    StorageError,
    UnsupportedMediaType,
)
from ..domain.attachments.ports.attachment_store_port import AttachmentStorePort
from ..domain.submissions.errors import (
    DuplicateField,
    InvalidQuery,
    PersistenceFailure,
    SubmissionNotFound,
    ValidationFailed,
)
from ..domain.submissions.ingress import resolve_slot
from ..domain.submissions.models import (
    SORTABLE_FIELDS,
    SYSTEM_ACTOR,
    ActorContext,
    FieldError,
    SortSpec,
    SubmissionFilter,
    SubmissionPage,
    ValidatedSubmission,
)
from ..domain.submissions.status import (
    INITIAL_STATUS,
    SubmissionStatus,
    parse_status,
    validate_transition,
)
from ..models.submission import Submission, ensure_utc
from ..observability.metrics import (
    attachment_bytes,
    attachment_cleanup_failures_total,
    attachments_stored_total,
    status_transitions_total,
    submissions_created_total,
    submissions_rejected_total,
)

logger = logging.getLogger(__name__)

# Uniqueness is checked in this order; the first conflicting field is reported
UNIQUE_FIELDS = ("email", "phone", "national_id")

ADMIN_NOTES_MAX_LENGTH = 1000

# Rejections caused by the upload itself; surfaced to the client unchanged
CLIENT_STORAGE_ERRORS = (UnsupportedMediaType, SizeLimitExceeded, EmptyAttachment)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionRegistry:
    """Service for submission records and their attachments.

    Args:
        db: Database session (one per request)
        store: Initialized attachment store
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        db: Session,
        store: AttachmentStorePort,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.store = store
        self.clock = clock

    async def create(
        self,
        validated: ValidatedSubmission,
        attachment_refs: dict[AttachmentSlot, AttachmentRef],
        actor: Optional[ActorContext] = None,
    ) -> Submission:
        """Register a validated submission that references stored attachments.

        On any failure the given attachments are deleted from the store before
        the error is raised.

        Args:
            validated: Output of the validator
            attachment_refs: One stored ref per required slot
            actor: Who submitted (logged only; intake is anonymous by default)

        Returns:
            Submission: The committed record in status pending_review

        Raises:
            DuplicateField: email, phone or national_id already registered
            PersistenceFailure: Database write failed
        """
        refs = list(attachment_refs.values())
        missing = [slot for slot in AttachmentSlot if slot not in attachment_refs]
        if missing:
            await self._discard_refs(refs, reason="incomplete attachments")
            raise ValidationFailed([
                FieldError(slot.value, "missing_attachment", f"{slot.value} is required")
                for slot in missing
            ])

        conflict = self._find_conflict(validated.email, validated.phone, validated.national_id)
        if conflict:
            await self._reject_duplicate(conflict, refs)

        now = self.clock()
        submission = Submission(
            id=uuid.uuid4(),
            kind=validated.kind,
            first_name=validated.first_name,
            last_name=validated.last_name,
            email=validated.email,
            phone=validated.phone,
            national_id=validated.national_id,
            date_of_birth=validated.date_of_birth,
            address=validated.address,
            city=validated.city,
            state=validated.state,
            postal_code=validated.postal_code,
            course_name=validated.course_name,
            investment_amount=validated.investment_amount,
            investment_goals=validated.investment_goals,
            terms_accepted=validated.terms_accepted,
            marketing_opt_in=validated.marketing_opt_in,
            status=INITIAL_STATUS,
            reviewed_by=None,
            reviewed_at=None,
            created_at=now,
            updated_at=now,
        )
        for slot, ref in attachment_refs.items():
            submission.set_attachment_ref(slot, ref)

        try:
            self.db.add(submission)
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent intake: the unique index decided.
            self.db.rollback()
            conflict = self._find_conflict(validated.email, validated.phone, validated.national_id)
            if conflict:
                await self._reject_duplicate(conflict, refs)
            await self._discard_refs(refs, reason="integrity error")
            submissions_rejected_total.labels(reason="persistence").inc()
            logger.error("Submission insert failed with an unexplained integrity error", exc_info=True)
            raise PersistenceFailure("Could not save submission")
        except SQLAlchemyError as e:
            self.db.rollback()
            await self._discard_refs(refs, reason="database error")
            submissions_rejected_total.labels(reason="persistence").inc()
            logger.error(f"Submission insert failed: {e}", exc_info=True)
            raise PersistenceFailure("Could not save submission")

        submissions_created_total.labels(kind=validated.kind.value).inc()
        logger.info(
            f"Registered submission: id={submission.id}, kind={validated.kind.value}",
            extra={
                "submission_id": submission.id,
                "reviewer_id": (actor or SYSTEM_ACTOR).reviewer_id,
            },
        )
        return submission

    def _find_conflict(
        self,
        email: str,
        phone: str,
        national_id: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[str]:
        """Return the first unique field already taken, in UNIQUE_FIELDS order."""
        wanted = {"email": email.lower(), "phone": phone, "national_id": national_id}
        query = self.db.query(
            Submission.email, Submission.phone, Submission.national_id
        ).filter(
            or_(
                func.lower(Submission.email) == wanted["email"],
                Submission.phone == wanted["phone"],
                Submission.national_id == wanted["national_id"],
            )
        )
        if exclude_id is not None:
            query = query.filter(Submission.id != exclude_id)

        rows = query.all()
        for field in UNIQUE_FIELDS:
            for row in rows:
                value = getattr(row, field)
                if field == "email":
                    value = value.lower()
                if value == wanted[field]:
                    return field
        return None

    async def _reject_duplicate(self, field: str, refs: list[AttachmentRef]) -> None:
        await self._discard_refs(refs, reason=f"duplicate {field}")
        submissions_rejected_total.labels(reason=f"duplicate_{field}").inc()
        logger.info(f"Rejected duplicate submission: field={field}")
        raise DuplicateField(field)

    def get(self, submission_id: Union[str, uuid.UUID]) -> Submission:
        """Fetch a submission by id.

        Raises:
            SubmissionNotFound: Unknown or malformed id
        """
        key = _parse_id(submission_id)
        submission = self.db.get(Submission, key) if key is not None else None
        if submission is None:
            raise SubmissionNotFound(submission_id)
        return submission

    def list_submissions(
        self,
        filters: Optional[SubmissionFilter] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SubmissionPage:
        """List submissions with filtering, sorting and offset pagination.

        The total count is computed from the filtered query before the page
        slice is applied.

        Raises:
            InvalidQuery: Unknown sort field or page/page_size below 1
        """
        filters = filters or SubmissionFilter()
        sort = sort or SortSpec()

        if sort.field not in SORTABLE_FIELDS:
            raise InvalidQuery(
                f"Cannot sort by {sort.field!r}",
                details={"allowed": sorted(SORTABLE_FIELDS)},
            )
        if page < 1 or page_size < 1:
            raise InvalidQuery("page and page_size must be at least 1")

        query = self.db.query(Submission)

        if filters.status is not None:
            query = query.filter(Submission.status == parse_status(filters.status))

        if filters.kind is not None:
            query = query.filter(Submission.kind == filters.kind)

        if filters.search:
            term = filters.search.strip().lower()
            if term:
                query = query.filter(or_(*[
                    func.lower(column).contains(term, autoescape=True)
                    for column in (
                        Submission.first_name,
                        Submission.last_name,
                        Submission.email,
                        Submission.phone,
                        Submission.city,
                        Submission.state,
                    )
                ]))

        if filters.course_name:
            query = query.filter(
                func.lower(Submission.course_name).contains(
                    filters.course_name.strip().lower(), autoescape=True
                )
            )

        if filters.created_from is not None:
            query = query.filter(Submission.created_at >= ensure_utc(filters.created_from))
        if filters.created_to is not None:
            query = query.filter(Submission.created_at <= ensure_utc(filters.created_to))

        if filters.min_investment is not None:
            query = query.filter(Submission.investment_amount >= filters.min_investment)
        if filters.max_investment is not None:
            query = query.filter(Submission.investment_amount <= filters.max_investment)

        # Get total count before pagination
        total = query.count()

        order_field = getattr(Submission, sort.field)
        direction = desc if sort.descending else asc
        query = query.order_by(direction(order_field), direction(Submission.id))

        items = query.offset((page - 1) * page_size).limit(page_size).all()

        return SubmissionPage(items=items, total_count=total, page=page, page_size=page_size)

    async def update_status(
        self,
        submission_id: Union[str, uuid.UUID],
        new_status: Union[str, SubmissionStatus],
        notes: Optional[str] = None,
        actor: Optional[ActorContext] = None,
        replacements: Optional[dict[AttachmentSlot, AttachmentUpload]] = None,
    ) -> Submission:
        """Move a submission through the review workflow.

        reviewed_by and reviewed_at are stamped on every accepted update,
        including same-status updates on non-terminal states. reviewed_by
        always comes from ``actor`` (SYSTEM_ACTOR when absent).

        Args:
            submission_id: Submission to update
            new_status: Target status (raw string accepted)
            notes: Replaces admin_notes when given
            actor: Authenticated reviewer
            replacements: New uploads for one or both slots

        Raises:
            InvalidStatusValue: new_status is not a known status (nothing changed)
            SubmissionNotFound: Unknown id
            TransitionNotAllowed: Current status is terminal
            ValidationFailed: admin_notes too long
            PersistenceFailure: Database or store I/O failed
        """
        target = parse_status(new_status)
        submission = self.get(submission_id)
        current = parse_status(submission.status)
        validate_transition(current, target)

        if notes is not None and len(notes) > ADMIN_NOTES_MAX_LENGTH:
            raise ValidationFailed([FieldError(
                "admin_notes",
                "too_long",
                f"admin_notes must be at most {ADMIN_NOTES_MAX_LENGTH} characters",
            )])

        actor = actor or SYSTEM_ACTOR
        new_refs = await self.store_uploads(replacements or {})
        orphaned = [
            ref for ref in (self._current_ref(submission, slot) for slot in new_refs)
            if ref is not None
        ]

        now = self.clock()
        previous_update = ensure_utc(submission.updated_at)
        submission.status = target
        if notes is not None:
            submission.admin_notes = notes
        submission.reviewed_by = actor.reviewer_id
        submission.reviewed_at = now
        submission.updated_at = max(now, previous_update) if previous_update else now
        for slot, ref in new_refs.items():
            submission.set_attachment_ref(slot, ref)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            await self._discard_refs(list(new_refs.values()), reason="status update failed")
            logger.error(f"Status update failed: id={submission_id}, error={e}", exc_info=True)
            raise PersistenceFailure("Could not update submission")

        await self._discard_refs(orphaned, reason="replaced")

        status_transitions_total.labels(
            from_status=current.value, to_status=target.value
        ).inc()
        logger.info(
            f"Submission status updated: id={submission.id}, "
            f"{current.value} -> {target.value}, replaced={len(new_refs)}",
            extra={"submission_id": submission.id, "reviewer_id": actor.reviewer_id},
        )
        return submission

    def _current_ref(self, submission: Submission, slot: AttachmentSlot) -> Optional[AttachmentRef]:
        try:
            return submission.get_attachment_ref(slot)
        except LegacyAttachmentRef:
            logger.warning(
                f"Replacing legacy attachment slot without cleanup: "
                f"id={submission.id}, slot={slot.value}"
            )
            return None

    async def delete(self, submission_id: Union[str, uuid.UUID]) -> None:
        """Delete a submission, then its attachments (best effort).

        Raises:
            SubmissionNotFound: Unknown id
            PersistenceFailure: Record deletion failed (attachments untouched)
        """
        submission = self.get(submission_id)
        refs = [
            ref for ref in (self._current_ref(submission, slot) for slot in AttachmentSlot)
            if ref is not None
        ]

        try:
            self.db.delete(submission)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Submission delete failed: id={submission_id}, error={e}", exc_info=True)
            raise PersistenceFailure("Could not delete submission")

        logger.info(f"Deleted submission: id={submission_id}", extra={"submission_id": submission_id})
        await self._discard_refs(refs, reason="submission deleted")

    async def store_uploads(
        self,
        uploads: dict[AttachmentSlot, AttachmentUpload],
    ) -> dict[AttachmentSlot, AttachmentRef]:
        """Store uploads slot by slot; all-or-nothing.

        If any upload fails, the ones already stored are deleted.

        Raises:
            UnsupportedMediaType, SizeLimitExceeded, EmptyAttachment: Client errors
            PersistenceFailure: Store I/O failure
        """
        stored: dict[AttachmentSlot, AttachmentRef] = {}
        try:
            for slot, upload in uploads.items():
                stored[slot] = await self.store.put(
                    upload.stream,
                    upload.media_type,
                    upload.filename,
                    declared_size=upload.declared_size,
                )
                attachments_stored_total.labels(media_type=stored[slot].media_type).inc()
                attachment_bytes.observe(stored[slot].byte_size)
        except StorageError as e:
            await self._discard_refs(list(stored.values()), reason="upload batch failed")
            if isinstance(e, CLIENT_STORAGE_ERRORS):
                submissions_rejected_total.labels(reason=e.code.lower()).inc()
                raise
            submissions_rejected_total.labels(reason="storage").inc()
            raise PersistenceFailure(f"Attachment storage failed: {e.message}")
        return stored

    async def open_attachment(
        self,
        submission_id: Union[str, uuid.UUID],
        slot: Union[str, AttachmentSlot],
        disposition: str = "attachment",
    ) -> AttachmentDownload:
        """Resolve a slot to a byte stream via its stored id.

        Raises:
            SubmissionNotFound: Unknown submission
            AttachmentNotFound: Unknown slot or missing bytes
            LegacyAttachmentRef: Slot not migrated yet
        """
        resolved = slot if isinstance(slot, AttachmentSlot) else resolve_slot(slot)
        if resolved is None:
            raise AttachmentNotFound(str(slot))

        submission = self.get(submission_id)
        ref = submission.get_attachment_ref(resolved)
        stream = await self.store.get(ref.id)
        return AttachmentDownload(
            stream=stream,
            filename=ref.original_filename,
            media_type=ref.media_type,
            byte_size=ref.byte_size,
            disposition="inline" if disposition == "inline" else "attachment",
        )

    async def describe_attachment(
        self,
        submission_id: Union[str, uuid.UUID],
        slot: Union[str, AttachmentSlot],
    ) -> dict:
        """Slot metadata and whether its bytes are in the store, without reading them.

        Legacy slots are described by shape and reported as not present.

        Raises:
            SubmissionNotFound: Unknown submission
            AttachmentNotFound: Unknown slot
        """
        resolved = slot if isinstance(slot, AttachmentSlot) else resolve_slot(slot)
        if resolved is None:
            raise AttachmentNotFound(str(slot))

        submission = self.get(submission_id)
        info = submission.attachment_summary(resolved)
        present = "id" in info and await self.store.exists(info["id"])
        return {**info, "slot": resolved.value, "exists": present}

    def find_by_email(self, email: str) -> Submission:
        """Look up the submission registered under an email (case-insensitive).

        Raises:
            SubmissionNotFound: No submission for this email
        """
        wanted = (email or "").strip().lower()
        submission = None
        if wanted:
            submission = (
                self.db.query(Submission)
                .filter(func.lower(Submission.email) == wanted)
                .first()
            )
        if submission is None:
            raise SubmissionNotFound(email)
        return submission

    async def _discard_refs(self, refs: Iterable[AttachmentRef], reason: str) -> None:
        """Best-effort delete; never raises."""
        for ref in refs:
            try:
                await self.store.delete(ref.id)
                logger.info(
                    f"Discarded attachment ({reason}): id={ref.id}",
                    extra={"attachment_id": ref.id},
                )
            except AttachmentNotFound:
                logger.debug(f"Attachment already gone ({reason}): id={ref.id}")
            except StorageError as e:
                attachment_cleanup_failures_total.inc()
                logger.warning(
                    f"Attachment cleanup failed ({reason}): id={ref.id}, error={e}",
                    extra={"attachment_id": ref.id},
                )


def _parse_id(value: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
