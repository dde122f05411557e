"""Submission SQLAlchemy model

One applicant's intake record: identity, address, kind-specific fields, the two
attachment slots and the review lifecycle. Attachment slots hold serialized
AttachmentRef values only, never paths or bytes.
"""

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from ..domain.attachments.attachment_ref import (
    AttachmentRef,
    AttachmentSlot,
    describe_shape,
    is_canonical,
)
from ..domain.submissions.kinds import SubmissionKind
from ..domain.submissions.status import INITIAL_STATUS, SubmissionStatus
from ..domain.submissions.validator import calculate_age
from .base import Base, PortableJSONB


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Submission(Base):
    """Submission model.

    email, phone and national_id are unique across all stored submissions;
    the database constraint is the final arbiter when two intakes race.
    reviewed_by and reviewed_at are set together, by status updates only.
    """
    __tablename__ = "submission"
    __table_args__ = (
        UniqueConstraint("email", name="uq_submission_email"),
        UniqueConstraint("phone", name="uq_submission_phone"),
        UniqueConstraint("national_id", name="uq_submission_national_id"),
        Index("ix_submission_status", "status"),
        Index("ix_submission_created_at", "created_at"),
        Index("ix_submission_course_name", "course_name"),
        Index("ix_submission_kind_status", "kind", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    kind = Column(
        SQLEnum(SubmissionKind, name="submissionkind", native_enum=False, length=32,
                values_callable=_enum_values),
        nullable=False,
    )

    # Identity
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(254), nullable=False)   # lower-cased
    phone = Column(String(10), nullable=False)    # digits only
    national_id = Column(String(12), nullable=False)  # digits only
    date_of_birth = Column(Date, nullable=False)

    # Address
    address = Column(String(200), nullable=False)
    city = Column(String(50), nullable=False)
    state = Column(String(50), nullable=False)
    postal_code = Column(String(6), nullable=False)

    # Kind-specific
    course_name = Column(String(100), nullable=True)        # registration
    investment_amount = Column(Numeric(12, 2), nullable=True)  # trading_application
    investment_goals = Column(Text, nullable=True)          # trading_application

    # Attachments (serialized AttachmentRef)
    primary_id_document = Column(PortableJSONB, nullable=False)
    signature_or_second_document = Column(PortableJSONB, nullable=False)

    # Consent
    terms_accepted = Column(Boolean, nullable=False)
    marketing_opt_in = Column(Boolean, nullable=False, default=False)

    # Review lifecycle
    status = Column(
        SQLEnum(SubmissionStatus, name="submissionstatus", native_enum=False, length=32,
                values_callable=_enum_values),
        nullable=False,
        default=INITIAL_STATUS,
    )
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age(self, on: Optional[date] = None) -> int:
        return calculate_age(self.date_of_birth, on or date.today())

    def get_attachment_ref(self, slot: AttachmentSlot) -> AttachmentRef:
        """Deserialize a slot.

        Raises:
            LegacyAttachmentRef: If the slot predates the tagged format
        """
        return AttachmentRef.from_dict(getattr(self, AttachmentSlot(slot).value))

    def set_attachment_ref(self, slot: AttachmentSlot, ref: AttachmentRef) -> None:
        setattr(self, AttachmentSlot(slot).value, ref.to_dict())

    def attachment_refs(self) -> dict[AttachmentSlot, AttachmentRef]:
        return {slot: self.get_attachment_ref(slot) for slot in AttachmentSlot}

    def attachment_summary(self, slot: AttachmentSlot) -> dict:
        """Display metadata for a slot.

        Unmigrated slots are described by their legacy shape instead of
        raising, so records stay readable until the migration has run.
        """
        value = getattr(self, AttachmentSlot(slot).value)
        if not is_canonical(value):
            return {"legacy": describe_shape(value)}

        ref = AttachmentRef.from_dict(value)
        return {
            "id": ref.id,
            "original_filename": ref.original_filename,
            "media_type": ref.media_type,
            "byte_size": ref.byte_size,
            "stored_at": ref.stored_at.isoformat(),
        }

    def to_dict(self, today: Optional[date] = None):
        """Convert submission to dictionary representation"""
        created_at = ensure_utc(self.created_at)
        updated_at = ensure_utc(self.updated_at)
        reviewed_at = ensure_utc(self.reviewed_at)
        status = self.status.value if isinstance(self.status, enum.Enum) else self.status
        kind = self.kind.value if isinstance(self.kind, enum.Enum) else self.kind

        attachments = {slot.value: self.attachment_summary(slot) for slot in AttachmentSlot}

        return {
            "id": str(self.id),
            "kind": kind,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "national_id": self.national_id,
            "date_of_birth": self.date_of_birth.isoformat(),
            "age": self.age(today),
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "course_name": self.course_name,
            "investment_amount": str(self.investment_amount) if self.investment_amount is not None else None,
            "investment_goals": self.investment_goals,
            "terms_accepted": self.terms_accepted,
            "marketing_opt_in": self.marketing_opt_in,
            "attachments": attachments,
            "status": status,
            "admin_notes": self.admin_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": reviewed_at.isoformat() if reviewed_at else None,
            "created_at": created_at.isoformat() if created_at else None,
            "updated_at": updated_at.isoformat() if updated_at else None,
        }
