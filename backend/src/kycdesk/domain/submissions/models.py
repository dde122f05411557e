"""Submission domain models (not the database models)."""

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from .kinds import SubmissionKind
from .status import SubmissionStatus


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure.

    Attributes:
        field: Canonical field name (or attachment slot)
        code: Stable machine code, e.g. ``required``, ``invalid_format``
        message: Human-readable explanation
    """
    field: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class AttachmentDescriptor:
    """What the validator knows about a received file: no bytes, only metadata."""
    slot: str
    filename: str
    media_type: str
    byte_size: Optional[int] = None


@dataclass
class ValidatedSubmission:
    """Normalized, typed submission fields ready for the registry.

    Email is lower-cased, phone and national_id are digits only.
    """
    kind: SubmissionKind
    first_name: str
    last_name: str
    email: str
    phone: str
    national_id: str
    date_of_birth: date
    address: str
    city: str
    state: str
    postal_code: str
    terms_accepted: bool
    marketing_opt_in: bool = False
    course_name: Optional[str] = None
    investment_amount: Optional[Decimal] = None
    investment_goals: Optional[str] = None


@dataclass
class ValidationResult:
    """Outcome of validating one submission.

    ``submission`` is only populated when ``ok`` is True.
    """
    ok: bool
    errors: list[FieldError] = field(default_factory=list)
    submission: Optional[ValidatedSubmission] = None

    def fields_in_error(self) -> set[str]:
        return {error.field for error in self.errors}


@dataclass(frozen=True)
class ActorContext:
    """Identity performing a status-changing operation.

    Derived from the authenticated request, never from client-supplied fields.
    """
    reviewer_id: str
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_system(self) -> bool:
        return self.reviewer_id == SYSTEM_ACTOR_ID


SYSTEM_ACTOR_ID = "system"

# Used when no caller identity is available (unauthenticated review calls,
# maintenance scripts). Recorded as reviewed_by="system".
SYSTEM_ACTOR = ActorContext(reviewer_id=SYSTEM_ACTOR_ID, role="system")


SORTABLE_FIELDS = frozenset({
    "created_at",
    "updated_at",
    "first_name",
    "last_name",
    "email",
    "status",
    "investment_amount",
    "date_of_birth",
})


@dataclass
class SubmissionFilter:
    """List filter. Every criterion is optional and they combine with AND."""
    status: Optional[SubmissionStatus] = None
    kind: Optional[SubmissionKind] = None
    search: Optional[str] = None
    course_name: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    min_investment: Optional[Decimal] = None
    max_investment: Optional[Decimal] = None


@dataclass
class SortSpec:
    field: str = "created_at"
    descending: bool = True


@dataclass
class SubmissionPage:
    """One page of list results plus the total independent of the slice."""
    items: list[Any]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
