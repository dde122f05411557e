"""Submission domain: kinds, status machine, validation and errors."""

from .errors import (
    AggregationTimeout,
    DuplicateField,
    InvalidQuery,
    InvalidStatusValue,
    PersistenceFailure,
    SubmissionError,
    SubmissionNotFound,
    TransitionNotAllowed,
    ValidationFailed,
)
from .kinds import KIND_RULES, SubmissionKind
from .models import (
    SYSTEM_ACTOR,
    ActorContext,
    AttachmentDescriptor,
    FieldError,
    SortSpec,
    SubmissionFilter,
    SubmissionPage,
    ValidatedSubmission,
    ValidationResult,
)
from .status import SubmissionStatus
from .validator import validate_submission

__all__ = [
    "AggregationTimeout",
    "DuplicateField",
    "InvalidQuery",
    "InvalidStatusValue",
    "PersistenceFailure",
    "SubmissionError",
    "SubmissionNotFound",
    "TransitionNotAllowed",
    "ValidationFailed",
    "KIND_RULES",
    "SubmissionKind",
    "SYSTEM_ACTOR",
    "ActorContext",
    "AttachmentDescriptor",
    "FieldError",
    "SortSpec",
    "SubmissionFilter",
    "SubmissionPage",
    "ValidatedSubmission",
    "ValidationResult",
    "SubmissionStatus",
    "validate_submission",
]
