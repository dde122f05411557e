"""SubmissionStatus state machine for the review workflow

State flow:
    pending_review → under_review | documents_required | approved | rejected
    under_review ⇄ documents_required, either → approved | rejected

pending_review is the entry state only; no transition leads back to it.
approved and rejected are terminal. Reopening is not supported, which keeps
reviewed_by/reviewed_at set for every record that has left pending_review.

Non-terminal states may "transition" to themselves; the update still stamps
the acting reviewer.
"""

from enum import Enum
from typing import Dict, List, Optional

from .errors import InvalidStatusValue, TransitionNotAllowed


class SubmissionStatus(str, Enum):
    """Review status enum"""
    PENDING_REVIEW = "pending_review"          # Initial state after intake
    UNDER_REVIEW = "under_review"              # A reviewer picked it up
    DOCUMENTS_REQUIRED = "documents_required"  # Applicant must resubmit files
    APPROVED = "approved"                      # Terminal
    REJECTED = "rejected"                      # Terminal


INITIAL_STATUS = SubmissionStatus.PENDING_REVIEW

TERMINAL_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})

_REVIEW_TARGETS = [
    SubmissionStatus.UNDER_REVIEW,
    SubmissionStatus.DOCUMENTS_REQUIRED,
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
]

# State transition rules
ALLOWED_TRANSITIONS: Dict[SubmissionStatus, List[SubmissionStatus]] = {
    SubmissionStatus.PENDING_REVIEW: list(_REVIEW_TARGETS),
    SubmissionStatus.UNDER_REVIEW: list(_REVIEW_TARGETS),
    SubmissionStatus.DOCUMENTS_REQUIRED: list(_REVIEW_TARGETS),
    SubmissionStatus.APPROVED: [],  # Terminal
    SubmissionStatus.REJECTED: [],  # Terminal
}


def parse_status(value) -> SubmissionStatus:
    """Resolve a raw status value to the enum.

    Accepts enum members and strings (surrounding whitespace and case are
    ignored).

    Raises:
        InvalidStatusValue: If the value is not a known status

    Example:
        >>> parse_status(" Approved ")
        <SubmissionStatus.APPROVED: 'approved'>
    """
    if isinstance(value, SubmissionStatus):
        return value
    if isinstance(value, str):
        try:
            return SubmissionStatus(value.strip().lower())
        except ValueError:
            pass
    raise InvalidStatusValue(value, [s.value for s in SubmissionStatus])


def can_transition(from_status: SubmissionStatus, to_status: SubmissionStatus) -> bool:
    """Validate if status transition is allowed

    Example:
        >>> can_transition(SubmissionStatus.PENDING_REVIEW, SubmissionStatus.APPROVED)
        True
        >>> can_transition(SubmissionStatus.APPROVED, SubmissionStatus.UNDER_REVIEW)
        False
    """
    return to_status in ALLOWED_TRANSITIONS.get(from_status, [])


def get_allowed_transitions(from_status: Optional[SubmissionStatus]) -> List[SubmissionStatus]:
    """Get list of allowed transitions from current status"""
    if from_status is None:
        return [INITIAL_STATUS]
    return list(ALLOWED_TRANSITIONS.get(from_status, []))


def validate_transition(from_status: SubmissionStatus, to_status: SubmissionStatus) -> None:
    """Validate that a state transition is allowed.

    Raises:
        TransitionNotAllowed: If transition is not allowed
    """
    if not can_transition(from_status, to_status):
        raise TransitionNotAllowed(
            from_status.value,
            to_status.value,
            [s.value for s in get_allowed_transitions(from_status)],
        )


def is_terminal(status: SubmissionStatus) -> bool:
    return status in TERMINAL_STATUSES
