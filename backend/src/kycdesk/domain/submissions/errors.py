"""Submission error taxonomy.

Errors are raised by the validator and the registry and translated to HTTP
responses in one place (see ``kycdesk.main``). Each carries a stable ``code``.
"""

from typing import Any, Optional


class SubmissionError(Exception):
    """Base exception for submission operations."""

    code = "SUBMISSION_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(SubmissionError):
    """One or more field errors. Carries the complete list, never the first only."""

    code = "VALIDATION_FAILED"
    status_code = 422

    def __init__(self, errors: list):
        self.errors = list(errors)
        super().__init__(
            f"Submission failed validation ({len(self.errors)} error(s))",
            details=[error.to_dict() for error in self.errors],
        )


class DuplicateField(SubmissionError):
    """A unique field (email, phone or national_id) is already registered."""

    code = "DUPLICATE_FIELD"
    status_code = 409

    def __init__(self, field: str):
        super().__init__(
            f"A submission with this {field} already exists",
            details={"field": field},
        )
        self.field = field


class SubmissionNotFound(SubmissionError):
    code = "SUBMISSION_NOT_FOUND"
    status_code = 404

    def __init__(self, submission_id: Any):
        super().__init__(f"Submission not found: {submission_id}")
        self.submission_id = submission_id


class InvalidStatusValue(SubmissionError):
    code = "INVALID_STATUS_VALUE"
    status_code = 400

    def __init__(self, value: Any, allowed: list[str]):
        super().__init__(
            f"Invalid status value: {value!r}",
            details={"allowed": allowed},
        )
        self.value = value


class TransitionNotAllowed(SubmissionError):
    """Requested status change leaves a terminal state."""

    code = "TRANSITION_NOT_ALLOWED"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, allowed: list[str]):
        super().__init__(
            f"Cannot transition from {from_status} to {to_status}",
            details={"from": from_status, "to": to_status, "allowed": allowed},
        )
        self.from_status = from_status
        self.to_status = to_status


class PersistenceFailure(SubmissionError):
    """Backing store (database or attachment store) failed."""

    code = "PERSISTENCE_FAILURE"
    status_code = 500


class AggregationTimeout(SubmissionError):
    code = "AGGREGATION_TIMEOUT"
    status_code = 504

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Statistics aggregation exceeded {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class InvalidQuery(SubmissionError):
    """List query parameter could not be parsed (sort key, date, number)."""

    code = "INVALID_QUERY"
    status_code = 400
