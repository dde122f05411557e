"""Submission kinds and their per-kind rules.

Both kinds share one lifecycle; they differ in required fields, the accepted
age range and the minimum address length.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class SubmissionKind(str, Enum):
    REGISTRATION = "registration"                 # Course enrolment
    TRADING_APPLICATION = "trading_application"   # Copy-trading application


@dataclass(frozen=True)
class KindRules:
    """Validation parameters for one submission kind.

    Attributes:
        min_age: Youngest accepted applicant (whole years)
        max_age: Oldest accepted applicant (whole years)
        min_address_length: Minimum characters in the street address
        required_fields: Kind-specific fields on top of the shared ones
    """
    min_age: int
    max_age: int
    min_address_length: int
    required_fields: Tuple[str, ...]


KIND_RULES: Dict[SubmissionKind, KindRules] = {
    SubmissionKind.REGISTRATION: KindRules(
        min_age=16,
        max_age=100,
        min_address_length=5,
        required_fields=("course_name",),
    ),
    SubmissionKind.TRADING_APPLICATION: KindRules(
        min_age=18,
        max_age=100,
        min_address_length=10,
        required_fields=("investment_amount", "investment_goals"),
    ),
}


def parse_kind(value) -> SubmissionKind:
    """Resolve a kind from its value, accepting dashes for underscores.

    Raises:
        ValueError: If the kind is unknown
    """
    if isinstance(value, SubmissionKind):
        return value
    normalized = str(value).strip().lower().replace("-", "_")
    return SubmissionKind(normalized)
