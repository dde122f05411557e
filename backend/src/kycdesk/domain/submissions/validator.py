"""Submission Validator

Pure, deterministic validation of canonical submission fields and attachment
descriptors. Every rule runs independently and all violations are collected,
so a client sees every problem in one response.

Nothing here touches storage or the registry; "today" is passed in.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from ..attachments.attachment_ref import REQUIRED_SLOTS
from ..attachments.validation import (
    DEFAULT_MAX_FILE_SIZE,
    SUPPORTED_MEDIA_TYPES,
    is_supported_media_type,
    normalize_media_type,
    validate_file_size,
    validate_filename,
)
from .ingress import parse_bool, parse_date, parse_decimal
from .kinds import KIND_RULES, SubmissionKind, parse_kind
from .models import AttachmentDescriptor, FieldError, ValidatedSubmission, ValidationResult


PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
POSTAL_CODE_PATTERN = re.compile(r"^[1-9][0-9]{5}$")
NATIONAL_ID_DIGITS = 12

# Separators tolerated in phone input ("98765 43210", "98765-43210")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")

NAME_LENGTH = (2, 50)
ADDRESS_MAX_LENGTH = 200
PLACE_LENGTH = (2, 50)
INVESTMENT_RANGE = (Decimal("10000"), Decimal("10000000"))
GOALS_LENGTH = (20, 500)
COURSE_NAME_MAX_LENGTH = 100

SHARED_REQUIRED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "national_id",
    "date_of_birth",
    "address",
    "city",
    "state",
    "postal_code",
    "terms_accepted",
)


def calculate_age(date_of_birth: date, on: date) -> int:
    """Whole years between date_of_birth and ``on``.

    Example:
        >>> calculate_age(date(2008, 6, 15), date(2024, 6, 14))
        15
        >>> calculate_age(date(2008, 6, 15), date(2024, 6, 15))
        16
    """
    years = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def normalize_phone(value: str) -> str:
    return _PHONE_SEPARATORS.sub("", value)


def normalize_national_id(value: str) -> str:
    return re.sub(r"\D", "", value)


def normalize_email(value: str) -> str:
    return value.strip().lower()


class _Collector:
    def __init__(self):
        self.errors: list[FieldError] = []

    def add(self, field: str, code: str, message: str) -> None:
        self.errors.append(FieldError(field=field, code=code, message=message))

    def check_length(self, field: str, value: str, min_len: int, max_len: int) -> None:
        if len(value) < min_len:
            self.add(field, "too_short", f"{field} must be at least {min_len} characters")
        elif len(value) > max_len:
            self.add(field, "too_long", f"{field} must be at most {max_len} characters")


def validate_submission(
    kind: Any,
    fields: Mapping[str, Any],
    attachments: Iterable[AttachmentDescriptor],
    today: Optional[date] = None,
    max_attachment_bytes: int = DEFAULT_MAX_FILE_SIZE,
) -> ValidationResult:
    """Validate one submission.

    Args:
        kind: Submission kind (enum or raw string)
        fields: Canonical field name -> raw value (see ingress.normalize_fields)
        attachments: Descriptors of the received files
        today: Reference date for the age rule (defaults to date.today())
        max_attachment_bytes: Upper bound for declared attachment sizes

    Returns:
        ValidationResult: ok + the typed submission, or every FieldError found

    Example:
        >>> result = validate_submission("registration", {}, [])
        >>> result.ok
        False
        >>> "email" in result.fields_in_error()
        True
    """
    today = today or date.today()
    errors = _Collector()

    try:
        kind = parse_kind(kind)
    except ValueError:
        errors.add(
            "kind",
            "invalid_choice",
            f"Unknown submission kind: {kind!r}. "
            f"Expected one of: {', '.join(k.value for k in SubmissionKind)}",
        )
        kind = None

    rules = KIND_RULES.get(kind) if kind is not None else None

    def text(name: str) -> Optional[str]:
        value = fields.get(name)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    # Required-field presence
    required = list(SHARED_REQUIRED_FIELDS)
    if rules:
        required.extend(rules.required_fields)
    for name in required:
        if text(name) is None:
            errors.add(name, "required", f"{name} is required")

    # Names
    first_name = text("first_name")
    last_name = text("last_name")
    for name, value in (("first_name", first_name), ("last_name", last_name)):
        if value is not None:
            errors.check_length(name, value, *NAME_LENGTH)

    # Email
    email = text("email")
    if email is not None:
        email = normalize_email(email)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            errors.add("email", "invalid_format", f"Invalid email address: {e}")

    # Phone
    phone = text("phone")
    if phone is not None:
        phone = normalize_phone(phone)
        if not PHONE_PATTERN.match(phone):
            errors.add(
                "phone",
                "invalid_format",
                "phone must be a 10-digit mobile number starting with 6-9",
            )

    # National id
    national_id = text("national_id")
    if national_id is not None:
        national_id = normalize_national_id(national_id)
        if len(national_id) != NATIONAL_ID_DIGITS:
            errors.add(
                "national_id",
                "invalid_format",
                f"national_id must contain exactly {NATIONAL_ID_DIGITS} digits",
            )

    # Date of birth / age
    date_of_birth = None
    raw_dob = text("date_of_birth")
    if raw_dob is not None:
        try:
            date_of_birth = parse_date(raw_dob)
        except ValueError:
            errors.add("date_of_birth", "invalid_format", "date_of_birth must be an ISO date (YYYY-MM-DD)")
        else:
            if date_of_birth > today:
                errors.add("date_of_birth", "in_future", "date_of_birth cannot be in the future")
            elif rules:
                age = calculate_age(date_of_birth, today)
                if not rules.min_age <= age <= rules.max_age:
                    errors.add(
                        "date_of_birth",
                        "age_out_of_range",
                        f"Age must be between {rules.min_age} and {rules.max_age} "
                        f"(got {age})",
                    )

    # Address block
    address = text("address")
    if address is not None and rules:
        errors.check_length("address", address, rules.min_address_length, ADDRESS_MAX_LENGTH)
    city = text("city")
    state = text("state")
    for name, value in (("city", city), ("state", state)):
        if value is not None:
            errors.check_length(name, value, *PLACE_LENGTH)
    postal_code = text("postal_code")
    if postal_code is not None:
        postal_code = postal_code.replace(" ", "")
        if not POSTAL_CODE_PATTERN.match(postal_code):
            errors.add("postal_code", "invalid_format", "postal_code must be a 6-digit PIN not starting with 0")

    # Kind-specific fields
    course_name = text("course_name")
    if course_name is not None and len(course_name) > COURSE_NAME_MAX_LENGTH:
        errors.add("course_name", "too_long", f"course_name must be at most {COURSE_NAME_MAX_LENGTH} characters")

    investment_amount = None
    raw_amount = text("investment_amount")
    if raw_amount is not None:
        try:
            investment_amount = parse_decimal(raw_amount)
        except ValueError:
            errors.add("investment_amount", "invalid_format", "investment_amount must be a number")
        else:
            low, high = INVESTMENT_RANGE
            if not low <= investment_amount <= high:
                errors.add(
                    "investment_amount",
                    "out_of_range",
                    f"investment_amount must be between {low} and {high}",
                )

    investment_goals = text("investment_goals")
    if investment_goals is not None:
        errors.check_length("investment_goals", investment_goals, *GOALS_LENGTH)

    # Consent
    terms_accepted = False
    if text("terms_accepted") is not None:
        terms_accepted = parse_bool(fields.get("terms_accepted")) is True
        if not terms_accepted:
            errors.add("terms_accepted", "must_accept", "terms_accepted must be true")

    marketing_opt_in = False
    if text("marketing_opt_in") is not None:
        parsed = parse_bool(fields.get("marketing_opt_in"))
        if parsed is None:
            errors.add("marketing_opt_in", "invalid_format", "marketing_opt_in must be a boolean")
        else:
            marketing_opt_in = parsed

    # Attachments
    _validate_attachments(list(attachments), errors, max_attachment_bytes)

    if errors.errors:
        return ValidationResult(ok=False, errors=errors.errors)

    return ValidationResult(
        ok=True,
        submission=ValidatedSubmission(
            kind=kind,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            national_id=national_id,
            date_of_birth=date_of_birth,
            address=address,
            city=city,
            state=state,
            postal_code=postal_code,
            terms_accepted=terms_accepted,
            marketing_opt_in=marketing_opt_in,
            course_name=course_name,
            investment_amount=investment_amount,
            investment_goals=investment_goals,
        ),
    )


def _validate_attachments(
    attachments: list[AttachmentDescriptor],
    errors: _Collector,
    max_attachment_bytes: int,
) -> None:
    required_slots = [slot.value for slot in REQUIRED_SLOTS]
    by_slot: dict[str, AttachmentDescriptor] = {}

    for descriptor in attachments:
        slot = getattr(descriptor.slot, "value", descriptor.slot)
        if slot not in required_slots:
            errors.add(slot, "unexpected_attachment", f"Unexpected attachment slot: {slot}")
            continue
        if slot in by_slot:
            errors.add(slot, "duplicate_attachment", f"More than one file sent for {slot}")
            continue
        by_slot[slot] = descriptor

    for slot in required_slots:
        descriptor = by_slot.get(slot)
        if descriptor is None:
            errors.add(slot, "missing_attachment", f"{slot} is required")
            continue
        if not is_supported_media_type(descriptor.media_type):
            errors.add(
                slot,
                "unsupported_media_type",
                f"{normalize_media_type(descriptor.media_type) or 'unknown'} is not accepted. "
                f"Allowed: {', '.join(sorted(SUPPORTED_MEDIA_TYPES))}",
            )
        if descriptor.filename:
            name_ok, name_error = validate_filename(descriptor.filename)
            if not name_ok:
                errors.add(slot, "invalid_filename", f"{slot}: {name_error}")
        if descriptor.byte_size is not None:
            size_ok, size_error = validate_file_size(descriptor.byte_size, max_attachment_bytes)
            if not size_ok:
                code = "empty_attachment" if descriptor.byte_size <= 0 else "attachment_too_large"
                errors.add(slot, code, f"{slot}: {size_error}")
