"""Ingress normalization for submission forms.

Upstream clients have sent the same logical field under several names over
time. One alias table maps every accepted name to its canonical field and is
applied once, before validation. Canonical names win over aliases; among
aliases the table order decides.

The raw mapping holds strings exactly as decoded from the form. Coercion to
bool/Decimal/date happens here, never in the caller.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Tuple

from ..attachments.attachment_ref import AttachmentSlot


# canonical field -> accepted names (canonical first)
FIELD_ALIASES: dict[str, Tuple[str, ...]] = {
    "first_name": ("first_name", "firstName"),
    "last_name": ("last_name", "lastName"),
    "email": ("email", "emailAddress"),
    "phone": ("phone", "phoneNumber", "mobile"),
    "national_id": ("national_id", "nationalId", "aadharNumber", "aadhar_number"),
    "date_of_birth": ("date_of_birth", "dateOfBirth", "dob"),
    "address": ("address",),
    "city": ("city",),
    "state": ("state",),
    "postal_code": ("postal_code", "postalCode", "pincode", "pinCode"),
    "course_name": ("course_name", "courseName", "course"),
    "investment_amount": ("investment_amount", "investmentAmount"),
    "investment_goals": ("investment_goals", "investmentGoals"),
    "terms_accepted": ("terms_accepted", "termsAccepted", "agreeTerms"),
    "marketing_opt_in": ("marketing_opt_in", "marketingOptIn", "agreeMarketing"),
    "admin_notes": ("admin_notes", "adminNotes", "notes"),
    "status": ("status",),
}

# attachment slot -> accepted upload field names (canonical first)
SLOT_ALIASES: dict[AttachmentSlot, Tuple[str, ...]] = {
    AttachmentSlot.PRIMARY_ID_DOCUMENT: (
        "primary_id_document",
        "primaryIdDocument",
        "aadharFile",
        "idProof",
        "aadhar",
        "pan",
    ),
    AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT: (
        "signature_or_second_document",
        "signatureOrSecondDocument",
        "signatureFile",
        "addressProof",
        "signature",
    ),
}

_SLOT_BY_NAME = {
    name.lower(): slot for slot, names in SLOT_ALIASES.items() for name in names
}

TRUE_TOKENS = frozenset({"true", "1", "yes", "on"})
FALSE_TOKENS = frozenset({"false", "0", "no", "off", ""})


def _first_non_blank(value: Any) -> Optional[str]:
    """Collapse a possibly multi-valued form value to one trimmed string."""
    if isinstance(value, (list, tuple)):
        for item in value:
            collapsed = _first_non_blank(item)
            if collapsed:
                return collapsed
        return None
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or None


def collect_form_fields(items: Iterable[Tuple[str, Any]]) -> dict[str, list[Any]]:
    """Group (name, value) pairs from a multi-dict into name -> values."""
    grouped: dict[str, list[Any]] = {}
    for name, value in items:
        grouped.setdefault(name, []).append(value)
    return grouped


def normalize_fields(raw: Mapping[str, Any]) -> dict[str, str]:
    """Resolve aliases and collapse values.

    Args:
        raw: Decoded form fields; values may be strings or lists of strings

    Returns:
        Canonical field name -> trimmed string, for fields that carry a value.
        Unknown names are dropped.

    Example:
        >>> normalize_fields({"firstName": " Asha ", "courseName": ["", "Options 101"]})
        {'first_name': 'Asha', 'course_name': 'Options 101'}
    """
    normalized: dict[str, str] = {}
    for canonical, names in FIELD_ALIASES.items():
        for name in names:
            if name not in raw:
                continue
            value = _first_non_blank(raw[name])
            if value is not None:
                normalized[canonical] = value
                break
    return normalized


def resolve_slot(name: str) -> Optional[AttachmentSlot]:
    """Map an upload field or URL slot name to its canonical slot.

    Example:
        >>> resolve_slot("aadharFile")
        <AttachmentSlot.PRIMARY_ID_DOCUMENT: 'primary_id_document'>
        >>> resolve_slot("selfie") is None
        True
    """
    if not name:
        return None
    return _SLOT_BY_NAME.get(name.strip().lower())


def resolve_uploads(files: Mapping[str, Any]) -> dict[AttachmentSlot, Any]:
    """Pick one upload per canonical slot from named file fields.

    Values may be single uploads or lists of uploads (first one wins).
    """
    resolved: dict[AttachmentSlot, Any] = {}
    for slot, names in SLOT_ALIASES.items():
        for name in names:
            value = files.get(name)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if value is not None:
                resolved[slot] = value
                break
    return resolved


def parse_bool(value: Any) -> Optional[bool]:
    """Coerce a form value to bool.

    Returns None for tokens that are neither true-ish nor false-ish.

    Example:
        >>> parse_bool("on"), parse_bool("false"), parse_bool("maybe")
        (True, False, None)
    """
    if isinstance(value, bool):
        return value
    text = (_first_non_blank(value) or "").lower()
    if text in TRUE_TOKENS:
        return True
    if text in FALSE_TOKENS:
        return False
    return None


def parse_decimal(value: Any) -> Decimal:
    """Coerce a form value to Decimal. Commas are thousands separators.

    Raises:
        ValueError: If the value is not a finite decimal number

    Example:
        >>> parse_decimal("1,50,000.50")
        Decimal('150000.50')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decimal(str(value))
    text = (_first_non_blank(value) or "").replace(",", "").replace("_", "")
    text = re.sub(r"\s+", "", text)
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def parse_date(value: Any) -> date:
    """Coerce a form value to a calendar date.

    Accepts ``YYYY-MM-DD`` and full ISO timestamps (as sent by browser date
    pickers); the time part is discarded.

    Raises:
        ValueError: If the value is not an ISO date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _first_non_blank(value) or ""
    if not text:
        raise ValueError("Empty date")
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).date()


def parse_datetime(value: Any) -> datetime:
    """Coerce a query value to a datetime (date-only values mean midnight)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = _first_non_blank(value) or ""
    if not text:
        raise ValueError("Empty datetime")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
