"""Per-request logging context.

Holds the correlation id of the current request and the reviewer acting in
it. Both live in ContextVars, so they follow the request across awaits and
into log records without being passed around.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

NO_REQUEST_ID = "no-request-id"

# Client-supplied ids end up in every log line; accept only plain tokens
_CLIENT_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
reviewer_id_var: ContextVar[Optional[str]] = ContextVar("reviewer_id", default=None)


def resolve_request_id(header_value: Optional[str]) -> str:
    """Reuse the caller's X-Request-ID if it is a plain token, else mint one.

    Example:
        >>> resolve_request_id("lb-7f3a")
        'lb-7f3a'
        >>> len(resolve_request_id("bad id\\n"))
        36
    """
    if header_value and _CLIENT_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


def bind_request(request_id: str) -> None:
    """Start a fresh context for a new request."""
    request_id_var.set(request_id)
    reviewer_id_var.set(None)


def bind_reviewer(reviewer_id: Optional[str]) -> None:
    reviewer_id_var.set(reviewer_id)


def current_request_id() -> str:
    return request_id_var.get() or NO_REQUEST_ID


def current_reviewer_id() -> Optional[str]:
    return reviewer_id_var.get()
