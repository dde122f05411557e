"""JWT token generation and validation for reviewer identity

Reviewer tokens are stateless HS256 JWTs. The registry records ``sub`` as
``reviewed_by`` on every status update made with the token.

JWT Token Claims Structure:
============================

- sub (Subject): Reviewer id as string
  Example: "rev-042"
- email: Reviewer email, for logs and display
- role: Reviewer role, e.g. "REVIEWER" or "ADMIN"
- iat / exp: Issued-at and expiry (iat + JWT_EXPIRY_MINUTES)

Example Token Payload:
{
  "sub": "rev-042",
  "email": "kyc.ops@example.in",
  "role": "REVIEWER",
  "iat": 1704368400,
  "exp": 1704372000
}
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..config import get_settings

ALGORITHM = "HS256"


def create_access_token(
    reviewer_id: str,
    email: Optional[str] = None,
    role: str = "REVIEWER",
    expires_in_minutes: Optional[int] = None,
) -> str:
    """Create a signed reviewer token.

    Args:
        reviewer_id: Stable reviewer identifier (becomes ``sub``)
        email: Reviewer email
        role: Reviewer role
        expires_in_minutes: Override for JWT_EXPIRY_MINUTES

    Returns:
        str: Signed JWT token
    """
    settings = get_settings()
    if expires_in_minutes is None:
        expires_in_minutes = settings.JWT_EXPIRY_MINUTES

    now = datetime.now(timezone.utc)
    expiration = now + timedelta(minutes=expires_in_minutes)

    payload = {
        'sub': str(reviewer_id),
        'email': email,
        'role': role,
        'iat': int(now.timestamp()),
        'exp': int(expiration.timestamp()),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid or tampered
    """
    try:
        return jwt.decode(token, get_settings().JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise jwt.ExpiredSignatureError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")
