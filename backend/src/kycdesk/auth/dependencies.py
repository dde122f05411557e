"""FastAPI dependencies for reviewer identity.

Usage:
    @router.patch("/{submission_id}/status")
    async def update_status(actor: ActorContext = Depends(get_actor)):
        ...

Requests without a bearer token act as SYSTEM_ACTOR. Requests with a bad
token are rejected rather than downgraded.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.submissions.models import SYSTEM_ACTOR, ActorContext
from .jwt import decode_token

# Bearer scheme that does not reject requests without a token
security = HTTPBearer(auto_error=False)


def get_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> ActorContext:
    """Resolve the acting reviewer from the Authorization header.

    Returns:
        ActorContext: Reviewer from the token, or SYSTEM_ACTOR without a token

    Raises:
        HTTPException 401: If the token is invalid, expired or has no subject
    """
    if credentials is None:
        return SYSTEM_ACTOR

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    reviewer_id = payload.get("sub")
    if not reviewer_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject claim",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return ActorContext(
        reviewer_id=str(reviewer_id),
        email=payload.get("email"),
        role=payload.get("role"),
    )


def get_applicant_email(actor: ActorContext = Depends(get_actor)) -> str:
    """Email claim of an authenticated caller, for self-service lookups.

    Raises:
        HTTPException 401: Without a token, or if the token has no email claim
    """
    if actor.is_system or not actor.email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication with an email claim is required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor.email
