"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to turn the
Authorization header into a CurrentIdentity. Only access tokens are
accepted here; a refresh token is signed with a different secret and
fails verification.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ecoride_auth.auth.jwt import TokenError, verify_access_token

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentIdentity:
    """The verified user behind a request.

    Learn: Profile flows receive this object explicitly instead of
    reading some request-global state. Holding one means the access
    token was valid; it says nothing about whether the user still exists.
    """

    user_id: uuid.UUID


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> CurrentIdentity:
    """Extract current identity (401 without a valid access token)."""
    if credentials is None:
        raise _unauthorized("Authentication required")

    try:
        subject = verify_access_token(credentials.credentials)
        return CurrentIdentity(user_id=uuid.UUID(subject))
    except (TokenError, ValueError):
        raise _unauthorized("Invalid token")
