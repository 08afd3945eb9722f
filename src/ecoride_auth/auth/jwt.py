"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), used for API calls
- Refresh token: long-lived (30 days), used to get a new token pair

Each kind has its own signing secret, so an access token never verifies
as a refresh token (and vice versa). Nothing is stored server-side: a
token is valid until it expires, rotation only changes what the client
holds.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ecoride_auth.config import settings

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _encode(user_id: str, token_type: str, expires: datetime, secret: str) -> str:
    payload = {
        "sub": user_id,
        "type": token_type,
        "exp": expires,
        "iat": datetime.now(timezone.utc),
        # Two pairs minted in the same second must still differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    return _encode(user_id, ACCESS, expires, settings.access_token_secret)


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Create a JWT refresh token."""
    expires = datetime.now(timezone.utc) + timedelta(
        days=expires_days or settings.refresh_token_expire_days
    )
    return _encode(user_id, REFRESH, expires, settings.refresh_token_secret)


def issue_token_pair(user_id: str) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user_id),
        refresh_token=create_refresh_token(user_id),
    )


def _decode(token: str, secret: str, token_type: str) -> str:
    """Verify signature, expiry and type; return the subject.

    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != token_type:
        raise TokenError(f"Wrong token type, expected {token_type}")
    return payload["sub"]


def verify_access_token(token: str) -> str:
    """Verify an access token and return the user id it was issued to."""
    return _decode(token, settings.access_token_secret, ACCESS)


def verify_refresh_token(token: str) -> str:
    """Verify a refresh token and return the user id it was issued to."""
    return _decode(token, settings.refresh_token_secret, REFRESH)
