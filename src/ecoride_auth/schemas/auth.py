"""Pydantic schemas for the auth API.

Learn: Request fields are all optional on purpose. The service decides
what is missing and answers with a 400 and a readable message, instead
of FastAPI's generic 422. Profile fields travel in camelCase on the wire
(firstName, schoolId, ...) and map onto snake_case attributes.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ecoride_auth.db.models import AuthMethod, Role


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Requests ───────────────────────────────────────────

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class RegisterRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    school_id: Optional[str] = None
    license_id: Optional[str] = None
    sex: Optional[str] = None


class PhoneAuthRequest(BaseModel):
    phone: Optional[str] = None
    role: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    """Partial update. Only fields present in the body are applied."""

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    school_id: Optional[str] = None
    license_id: Optional[str] = None
    email: Optional[str] = None
    sex: Optional[str] = None


# ─── Responses ──────────────────────────────────────────

class UserRead(CamelModel):
    """A user as returned to clients. Never includes the password hash."""

    id: uuid.UUID
    email: str
    role: Role
    auth_method: AuthMethod
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    school_id: Optional[str] = None
    license_id: Optional[str] = None
    sex: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenResponse):
    message: str
    user: UserRead


class ProfileResponse(BaseModel):
    user: UserRead


class ProfileUpdateResponse(ProfileResponse):
    message: str
