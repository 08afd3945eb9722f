"""Auth API — login, registration, legacy sign-in, refresh, profile.

Learn: Routes for the customer/rider authentication lifecycle:
- POST /auth/login → email/password/role → user + JWT tokens
- POST /auth/register → create a password account → user + JWT tokens
- POST /auth/signin → legacy phone/role sign-in (auto-creates the account)
- POST /auth/refresh-token → refresh token → new access + refresh tokens
- GET /auth/profile → current user
- PUT /auth/profile → partial profile update

Routes only translate between HTTP and AuthService; every decision
lives in the service.
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ecoride_auth.auth.dependencies import CurrentIdentity, get_current_user
from ecoride_auth.db.engine import get_db
from ecoride_auth.schemas.auth import (
    AuthResponse,
    LoginRequest,
    PhoneAuthRequest,
    ProfileResponse,
    ProfileUpdate,
    ProfileUpdateResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserRead,
)
from ecoride_auth.services.auth_service import (
    AuthenticationFailedError,
    AuthError,
    AuthResult,
    AuthService,
    DuplicateEmailError,
    InvalidRequestError,
    InvalidTokenError,
    RoleMismatchError,
    UserNotFoundError,
)
from ecoride_auth.services.user_store import StoreUnavailableError

router = APIRouter(prefix="/auth")

_STATUS_CODES = {
    InvalidRequestError: 400,
    RoleMismatchError: 400,
    DuplicateEmailError: 400,
    AuthenticationFailedError: 401,
    InvalidTokenError: 401,
    UserNotFoundError: 404,
}


def _http_error(e: AuthError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(e), 400)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(status_code=status_code, detail=str(e), headers=headers)


def _store_unavailable() -> HTTPException:
    return HTTPException(status_code=503, detail="Service temporarily unavailable")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def _auth_response(result: AuthResult, message: str) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserRead.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.get("")
async def auth_status():
    return {"message": "Auth endpoint is working"}


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with email, password and role → JWT tokens."""
    try:
        result = await svc.login(body.email, body.password, body.role)
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()
    return _auth_response(result, "User logged in successfully")


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create a new password account and sign it in."""
    try:
        result = await svc.register(
            body.email,
            body.password,
            body.role,
            first_name=body.first_name,
            middle_name=body.middle_name,
            last_name=body.last_name,
            phone=body.phone,
            school_id=body.school_id,
            license_id=body.license_id,
            sex=body.sex,
        )
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()
    return _auth_response(result, "User created successfully")


# ─── Legacy phone sign-in ────────────────────────────────


@router.post("/signin", response_model=AuthResponse)
async def signin(
    body: PhoneAuthRequest,
    response: Response,
    svc: AuthService = Depends(_svc),
):
    """Legacy phone sign-in. 201 when the account was just created."""
    try:
        result = await svc.phone_auth(body.phone, body.role)
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()

    if result.created:
        response.status_code = 201
        return _auth_response(result, "User created successfully")
    return _auth_response(result, "User logged in successfully")


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Exchange a refresh token for a new access + refresh token pair."""
    try:
        tokens = await svc.refresh(body.refresh_token)
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


# ─── Profile ────────────────────────────────────────────


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
):
    try:
        user = await svc.get_profile(identity)
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()
    return ProfileResponse(user=UserRead.model_validate(user))


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    body: ProfileUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
):
    """Update only the fields present in the body."""
    try:
        user = await svc.update_profile(identity, body.model_dump(exclude_unset=True))
    except AuthError as e:
        raise _http_error(e)
    except StoreUnavailableError:
        raise _store_unavailable()
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=UserRead.model_validate(user),
    )
