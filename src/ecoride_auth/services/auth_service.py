"""Auth service — login, registration, legacy phone sign-in, refresh, profile.

Learn: Service layer separates business logic from HTTP routing.
Routes translate the exceptions below into status codes; the service
itself knows nothing about HTTP, so the flows are testable directly.

Two authentication modes share one users table:
1. Password login: (email, role) lookup + bcrypt verify
2. Legacy phone sign-in: phone lookup only, auto-creating an account
   with a synthetic email the first time a phone is seen

They are kept as separate flows on purpose. Phone sign-in is weaker (it
trusts the phone number) and the accounts it creates are tagged
LEGACY_PHONE so password login never accepts them.

Failures that could reveal whether an account exists are collapsed:
unknown email and wrong password both raise AuthenticationFailedError,
and every refresh problem raises the same InvalidTokenError.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ecoride_auth.auth.dependencies import CurrentIdentity
from ecoride_auth.auth.jwt import TokenError, TokenPair, issue_token_pair, verify_refresh_token
from ecoride_auth.auth.password import (
    generate_placeholder_password,
    hash_password,
    verify_password,
)
from ecoride_auth.config import settings
from ecoride_auth.db.models import AuthMethod, Role, User
from ecoride_auth.services.user_store import EmailAlreadyExistsError, UserStore

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
EMAIL_IN_USE = "Email already in use"

# Profile fields that may be cleared with an explicit empty value
NULLABLE_PROFILE_FIELDS = ("middle_name", "school_id", "license_id")
# Profile fields only overwritten by a non-empty value
REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "phone", "sex")


class AuthError(Exception):
    """Base class for auth flow failures."""


class InvalidRequestError(AuthError):
    """A required field is missing or has an unacceptable value."""


class AuthenticationFailedError(AuthError):
    """Unknown account or wrong password (deliberately indistinguishable)."""


class DuplicateEmailError(AuthError):
    """The email already belongs to another account."""


class RoleMismatchError(AuthError):
    """Legacy sign-in: the phone belongs to an account with another role."""


class InvalidTokenError(AuthError):
    """The refresh token is malformed, expired, forged or orphaned."""


class UserNotFoundError(AuthError):
    """The authenticated user no longer exists."""


@dataclass
class AuthResult:
    """A user plus a freshly minted token pair.

    created is True when the flow created the account (registration, or
    legacy sign-in with an unseen phone).
    """

    user: User
    tokens: TokenPair
    created: bool = False


def parse_role(role: Optional[str]) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise InvalidRequestError("Valid role is required (customer or rider)")


class AuthService:
    """The authentication and token issuance flows."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = UserStore(db)

    # ─── Password login ─────────────────────────────────

    async def login(
        self,
        email: Optional[str],
        password: Optional[str],
        role: Optional[str],
    ) -> AuthResult:
        if not email or not password:
            raise InvalidRequestError("Please provide email and password")
        parsed_role = parse_role(role)

        user = await self.store.find_by_email_and_role(email, parsed_role)
        if (
            user is None
            or user.is_legacy
            or not verify_password(password, user.password_hash)
        ):
            logger.info("auth.login_failed", role=parsed_role.value)
            raise AuthenticationFailedError(INVALID_CREDENTIALS)

        logger.info("auth.login_succeeded", user_id=str(user.id), method="password")
        return AuthResult(user=user, tokens=issue_token_pair(str(user.id)))

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        role: Optional[str],
        *,
        first_name: Optional[str] = None,
        middle_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        school_id: Optional[str] = None,
        license_id: Optional[str] = None,
        sex: Optional[str] = None,
    ) -> AuthResult:
        """Create a password account.

        Email must be unused across both roles, which is stricter than the
        (email, role) lookup login performs.
        """
        if not email or not password:
            raise InvalidRequestError("Please provide email and password")
        parsed_role = parse_role(role)

        if await self.store.find_by_email(email) is not None:
            raise DuplicateEmailError(EMAIL_IN_USE)

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=parsed_role,
            auth_method=AuthMethod.PASSWORD,
            first_name=first_name,
            middle_name=middle_name or None,
            last_name=last_name,
            phone=phone,
            school_id=school_id or None,
            license_id=license_id or None,
            sex=sex,
        )
        try:
            await self.store.insert(user)
        except EmailAlreadyExistsError:
            # A concurrent registration won the unique index
            raise DuplicateEmailError(EMAIL_IN_USE)

        logger.info("auth.user_registered", user_id=str(user.id), role=parsed_role.value)
        return AuthResult(user=user, tokens=issue_token_pair(str(user.id)), created=True)

    # ─── Legacy phone sign-in ───────────────────────────

    async def phone_auth(self, phone: Optional[str], role: Optional[str]) -> AuthResult:
        """Sign in by phone, creating the account on first contact.

        Never checks a secret: the phone lookup is the whole proof.
        """
        if not phone:
            raise InvalidRequestError("Phone number is required")
        parsed_role = parse_role(role)

        user = await self.store.find_by_phone(phone)
        if user is not None:
            return self._phone_login(user, parsed_role)

        try:
            user = await self._create_legacy_user(phone, parsed_role, self.legacy_email(phone))
        except EmailAlreadyExistsError:
            # Another request for the same phone created the account first
            existing = await self.store.find_by_phone(phone)
            if existing is not None:
                return self._phone_login(existing, parsed_role)
            # The synthetic address belongs to an account that no longer
            # uses this phone (or was registered by hand): pick a fresh one
            email = self.legacy_email(phone, suffix=uuid.uuid4().hex[:8])
            try:
                user = await self._create_legacy_user(phone, parsed_role, email)
            except EmailAlreadyExistsError:
                raise DuplicateEmailError(EMAIL_IN_USE)

        logger.info("auth.legacy_user_created", user_id=str(user.id), role=parsed_role.value)
        return AuthResult(user=user, tokens=issue_token_pair(str(user.id)), created=True)

    def _phone_login(self, user: User, role: Role) -> AuthResult:
        if user.role != role:
            logger.info("auth.role_mismatch", user_id=str(user.id), requested=role.value)
            raise RoleMismatchError("Phone number and role do not match")
        logger.info("auth.login_succeeded", user_id=str(user.id), method="legacy_phone")
        return AuthResult(user=user, tokens=issue_token_pair(str(user.id)))

    async def _create_legacy_user(self, phone: str, role: Role, email: str) -> User:
        user = User(
            email=email,
            password_hash=hash_password(generate_placeholder_password()),
            role=role,
            auth_method=AuthMethod.LEGACY_PHONE,
            phone=phone,
        )
        return await self.store.insert(user)

    @staticmethod
    def legacy_email(phone: str, suffix: Optional[str] = None) -> str:
        if suffix:
            return f"{phone}+{suffix}@{settings.legacy_email_domain}"
        return f"{phone}@{settings.legacy_email_domain}"

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange a refresh token for a brand new access + refresh pair.

        The old refresh token stays valid until it expires; tokens are
        stateless and there is nothing server-side to revoke.
        """
        if not refresh_token:
            raise InvalidRequestError("Refresh token is required")

        try:
            user_id = uuid.UUID(verify_refresh_token(refresh_token))
        except (TokenError, ValueError) as e:
            logger.info("auth.refresh_rejected", reason=str(e))
            raise InvalidTokenError(INVALID_REFRESH_TOKEN)

        user = await self.store.find_by_id(user_id)
        if user is None:
            logger.info("auth.refresh_rejected", reason="unknown user", user_id=str(user_id))
            raise InvalidTokenError(INVALID_REFRESH_TOKEN)

        return issue_token_pair(str(user.id))

    # ─── Profile ────────────────────────────────────────

    async def get_profile(self, identity: CurrentIdentity) -> User:
        user = await self.store.find_by_id(identity.user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    async def update_profile(
        self, identity: CurrentIdentity, changes: dict[str, Any]
    ) -> User:
        """Apply a partial profile update.

        changes holds only the fields the caller actually sent. Nullable
        fields are cleared by an empty value; the others ignore it. Role
        is never accepted here.
        """
        user = await self.get_profile(identity)

        for field in REQUIRED_PROFILE_FIELDS:
            if changes.get(field):
                setattr(user, field, changes[field])

        for field in NULLABLE_PROFILE_FIELDS:
            if field in changes:
                setattr(user, field, changes[field] or None)

        email = changes.get("email")
        if email and email != user.email:
            conflict = await self.store.find_by_email_excluding_id(email, user.id)
            if conflict is not None:
                raise DuplicateEmailError(EMAIL_IN_USE)
            user.email = email

        try:
            await self.store.update(user)
        except EmailAlreadyExistsError:
            raise DuplicateEmailError(EMAIL_IN_USE)

        logger.info("auth.profile_updated", user_id=str(user.id), fields=sorted(changes))
        return user
