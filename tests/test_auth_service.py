"""Auth service tests — the flows, driven directly without HTTP.

Learn: Covers:
1. Registration + store-wide duplicate prevention
2. Password login, with unknown user and wrong password indistinguishable
3. Legacy phone sign-in: creation, reuse, role guard, no password login
4. Refresh rotation and the uniform invalid-token outcome
5. Profile read and partial update semantics
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from ecoride_auth.auth.dependencies import CurrentIdentity
from ecoride_auth.auth.jwt import verify_access_token, verify_refresh_token
from ecoride_auth.config import settings
from ecoride_auth.db.models import AuthMethod, Role
from ecoride_auth.services.auth_service import (
    AuthenticationFailedError,
    AuthService,
    DuplicateEmailError,
    InvalidRequestError,
    InvalidTokenError,
    RoleMismatchError,
    UserNotFoundError,
)


async def _register(svc: AuthService, email="a@x.com", password="secret1", role="customer", **profile):
    profile.setdefault("first_name", "A")
    profile.setdefault("last_name", "B")
    return await svc.register(email, password, role, **profile)


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_creates_user_and_tokens(db_session):
    svc = AuthService(db_session)
    result = await _register(svc)

    assert result.created is True
    assert result.user.email == "a@x.com"
    assert result.user.role == Role.CUSTOMER
    assert result.user.auth_method == AuthMethod.PASSWORD
    assert result.user.password_hash != "secret1"
    assert verify_access_token(result.tokens.access_token) == str(result.user.id)
    assert verify_refresh_token(result.tokens.refresh_token) == str(result.user.id)


@pytest.mark.asyncio
async def test_register_duplicate_email_any_role(db_session):
    """Registration uniqueness ignores role."""
    svc = AuthService(db_session)
    await _register(svc, role="customer")

    with pytest.raises(DuplicateEmailError):
        await _register(svc, role="customer")
    with pytest.raises(DuplicateEmailError):
        await _register(svc, role="rider")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,password,role,message",
    [
        (None, "secret1", "customer", "email and password"),
        ("a@x.com", "", "customer", "email and password"),
        ("a@x.com", "secret1", None, "Valid role"),
        ("a@x.com", "secret1", "admin", "Valid role"),
    ],
)
async def test_register_invalid_request(db_session, email, password, role, message):
    svc = AuthService(db_session)
    with pytest.raises(InvalidRequestError, match=message):
        await svc.register(email, password, role)


@pytest.mark.asyncio
async def test_register_empty_nullable_fields_stored_as_null(db_session):
    svc = AuthService(db_session)
    result = await _register(svc, middle_name="", school_id="", license_id="L-1")
    assert result.user.middle_name is None
    assert result.user.school_id is None
    assert result.user.license_id == "L-1"


# ═══════════════════════════════════════════════════════════
# Password login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc)

    result = await svc.login("a@x.com", "secret1", "customer")
    assert result.created is False
    assert result.user.id == registered.user.id
    assert verify_access_token(result.tokens.access_token) == str(registered.user.id)


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(db_session):
    svc = AuthService(db_session)
    await _register(svc)

    with pytest.raises(AuthenticationFailedError) as wrong_password:
        await svc.login("a@x.com", "wrong", "customer")
    with pytest.raises(AuthenticationFailedError) as unknown_email:
        await svc.login("nobody@x.com", "secret1", "customer")
    with pytest.raises(AuthenticationFailedError) as wrong_role:
        await svc.login("a@x.com", "secret1", "rider")

    assert str(wrong_password.value) == str(unknown_email.value) == str(wrong_role.value)


@pytest.mark.asyncio
async def test_login_requires_valid_role(db_session):
    svc = AuthService(db_session)
    with pytest.raises(InvalidRequestError):
        await svc.login("a@x.com", "secret1", "driver")
    with pytest.raises(InvalidRequestError):
        await svc.login("a@x.com", None, "customer")


# ═══════════════════════════════════════════════════════════
# Legacy phone sign-in
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_phone_auth_creates_once_then_logs_in(db_session):
    svc = AuthService(db_session)

    first = await svc.phone_auth("+15550001", "rider")
    assert first.created is True
    assert first.user.email == f"+15550001@{settings.legacy_email_domain}"
    assert first.user.auth_method == AuthMethod.LEGACY_PHONE

    second = await svc.phone_auth("+15550001", "rider")
    assert second.created is False
    assert second.user.id == first.user.id
    assert verify_access_token(second.tokens.access_token) == str(first.user.id)


@pytest.mark.asyncio
async def test_phone_auth_role_mismatch(db_session):
    svc = AuthService(db_session)
    await svc.phone_auth("+15550002", "customer")

    with pytest.raises(RoleMismatchError):
        await svc.phone_auth("+15550002", "rider")


@pytest.mark.asyncio
async def test_phone_auth_finds_registered_user_by_phone(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc, phone="+15550003")

    result = await svc.phone_auth("+15550003", "customer")
    assert result.created is False
    assert result.user.id == registered.user.id


@pytest.mark.asyncio
async def test_phone_auth_requires_phone_and_role(db_session):
    svc = AuthService(db_session)
    with pytest.raises(InvalidRequestError, match="Phone number"):
        await svc.phone_auth("", "customer")
    with pytest.raises(InvalidRequestError, match="Valid role"):
        await svc.phone_auth("+15550004", "admin")


@pytest.mark.asyncio
async def test_legacy_account_cannot_password_login(db_session):
    svc = AuthService(db_session)
    created = await svc.phone_auth("+15550005", "customer")

    with pytest.raises(AuthenticationFailedError):
        await svc.login(created.user.email, "anything", "customer")


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates_pair(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc)
    original = registered.tokens.refresh_token

    first = await svc.refresh(original)
    second = await svc.refresh(original)

    assert first != second
    assert first.refresh_token != original
    for pair in (first, second):
        assert verify_access_token(pair.access_token) == str(registered.user.id)
        assert verify_refresh_token(pair.refresh_token) == str(registered.user.id)


@pytest.mark.asyncio
async def test_refresh_with_access_token_fails(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc)

    with pytest.raises(InvalidTokenError, match="Invalid refresh token"):
        await svc.refresh(registered.tokens.access_token)


@pytest.mark.asyncio
async def test_refresh_failures_are_uniform(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc)
    expires = datetime.now(timezone.utc) + timedelta(days=1)

    forged = jwt.encode(
        {"sub": str(registered.user.id), "type": "refresh", "exp": expires},
        "a-completely-different-signing-secret",
        algorithm=settings.jwt_algorithm,
    )
    orphaned = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "refresh", "exp": expires},
        settings.refresh_token_secret,
        algorithm=settings.jwt_algorithm,
    )
    not_a_uuid = jwt.encode(
        {"sub": "42", "type": "refresh", "exp": expires},
        settings.refresh_token_secret,
        algorithm=settings.jwt_algorithm,
    )

    messages = set()
    for token in (forged, orphaned, not_a_uuid, "garbage"):
        with pytest.raises(InvalidTokenError) as exc:
            await svc.refresh(token)
        messages.add(str(exc.value))
    assert messages == {"Invalid refresh token"}


@pytest.mark.asyncio
async def test_refresh_requires_token(db_session):
    svc = AuthService(db_session)
    with pytest.raises(InvalidRequestError):
        await svc.refresh(None)


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_profile(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc)

    user = await svc.get_profile(CurrentIdentity(user_id=registered.user.id))
    assert user.email == "a@x.com"

    with pytest.raises(UserNotFoundError):
        await svc.get_profile(CurrentIdentity(user_id=uuid.uuid4()))


@pytest.mark.asyncio
async def test_update_profile_partial(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc, middle_name="M", school_id="S-1", sex="F")
    identity = CurrentIdentity(user_id=registered.user.id)

    user = await svc.update_profile(identity, {"first_name": "Ada"})
    assert user.first_name == "Ada"
    assert user.last_name == "B"
    assert user.middle_name == "M"
    assert user.school_id == "S-1"

    # Explicit empty clears a nullable field; empty required fields are ignored
    user = await svc.update_profile(
        identity, {"middle_name": "", "school_id": None, "last_name": "", "sex": ""}
    )
    assert user.middle_name is None
    assert user.school_id is None
    assert user.last_name == "B"
    assert user.sex == "F"


@pytest.mark.asyncio
async def test_update_profile_never_changes_role(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc, role="rider")
    identity = CurrentIdentity(user_id=registered.user.id)

    user = await svc.update_profile(identity, {"role": "customer", "first_name": "R"})
    assert user.role == Role.RIDER


@pytest.mark.asyncio
async def test_update_profile_email(db_session):
    svc = AuthService(db_session)
    a = await _register(svc, email="a@x.com")
    await _register(svc, email="b@x.com")
    identity = CurrentIdentity(user_id=a.user.id)

    # Keeping your own email is not a conflict
    user = await svc.update_profile(identity, {"email": "a@x.com"})
    assert user.email == "a@x.com"

    user = await svc.update_profile(identity, {"email": "new@x.com"})
    assert user.email == "new@x.com"

    with pytest.raises(DuplicateEmailError):
        await svc.update_profile(identity, {"email": "b@x.com"})


@pytest.mark.asyncio
async def test_update_profile_missing_user(db_session):
    svc = AuthService(db_session)
    with pytest.raises(UserNotFoundError):
        await svc.update_profile(CurrentIdentity(user_id=uuid.uuid4()), {"first_name": "X"})


# ═══════════════════════════════════════════════════════════
# Legacy sign-in: synthetic email collisions and races
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_phone_auth_reuses_freed_phone(db_session):
    """A phone given up through a profile update signs up a new account."""
    svc = AuthService(db_session)
    first = await svc.phone_auth("+15551111", "customer")
    first_id = first.user.id
    await svc.update_profile(CurrentIdentity(user_id=first_id), {"phone": "+15552222"})

    again = await svc.phone_auth("+15551111", "customer")
    assert again.created is True
    assert again.user.id != first_id
    assert again.user.phone == "+15551111"
    assert again.user.email.startswith("+15551111+")
    assert again.user.email.endswith(f"@{settings.legacy_email_domain}")
    assert again.user.auth_method == AuthMethod.LEGACY_PHONE


@pytest.mark.asyncio
async def test_phone_auth_when_synthetic_email_was_registered(db_session):
    svc = AuthService(db_session)
    registered = await _register(svc, email=f"+15553333@{settings.legacy_email_domain}")
    registered_id = registered.user.id

    result = await svc.phone_auth("+15553333", "rider")
    assert result.created is True
    assert result.user.id != registered_id
    assert result.user.role == Role.RIDER


@pytest.mark.asyncio
async def test_phone_auth_concurrent_creation_logs_in(db_session):
    """Losing the insert race falls back to logging into the winner's account."""
    svc = AuthService(db_session)
    winner = await svc.phone_auth("+15554444", "rider")
    winner_id = winner.user.id

    real_find_by_phone = svc.store.find_by_phone
    calls = []

    async def miss_first_lookup(phone):
        calls.append(phone)
        if len(calls) == 1:
            return None
        return await real_find_by_phone(phone)

    svc.store.find_by_phone = miss_first_lookup

    result = await svc.phone_auth("+15554444", "rider")
    assert result.created is False
    assert result.user.id == winner_id
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_register_race_hits_unique_index(db_session):
    """Duplicate check passes, the unique index still rejects the insert."""
    svc = AuthService(db_session)
    await _register(svc, email="race@x.com")

    async def no_match(email):
        return None

    svc.store.find_by_email = no_match

    with pytest.raises(DuplicateEmailError, match="Email already in use"):
        await _register(svc, email="race@x.com", role="rider")


@pytest.mark.asyncio
async def test_update_profile_email_race_hits_unique_index(db_session):
    svc = AuthService(db_session)
    await _register(svc, email="b@x.com")
    mover = await _register(svc, email="mover@x.com")
    identity = CurrentIdentity(user_id=mover.user.id)

    async def no_conflict(email, user_id):
        return None

    svc.store.find_by_email_excluding_id = no_conflict

    with pytest.raises(DuplicateEmailError):
        await svc.update_profile(identity, {"email": "b@x.com"})
