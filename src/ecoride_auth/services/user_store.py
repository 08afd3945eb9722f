"""User store — the persistence boundary for customer and rider accounts.

Learn: Every query the auth flows need lives here, so the service layer
never builds SQL itself. Each call is bounded by
settings.store_timeout_seconds: a slow database turns into a clean
StoreUnavailableError instead of a request that hangs forever.

Email uniqueness is enforced by the unique index on users.email. When an
insert or update trips it, the store raises EmailAlreadyExistsError; the
read-before-write checks in the service only exist to fail early.
"""

import asyncio
import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ecoride_auth.config import settings
from ecoride_auth.db.models import Role, User

logger = structlog.get_logger()


class StoreUnavailableError(Exception):
    """Raised when a store call does not finish within the timeout."""


class EmailAlreadyExistsError(Exception):
    """Raised when the unique index on email rejects a write."""


# Postgres names the index, SQLite names the column
EMAIL_CONSTRAINT_MARKERS = ("ix_users_email", "users.email")


def is_email_conflict(error: IntegrityError) -> bool:
    message = str(error.orig)
    return any(marker in message for marker in EMAIL_CONSTRAINT_MARKERS)


class UserStore:
    """Lookups and writes against the users table."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = settings.store_timeout_seconds if timeout is None else timeout

    async def _bounded(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("user_store.timeout", timeout=self.timeout)
            raise StoreUnavailableError("User store did not respond in time")

    async def _first(self, stmt) -> Optional[User]:
        result = await self._bounded(self.db.execute(stmt))
        return result.scalars().first()

    # ─── Lookups ────────────────────────────────────────

    async def find_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self._bounded(self.db.get(User, user_id))

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._first(select(User).where(User.email == email))

    async def find_by_email_and_role(self, email: str, role: Role) -> Optional[User]:
        return await self._first(
            select(User).where(User.email == email, User.role == role)
        )

    async def find_by_email_excluding_id(
        self, email: str, user_id: uuid.UUID
    ) -> Optional[User]:
        return await self._first(
            select(User).where(User.email == email, User.id != user_id)
        )

    async def find_by_phone(self, phone: str) -> Optional[User]:
        """Oldest account using this phone (profile updates may share one)."""
        return await self._first(
            select(User).where(User.phone == phone).order_by(User.created_at)
        )

    # ─── Writes ─────────────────────────────────────────

    async def insert(self, user: User) -> User:
        self.db.add(user)
        await self._persist()
        return user

    async def update(self, user: User) -> User:
        await self._persist()
        return user

    async def _persist(self) -> None:
        try:
            await self._bounded(self.db.commit())
        except StoreUnavailableError:
            # The cancelled commit leaves the transaction half-done
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            if is_email_conflict(e):
                raise EmailAlreadyExistsError("Email already in use") from e
            raise
