"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations under db/migrations mirror these definitions.

Key concepts:
- UUID primary keys, generated in Python so the id exists before flush
- A unique index on email: the database, not a read-then-write check,
  is what guarantees one account per email address
- Role and auth method stored as plain strings backed by Python enums
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Enum, String, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class Role(str, enum.Enum):
    """Fixed classification assigned when a user is created."""

    CUSTOMER = "customer"
    RIDER = "rider"


class AuthMethod(str, enum.Enum):
    """How a user was created, and therefore how they may sign in.

    PASSWORD users registered with a real secret. LEGACY_PHONE users were
    auto-created by phone sign-in; their password hash protects a random
    placeholder nobody knows, so password login never accepts them.
    """

    PASSWORD = "password"
    LEGACY_PHONE = "legacy_phone"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(Base):
    """A customer or rider account."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
    )
    auth_method: Mapped[AuthMethod] = mapped_column(
        Enum(AuthMethod, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=AuthMethod.PASSWORD,
    )

    # Profile
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    middle_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    school_id: Mapped[Optional[str]] = mapped_column(String(100))
    license_id: Mapped[Optional[str]] = mapped_column(String(100))
    sex: Mapped[Optional[str]] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    @property
    def is_legacy(self) -> bool:
        return self.auth_method == AuthMethod.LEGACY_PHONE
