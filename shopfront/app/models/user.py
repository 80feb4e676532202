"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

Passwords are stored as a PBKDF2-HMAC-SHA512 hex digest plus the per-user
hex salt used to derive it. Both change together on every password change.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfront.app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Case-sensitive, compared exactly as stored.
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    # 64-byte derived key, hex encoded → 128 chars.
    password_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    # 16-byte random salt, hex encoded → 32 chars.
    password_salt: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    sessions: Mapped[list["Session"]] = relationship(  # noqa: F821
        "Session",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    orders: Mapped[list["Order"]] = relationship(  # noqa: F821
        "Order",
        back_populates="user",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r} admin={self.is_admin}>"
