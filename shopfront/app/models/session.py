"""
models/session.py — Session table definition.

No business logic. No imports from services or routes.

The primary key is the SHA-256 hex digest of the opaque session token sent
to the browser in the `session_id` cookie. The raw token is never stored, so
a leaked database does not expose usable sessions.

FK policy: user_id ON DELETE CASCADE — sessions are owned by the user.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfront.app.extensions import db


class Session(db.Model):
    __tablename__ = "sessions"

    # session_service._hash_token() computes this before any read or write.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,   # used by the expired-session sweep
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="sessions",
    )

    data: Mapped[list["SessionData"]] = relationship(  # noqa: F821
        "SessionData",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Session user_id={self.user_id} "
            f"expires_at={self.expires_at}>"
        )
