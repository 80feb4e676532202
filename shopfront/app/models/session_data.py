"""
models/session_data.py — Per-session key/value rows.

Holds the CSRF token pinned to a login session under the key "csrf_token".
Rows are first-write-wins: UNIQUE(session_id, key) makes a second insert for
the same key fail instead of overwriting it.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfront.app.extensions import db

CSRF_TOKEN_KEY = "csrf_token"


class SessionData(db.Model):
    __tablename__ = "session_data"

    __table_args__ = (
        UniqueConstraint("session_id", "key", name="uq_session_data_session_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: the pin disappears with its session.
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    key: Mapped[str] = mapped_column(String(64), nullable=False)

    value: Mapped[str] = mapped_column(Text, nullable=False)

    session: Mapped["Session"] = relationship(  # noqa: F821
        "Session",
        back_populates="data",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<SessionData key={self.key!r}>"
