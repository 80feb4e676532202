"""
services/session_service.py — Server-side login sessions.

Responsibilities:
  - Session creation with the single-active-session-per-user policy
  - Session validation (exists AND not expired)
  - Revocation: one session (logout) or all of a user's sessions
    (password change)
  - Sweeping expired rows (operator command)

Token design:
  - The browser receives secrets.token_hex(32) (256 bits) in the
    `session_id` cookie.
  - The DB stores only the SHA-256 hex digest of that token as the primary
    key. The raw token is returned to the caller once and never stored.

Transactions:
  - Services only flush; the route commits. "Delete the user's sessions,
    then insert the new one" therefore lands in one transaction. The user
    row is locked first (SELECT ... FOR UPDATE where the backend supports
    it) so two concurrent logins for the same user serialise.

Failure semantics:
  - A missing or expired session is an authentication failure (401).
  - A database failure is an infrastructure failure (500). The two are
    never conflated.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.session import Session
from shopfront.app.models.session_data import SessionData
from shopfront.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(days=1)


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw session token. Used as the sessions PK."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored value is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _session_ttl() -> timedelta:
    return current_app.config.get("SESSION_TTL", DEFAULT_SESSION_TTL)


def _infrastructure_error(exc: SQLAlchemyError, action: str) -> AppError:
    logger.exception("Session store failure while %s", action)
    return AppError(
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred. Please try again later.",
        500,
    )


def _delete_sessions(where_clause, session: DBSession) -> int:
    """Deletes matching sessions and their session_data rows. Returns rows removed."""
    session.execute(
        delete(SessionData).where(
            SessionData.session_id.in_(select(Session.id).where(where_clause))
        )
    )
    result = session.execute(delete(Session).where(where_clause))
    return result.rowcount or 0


def is_expired(record: Session, now: datetime | None = None) -> bool:
    now = now or _utcnow()
    return _as_utc(record.expires_at) <= now


# ── Public service functions ───────────────────────────────────────────────

def create_session(user_id: int, session: DBSession) -> str:
    """
    Starts a new session for `user_id` and returns the raw token for the cookie.

    Every existing session of the user is deleted first, in the same
    transaction, so at most one session per user is ever active.
    """
    try:
        # Serialises concurrent logins of the same user on backends with row locks.
        session.execute(
            select(User.id).where(User.id == user_id).with_for_update()
        )

        _delete_sessions(Session.user_id == user_id, session)

        raw_token = secrets.token_hex(32)
        now = _utcnow()
        session.add(Session(
            id=_hash_token(raw_token),
            user_id=user_id,
            created_at=now,
            expires_at=now + _session_ttl(),
        ))
        session.flush()
    except SQLAlchemyError as exc:
        raise _infrastructure_error(exc, "creating a session") from exc

    return raw_token


def validate_session(raw_token: str | None, session: DBSession) -> Session:
    """
    Returns the Session row for `raw_token` if it exists and has not expired.

    Raises:
      AppError(SESSION_MISSING, 401) — no token presented
      AppError(SESSION_INVALID, 401) — unknown token (revoked or never issued)
      AppError(SESSION_EXPIRED, 401) — expires_at is not in the future
      AppError(INTERNAL_ERROR, 500)  — the session store failed
    """
    if not raw_token:
        raise AppError(
            ErrorCode.SESSION_MISSING,
            "Authentication required.",
            401,
        )

    try:
        record = session.get(Session, _hash_token(raw_token))
    except SQLAlchemyError as exc:
        raise _infrastructure_error(exc, "validating a session") from exc

    if record is None:
        raise AppError(
            ErrorCode.SESSION_INVALID,
            "Your session is invalid. Please log in again.",
            401,
        )

    if is_expired(record):
        raise AppError(
            ErrorCode.SESSION_EXPIRED,
            "Your session has expired. Please log in again.",
            401,
        )

    return record


def find_active_session(raw_token: str | None, session: DBSession) -> Session | None:
    """Like validate_session, but returns None instead of raising 401s."""
    if not raw_token:
        return None
    try:
        return validate_session(raw_token, session)
    except AppError as err:
        if err.http_status == 401:
            return None
        raise


def destroy_session(raw_token: str, session: DBSession) -> bool:
    """Deletes one session. Idempotent: returns False when nothing was deleted."""
    try:
        removed = _delete_sessions(Session.id == _hash_token(raw_token), session)
    except SQLAlchemyError as exc:
        raise _infrastructure_error(exc, "destroying a session") from exc
    return removed > 0


def destroy_all_for_user(user_id: int, session: DBSession) -> int:
    """Deletes every session of `user_id`. Returns the number removed."""
    try:
        return _delete_sessions(Session.user_id == user_id, session)
    except SQLAlchemyError as exc:
        raise _infrastructure_error(exc, "revoking user sessions") from exc


def count_sessions_for_user(user_id: int, session: DBSession) -> int:
    return len(session.execute(
        select(Session.id).where(Session.user_id == user_id)
    ).scalars().all())


def sweep_expired_sessions(session: DBSession, now: datetime | None = None) -> int:
    """
    Deletes sessions whose expires_at has passed. Returns the number removed.

    Validation already rejects expired rows, so sweeping changes no
    observable behaviour; it only keeps the table small.
    """
    now = now or _utcnow()
    removed = _delete_sessions(Session.expires_at <= now, session)
    logger.info("Swept %d expired session(s)", removed)
    return removed
