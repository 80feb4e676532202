"""
services/csrf_service.py — Anti-forgery tokens.

One double-submit scheme, with optional session pinning kept for
compatibility with sessions that already carry a pinned token:

  1. Double submit. GET /api/csrf-token issues a random token as an httpOnly
     cookie and mirrors it in the JSON body. Every mutating request must
     echo the same value in the X-CSRF-Token header or a `csrf_token` body
     field. cookie != submitted → rejected.

  2. Session pinning. For a request that carries a valid login session, the
     first token that passes the double-submit check is stored in
     session_data under "csrf_token" (Unbound → Bound). A Bound session only
     ever accepts that value. The pin is never updated; it disappears with
     the session.

To keep "the token most recently issued to this client" and the pin in
agreement, issuing a token for a Bound session hands back the pinned value
instead of a fresh one.

Layer rules:
  - No Flask imports. The middleware extracts cookie/header/body values and
    passes them in as plain strings.
"""

from __future__ import annotations

import hmac
import secrets

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session as DBSession

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.session import Session
from shopfront.app.models.session_data import CSRF_TOKEN_KEY, SessionData

# Dialects that support INSERT ... ON CONFLICT DO NOTHING.
_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def tokens_match(expected: str | None, submitted: str | None) -> bool:
    """Constant-time equality; False if either side is missing."""
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))


def get_pinned_token(session_id: str, session: DBSession) -> str | None:
    return session.execute(
        select(SessionData.value).where(
            SessionData.session_id == session_id,
            SessionData.key == CSRF_TOKEN_KEY,
        )
    ).scalar_one_or_none()


def pin_token(session_id: str, token: str, session: DBSession) -> str:
    """
    Records `token` as the session's CSRF pin unless one exists already.

    Returns the pin that is in force afterwards. When two requests race to
    pin different values, the unique (session_id, key) constraint lets only
    one insert land and both callers read back the winner.
    """
    existing = get_pinned_token(session_id, session)
    if existing is not None:
        return existing

    dialect = session.get_bind().dialect.name
    insert_fn = _UPSERT_INSERTS.get(dialect)
    if insert_fn is not None:
        session.execute(
            insert_fn(SessionData)
            .values(session_id=session_id, key=CSRF_TOKEN_KEY, value=token)
            .on_conflict_do_nothing(index_elements=["session_id", "key"])
        )
    else:
        session.add(SessionData(session_id=session_id, key=CSRF_TOKEN_KEY, value=token))
        session.flush()

    pinned = get_pinned_token(session_id, session)
    return pinned if pinned is not None else token


def issue_token(
        login_session: Session | None,
        session: DBSession,
        pinning: bool = True,
) -> str:
    """
    Returns the token to hand to the browser.

    A Bound login session gets its pinned token back; everyone else gets a
    freshly generated one.
    """
    if pinning and login_session is not None:
        pinned = get_pinned_token(login_session.id, session)
        if pinned is not None:
            return pinned
    return generate_token()


def verify_request_token(
        cookie_token: str | None,
        submitted_token: str | None,
        login_session: Session | None,
        session: DBSession,
        pinning: bool = True,
) -> None:
    """
    Validates one mutating request.

    Raises:
      AppError(CSRF_TOKEN_MISSING, 403) — no cookie or no submitted value
      AppError(CSRF_TOKEN_INVALID, 403) — cookie and submitted value differ,
                                          or the value differs from the
                                          session's pinned token
    """
    if not cookie_token or not submitted_token:
        raise AppError(
            ErrorCode.CSRF_TOKEN_MISSING,
            "CSRF token missing. Fetch one from /api/csrf-token.",
            403,
        )

    if not tokens_match(cookie_token, submitted_token):
        raise AppError(
            ErrorCode.CSRF_TOKEN_INVALID,
            "CSRF token mismatch.",
            403,
        )

    if pinning and login_session is not None:
        pinned = pin_token(login_session.id, submitted_token, session)
        if not tokens_match(pinned, submitted_token):
            raise AppError(
                ErrorCode.CSRF_TOKEN_INVALID,
                "CSRF token does not match this session.",
                403,
            )
