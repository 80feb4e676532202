"""
services/credential_service.py — Credential store.

Responsibilities:
  - User creation (setup / seeding)
  - Credential verification for login
  - Password change (new salt, new hash, revoke every session)
  - Password hashing and verification (PBKDF2-HMAC-SHA512)

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - current_app.config is read ONLY for PBKDF2_ITERATIONS and
    MIN_PASSWORD_LENGTH

Password storage:
  - Per-user random 16-byte salt, regenerated on every password change
  - PBKDF2-HMAC-SHA512, 64-byte derived key, hex encoded
  - Comparison with hmac.compare_digest
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.user import User
from shopfront.app.services import session_service

logger = logging.getLogger(__name__)

HASH_NAME = "sha512"
DERIVED_KEY_BYTES = 64
SALT_BYTES = 16
DEFAULT_ITERATIONS = 10_000

# Same wording for unknown email and wrong password: no user enumeration.
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

# Hashed against when the email is unknown so both failure paths do the same work.
_DUMMY_SALT = "00" * SALT_BYTES


# ── Password hashing ───────────────────────────────────────────────────────

def _iterations() -> int:
    return int(current_app.config.get("PBKDF2_ITERATIONS", DEFAULT_ITERATIONS))


def derive_password_hash(password: str, salt_hex: str, iterations: int) -> str:
    """PBKDF2-HMAC-SHA512 of `password` with the hex `salt_hex`, hex encoded."""
    derived = hashlib.pbkdf2_hmac(
        HASH_NAME,
        password.encode("utf-8"),
        bytes.fromhex(salt_hex),
        iterations,
        dklen=DERIVED_KEY_BYTES,
    )
    return derived.hex()


def hash_password(password: str, iterations: int) -> tuple[str, str]:
    """Returns (password_hash, password_salt) using a freshly generated salt."""
    salt_hex = secrets.token_hex(SALT_BYTES)
    return derive_password_hash(password, salt_hex, iterations), salt_hex


def verify_password(
        password: str,
        salt_hex: str,
        expected_hash: str,
        iterations: int,
) -> bool:
    candidate = derive_password_hash(password, salt_hex, iterations)
    return hmac.compare_digest(candidate, expected_hash)


def _validate_new_password(password: str, field: str = "newPassword") -> None:
    min_length = current_app.config.get("MIN_PASSWORD_LENGTH", 8)
    if len(password) < min_length:
        raise AppError(
            ErrorCode.WEAK_PASSWORD,
            f"Password must be at least {min_length} characters long.",
            400,
            field=field,
        )


def _build_user_dict(user: User) -> dict:
    """Public view of a user. Never includes the hash or salt."""
    return {
        "email": user.email,
        "is_admin": bool(user.is_admin),
    }


# ── Public service functions ───────────────────────────────────────────────

def create_user(
        email: str,
        password: str,
        session: Session,
        is_admin: bool = False,
) -> User:
    """
    Creates a user with a freshly salted password hash.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered (exact match)
      AppError(WEAK_PASSWORD, 400)   — password shorter than MIN_PASSWORD_LENGTH
    """
    _validate_new_password(password, field="password")

    existing = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    password_hash, password_salt = hash_password(password, _iterations())
    user = User(
        email=email,
        password_hash=password_hash,
        password_salt=password_salt,
        is_admin=is_admin,
    )
    session.add(user)
    session.flush()
    logger.info("Created user id=%s admin=%s", user.id, is_admin)
    return user


def verify_credentials(email: str, password: str, session: Session) -> User:
    """
    Looks up the user by exact email and checks the password.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — email unknown or password wrong.
      Uses the same error for both to avoid user enumeration.
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()

    iterations = _iterations()
    if user is None:
        derive_password_hash(password, _DUMMY_SALT, iterations)
        ok = False
    else:
        ok = verify_password(password, user.password_salt, user.password_hash, iterations)

    if not ok:
        logger.info("Failed login attempt for email=%r", email)
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            INVALID_CREDENTIALS_MESSAGE,
            401,
        )
    return user


def change_password(
        user_id: int,
        current_password: str,
        new_password: str,
        session: Session,
) -> None:
    """
    Replaces the user's password and revokes every session they hold.

    Raises:
      AppError(USER_NOT_FOUND, 404)        — user vanished after authentication
      AppError(INVALID_CREDENTIALS, 401)   — current password is wrong
      AppError(WEAK_PASSWORD, 400)         — new password too short
    """
    user = get_user_or_404(user_id, session)

    iterations = _iterations()
    if not verify_password(current_password, user.password_salt, user.password_hash, iterations):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Current password is incorrect.",
            401,
            field="currentPassword",
        )

    _validate_new_password(new_password)

    # Always a new salt, never reuse the previous one.
    user.password_hash, user.password_salt = hash_password(new_password, iterations)
    session.flush()

    revoked = session_service.destroy_all_for_user(user.id, session)
    logger.info("Password changed for user id=%s; revoked %d session(s)", user.id, revoked)


def get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def get_current_user(user_id: int, session: Session) -> dict:
    """Returns {email, is_admin} for the authenticated user."""
    return _build_user_dict(get_user_or_404(user_id, session))


def build_user_dict(user: User) -> dict:
    return _build_user_dict(user)
