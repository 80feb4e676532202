"""
errors.py — AppError base class and error code registry.

Every error returned by the Shopfront API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized or CSRF).
  - Never put passwords, session tokens or CSRF tokens into a message.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "error": self.message,
            "code":  self.code,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_PRICE              = "INVALID_PRICE"
    WEAK_PASSWORD              = "WEAK_PASSWORD"
    INVALID_ITEMS              = "INVALID_ITEMS"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    CATEGORY_NOT_EMPTY         = "CATEGORY_NOT_EMPTY"

    # ── Not Found Errors (404, or 400 inside a checkout payload) ──────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    CATEGORY_NOT_FOUND         = "CATEGORY_NOT_FOUND"
    PRODUCT_NOT_FOUND          = "PRODUCT_NOT_FOUND"
    ORDER_NOT_FOUND            = "ORDER_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    SESSION_MISSING            = "SESSION_MISSING"        # 401
    SESSION_INVALID            = "SESSION_INVALID"        # 401
    SESSION_EXPIRED            = "SESSION_EXPIRED"        # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── CSRF Errors (403) ──────────────────────────────────────────────────
    CSRF_TOKEN_MISSING         = "CSRF_TOKEN_MISSING"
    CSRF_TOKEN_INVALID         = "CSRF_TOKEN_INVALID"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# Messages shown when a marshmallow ValidationError carries a bare error code.
_CODE_MESSAGES = {
    ErrorCode.INVALID_PRICE: "Price must be a positive number with at most 2 decimal places.",
    ErrorCode.WEAK_PASSWORD: "Password must be at least 8 characters long.",
    ErrorCode.INVALID_ITEMS: "Cart items are invalid.",
}


def code_to_message(code: str) -> str:
    """Returns a human-readable default message for a known error code."""
    return _CODE_MESSAGES.get(code, "Invalid input.")


def is_registered_code(value: str) -> bool:
    return value in vars(ErrorCode).values()
