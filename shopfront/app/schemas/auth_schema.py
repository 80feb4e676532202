"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: presence and types of email / password fields.
  - services/credential_service.py: whether the credentials are correct
    (INVALID_CREDENTIALS, 401), then the new password's minimum length
    (WEAK_PASSWORD, 400).

The csrf_token body field, when present, is read by the CSRF middleware and
excluded here.

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class LoginSchema(Schema):
    """
    POST /api/auth/login

    Email is matched exactly as stored, so it is only checked for presence
    here, not normalised or format-validated.
    """

    class Meta:
        unknown = EXCLUDE

    email = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=255, error="Email is required."),
    )
    password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(min=1, error="Password is required."),
    )


class ChangePasswordSchema(Schema):
    """
    POST /api/auth/change-password

    Body keys are camelCase to match the storefront client.
    """

    class Meta:
        unknown = EXCLUDE

    current_password = fields.Str(
        required=True,
        load_only=True,
        data_key="currentPassword",
        validate=validate.Length(min=1, error="Current password is required."),
    )
    # Minimum length is enforced in credential_service.change_password.
    new_password = fields.Str(required=True, load_only=True, data_key="newPassword")
