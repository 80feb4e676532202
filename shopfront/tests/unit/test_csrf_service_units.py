"""
Unit tests for csrf_service: token comparison, double submit and pinning.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.session_data import CSRF_TOKEN_KEY, SessionData
from shopfront.app.services import csrf_service

LOGIN_SESSION = SimpleNamespace(id="session-hash")


def _db_with_pin(pin, dialect="sqlite"):
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = pin
    session.get_bind.return_value.dialect.name = dialect
    return session


class TestTokensMatch:

    def test_equal_tokens_match(self):
        assert csrf_service.tokens_match("abc", "abc")

    @pytest.mark.parametrize("expected, submitted", [
        ("abc", "abd"),
        ("abc", ""),
        ("", ""),
        (None, "abc"),
        ("abc", None),
    ])
    def test_anything_else_does_not(self, expected, submitted):
        assert not csrf_service.tokens_match(expected, submitted)

    def test_generated_tokens_are_random(self):
        assert csrf_service.generate_token() != csrf_service.generate_token()


class TestVerifyRequestToken:

    def test_anonymous_matching_pair_passes(self):
        session = MagicMock()
        csrf_service.verify_request_token("t1", "t1", None, session)
        session.execute.assert_not_called()

    @pytest.mark.parametrize("cookie, submitted", [(None, "t1"), ("t1", None), ("", "")])
    def test_missing_value_raises_csrf_token_missing(self, cookie, submitted):
        with pytest.raises(AppError) as exc_info:
            csrf_service.verify_request_token(cookie, submitted, None, MagicMock())
        assert exc_info.value.code == ErrorCode.CSRF_TOKEN_MISSING
        assert exc_info.value.http_status == 403

    def test_mismatch_raises_csrf_token_invalid(self):
        with pytest.raises(AppError) as exc_info:
            csrf_service.verify_request_token("t1", "t2", None, MagicMock())
        assert exc_info.value.code == ErrorCode.CSRF_TOKEN_INVALID
        assert exc_info.value.http_status == 403

    def test_bound_session_accepts_its_pin(self):
        csrf_service.verify_request_token("t1", "t1", LOGIN_SESSION, _db_with_pin("t1"))

    def test_bound_session_rejects_other_value(self):
        with pytest.raises(AppError) as exc_info:
            csrf_service.verify_request_token("t2", "t2", LOGIN_SESSION, _db_with_pin("t1"))
        assert exc_info.value.code == ErrorCode.CSRF_TOKEN_INVALID

    def test_pinning_disabled_skips_the_store(self):
        session = _db_with_pin("t1")
        csrf_service.verify_request_token("t2", "t2", LOGIN_SESSION, session, pinning=False)
        session.execute.assert_not_called()


class TestPinToken:

    def test_existing_pin_is_never_overwritten(self):
        session = _db_with_pin("first")
        assert csrf_service.pin_token("sid", "second", session) == "first"
        session.add.assert_not_called()

    def test_upsert_dialect_inserts_and_reads_back_the_winner(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "sqlite"
        # No pin, insert, then a concurrent request's value is what landed.
        session.execute.return_value.scalar_one_or_none.side_effect = [None, "winner"]

        assert csrf_service.pin_token("sid", "mine", session) == "winner"
        assert session.execute.call_count == 3

    def test_other_dialects_add_an_orm_row(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "mysql"
        session.execute.return_value.scalar_one_or_none.side_effect = [None, "mine"]

        assert csrf_service.pin_token("sid", "mine", session) == "mine"
        added = session.add.call_args.args[0]
        assert isinstance(added, SessionData)
        assert (added.session_id, added.key, added.value) == ("sid", CSRF_TOKEN_KEY, "mine")


class TestIssueToken:

    def test_anonymous_gets_fresh_token(self):
        with patch.object(csrf_service, "generate_token", return_value="fresh"):
            assert csrf_service.issue_token(None, MagicMock()) == "fresh"

    def test_bound_session_gets_pinned_token(self):
        assert csrf_service.issue_token(LOGIN_SESSION, _db_with_pin("pinned")) == "pinned"

    def test_unbound_session_gets_fresh_token(self):
        with patch.object(csrf_service, "generate_token", return_value="fresh"):
            assert csrf_service.issue_token(LOGIN_SESSION, _db_with_pin(None)) == "fresh"
