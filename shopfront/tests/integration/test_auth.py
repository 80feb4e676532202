"""
tests/integration/test_auth.py — Integration tests for authentication endpoints.

Endpoints covered:
  POST /api/auth/login            → 200
  POST /api/auth/logout           → 200
  GET  /api/auth/user             → 200
  POST /api/auth/change-password  → 200

Error cases:
  INVALID_CREDENTIALS  401 — unknown email or wrong password (same message)
  SESSION_MISSING      401 — no session cookie
  SESSION_INVALID      401 — revoked or unknown session
  SESSION_EXPIRED      401 — expires_at in the past
  WEAK_PASSWORD        400 — new password shorter than 8 characters
  MISSING_FIELD        400 — login without a password
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from shopfront.app.extensions import db
from shopfront.app.models.session import Session
from shopfront.app.services import session_service

from .conftest import csrf_headers, get_csrf, login, make_user, session_cookie


# ═══════════════════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_admin_login_returns_user_and_sets_cookie(self, app, client):
        make_user(app, email="admin@example.com", password="adminabc", is_admin=True)
        token = get_csrf(client)

        resp = client.post(
            "/api/auth/login",
            json={"email": "admin@example.com", "password": "adminabc", "csrf_token": token},
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body == {
            "success": True,
            "user": {"email": "admin@example.com", "is_admin": True},
        }
        assert session_cookie(client)

        me = client.get("/api/auth/user")
        assert me.status_code == 200
        assert me.get_json() == {"email": "admin@example.com", "is_admin": True}

    def test_session_cookie_is_http_only_and_strict(self, app, client):
        make_user(app)
        token = get_csrf(client)
        resp = client.post(
            "/api/auth/login",
            json={"email": "alice@test.com", "password": "Password1"},
            headers=csrf_headers(token),
        )
        set_cookie = [h for h in resp.headers.getlist("Set-Cookie") if h.startswith("session_id=")]
        assert len(set_cookie) == 1
        assert "HttpOnly" in set_cookie[0]
        assert "SameSite=Strict" in set_cookie[0]

    def test_response_never_contains_password_material(self, app, client):
        make_user(app)
        token = get_csrf(client)
        resp = client.post(
            "/api/auth/login",
            json={"email": "alice@test.com", "password": "Password1"},
            headers=csrf_headers(token),
        )
        user = resp.get_json()["user"]
        assert "password_hash" not in user
        assert "password_salt" not in user

    def test_wrong_password_and_unknown_email_look_the_same(self, app, client):
        make_user(app)
        token = get_csrf(client)

        wrong_pw = client.post(
            "/api/auth/login",
            json={"email": "alice@test.com", "password": "nope-nope"},
            headers=csrf_headers(token),
        )
        unknown = client.post(
            "/api/auth/login",
            json={"email": "ghost@test.com", "password": "Password1"},
            headers=csrf_headers(token),
        )

        assert wrong_pw.status_code == 401
        assert unknown.status_code == 401
        assert wrong_pw.get_json() == unknown.get_json()
        assert wrong_pw.get_json()["error"] == "Invalid email or password"
        assert session_cookie(client) is None

    def test_email_match_is_case_sensitive(self, app, client):
        make_user(app, email="alice@test.com")
        token = get_csrf(client)
        resp = client.post(
            "/api/auth/login",
            json={"email": "Alice@test.com", "password": "Password1"},
            headers=csrf_headers(token),
        )
        assert resp.status_code == 401

    def test_missing_password_returns_400(self, app, client):
        make_user(app)
        token = get_csrf(client)
        resp = client.post(
            "/api/auth/login",
            json={"email": "alice@test.com"},
            headers=csrf_headers(token),
        )
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "MISSING_FIELD"
        assert body["field"] == "password"

    def test_login_without_csrf_token_is_rejected(self, app, client):
        make_user(app)
        resp = client.post(
            "/api/auth/login",
            json={"email": "alice@test.com", "password": "Password1"},
        )
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "CSRF_TOKEN_MISSING"

    def test_login_accepts_form_posts(self, app, client):
        make_user(app)
        token = get_csrf(client)
        resp = client.post(
            "/api/auth/login",
            data={"email": "alice@test.com", "password": "Password1", "csrf_token": token},
        )
        assert resp.status_code == 200


class TestSingleSession:

    def test_repeated_logins_leave_exactly_one_session(self, app, client):
        user_id = make_user(app)
        for _ in range(4):
            login(client)

        with app.app_context():
            assert session_service.count_sessions_for_user(user_id, db.session) == 1

    def test_login_elsewhere_invalidates_the_first_client(self, app):
        make_user(app)
        first = app.test_client()
        second = app.test_client()

        login(first)
        login(second)

        assert first.get("/api/auth/user").status_code == 401
        assert second.get("/api/auth/user").status_code == 200


# ═══════════════════════════════════════════════════════════════════════════
# GET /api/auth/user
# ═══════════════════════════════════════════════════════════════════════════

class TestCurrentUser:

    def test_no_cookie_returns_401_session_missing(self, client):
        resp = client.get("/api/auth/user")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "SESSION_MISSING"

    def test_unknown_cookie_returns_401_and_clears_cookie(self, client):
        client.set_cookie("session_id", "f" * 64)
        resp = client.get("/api/auth/user")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "SESSION_INVALID"
        assert session_cookie(client) is None

    def test_expired_session_is_rejected(self, app, client):
        make_user(app)
        login(client)

        with app.app_context():
            db.session.execute(
                update(Session).values(
                    expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
                )
            )
            db.session.commit()

        resp = client.get("/api/auth/user")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "SESSION_EXPIRED"

    def test_sweep_removes_only_expired_sessions(self, app):
        alice = make_user(app)
        bob = make_user(app, email="bob@test.com")
        login(app.test_client())
        login(app.test_client(), email="bob@test.com")

        with app.app_context():
            db.session.execute(
                update(Session)
                .where(Session.user_id == alice)
                .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
            )
            db.session.commit()

            assert session_service.sweep_expired_sessions(db.session) == 1
            db.session.commit()
            assert session_service.count_sessions_for_user(alice, db.session) == 0
            assert session_service.count_sessions_for_user(bob, db.session) == 1


# ═══════════════════════════════════════════════════════════════════════════
# POST /api/auth/logout
# ═══════════════════════════════════════════════════════════════════════════

class TestLogout:

    def test_logout_destroys_session(self, app, client):
        user_id = make_user(app)
        token = login(client)
        raw = session_cookie(client)

        resp = client.post("/api/auth/logout", headers=csrf_headers(token))

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True}
        assert session_cookie(client) is None
        with app.app_context():
            assert session_service.count_sessions_for_user(user_id, db.session) == 0

        client.set_cookie("session_id", raw)
        assert client.get("/api/auth/user").status_code == 401

    def test_logout_without_session_returns_401_before_csrf(self, client):
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 401

    def test_logout_without_csrf_returns_403(self, app, client):
        make_user(app)
        login(client)
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# POST /api/auth/change-password
# ═══════════════════════════════════════════════════════════════════════════

class TestChangePassword:

    def _change(self, client, token, current, new):
        return client.post(
            "/api/auth/change-password",
            json={"currentPassword": current, "newPassword": new},
            headers=csrf_headers(token),
        )

    def test_change_password_revokes_session_and_old_password(self, app, client):
        make_user(app)
        token = login(client)
        old_cookie = session_cookie(client)

        resp = self._change(client, token, "Password1", "Password2")
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

        # Replaying the old cookie must fail.
        client.set_cookie("session_id", old_cookie)
        assert client.get("/api/auth/user").status_code == 401

        fresh = app.test_client()
        token = get_csrf(fresh)
        old_pw = fresh.post(
            "/api/auth/login",
            json={"email": "alice@test.com", "password": "Password1"},
            headers=csrf_headers(token),
        )
        assert old_pw.status_code == 401
        login(fresh, password="Password2")

    def test_wrong_current_password_returns_401(self, app, client):
        make_user(app)
        token = login(client)
        resp = self._change(client, token, "not-my-password", "Password2")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_CREDENTIALS"
        # Session survives a failed attempt.
        assert client.get("/api/auth/user").status_code == 200

    def test_wrong_current_password_wins_over_short_new_one(self, app, client):
        make_user(app)
        token = login(client)
        resp = self._change(client, token, "not-my-password", "short")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_CREDENTIALS"

    def test_short_new_password_returns_400(self, app, client):
        make_user(app)
        token = login(client)
        resp = self._change(client, token, "Password1", "short")
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "WEAK_PASSWORD"
        assert body["field"] == "newPassword"

    def test_requires_session(self, client):
        token = get_csrf(client)
        resp = self._change(client, token, "Password1", "Password2")
        assert resp.status_code == 401
