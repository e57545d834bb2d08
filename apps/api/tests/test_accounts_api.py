"""
Signup, login, logout, session and profile endpoints.

Each test uses its own TestClient so session cookies never leak between
tests.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from core.security import SESSION_COOKIE_NAME, decode_session_token
from main import app
from models import User


@pytest.fixture
def api(db_session):
    return TestClient(app)


def _signup(api, **overrides):
    body = {
        "email": "Runner@Example.com",
        "password": "secret123",
        "display_name": "Runner",
    }
    body.update(overrides)
    return api.post("/v1/auth/signup", json=body)


class TestSignup:
    def test_signup_creates_athlete_and_session(self, api, db_session):
        resp = _signup(api)
        assert resp.status_code == 201
        body = resp.json()

        assert body["user"]["email"] == "runner@example.com"
        assert body["user"]["role"] == "athlete"
        assert body["user"]["profile_complete"] is True
        assert "password_hash" not in body["user"]
        assert decode_session_token(body["access_token"]) is not None
        assert SESSION_COOKIE_NAME in resp.cookies

        user = db_session.query(User).one()
        assert user.password_hash != "secret123"

    def test_signup_as_coach(self, api):
        resp = _signup(api, role="coach")
        assert resp.json()["user"]["role"] == "coach"

    def test_unknown_role_becomes_athlete(self, api):
        resp = _signup(api, role="admin")
        assert resp.json()["user"]["role"] == "athlete"

    def test_duplicate_email_is_conflict(self, api):
        assert _signup(api).status_code == 201
        resp = _signup(api, email="RUNNER@example.com")
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "CONFLICT"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"password": "12345"},
            {"display_name": " R "},
            {"display_name": None},
            {"password": None},
            {"password": "x" * 73},
        ],
    )
    def test_invalid_input_is_400(self, api, overrides):
        resp = _signup(api, **overrides)
        assert resp.status_code == 400
        assert resp.json()["error_code"].startswith("VALIDATION_ERROR")


class TestLogin:
    def test_login_and_session(self, api):
        _signup(api)
        fresh = TestClient(app)
        resp = fresh.post("/v1/auth/login", json={"email": "RUNNER@example.com", "password": "secret123"})
        assert resp.status_code == 200

        session = fresh.get("/v1/auth/session")
        assert session.status_code == 200
        assert session.json()["user"]["display_name"] == "Runner"

    def test_wrong_password_is_401(self, api):
        _signup(api)
        resp = api.post("/v1/auth/login", json={"email": "runner@example.com", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_unknown_email_is_401(self, api):
        resp = api.post("/v1/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
        assert resp.status_code == 401

    def test_logout_clears_session(self, api):
        _signup(api)
        assert api.get("/v1/auth/session").json()["user"] is not None

        resp = api.post("/v1/auth/logout")
        assert resp.status_code == 200
        assert api.get("/v1/auth/session").json()["user"] is None


class TestSessionAndProfile:
    def test_session_without_cookie_is_null_user(self, api):
        resp = api.get("/v1/auth/session")
        assert resp.status_code == 200
        assert resp.json()["user"] is None

    def test_session_lists_groups(self, api, db_session):
        _signup(api, role="coach")
        created = api.post("/v1/groups", json={"name": "Evening Crew"})
        assert created.status_code == 201

        body = api.get("/v1/auth/session").json()
        assert body["group_id"] == created.json()["id"]
        assert [g["name"] for g in body["groups"]] == ["Evening Crew"]

    def test_profile_update_reissues_session(self, api):
        _signup(api)
        resp = api.put("/v1/auth/profile", json={"display_name": "  New Name "})
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "New Name"

        payload = decode_session_token(resp.cookies.get(SESSION_COOKIE_NAME))
        assert payload.display_name == "New Name"

    def test_profile_short_name_is_400(self, api):
        _signup(api)
        resp = api.put("/v1/auth/profile", json={"display_name": "x"})
        assert resp.status_code == 400
