"""
Session token and actor resolution invariants.

- Tokens fail closed: expired, tampered, foreign-signed or claim-less tokens
  are rejected, never partially trusted.
- Role and groups come from storage on every request, not from the token.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi import Response
from fastapi.testclient import TestClient
from jose import jwt

import core.security as security
from core.auth import resolve_actor
from core.exceptions import UnauthorizedError
from main import app
from models import User


client = TestClient(app)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _tampered(valid_token: str) -> str:
    # Flip one character in the signature segment
    parts = valid_token.split(".")
    assert len(parts) == 3, "Expected JWT with 3 segments"
    sig = parts[2]
    last = sig[-1]
    parts[2] = sig[:-1] + ("A" if last != "A" else "B")
    return ".".join(parts)


def _signed(claims: dict, secret: str = None) -> str:
    return jwt.encode(claims, secret or security.SECRET_KEY, algorithm=security.ALGORITHM)


class TestTokenService:
    def test_round_trip_carries_identity_claims(self):
        user_id = uuid4()
        group_id = uuid4()
        token = security.create_session_token(
            user_id, "a@example.com", display_name="Ann", role="coach", group_id=group_id
        )
        payload = security.decode_session_token(token)

        assert payload is not None
        assert payload.user_id == user_id
        assert payload.email == "a@example.com"
        assert payload.display_name == "Ann"
        assert payload.role == "coach"
        assert payload.group_id == str(group_id)

    def test_default_validity_is_seven_days(self):
        token = security.create_session_token(uuid4(), "a@example.com")
        payload = security.decode_session_token(token)
        assert payload.expires_at - payload.issued_at == timedelta(days=7)

    def test_optional_claims_are_omitted(self):
        token = security.create_session_token(uuid4(), "a@example.com")
        claims = jwt.get_unverified_claims(token)
        assert "role" not in claims
        assert "group_id" not in claims
        assert "display_name" not in claims

    def test_expired_token_is_invalid(self):
        token = security.create_session_token(uuid4(), "a@example.com", expires_delta=timedelta(minutes=-1))
        assert security.decode_session_token(token) is None

    def test_tampered_token_is_invalid(self):
        token = security.create_session_token(uuid4(), "a@example.com")
        assert security.decode_session_token(_tampered(token)) is None

    def test_token_signed_with_other_secret_is_invalid(self):
        now = datetime.now(timezone.utc)
        token = _signed(
            {
                "sub": str(uuid4()),
                "email": "a@example.com",
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(days=1)).timestamp()),
            },
            secret="x" * 48,
        )
        assert security.decode_session_token(token) is None

    @pytest.mark.parametrize("missing", ["sub", "email", "exp", "iat"])
    def test_missing_required_claim_is_invalid(self, missing):
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(uuid4()),
            "email": "a@example.com",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(days=1)).timestamp()),
        }
        del claims[missing]
        assert security.decode_session_token(_signed(claims)) is None

    def test_non_uuid_subject_is_invalid(self):
        now = datetime.now(timezone.utc)
        token = _signed({
            "sub": "not-a-uuid",
            "email": "a@example.com",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(days=1)).timestamp()),
        })
        assert security.decode_session_token(token) is None

    @pytest.mark.parametrize("garbage", [None, "", "abc", "a.b.c"])
    def test_garbage_is_invalid(self, garbage):
        assert security.decode_session_token(garbage) is None

    def test_issue_session_sets_http_only_lax_cookie(self):
        response = Response()
        security.issue_session(response, uuid4(), "a@example.com")
        cookie = response.headers["set-cookie"]

        assert cookie.startswith(f"{security.SESSION_COOKIE_NAME}=")
        assert "HttpOnly" in cookie
        assert "SameSite=lax" in cookie
        assert "Path=/" in cookie
        assert f"Max-Age={7 * 24 * 3600}" in cookie
        # ENVIRONMENT=test
        assert "Secure" not in cookie

    def test_clear_session_expires_cookie(self):
        response = Response()
        security.clear_session(response)
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{security.SESSION_COOKIE_NAME}=")
        assert "Max-Age=0" in cookie


class TestActorResolution:
    def test_missing_token_is_unauthenticated(self, db_session):
        with pytest.raises(UnauthorizedError):
            resolve_actor(db_session, None)

    def test_deleted_user_with_valid_token_is_unauthenticated(self, db_session, make_user):
        user = make_user()
        token = security.create_session_token(user.id, user.email)
        db_session.delete(user)
        db_session.commit()

        with pytest.raises(UnauthorizedError):
            resolve_actor(db_session, token)

        resp = client.get("/v1/logs", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "UNAUTHORIZED"

    def test_role_is_read_from_storage_not_token(self, db_session, make_user):
        user = make_user(User.ROLE_ATHLETE)
        # Token claims "coach", storage says athlete
        token = security.create_session_token(user.id, user.email, role=User.ROLE_COACH)

        actor = resolve_actor(db_session, token)
        assert actor.role == User.ROLE_ATHLETE
        assert not actor.is_coach

        resp = client.post("/v1/groups", json={"name": "Sneaky"}, headers=_bearer(token))
        assert resp.status_code == 403

    def test_role_change_takes_effect_without_new_token(self, db_session, make_user):
        user = make_user(User.ROLE_ATHLETE)
        token = security.create_session_token(user.id, user.email, role=User.ROLE_ATHLETE)

        user.role = User.ROLE_COACH
        db_session.commit()

        resp = client.post("/v1/groups", json={"name": "Promoted"}, headers=_bearer(token))
        assert resp.status_code == 201

    def test_groups_are_read_from_storage(self, db_session, squad):
        # Token carries a stale group id that the user never belonged to
        token = security.create_session_token(
            squad.outsider.id, squad.outsider.email, group_id=squad.group.id
        )
        actor = resolve_actor(db_session, token)
        assert actor.group_ids == frozenset()
        assert actor.primary_group_id is None

    def test_unauthenticated_requests_get_401(self, db_session):
        for method, path in [
            ("get", "/v1/logs"),
            ("post", "/v1/groups/join"),
            ("get", "/v1/tags"),
            ("get", "/v1/checkins"),
        ]:
            resp = getattr(client, method)(path)
            assert resp.status_code == 401, path

    def test_bearer_header_takes_precedence_over_cookie(self, db_session, make_user):
        alice = make_user(display_name="Alice")
        bob = make_user(display_name="Bobby")
        cookie = {"Cookie": f"{security.SESSION_COOKIE_NAME}={security.create_session_token(alice.id, alice.email)}"}
        bob_bearer = _bearer(security.create_session_token(bob.id, bob.email))

        resp = client.get("/v1/auth/session", headers={**cookie, **bob_bearer})
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == str(bob.id)

        resp = client.get("/v1/auth/session", headers=cookie)
        assert resp.json()["user"]["id"] == str(alice.id)
