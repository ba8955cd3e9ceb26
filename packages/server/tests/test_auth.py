"""
Tests for Authentication and Authorization.

Covers:
- Password hashing and JWT creation, decoding, revocation
- CSRF and security headers middleware
- Sign-up (role fixed at sign-up), login, session lookup, refresh, logout
- Role dependencies (require_creator, require_client)
- Anonymous access to protected routes yields a login URL
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.v1.auth import safe_next
from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    CurrentUser,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    require_client,
    require_creator,
    verify_password,
)
from app.core.backend import BackendClient
from app.core.errors import PermissionDenied
from app.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware, SECURITY_HEADERS

PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_round_trip_claims(self):
        uid = uuid.uuid4()
        token, jti = create_jwt(uid, "creator")
        payload = decode_jwt(token)
        assert payload["sub"] == str(uid)
        assert payload["role"] == "creator"
        assert payload["jti"] == jti

    def test_expired_token_rejected(self):
        token, _ = create_jwt(uuid.uuid4(), "client", expires_delta=timedelta(seconds=-5))
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_token_rejected(self):
        token, _ = create_jwt(uuid.uuid4(), "client")
        with pytest.raises(jwt.PyJWTError):
            decode_jwt(token[:-2] + "xx")


class TestCSRFToken:
    def test_generates_unique_tokens(self):
        t1 = generate_csrf_token()
        t2 = generate_csrf_token()
        assert t1 != t2
        assert len(t1) > 20


class TestSafeNext:
    def test_relative_path_kept(self):
        assert safe_next("/requests/abc") == "/requests/abc"

    def test_external_and_missing_fall_back_to_root(self):
        assert safe_next("https://evil.example") == "/"
        assert safe_next("//evil.example") == "/"
        assert safe_next(None) == "/"


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert resp.status_code == 200

    def test_post_with_bearer_skips_csrf(self):
        client = TestClient(self._make_app())
        resp = client.post("/test", headers={"Authorization": "Bearer some-jwt"})
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        """No session cookie = not a browser request, skip CSRF."""
        client = TestClient(self._make_app())
        resp = client.post("/test")
        assert resp.status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={SESSION_COOKIE: "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

    def test_post_with_matching_csrf_passes(self):
        csrf_token = "test-csrf-token"
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: csrf_token},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": csrf_token})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: "token-a"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "token-b"})
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_signup_creates_profile_with_role(self, client, make_account):
        account = await make_account("creator", "Mika")
        resp = await client.get("/api/v1/me", headers=account.headers)
        assert resp.status_code == 200
        me = resp.json()
        assert me["id"] == str(account.id)
        assert me["role"] == "creator"
        assert me["role_label"] == "Creator"
        assert me["initial"] == "M"
        assert me["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_signup_sets_session_cookies(self, client):
        resp = await client.post(
            "/auth/signup",
            json={"email": "cookie@example.com", "password": PASSWORD, "role": "client"},
        )
        assert resp.status_code == 201
        assert SESSION_COOKIE in resp.cookies
        assert resp.cookies[CSRF_COOKIE] == resp.json()["csrf_token"]

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, client, make_account):
        account = await make_account("client")
        resp = await client.post(
            "/auth/signup",
            json={"email": account.email, "password": PASSWORD, "role": "client"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_signup_email_race_is_conflict(self, client, make_account):
        account = await make_account("client")
        real_select_one = BackendClient.select_one

        async def miss_users(self, table, filters, **kwargs):
            if table == "users":
                return None
            return await real_select_one(self, table, filters, **kwargs)

        with patch.object(BackendClient, "select_one", miss_users):
            resp = await client.post(
                "/auth/signup",
                json={"email": account.email, "password": PASSWORD, "role": "client"},
            )

        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Email already registered."
        assert "password_hash" not in resp.text
        assert "$2b$" not in resp.text

    @pytest.mark.asyncio
    async def test_signup_short_password(self, client):
        resp = await client.post(
            "/auth/signup",
            json={"email": "short@example.com", "password": "short", "role": "creator"},
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        assert error["form"]["email"] == "short@example.com"
        assert "password" not in error["form"]

    @pytest.mark.asyncio
    async def test_signup_rejects_unknown_role(self, client):
        resp = await client.post(
            "/auth/signup",
            json={"email": "admin@example.com", "password": PASSWORD, "role": "admin"},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_login_success_with_next(self, client, make_account):
        account = await make_account("client")
        resp = await client.post(
            "/auth/login",
            json={"email": account.email, "password": PASSWORD, "next": "/requests"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "client"
        assert body["redirect_to"] == "/requests"
        assert decode_jwt(body["access_token"])["sub"] == str(account.id)

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, make_account):
        account = await make_account("client")
        resp = await client.post(
            "/auth/login", json={"email": account.email, "password": "not-the-password"}
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client):
        resp = await client.post(
            "/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_session_anonymous(self, client):
        resp = await client.get("/auth/session")
        assert resp.status_code == 200
        assert resp.json() == {"authenticated": False, "user": None}

    @pytest.mark.asyncio
    async def test_session_from_cookie(self, client, make_account):
        account = await make_account("creator", "Mika")
        resp = await client.get(
            "/auth/session", headers={"Cookie": f"{SESSION_COOKIE}={account.token}"}
        )
        body = resp.json()
        assert body["authenticated"] is True
        assert body["user"]["display_name"] == "Mika"

    @pytest.mark.asyncio
    async def test_refresh_revokes_old_token(self, client, make_account, revoked):
        account = await make_account("client")
        resp = await client.post("/auth/refresh", headers=account.headers)
        assert resp.status_code == 200
        new_token = resp.json()["access_token"]
        assert new_token != account.token
        assert decode_jwt(account.token)["jti"] in revoked

        old = await client.get("/api/v1/me", headers=account.headers)
        assert old.status_code == 401
        fresh = await client.get("/api/v1/me", headers={"Authorization": f"Bearer {new_token}"})
        assert fresh.status_code == 200

    @pytest.mark.asyncio
    async def test_logout_revokes_and_clears(self, client, make_account):
        account = await make_account("client")
        resp = await client.post("/auth/logout", headers=account.headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out"

        after = await client.get("/api/v1/me", headers=account.headers)
        assert after.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_session(self, client):
        resp = await client.post("/auth/logout")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_protected_route_returns_login_url(self, client):
        resp = await client.get("/api/v1/requests")
        assert resp.status_code == 401
        error = resp.json()["error"]
        assert error["code"] == "AUTH_REQUIRED"
        assert error["login_url"] == "/auth/login?next=/api/v1/requests"

    @pytest.mark.asyncio
    async def test_garbage_token_is_anonymous(self, client):
        resp = await client.get("/api/v1/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Unit Tests: Role dependencies
# ---------------------------------------------------------------------------

class TestRoleDependencies:
    def _current(self, role: str | None) -> CurrentUser:
        user = MagicMock()
        user.id = uuid.uuid4()
        profile = None
        if role is not None:
            profile = MagicMock()
            profile.role = role
        return CurrentUser(user=user, profile=profile)

    @pytest.mark.asyncio
    async def test_require_creator_allows_creator(self):
        current = self._current("creator")
        assert await require_creator(current) is current

    @pytest.mark.asyncio
    async def test_require_creator_rejects_client(self):
        with pytest.raises(PermissionDenied):
            await require_creator(self._current("client"))

    @pytest.mark.asyncio
    async def test_require_client_allows_client(self):
        current = self._current("client")
        assert await require_client(current) is current

    @pytest.mark.asyncio
    async def test_require_client_rejects_profileless_user(self):
        with pytest.raises(PermissionDenied):
            await require_client(self._current(None))


# ---------------------------------------------------------------------------
# Unit Tests: JWT Revocation (mocked Redis)
# ---------------------------------------------------------------------------

class TestJWTRevocation:
    @pytest.mark.asyncio
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.setex = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("app.core.auth.get_redis", return_value=mock_redis):
            from app.core.auth import revoke_jwt, is_jwt_revoked

            await revoke_jwt("test-jti-123", ttl_seconds=3600)
            mock_redis.setex.assert_called_once_with("ct:session:revoked:test-jti-123", 3600, "1")

            result = await is_jwt_revoked("test-jti-123")
            assert result is True

    @pytest.mark.asyncio
    async def test_non_revoked_jwt(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=0)

        with patch("app.core.auth.get_redis", return_value=mock_redis):
            from app.core.auth import is_jwt_revoked
            result = await is_jwt_revoked("non-existent-jti")
            assert result is False
