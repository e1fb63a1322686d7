"""Tests for registration, login, tokens and protected routes."""

import time

import jwt
import pytest

from conftest import TEST_JWT_SECRET
from task_api.errors import AuthError, ConflictError, ValidationError
from task_api.models.user import User
from task_api.services.auth_service import (
    DEMO_USERS,
    hash_password,
    public_profile,
    verify_password,
)


class TestPasswordHashing:
    """bcrypt helpers."""

    def test_hash_and_verify(self):
        hashed = hash_password("secret123", rounds=4)

        assert hashed != "secret123"
        assert hashed.startswith("$2")
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_verify_against_garbage_hash(self):
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestAuthService:
    """Test AuthService functionality."""

    async def test_register(self, auth_service):
        profile = await auth_service.register("alice", "secret123", "alice@example.com")

        assert profile["username"] == "alice"
        assert profile["email"] == "alice@example.com"
        assert "id" in profile
        assert "createdAt" in profile
        assert "password" not in profile
        assert "password_hash" not in profile

    async def test_register_stores_hash_only(self, auth_service):
        await auth_service.register("alice", "secret123", "alice@example.com")

        stored = auth_service.repository.get_by_username("alice")

        assert stored.password_hash != "secret123"
        assert verify_password("secret123", stored.password_hash)

    async def test_register_duplicate(self, auth_service):
        await auth_service.register("alice", "secret123", "alice@example.com")

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.register("alice", "other123", "other@example.com")

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "USERNAME_EXISTS"

    @pytest.mark.parametrize(
        "username, password, email, code",
        [
            (None, "secret123", "a@example.com", "MISSING_FIELDS"),
            ("alice", "", "a@example.com", "MISSING_FIELDS"),
            ("alice", "secret123", None, "MISSING_FIELDS"),
            ("al", "secret123", "a@example.com", "INVALID_USERNAME"),
            ("alice", "secret123", "not-an-email", "INVALID_EMAIL"),
            ("alice", "12345", "a@example.com", "INVALID_PASSWORD"),
            ("alice", "x" * 73, "a@example.com", "INVALID_PASSWORD"),
        ],
    )
    async def test_register_validation(self, auth_service, username, password, email, code):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register(username, password, email)

        assert exc_info.value.error_code == code
        assert auth_service.repository.get_by_username(username or "alice") is None

    async def test_login(self, auth_service):
        await auth_service.register("alice", "secret123", "alice@example.com")

        result = await auth_service.login("alice", "secret123")

        assert result["user"]["username"] == "alice"
        assert result["expiresIn"] == "24h"
        claims = jwt.decode(result["token"], TEST_JWT_SECRET, algorithms=["HS256"])
        assert claims["username"] == "alice"
        assert claims["userId"] == result["user"]["id"]
        assert claims["exp"] - claims["iat"] == 24 * 3600

    @pytest.mark.parametrize("username, password", [("alice", "wrong-pass"), ("nobody", "secret123")])
    async def test_login_invalid_credentials(self, auth_service, username, password):
        """Unknown user and wrong password produce the same error."""
        await auth_service.register("alice", "secret123", "alice@example.com")

        with pytest.raises(AuthError) as exc_info:
            await auth_service.login(username, password)

        assert exc_info.value.message == "Invalid username or password"
        assert exc_info.value.status_code == 401

    async def test_login_inactive_user(self, auth_service):
        await auth_service.register("alice", "secret123", "alice@example.com")
        user = auth_service.repository.get_by_username("alice")
        auth_service.repository.update(user.model_copy(update={"is_active": False}))

        with pytest.raises(AuthError):
            await auth_service.login("alice", "secret123")

    async def test_login_missing_fields(self, auth_service):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.login("alice", None)

        assert exc_info.value.error_code == "MISSING_CREDENTIALS"

    def test_verify_token_round_trip(self, auth_service):
        user = User(username="alice", email="a@example.com", password_hash="x")

        claims = auth_service.verify_token(auth_service.create_token(user))

        assert claims.user_id == user.id
        assert claims.username == "alice"

    def test_verify_expired_token(self, auth_service):
        user = User(username="alice", email="a@example.com", password_hash="x")
        token = auth_service.create_token(user, issued_at=int(time.time()) - 25 * 3600)

        assert auth_service.verify_token(token) is None

    def test_verify_tampered_token(self, auth_service):
        user = User(username="alice", email="a@example.com", password_hash="x")
        token = auth_service.create_token(user)
        tampered = token[:-4] + ("BBBB" if token.endswith("AAAA") else "AAAA")

        assert auth_service.verify_token(tampered) is None

    def test_verify_token_wrong_secret(self, auth_service):
        forged = jwt.encode(
            {"userId": "1", "username": "mallory", "iat": int(time.time()), "exp": int(time.time()) + 60},
            "some-other-secret-that-is-also-32-bytes",
            algorithm="HS256",
        )

        assert auth_service.verify_token(forged) is None

    def test_verify_token_missing_claims(self, auth_service):
        token = jwt.encode({"username": "alice"}, TEST_JWT_SECRET, algorithm="HS256")

        assert auth_service.verify_token(token) is None

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
    def test_verify_malformed_token(self, auth_service, token):
        assert auth_service.verify_token(token) is None

    async def test_seed_demo_users_idempotent(self, auth_service):
        assert await auth_service.seed_demo_users() == len(DEMO_USERS)
        assert await auth_service.seed_demo_users() == 0

        result = await auth_service.login("admin", "admin123")
        assert result["user"]["username"] == "admin"

    def test_public_profile(self):
        user = User(username="alice", email="a@example.com", password_hash="secret-hash")

        assert "isActive" not in public_profile(user)
        assert public_profile(user, include_status=True)["isActive"] is True
        assert "secret-hash" not in str(public_profile(user, include_status=True))


class TestAuthEndpoints:
    """Auth routes over HTTP."""

    def test_register(self, client):
        response = client.post(
            "/api/auth/register",
            json={"username": "bob", "password": "secret123", "email": "bob@example.com"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        assert body["data"]["username"] == "bob"
        assert "createdAt" in body["data"]
        assert "isActive" not in body["data"]

    def test_register_duplicate(self, client, registered_user):
        response = client.post("/api/auth/register", json=registered_user)

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "Username already exists",
            "error": "USERNAME_EXISTS",
        }

    def test_register_invalid_email(self, client):
        response = client.post(
            "/api/auth/register",
            json={"username": "bob", "password": "secret123", "email": "bob"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_EMAIL"

    def test_login(self, client, registered_user):
        response = client.post(
            "/api/auth/login",
            json={"username": registered_user["username"], "password": registered_user["password"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["data"]["expiresIn"] == "24h"
        assert body["data"]["user"]["username"] == "alice"
        assert body["data"]["token"].count(".") == 2

    def test_login_wrong_password(self, client, registered_user):
        response = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid username or password"
        assert response.json()["error"] == "AUTHENTICATION_FAILED"

    def test_login_missing_credentials(self, client):
        response = client.post("/api/auth/login", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_CREDENTIALS"

    def test_profile(self, client, auth_headers):
        response = client.get("/api/auth/profile", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "alice"
        assert data["email"] == "alice@example.com"
        assert data["isActive"] is True

    def test_profile_without_token(self, client):
        response = client.get("/api/auth/profile")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Access token required",
            "error": "MISSING_TOKEN",
        }

    @pytest.mark.parametrize("header", ["Bearer not.a.token", "Bearer garbage"])
    def test_profile_invalid_token(self, client, header):
        response = client.get("/api/auth/profile", headers={"Authorization": header})

        assert response.status_code == 403
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_profile_non_bearer_scheme(self, client):
        """A non-Bearer scheme carries no token at all."""
        response = client.get("/api/auth/profile", headers={"Authorization": "Basic abc123"})

        assert response.status_code == 401
        assert response.json()["error"] == "MISSING_TOKEN"

    def test_profile_unknown_user(self, client):
        ghost = User(username="ghost", email="ghost@example.com", password_hash="x")
        token = client.app.state.auth_service.create_token(ghost)

        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 404
        assert response.json()["error"] == "PROFILE_NOT_FOUND"

    def test_verify(self, client, auth_headers):
        response = client.post("/api/auth/verify", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Token is valid"
        assert body["data"]["username"] == "alice"
        assert "userId" in body["data"]

    def test_verify_expired(self, client, registered_user):
        auth_service = client.app.state.auth_service
        user = auth_service.repository.get_by_username("alice")
        token = auth_service.create_token(user, issued_at=int(time.time()) - 48 * 3600)

        response = client.post("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_demo_credentials_hidden_by_default(self, client):
        assert client.get("/api/auth/demo-credentials").status_code == 404

    def test_demo_users_seeded(self, client_factory):
        with client_factory(seed_demo_users=True) as client:
            credentials = client.get("/api/auth/demo-credentials")
            login = client.post("/api/auth/login", json={"username": "demo", "password": "demo123"})

        assert credentials.status_code == 200
        usernames = [user["username"] for user in credentials.json()["data"]["users"]]
        assert usernames == ["admin", "demo"]
        assert login.status_code == 200


class TestTaskRouteProtection:
    """``require_auth_for_tasks`` switches task routes to mandatory auth."""

    def test_tasks_open_by_default(self, client):
        assert client.get("/api/tasks").status_code == 200

    def test_tasks_accept_token_when_optional(self, client, auth_headers):
        response = client.post("/api/tasks", json={"title": "Mine"}, headers=auth_headers)

        assert response.status_code == 201

    def test_tasks_require_token(self, client_factory):
        with client_factory(require_auth_for_tasks=True) as client:
            anonymous = client.get("/api/tasks")
            bad_token = client.get("/api/tasks", headers={"Authorization": "Bearer nope"})
            export = client.get("/api/export/tasks/json")

            client.post(
                "/api/auth/register",
                json={"username": "carol", "password": "secret123", "email": "carol@example.com"},
            )
            token = client.post(
                "/api/auth/login", json={"username": "carol", "password": "secret123"}
            ).json()["data"]["token"]
            authorized = client.post(
                "/api/tasks",
                json={"title": "Protected"},
                headers={"Authorization": f"Bearer {token}"},
            )

        assert anonymous.status_code == 401
        assert bad_token.status_code == 403
        assert export.status_code == 401
        assert authorized.status_code == 201
