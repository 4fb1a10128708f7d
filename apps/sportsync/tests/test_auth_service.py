"""
Unit tests for authentication service.
Tests password hashing, JWT tokens, registration, login and role checks.
"""
import pytest
from datetime import timedelta
from types import SimpleNamespace

from sportsync.database.models import Plan, Role
from sportsync.models.schemas import RegisterRequest
from sportsync.services import auth_service
from sportsync.services.errors import ConflictError, ValidationFailedError


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password(self):
        """Test password hashing produces different hashes for same password."""
        password = "test_password_123"
        hash1 = auth_service.hash_password(password)
        hash2 = auth_service.hash_password(password)

        # Hashes should be different (due to salt)
        assert hash1 != hash2
        assert auth_service.verify_password(password, hash1)
        assert auth_service.verify_password(password, hash2)

    def test_verify_password_incorrect(self):
        password_hash = auth_service.hash_password("test_password_123")

        assert auth_service.verify_password("wrong_password", password_hash) is False
        assert auth_service.verify_password("", password_hash) is False

    def test_verify_password_malformed_hash(self):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_create_and_verify_token(self):
        token = auth_service.create_access_token({"user_id": 7, "email": "a@example.com"})

        payload = auth_service.verify_token(token)

        assert payload["user_id"] == 7
        assert payload["email"] == "a@example.com"
        assert "exp" in payload

    def test_expired_token(self):
        token = auth_service.create_access_token({"user_id": 7}, expires_delta=timedelta(seconds=-1))

        assert auth_service.verify_token(token) is None

    @pytest.mark.parametrize("token", ["", "not.a.token", "abc"])
    def test_invalid_token(self, token):
        assert auth_service.verify_token(token) is None

    def test_tampered_token(self):
        token = auth_service.create_access_token({"user_id": 7})

        assert auth_service.verify_token(token[:-2] + "xx") is None


class TestRegistration:
    """Tests for register_user and login."""

    @pytest.mark.asyncio
    async def test_register_creates_free_player(self, repo):
        user = await auth_service.register_user(
            repo, RegisterRequest(name="  Nina Nine ", email="Nina@Example.com", password="secret1")
        )

        assert user.name == "Nina Nine"
        assert user.email == "nina@example.com"
        assert user.role == Role.PLAYER
        assert user.plan == Plan.FREE
        assert user.password_hash != "secret1"
        assert auth_service.verify_password("secret1", user.password_hash)

    @pytest.mark.asyncio
    async def test_register_admin_email(self, repo, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com, other@example.com")

        user = await auth_service.register_user(
            repo, RegisterRequest(name="Boss", email="boss@example.com", password="secret1")
        )

        assert user.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, repo):
        request = RegisterRequest(name="Nina", email="nina@example.com", password="secret1")
        await auth_service.register_user(repo, request)

        with pytest.raises(ConflictError):
            await auth_service.register_user(repo, request)

    @pytest.mark.asyncio
    async def test_register_short_password(self, repo):
        with pytest.raises(ValidationFailedError):
            await auth_service.register_user(
                repo, RegisterRequest(name="Nina", email="nina@example.com", password="123")
            )

    @pytest.mark.asyncio
    async def test_register_blank_name(self, repo):
        with pytest.raises(ValidationFailedError):
            await auth_service.register_user(
                repo, RegisterRequest(name="   ", email="nina@example.com", password="secret1")
            )

    @pytest.mark.asyncio
    async def test_login(self, repo):
        registered = await auth_service.register_user(
            repo, RegisterRequest(name="Nina", email="nina@example.com", password="secret1")
        )

        user = await auth_service.login(repo, "nina@example.com", "secret1")

        assert user.id == registered.id
        assert await auth_service.login(repo, "nina@example.com", "wrong") is None
        assert await auth_service.login(repo, "nobody@example.com", "secret1") is None

    @pytest.mark.asyncio
    async def test_authenticate_round_trip(self, repo, users):
        token = auth_service.issue_token(users["alice"])

        user = await auth_service.authenticate(repo, token)

        assert user.id == users["alice"].id
        assert await auth_service.authenticate(repo, "garbage") is None

    @pytest.mark.asyncio
    async def test_authenticate_unknown_user(self, repo):
        token = auth_service.create_access_token({"user_id": 4242})

        assert await auth_service.authenticate(repo, token) is None


class TestRoles:
    def test_role_checks(self, users_by_role):
        assert auth_service.is_staff(users_by_role[Role.MODERATOR])
        assert auth_service.is_staff(users_by_role[Role.ADMIN])
        assert not auth_service.is_staff(users_by_role[Role.PLAYER])
        assert auth_service.is_admin(users_by_role[Role.ADMIN])
        assert not auth_service.is_admin(users_by_role[Role.MODERATOR])


@pytest.fixture
def users_by_role():
    return {role: SimpleNamespace(role=role) for role in Role}
