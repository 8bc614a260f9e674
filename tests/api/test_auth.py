"""
Tests for password hashing, token issuing and the authorization guard.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from api.auth import AuthorizationGuard, TokenService, hash_password, verify_password
from api.database import APIDatabaseService
from catalog.errors import InvalidToken, TokenExpired, Unauthenticated
from tests.conftest import ALICE_ID


def bearer(token, scheme="Bearer"):
    return HTTPAuthorizationCredentials(scheme=scheme, credentials=token)


class TestPasswordHashing:
    """Test cases for bcrypt helpers."""

    def test_hash_and_verify(self):
        password_hash = hash_password("123456", rounds=4)

        assert password_hash != "123456"
        assert verify_password("123456", password_hash) is True
        assert verify_password("1234567", password_hash) is False

    def test_long_passwords_use_first_72_bytes(self):
        password = "x" * 72
        password_hash = hash_password(password + "tail", rounds=4)

        assert verify_password(password + "other-tail", password_hash) is True

    def test_verify_against_garbage_hash(self):
        assert verify_password("123456", "not-a-bcrypt-hash") is False


class TestTokenService:
    """Test cases for TokenService."""

    def test_issue_and_verify(self, token_service):
        token = token_service.issue(ALICE_ID)
        assert token_service.verify(token) == ALICE_ID

    def test_token_valid_for_seven_days(self, token_service):
        issued_at = datetime(2025, 1, 1, tzinfo=timezone.utc)
        token = token_service.issue(ALICE_ID, now=issued_at)

        claims = jwt.get_unverified_claims(token)
        assert claims["sub"] == ALICE_ID
        assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())

    def test_expired_token(self, token_service):
        token = token_service.issue(ALICE_ID, now=datetime.now(timezone.utc) - timedelta(days=7, minutes=1))

        with pytest.raises(TokenExpired):
            token_service.verify(token)

    def test_wrong_secret(self, token_service):
        other = TokenService(secret="another-secret")
        token = other.issue(ALICE_ID)

        with pytest.raises(InvalidToken):
            token_service.verify(token)

    def test_malformed_token(self, token_service):
        with pytest.raises(InvalidToken):
            token_service.verify("garbage")

    def test_token_without_subject(self, token_service):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "test-secret",
            algorithm="HS256"
        )

        with pytest.raises(InvalidToken):
            token_service.verify(token)


class TestAuthorizationGuard:
    """Test cases for AuthorizationGuard."""

    @pytest.fixture
    def users(self, alice):
        service = AsyncMock(spec=APIDatabaseService)
        service.get_user_by_id.return_value = alice
        return service

    @pytest.mark.asyncio
    async def test_resolves_principal(self, users, token_service, alice):
        guard = AuthorizationGuard(token_service, users)

        principal = await guard.authenticate(bearer(token_service.issue(alice.id)))

        assert principal == alice
        users.get_user_by_id.assert_awaited_once_with(alice.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credentials", [None, bearer(""), bearer("abc", scheme="bearer")])
    async def test_missing_or_malformed_credentials(self, users, token_service, credentials):
        guard = AuthorizationGuard(token_service, users)

        with pytest.raises(Unauthenticated):
            await guard.authenticate(credentials)

        users.get_user_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token(self, users, token_service, alice):
        guard = AuthorizationGuard(token_service, users)
        token = token_service.issue(alice.id, now=datetime.now(timezone.utc) - timedelta(days=30))

        with pytest.raises(TokenExpired):
            await guard.authenticate(bearer(token))

    @pytest.mark.asyncio
    async def test_invalid_token(self, users, token_service):
        guard = AuthorizationGuard(token_service, users)

        with pytest.raises(InvalidToken):
            await guard.authenticate(bearer("abc.def.ghi"))

    @pytest.mark.asyncio
    async def test_unknown_user(self, users, token_service, alice):
        users.get_user_by_id.return_value = None
        guard = AuthorizationGuard(token_service, users)

        with pytest.raises(Unauthenticated) as exc_info:
            await guard.authenticate(bearer(token_service.issue(alice.id)))

        assert exc_info.value.message == "Invalid token. User not found."
