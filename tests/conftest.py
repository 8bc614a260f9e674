"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.auth import TokenService, get_token_service
from api.database import APIDatabaseService, get_db_service
from api.main import app
from api.models import BookResponse, ReviewResponse
from catalog.models import BookSummary, ReviewRecord, UserRecord

ALICE_ID = "64b000000000000000000001"
BOB_ID = "64b000000000000000000002"
BOOK_ID = "64b0000000000000000000b1"
REVIEW_ID = "64b0000000000000000000c1"

CREATED_AT = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def token_service():
    """Token service with a fixed test secret."""
    return TokenService(secret="test-secret", algorithm="HS256", expires_in=timedelta(days=7))


@pytest.fixture
def alice():
    """Authenticated user used by most tests."""
    return UserRecord(
        id=ALICE_ID,
        name="Alice Johnson",
        email="alice@example.com",
        password_hash="not-a-real-hash",
        created_at=CREATED_AT,
        updated_at=CREATED_AT
    )


@pytest.fixture
def bob():
    """A second user who does not own Alice's reviews."""
    return UserRecord(
        id=BOB_ID,
        name="Bob Smith",
        email="bob@example.com",
        password_hash="not-a-real-hash",
        created_at=CREATED_AT,
        updated_at=CREATED_AT
    )


@pytest.fixture
def sample_book(alice):
    """Book response as produced by the database service."""
    return BookResponse(
        id=BOOK_ID,
        title="Dune",
        author="Frank Herbert",
        genre="Sci-Fi",
        description="Set on the desert planet Arrakis.",
        published_year=1965,
        isbn="9780441172719",
        created_by=alice.summary(),
        created_at=CREATED_AT,
        updated_at=CREATED_AT,
        average_rating=4.7,
        review_count=3
    )


@pytest.fixture
def sample_review_record():
    """Review written by Alice."""
    return ReviewRecord(
        id=REVIEW_ID,
        rating=4,
        comment="Complex and rewarding read.",
        user=ALICE_ID,
        book=BOOK_ID,
        created_at=CREATED_AT,
        updated_at=CREATED_AT
    )


@pytest.fixture
def sample_review(alice):
    """Populated review response."""
    return ReviewResponse(
        id=REVIEW_ID,
        rating=4,
        comment="Complex and rewarding read.",
        user=alice.summary(),
        book=BookSummary(id=BOOK_ID, title="Dune", author="Frank Herbert", genre="Sci-Fi"),
        created_at=CREATED_AT,
        updated_at=CREATED_AT
    )


@pytest.fixture
def mock_db_service(alice, bob):
    """Mock database service that knows Alice and Bob."""
    service = AsyncMock(spec=APIDatabaseService)
    users = {alice.id: alice, bob.id: bob}

    async def get_user_by_id(user_id):
        return users.get(user_id)

    service.get_user_by_id.side_effect = get_user_by_id
    return service


@pytest.fixture
def client(mock_db_service, token_service):
    """Test client with the database and token services injected."""
    app.dependency_overrides[get_db_service] = lambda: mock_db_service
    app.dependency_overrides[get_token_service] = lambda: token_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(alice, token_service):
    """Authorization header carrying a valid token for Alice."""
    return {"Authorization": f"Bearer {token_service.issue(alice.id)}"}


@pytest.fixture
def bob_headers(bob, token_service):
    """Authorization header carrying a valid token for Bob."""
    return {"Authorization": f"Bearer {token_service.issue(bob.id)}"}
