"""
Shared fixtures: mocked sessions, callers and an API client.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from apply4me.core.auth import ADMIN_ROLE, STUDENT_ROLE, CurrentUser, get_current_user
from apply4me.core.database import get_db

# Pinned clock used across the suite
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def session_maker(mock_db):
    """Stand-in for ``async_session_maker`` that always yields ``mock_db``."""
    maker = MagicMock()
    maker.return_value.__aenter__ = AsyncMock(return_value=mock_db)
    maker.return_value.__aexit__ = AsyncMock(return_value=False)
    return maker


@pytest.fixture
def student_user():
    return CurrentUser(
        id=uuid4(),
        email="thandi@student.ac.za",
        role=STUDENT_ROLE,
        name="Thandi Mokoena",
    )


@pytest.fixture
def admin_user():
    return CurrentUser(
        id=uuid4(),
        email="admin@apply4me.co.za",
        role=ADMIN_ROLE,
        name="Apply4Me Admin",
    )


@pytest.fixture
def api_client(mock_db):
    """
    TestClient with the database dependency replaced by ``mock_db``.

    The lifespan is not run, so no database, Redis or scheduler is needed.
    """
    from apply4me.main import app

    async def _override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = _override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def authenticate():
    """Make every request run as the given user."""
    from apply4me.main import app

    def _authenticate(user: CurrentUser) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _authenticate
