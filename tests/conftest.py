"""
Pytest fixtures for the ledger service.

Every test gets a fresh app bound to its own in-memory SQLite database and a
stepping clock, so entry timestamps are strictly increasing and ordering
assertions are deterministic.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from ledger_service.config import Settings
from ledger_service.main import create_app
from ledger_service.models import User


class StepClock:
    """Returns a new instant one second after the previous one on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2024, 3, 20, 12, 0, 0, tzinfo=timezone.utc)
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        self._current += timedelta(seconds=1)
        return self._current


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", jwt_secret="test-secret", log_level="WARNING")


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    return app.state.db


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def writer(app):
    return app.state.writer


@pytest.fixture
def aggregator(app):
    return app.state.aggregator


@pytest.fixture
def create_test_user(db):
    """Insert an account row directly, the way the identity side would."""

    def _create(email: str | None = None) -> uuid.UUID:
        user_id = uuid.uuid4()
        with db.session() as session:
            session.add(
                User(
                    id=user_id,
                    email=email or f"test_{user_id}@example.com",
                    password_hash="hashed_password",
                    name="Test User",
                )
            )
            session.commit()
        return user_id

    return _create
