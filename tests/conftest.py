"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for the velocity tracker test suite. Every test gets its
own SQLite file so database state never leaks between tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient

from velocity_tracker.core.metrics import (
    AvailabilityEntry,
    MemberSnapshot,
    SprintRecord,
    TeamSnapshot,
)
from velocity_tracker.database import build_engine, build_sessionmaker, create_tables, get_db
from velocity_tracker.main import app
from velocity_tracker.services.team_service import MemberInput, TeamService


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _build_sprint(
    actual,
    days,
    forecast=0.0,
    created_day=0,
    completed_day=None,
    sprint_id=None,
):
    """Build a sprint record whose timestamps are days after BASE_TIME."""
    return SprintRecord(
        id=sprint_id,
        total_days_available=days,
        forecast_velocity=forecast,
        actual_velocity=actual,
        created_at=BASE_TIME + timedelta(days=created_day),
        completed_at=(
            BASE_TIME + timedelta(days=completed_day) if completed_day is not None else None
        ),
    )


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def make_sprint():
    """Factory for sprint records: make_sprint(actual, days, ...)"""
    return _build_sprint


@pytest.fixture
def three_member_team():
    """Three standard members on a ten-day sprint"""
    return TeamSnapshot(
        id=1,
        name="Test Team",
        sprint_size_in_days=10,
        members=[
            MemberSnapshot(id=1, name="John", velocity_weight=1.0),
            MemberSnapshot(id=2, name="Jane", velocity_weight=1.0),
            MemberSnapshot(id=3, name="Jim", velocity_weight=1.0),
        ],
    )


@pytest.fixture
def weighted_team():
    return TeamSnapshot(
        id=2,
        name="Weighted Team",
        sprint_size_in_days=10,
        members=[
            MemberSnapshot(id=1, name="John", velocity_weight=1.0),
            MemberSnapshot(id=2, name="Jane", velocity_weight=0.8),
        ],
    )


@pytest.fixture
def two_member_availability():
    return [
        AvailabilityEntry(member_id=1, days_off=0),
        AvailabilityEntry(member_id=2, days_off=2),
    ]


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create a test database engine backed by a temporary file"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def team(db_session):
    """Default team: 3 members, 10-day sprints, equal weights"""
    return await TeamService(db_session).create_team(
        name="Test Team",
        sprint_size_in_days=10,
        members=[
            MemberInput(name="John", velocity_weight=1.0),
            MemberInput(name="Jane", velocity_weight=1.0),
            MemberInput(name="Jim", velocity_weight=1.0),
        ],
        is_default=True,
    )


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app with get_db bound to the test database"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
