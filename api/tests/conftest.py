"""Shared test fixtures."""

import os
import tempfile
import uuid

# Must be set before anything imports sitebook.core.config
os.environ["SB_DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'sitebook-test-{uuid.uuid4().hex[:8]}.db')}"
)
os.environ.setdefault("SB_SCHEDULE_SHRINK_POLICY", "preserve")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from sitebook.core.auth import create_access_token  # noqa: E402
from sitebook.core.database import async_session_factory, engine  # noqa: E402
from sitebook.main import app  # noqa: E402
from sitebook.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
async def _fresh_database():
    """Dispose stale engine pool connections and recreate the schema before each test.

    The global engine is created at import time. When pytest-asyncio creates a new
    event loop for tests, any existing pooled connections are bound to the old loop
    and will fail with 'Future attached to a different loop'. Disposing before each
    test forces fresh connections in the current loop.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers():
    token = create_access_token("1", {"role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers():
    token = create_access_token("2", {"role": "member"})
    return {"Authorization": f"Bearer {token}"}


def full_week(
    slots: int = 4,
    start: str | None = "08:00",
    overrides: dict[str, tuple[int, str | None]] | None = None,
) -> list[dict]:
    """A seven-day schedule body, every day alike unless overridden by day name."""
    days = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    overrides = overrides or {}
    schedule = []
    for day in days:
        count, start_time = overrides.get(day, (slots, start))
        entry = {"day_of_week": day, "number_of_time_slots": count}
        if start_time is not None:
            entry["start_time"] = start_time
        schedule.append(entry)
    return schedule
