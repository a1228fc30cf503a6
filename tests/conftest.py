import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from tasktracker.config import Settings
from tasktracker.db import Database
from tasktracker.main import create_app


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}",
        allowed_origins=["*"],
        environment="test",
        log_level="WARNING",
        db_connect_retries=1,
        db_retry_delay=0,
    )


@pytest_asyncio.fixture
async def database(settings):
    """An initialised Database with all tables created."""
    database = Database(settings)
    await database.init()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def db(database):
    """A session on the test database."""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def client(settings):
    """A TestClient with the app lifespan running."""
    with TestClient(create_app(settings)) as client:
        yield client
