import os

# Point the app at SQLite and the in-memory object store before src.* is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator
from uuid import uuid4

from src.main import app
from src.database import get_db, Base, build_engine, build_sessionmaker
from src.files.storage import InMemoryObjectStore, get_object_store


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    test_engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = build_sessionmaker(test_engine)

    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def project_id():
    return uuid4()


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession, object_store: InMemoryObjectStore
) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the dependencies to use our test session and store
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
