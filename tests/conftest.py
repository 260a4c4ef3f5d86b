"""
Bookmarker — Test Configuration (conftest.py)
===============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    ├── mock_db_session: Mock AsyncSession (no real DB needed)
    ├── db_engine:       Fresh in-memory SQLite engine with all tables
    ├── db_session:      Real AsyncSession on db_engine
    ├── store:           AnnotationStore bound to db_session
    ├── mock_store:      AsyncMock standing in for AnnotationStore in route tests
    ├── sample_calibre_record: A Calibre export record as it appears on disk
    ├── test_client:     HTTPX AsyncClient wired to the app with mock_store injected
    └── db_client:       HTTPX AsyncClient wired to the app and a real database
"""

import os

# Override settings for testing BEFORE any bookmarker imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bookmarker.database import Base
from bookmarker.models.annotation import KindleAnnotation  # noqa: F401
from bookmarker.models.book import Book  # noqa: F401
from bookmarker.services.annotation_store import AnnotationStore


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        async def test_lookup(mock_db_session):
            mock_db_session.execute.return_value.scalars.return_value.first.return_value = 7
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine():
    """
    A throwaway in-memory SQLite engine with all tables created.

    StaticPool keeps one connection, so every session opened on this
    engine sees the same database.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """
    An AsyncSession on the db_engine database.

    Each test gets its own engine, so rows never leak between tests.
    """
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return AnnotationStore(db_session)


@pytest.fixture
def mock_store():
    """AnnotationStore double; every store method is an AsyncMock."""
    return AsyncMock(spec=AnnotationStore)


@pytest.fixture
def sample_calibre_record():
    return {
        "kind": "highlight",
        "end": 1080,
        "bookline": "The Worldly Philosophers (Heilbroner, Robert L.)",
        "language": "en",
        "author": "Heilbroner, Robert L.",
        "text": "In a sense the vision of Adam Smith is a testimony to the ",
        "statusline": (
            "Your Highlight on Location 1077-1080 | "
            "Added on Saturday, February 15, 2020 1:19:41 AM"
        ),
        "title": "The Worldly Philosophers",
        "begin": 1077,
        "time": "2020-02-15 01:19:41",
        "ordernr": 8363,
        "page": None,
    }


@pytest_asyncio.fixture
async def test_client(mock_store):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The annotation store dependency is overridden with mock_store, so route
    tests never open a database session.

    Usage:
        async def test_get(test_client, mock_store):
            mock_store.get_annotation_by_id.return_value = None
            response = await test_client.get("/api/annotations/1")
    """
    from bookmarker.main import app
    from bookmarker.routes.annotations import get_annotation_store

    app.dependency_overrides[get_annotation_store] = lambda: mock_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def db_client(db_engine, monkeypatch):
    """
    HTTPX AsyncClient wired to the app with the real session dependency.

    get_db_session keeps its own commit/rollback handling; only the session
    factory behind it is pointed at the in-memory db_engine. Each request
    therefore runs in its own transaction.

    Usage:
        async def test_missing(db_client):
            response = await db_client.get("/api/annotations/999999")
    """
    from bookmarker import database
    from bookmarker.main import app

    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database, "async_session_factory", session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
