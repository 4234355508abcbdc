"""Shared pytest fixtures for ordtree tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from ordtree.db.connection import Database
from ordtree.main import app
from ordtree.navigation.navigator import TreeNavigator
from ordtree.nodes.router import get_forest_service
from ordtree.nodes.service import ForestService
from ordtree.positions.manager import PositionManager
from ordtree.repository.memory import InMemoryNodeRepository
from ordtree.repository.sqlite import SqliteNodeRepository


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture(params=["sqlite", "memory"])
async def repository(request, db):
    """Every repository implementation, so contract tests run against both."""
    if request.param == "sqlite":
        return SqliteNodeRepository(db)
    return InMemoryNodeRepository()


@pytest.fixture
async def positions(repository):
    return PositionManager(repository)


@pytest.fixture
async def navigator(repository):
    return TreeNavigator(repository)


@pytest.fixture
async def service(repository):
    return ForestService(repository)


@pytest.fixture
async def client(db):
    """Async test client with an in-memory SQLite repository wired into the app."""
    service = ForestService(SqliteNodeRepository(db))
    app.dependency_overrides[get_forest_service] = lambda: service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
