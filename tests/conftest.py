"""
Pytest configuration and shared fixtures for all tests
"""

import os

# Must be set before befriend.core.database builds its engine
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from befriend.core.database import create_tables, drop_tables, make_engine, make_session_factory
from befriend.repositories.user import UserRepository
from befriend.services.friendship import FriendshipService


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = make_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    await drop_tables(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = make_session_factory(engine)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db):
    """Ids of four users; only the third one is registered"""
    repo = UserRepository(db)
    ids = []
    for username, registered in [("alice", False), ("bob", False), ("carol", True), ("dave", False)]:
        user = await repo.create(username, is_registered=registered)
        ids.append(user.id)
    return ids


@pytest.fixture
def service(db):
    return FriendshipService(db)
