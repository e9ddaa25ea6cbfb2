"""Shared fixtures: a fresh in-memory database per test, users and an API client."""

import os
import tempfile

# settings are read at import time, so point them at test locations first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="level-uploads-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.mutations import MutationContext
from app.security import create_access_token
from app.services import spaces as spaces_service
from models import user as _user, space as _space, group as _group, post as _post, file as _file, logs as _logs  # noqa: F401
from models.user import User


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(email: str | None = None, first_name: str = "Test", last_name: str = "User") -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name,
            handle=f"user{counter['n']}",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest.fixture
async def owner(make_user):
    return await make_user("owner@example.com", "Olive", "Owner")


@pytest.fixture
async def space_and_owner(db, owner):
    """A space created by ``owner``; returns (space, owner space user)."""
    return await spaces_service.create_space(db, owner, {"name": "Acme", "slug": "acme"})


@pytest.fixture
def context(owner):
    return MutationContext(current_user=owner)


@pytest.fixture
def published(monkeypatch):
    """Capture subscription events instead of sending them to websockets."""
    events = []

    async def _broadcast(space_id, message):
        events.append(message)

    monkeypatch.setattr("app.mutations.event_manager.broadcast", _broadcast)
    return events


@pytest.fixture
async def client(session_factory, published):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
