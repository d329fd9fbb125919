"""
Test configuration and fixtures.

Runs against an in-memory SQLite database (aiosqlite) with Redis and the
invite mailer replaced by mocks, so no external services are needed.
"""

import os

# Must be set before any app import reads the settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SENDGRID_API_KEY", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models  # noqa: E402,F401  registers every table on Base.metadata
from app.core.database import Base, get_db  # noqa: E402
from app.core.errors import UnauthenticatedError  # noqa: E402
from app.core.security import get_current_user, get_password_hash  # noqa: E402
from app.models.note import Note  # noqa: E402
from app.models.note_access import NoteAccess  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.notifier import InviteNotifier, get_notifier  # noqa: E402
from main import app as fastapi_app  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A fresh database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def make_user(db_session):
    async def _make_user(email: str, password: str = "password123", display_name: str = None) -> User:
        user = User(email=email.lower(), hashed_password=get_password_hash(password), display_name=display_name)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_note(db_session):
    async def _make_note(owner: User, title: str = "Q1 plan", content: str = "<p>Goals</p>") -> Note:
        note = Note(title=title, content=content, owner_id=owner.id)
        db_session.add(note)
        await db_session.commit()
        await db_session.refresh(note)
        return note
    return _make_note


@pytest.fixture
def grant(db_session):
    async def _grant(note: Note, user: User, role: str) -> NoteAccess:
        access = NoteAccess(note_id=note.id, user_id=user.id, role=role)
        db_session.add(access)
        await db_session.commit()
        await db_session.refresh(access)
        return access
    return _grant


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock(spec=InviteNotifier)


@pytest_asyncio.fixture
async def client(db_session, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test session; use client.login_as(user) to pick the caller"""
    current = {"user": None}

    async def _get_test_db():
        yield db_session

    async def _get_test_user():
        if current["user"] is None:
            raise UnauthenticatedError()
        return current["user"]

    fastapi_app.dependency_overrides[get_db] = _get_test_db
    fastapi_app.dependency_overrides[get_current_user] = _get_test_user
    fastapi_app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.login_as = lambda user: current.__setitem__("user", user)
        yield ac

    fastapi_app.dependency_overrides.clear()
