"""
Test fixtures - in-memory SQLite database + authenticated HTTP clients
"""
import os
import tempfile

# Cheap hashing and a throwaway upload dir; must be set before settings load
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="hostel-uploads-"))

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from hostel_complaints.database import Base, get_db
from hostel_complaints.main import app
from hostel_complaints.api.auth import get_password_hash, create_access_token
from hostel_complaints.models.user import User, UserRole
from hostel_complaints.models.feature_toggle import FeatureToggle
from hostel_complaints.services.complaint_lifecycle import ComplaintLifecycleManager
from hostel_complaints.services.feature_toggles import (
    DUPLICATE_DETECTION, StaticFeatureToggles, get_feature_toggles,
)
from hostel_complaints.services.notification_dispatcher import NotificationDispatcher
from hostel_complaints.services.realtime import ConnectionManager


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Two students, one admin and the default toggle"""
    student = User(
        name="Asha Student",
        email="asha@hostel.edu",
        hashed_password=get_password_hash("student123"),
        role=UserRole.STUDENT,
        room_no="204",
        hostel="Block A",
    )
    other = User(
        name="Ravi Student",
        email="ravi@hostel.edu",
        hashed_password=get_password_hash("student123"),
        role=UserRole.STUDENT,
        room_no="118",
        hostel="Block B",
    )
    admin = User(
        name="Warden",
        email="warden@hostel.edu",
        hashed_password=get_password_hash("admin123"),
        role=UserRole.ADMIN,
    )
    toggle = FeatureToggle(
        key=DUPLICATE_DETECTION,
        name="Duplicate complaint detection",
        description="",
        enabled=True,
    )

    db_session.add_all([student, other, admin, toggle])
    await db_session.commit()
    for row in (student, other, admin):
        await db_session.refresh(row)

    return {"student": student, "other": other, "admin": admin}


@pytest.fixture()
def toggles():
    return StaticFeatureToggles({DUPLICATE_DETECTION: True})


@pytest.fixture()
def manager(toggles):
    return ComplaintLifecycleManager(toggles)


@pytest.fixture()
def connections():
    return ConnectionManager()


@pytest.fixture()
def dispatcher(connections):
    return NotificationDispatcher(connections)


def _client_for(db_session, toggles, user=None):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_feature_toggles] = lambda: toggles

    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url="http://test", follow_redirects=True)
    if user is not None:
        token = create_access_token(data={"sub": user.id, "role": user.role.value})
        client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture()
async def client(db_session, seed_data, toggles):
    """Authenticated as the first student"""
    async with _client_for(db_session, toggles, seed_data["student"]) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def other_client(db_session, seed_data, toggles):
    """Authenticated as the second student"""
    async with _client_for(db_session, toggles, seed_data["other"]) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def admin_client(db_session, seed_data, toggles):
    async with _client_for(db_session, toggles, seed_data["admin"]) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session, toggles):
    """Unauthenticated httpx AsyncClient"""
    async with _client_for(db_session, toggles) as ac:
        yield ac
    app.dependency_overrides.clear()
