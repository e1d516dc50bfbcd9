"""Pytest configuration and fixtures."""
import logging
import os

# Settings are read at import time; give tests a signing secret first.
os.environ.setdefault("PLP_ACCESS_TOKEN_SECRET", "test-secret-0123456789abcdef0123456789abcdef")

import pytest
import pytest_asyncio


def pytest_configure(config):
    """Ensure asyncio_mode is auto so async fixtures work when pyproject is not in cwd."""
    if hasattr(config.option, "asyncio_mode") and config.option.asyncio_mode is None:
        config.option.asyncio_mode = "auto"
    logging.getLogger("httpcore").setLevel(logging.CRITICAL)


from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from plp.main import app
from plp.api.routes.auth import limiter as login_limiter
from plp.auth import generate_access_code
from plp.catalog import get_collection
from plp.config import settings
from plp.db import database
from plp.db.database import Base, DatabaseHandle, create_tables, get_db
from plp.storage import (
    MemoryStorage,
    ResilientContentStore,
    get_content_broadcaster,
    get_content_store,
    reset_content_broadcaster,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Fresh broadcaster and rate-limit counters for every test."""
    login_limiter.reset()
    yield
    reset_content_broadcaster()


@pytest_asyncio.fixture
async def db_session():
    """Create an in-memory test database session."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)

    async_session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    old_handle = database._handle
    database._handle = DatabaseHandle(engine=engine, sessions=async_session_factory)
    try:
        async with async_session_factory() as session:
            async def override_get_db():
                yield session
            app.dependency_overrides[get_db] = override_get_db
            yield session
            app.dependency_overrides.clear()
    finally:
        database._handle = old_handle
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def content_store(memory_storage: MemoryStorage) -> ResilientContentStore:
    """In-memory resilient store wired to the process broadcaster."""
    return ResilientContentStore(memory_storage, broadcaster=get_content_broadcaster())


@pytest_asyncio.fixture
async def client(db_session, content_store):
    """Async test client against the app with test DB and in-memory content store."""
    app.dependency_overrides[get_content_store] = lambda: content_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# -----------------------------------------------------------------------------
# Auth fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def admin_token() -> str:
    """Admin JWT valid for one hour."""
    return generate_access_code(subject=settings.admin_email, duration_hours=1, is_admin=True)


@pytest.fixture
def admin_headers(admin_token):
    """Headers with Bearer token and JSON content type."""
    return {
        "Authorization": f"Bearer {admin_token}",
        "Content-Type": "application/json",
    }


@pytest.fixture
def faculty_spec():
    return get_collection("faculty")
