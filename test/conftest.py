"""
Pytest configuration and fixtures for contact import tests.
"""

import base64
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import contact_import.contacts.models  # noqa: F401
import contact_import.imports.models  # noqa: F401
from contact_import.config import Settings
from contact_import.contacts.models import Contact
from contact_import.main import app
from contact_import.shared.database import Base, enable_sqlite_savepoints, get_db_session


def b64(text: str) -> str:
    """Base64 transport encoding used by the import endpoints."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=True,
        database_url="sqlite+aiosqlite:///:memory:",
        database_auto_create=False,
        import_chunk_size=1000,
    )


@pytest_asyncio.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[Any, None]:
    """Create test database engine."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def stored_contact(db_session: AsyncSession) -> Contact:
    """A contact already present before any import runs."""
    contact = Contact(
        nombre="Ana",
        apellido="López",
        email="Ana@Example.com",
        telefono="+34111111111",
    )
    db_session.add(contact)
    await db_session.commit()
    return contact


@pytest_asyncio.fixture
async def async_client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
