import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import audit_trail.models  # noqa: F401 - registers the audits table
from audit_trail.audit.config import AuditConfigurationRegistry
from audit_trail.audit.service import AuditTrailRecorder
from audit_trail.audit.store import InMemoryAuditStore
from audit_trail.db.database import Base


@pytest_asyncio.fixture
async def db_session():
    """Database session backed by in-memory SQLite."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def registry():
    """Fresh configuration registry with the default exclusion set."""
    return AuditConfigurationRegistry()


@pytest.fixture
def store():
    return InMemoryAuditStore()


@pytest.fixture
def recorder(store, registry):
    """Recorder writing to the in-memory store."""
    return AuditTrailRecorder(store=store, registry=registry)


@pytest.fixture
def general_model_attributes():
    """Attribute map of a freshly created GeneralModel record."""
    return {
        "id": 1,
        "user_id": 7,
        "name": "MyString",
        "settings": {"theme": "dark", "tags": ["a", "b"]},
        "position": 1,
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture
def general_model_schema(general_model_attributes):
    return list(general_model_attributes)
