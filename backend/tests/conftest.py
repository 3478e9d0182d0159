"""
Pytest configuration and fixtures for the WordFlow backend.

The backend directory is put on sys.path so tests import the top-level
modules (`config`, `database`, `glossary`, `api`) the way the app does.
Environment overrides point the app at an in-memory SQLite database and
disable rate limiting before `config` is imported.
"""
import os
import sys
from pathlib import Path

# tests/ -> backend/
_BACKEND_DIR = str(Path(__file__).resolve().parents[1])
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database.models import Base
from glossary import CandidateTerm, SqlTermStore, Term
from tests.mocks import InMemoryTermStore


@pytest.fixture
def make_term():
    """Factory for existing terms with sequential ids"""
    counter = {"n": 0}

    def _make(source="", target_a="", target_b="", term_id=None, **kwargs):
        counter["n"] += 1
        return Term(
            id=term_id or f"t{counter['n']}",
            source=source,
            target_a=target_a,
            target_b=target_b,
            **kwargs,
        )

    return _make


@pytest.fixture
def candidate():
    def _make(source="", target_a="", target_b="", **kwargs):
        return CandidateTerm(source=source, target_a=target_a, target_b=target_b, **kwargs)

    return _make


@pytest.fixture
def memory_store():
    return InMemoryTermStore()


@pytest_asyncio.fixture
async def sql_store():
    """SqlTermStore on a fresh in-memory database"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield SqlTermStore(session_factory=factory, serialize=True)
    await engine.dispose()


@pytest.fixture
def client():
    """Test client running the app lifespan against a fresh in-memory database"""
    from api.main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
