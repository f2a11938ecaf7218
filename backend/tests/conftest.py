"""Test fixtures for BehaviorLab."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from behaviorlab.api.deps import get_experiment_store, get_llm_client
from behaviorlab.db.experiment_store import SqlExperimentStore
from behaviorlab.db.redis_client import get_redis
from behaviorlab.db.session import get_db
from behaviorlab.engine.types import ConversationTurn, LLMResponse, Persona
from behaviorlab.main import app
from behaviorlab.models.base import Base

# In-memory SQLite shared across connections
TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_response(content: str) -> LLMResponse:
    return LLMResponse(content=content, input_tokens=5, output_tokens=10, model="test")


def make_persona(index: int = 0, **overrides: Any) -> Persona:
    fields = {
        "id": f"persona-test-{index}",
        "name": f"Persona {index}",
        "role": "Clinic owner",
        "goal": "Book a demo",
        "context": "Runs a small dental practice",
        "tone": "friendly",
    }
    fields.update(overrides)
    return Persona(**fields)


def make_conversation() -> list[ConversationTurn]:
    return [
        ConversationTurn(role="user", content="Hi, I run a dental clinic."),
        ConversationTurn(role="assistant", content="Great! How can I help?"),
    ]


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mock_llm() -> AsyncMock:
    client = AsyncMock()
    client.chat = AsyncMock(return_value=make_response("{}"))
    return client


@pytest.fixture
def fake_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.set = AsyncMock(return_value=True)
    redis.exists = AsyncMock(return_value=0)
    return redis


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mock_llm: AsyncMock,
    fake_redis: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_redis() -> AsyncMock:
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_llm_client] = lambda: mock_llm
    app.dependency_overrides[get_experiment_store] = lambda: SqlExperimentStore(session_factory)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
