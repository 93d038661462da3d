"""Pytest configuration and fixtures for the gateway test suite.

Provides:
- Per-test database (SQLite file via aiosqlite unless TEST_DATABASE_URL is set)
- Fake Redis (fakeredis)
- Mock topic retriever for embed route tests
- Disabled rate limiting
- Model factory fixtures for users, topics, posts, notification
  preferences, unsubscribe keys, embeddable hosts, topic embeds and API keys
"""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gateway.core.config import settings
from gateway.core.database import get_async_session
from gateway.core.deps import get_db, get_redis, get_topic_retriever
from gateway.core.rate_limit import limiter
from gateway.core.security import generate_unsubscribe_key, hash_api_key
from gateway.main import app
from gateway.models.base import Base
from gateway.models.embed import ApiKey, EmbeddableHost, TopicEmbed
from gateway.models.notification import CategoryUser, NotificationLevel, TopicUser
from gateway.models.topic import Category, Post, Topic
from gateway.models.unsubscribe_key import UnsubscribeKey, UnsubscribeKeyType
from gateway.models.user import User, UserOption
from gateway.services.topic_retriever import TopicRetriever

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# Per-test engine & tables
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[Any, None]:
    """Create a fresh database with all tables for each test.

    NullPool gives every session its own connection, so route requests and
    the test's own session see each other's commits.
    """
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, echo=False, future=True, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: Any) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup and service tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Fake Redis & retriever
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def mock_retriever() -> MagicMock:
    """Topic retriever that records calls instead of queueing Celery tasks."""
    retriever = MagicMock(spec=TopicRetriever)
    retriever.retrieve = AsyncMock(return_value=True)
    return retriever


# ---------------------------------------------------------------------------
# Client (overrides DB, Redis and retriever)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    mock_retriever: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous async test client with all dependencies overridden."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    async def _override_retriever() -> MagicMock:
        return mock_retriever

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_topic_retriever] = _override_retriever

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def session_token() -> Callable[[int], str]:
    """Sign a forum session JWT for a user id."""

    def _sign(user_id: int) -> str:
        return jwt.encode({"sub": str(user_id)}, settings.secret_key, algorithm="HS256")

    return _sign


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


T = TypeVar("T")


async def _save(session: AsyncSession, obj: T) -> T:
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest.fixture
def user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates users with their mailing options."""

    async def _create(
        *,
        username: str = "alice",
        name: str | None = None,
        email: str | None = None,
        admin: bool = False,
        with_options: bool = True,
    ) -> User:
        user = await _save(
            db_session,
            User(
                username=username,
                username_lower=username.lower(),
                name=name,
                email=email or f"{username.lower()}@example.com",
                admin=admin,
            ),
        )
        if with_options:
            await _save(
                db_session,
                UserOption(
                    user_id=user.id,
                    mailing_list_mode=True,
                    email_digests=True,
                    email_always=True,
                    email_direct=True,
                    email_private_messages=True,
                ),
            )
        return user

    return _create


@pytest.fixture
def category_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates categories."""

    async def _create(
        *, name: str = "General", slug: str | None = None, id: int | None = None
    ) -> Category:
        return await _save(db_session, Category(id=id, name=name, slug=slug or name.lower()))

    return _create


@pytest.fixture
def topic_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates topics."""

    async def _create(
        *,
        title: str = "Why the forum uses async SQLAlchemy",
        slug: str | None = None,
        category_id: int | None = None,
        user_id: int | None = None,
        posts_count: int = 1,
        deleted: bool = False,
        id: int | None = None,
    ) -> Topic:
        return await _save(
            db_session,
            Topic(
                id=id,
                title=title,
                slug=slug or title.lower().replace(" ", "-"),
                category_id=category_id,
                user_id=user_id,
                posts_count=posts_count,
                deleted_at=datetime.now(UTC) if deleted else None,
            ),
        )

    return _create


@pytest.fixture
def post_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates posts."""

    async def _create(
        *,
        topic_id: int,
        post_number: int,
        user_id: int | None,
        raw: str = "A reply",
        hidden: bool = False,
        deleted: bool = False,
    ) -> Post:
        return await _save(
            db_session,
            Post(
                topic_id=topic_id,
                post_number=post_number,
                user_id=user_id,
                raw=raw,
                hidden=hidden,
                deleted_at=datetime.now(UTC) if deleted else None,
            ),
        )

    return _create


@pytest.fixture
def topic_user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates topic-level notification preferences."""

    async def _create(
        *,
        user_id: int,
        topic_id: int,
        level: NotificationLevel = NotificationLevel.WATCHING,
    ) -> TopicUser:
        return await _save(
            db_session,
            TopicUser(user_id=user_id, topic_id=topic_id, notification_level=level),
        )

    return _create


@pytest.fixture
def category_user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates category-level notification preferences."""

    async def _create(
        *,
        user_id: int,
        category_id: int,
        level: NotificationLevel = NotificationLevel.WATCHING,
    ) -> CategoryUser:
        return await _save(
            db_session,
            CategoryUser(user_id=user_id, category_id=category_id, notification_level=level),
        )

    return _create


@pytest.fixture
def unsubscribe_key_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates unsubscribe keys."""

    async def _create(
        *,
        user_id: int | None,
        key: str | None = None,
        post_id: int | None = None,
        topic_id: int | None = None,
        key_type: UnsubscribeKeyType = UnsubscribeKeyType.TOPIC,
    ) -> UnsubscribeKey:
        return await _save(
            db_session,
            UnsubscribeKey(
                key=key or generate_unsubscribe_key(),
                user_id=user_id,
                post_id=post_id,
                topic_id=topic_id,
                unsubscribe_key_type=key_type,
            ),
        )

    return _create


@pytest.fixture
def embeddable_host_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that registers embeddable hosts (in call order)."""

    async def _create(
        *, host: str = "eviltrout.com", class_name: str | None = None
    ) -> EmbeddableHost:
        return await _save(db_session, EmbeddableHost(host=host, class_name=class_name))

    return _create


@pytest.fixture
def topic_embed_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that indexes an embed URL against an existing topic and post."""

    async def _create(*, embed_url: str, topic_id: int, post_id: int) -> TopicEmbed:
        return await _save(
            db_session,
            TopicEmbed(embed_url=embed_url, topic_id=topic_id, post_id=post_id),
        )

    return _create


@pytest.fixture
def api_key_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that stores an API key and returns the raw key."""

    async def _create(
        *,
        key: str = "master-key",
        user_id: int | None = None,
        revoked: bool = False,
    ) -> str:
        await _save(
            db_session,
            ApiKey(
                key_hash=hash_api_key(key),
                user_id=user_id,
                revoked_at=datetime.now(UTC) if revoked else None,
            ),
        )
        return key

    return _create


# ---------------------------------------------------------------------------
# Composite fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def alice(user_factory: Callable[..., Any]) -> User:
    """Default key owner."""
    return await user_factory(username="alice", name="Alice Liddell")


@pytest_asyncio.fixture
async def bob(user_factory: Callable[..., Any]) -> User:
    """A second user sharing alice's category."""
    return await user_factory(username="bob")
