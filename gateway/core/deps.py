"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from gateway.core.auth import OptionalUser, get_optional_user
from gateway.core.config import settings
from gateway.core.database import get_async_session
from gateway.services.topic_retriever import TopicRetriever


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session."""
    async for session in get_async_session():
        yield session


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


async def get_topic_retriever(
    redis: aioredis.Redis = Depends(get_redis),
) -> TopicRetriever:
    """Retriever that queues imports of unknown embed URLs."""
    return TopicRetriever(redis)


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]
Retriever = Annotated[TopicRetriever, Depends(get_topic_retriever)]


__all__ = [
    "DBSession",
    "OptionalUser",
    "Retriever",
    "get_db",
    "get_optional_user",
    "get_redis",
    "get_topic_retriever",
]
