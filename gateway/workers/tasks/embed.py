"""Celery task importing external pages as embedded topics."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import settings
from gateway.core.database import async_session_maker, engine
from gateway.models.user import User
from gateway.services.embeddable_host_service import EmbeddableHostRegistry
from gateway.services.topic_embed_service import TopicEmbedIndex
from gateway.services.url_service import fetch_remote_page
from gateway.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a fresh event loop, disposing DB connections after.

    asyncpg connections are bound to the loop that created them, so pooled
    connections must not outlive the per-task loop.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.embed.retrieve_topic",
    base=BaseTask,
    bind=True,
    # Bad URLs and unregistered hosts are permanent failures
    dont_autoretry_for=(ValueError,),
)
def retrieve_topic(
    self: BaseTask,  # noqa: ARG001
    embed_url: str,
    author_username: str | None = None,
) -> dict[str, Any]:
    """Fetch an embed URL and import it as a topic."""
    return _run_async(_retrieve_topic_async(embed_url, author_username))


async def _find_user(session: AsyncSession, username: str | None) -> User | None:
    if not username:
        return None
    stmt = select(User).where(User.username_lower == username.lower())
    return (await session.execute(stmt)).scalar_one_or_none()


async def _retrieve_topic_async(embed_url: str, author_username: str | None) -> dict[str, Any]:
    """Async implementation of the import.

    Returns:
        Dict with embed_url, topic_id and status
    """
    async with async_session_maker() as session:
        if await EmbeddableHostRegistry(session).record_for_url(embed_url) is None:
            logger.warning("Refusing to retrieve %s: host is not embeddable", embed_url)
            return {"embed_url": embed_url, "topic_id": None, "status": "invalid_host"}

        author = await _find_user(session, author_username) or await _find_user(
            session, settings.embed_by_username
        )
        if author is None:
            raise ValueError(f"Embed author {settings.embed_by_username!r} does not exist")

        page = await fetch_remote_page(embed_url)
        embed = await TopicEmbedIndex(session).import_remote(
            embed_url,
            title=page.title,
            contents=page.text,
            author=author,
            category_id=settings.embed_category_id,
        )
        await session.commit()

        return {
            "embed_url": embed_url,
            "topic_id": embed.topic_id,
            "status": "completed",
        }
