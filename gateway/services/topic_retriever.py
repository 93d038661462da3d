"""Fire-and-forget retrieval of external pages that have no topic yet."""

import logging

import redis.asyncio as aioredis

from gateway.core.config import settings

logger = logging.getLogger(__name__)

RETRIEVE_KEY_PREFIX = "retrieved_topic"


class TopicRetriever:
    """Queues a background import of an embed URL.

    A URL is queued at most once per throttle window, so an embed page that
    keeps being loaded while the import runs does not flood the workers.
    """

    def __init__(self, redis: aioredis.Redis, throttle_seconds: int | None = None) -> None:
        self.redis = redis
        self.throttle_seconds = throttle_seconds or settings.embed_retrieve_throttle_seconds

    def _throttle_key(self, embed_url: str) -> str:
        return f"{RETRIEVE_KEY_PREFIX}:{embed_url}"

    async def retrieved_recently(self, embed_url: str) -> bool:
        """Claim the throttle slot for a URL; True if someone already holds it."""
        claimed = await self.redis.set(
            self._throttle_key(embed_url), "1", nx=True, ex=self.throttle_seconds
        )
        return not claimed

    async def retrieve(self, embed_url: str, *, author_username: str | None = None) -> bool:
        """Queue an import of ``embed_url``. Returns whether a task was queued.

        ``author_username`` is handed to the import so the topic is attributed
        to that forum user when it exists.
        """
        if await self.retrieved_recently(embed_url):
            logger.debug("Retrieval of %s already queued recently", embed_url)
            return False

        from gateway.workers.tasks.embed import retrieve_topic

        try:
            retrieve_topic.delay(embed_url, author_username)
        except Exception:
            # Nothing was queued, so the next request must be free to try again
            await self.redis.delete(self._throttle_key(embed_url))
            logger.warning("Failed to queue retrieval of %s", embed_url)
            raise
        logger.info("Queued retrieval of %s", embed_url)
        return True
