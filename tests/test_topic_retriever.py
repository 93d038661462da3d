"""Tests for the throttled topic retriever."""

from unittest.mock import patch

import fakeredis.aioredis
import pytest

from gateway.services.topic_retriever import TopicRetriever

EMBED_URL = "http://eviltrout.com/2013/02/10/why-discourse-uses-emberjs.html"


class TestTopicRetriever:
    """Tests for TopicRetriever.retrieve()."""

    @pytest.mark.asyncio
    async def test_queues_task(self, fake_redis: fakeredis.aioredis.FakeRedis) -> None:
        """The first request for a URL queues an import with the author."""
        retriever = TopicRetriever(fake_redis, throttle_seconds=60)

        with patch("gateway.workers.tasks.embed.retrieve_topic") as mock_task:
            queued = await retriever.retrieve(EMBED_URL, author_username="eviltrout")

        assert queued is True
        mock_task.delay.assert_called_once_with(EMBED_URL, "eviltrout")

    @pytest.mark.asyncio
    async def test_throttles_repeat_requests(
        self, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        """A URL is queued at most once per throttle window."""
        retriever = TopicRetriever(fake_redis, throttle_seconds=60)

        with patch("gateway.workers.tasks.embed.retrieve_topic") as mock_task:
            first = await retriever.retrieve(EMBED_URL)
            second = await retriever.retrieve(EMBED_URL)

        assert (first, second) == (True, False)
        mock_task.delay.assert_called_once()

    @pytest.mark.asyncio
    async def test_urls_throttled_independently(
        self, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        """Different URLs do not share a throttle slot."""
        retriever = TopicRetriever(fake_redis, throttle_seconds=60)

        with patch("gateway.workers.tasks.embed.retrieve_topic") as mock_task:
            await retriever.retrieve(EMBED_URL)
            await retriever.retrieve("http://eviltrout.com/another-post.html")

        assert mock_task.delay.call_count == 2

    @pytest.mark.asyncio
    async def test_throttle_key_expires(self, fake_redis: fakeredis.aioredis.FakeRedis) -> None:
        """The throttle slot carries the configured TTL."""
        retriever = TopicRetriever(fake_redis, throttle_seconds=60)

        with patch("gateway.workers.tasks.embed.retrieve_topic"):
            await retriever.retrieve(EMBED_URL)

        ttl = await fake_redis.ttl(f"retrieved_topic:{EMBED_URL}")
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_failed_enqueue_releases_throttle(
        self, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        """When the broker is down the slot is freed so the next request queues."""
        retriever = TopicRetriever(fake_redis, throttle_seconds=60)

        with patch("gateway.workers.tasks.embed.retrieve_topic") as mock_task:
            mock_task.delay.side_effect = ConnectionError("broker unavailable")
            with pytest.raises(ConnectionError):
                await retriever.retrieve(EMBED_URL)

        assert await fake_redis.exists(f"retrieved_topic:{EMBED_URL}") == 0

        with patch("gateway.workers.tasks.embed.retrieve_topic") as mock_task:
            queued = await retriever.retrieve(EMBED_URL)

        assert queued is True
        mock_task.delay.assert_called_once_with(EMBED_URL, None)
