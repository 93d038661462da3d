"""Referrer-gated retrieval of topic comments for embedding sites."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import settings
from gateway.core.exceptions import EmbedDenied, MissingParameter, NotFoundError
from gateway.schemas.embed import (
    AllowedHost,
    CommentsView,
    EmbedInfoResponse,
    PendingRetrieval,
    TopicHit,
    TopicResolution,
)
from gateway.services.api_key_service import ApiKeyService
from gateway.services.embeddable_host_service import EmbeddableHostRegistry
from gateway.services.topic_embed_service import TopicEmbedIndex
from gateway.services.topic_retriever import TopicRetriever
from gateway.services.topic_view_service import TopicViewOptions, TopicViewService

logger = logging.getLogger(__name__)


class EmbedService:
    """Authorizes embedding sites and serves them topic comments.

    Sequence for every browser-facing call: check parameters, authorize the
    referrer, resolve the topic (cache hit or queued retrieval), build the
    view.
    """

    def __init__(self, db: AsyncSession, retriever: TopicRetriever | None = None) -> None:
        self.db = db
        self.hosts = EmbeddableHostRegistry(db)
        self.index = TopicEmbedIndex(db)
        self.topic_views = TopicViewService(db)
        self.retriever = retriever

    async def authorize(self, referrer: str | None) -> AllowedHost:
        """Match the referrer against the registered hosts.

        Raises:
            EmbedDenied: If the referrer is absent or matches no host.
        """
        allowed = await self.hosts.authorize(referrer)
        if allowed is None:
            raise EmbedDenied()
        return allowed

    async def ensure_embeddable(self, referrer: str | None) -> AllowedHost | None:
        """Authorize unless no site has opted in, in which case anyone may embed.

        Returns None in open mode.

        Raises:
            EmbedDenied: If hosts are registered and the referrer matches none.
        """
        if not await self.hosts.exists():
            return None
        return await self.authorize(referrer)

    async def resolve_topic(
        self,
        *,
        embed_url: str | None = None,
        topic_id: int | None = None,
        author_username: str | None = None,
    ) -> TopicResolution:
        """Find the topic for an embed request.

        A topic id is looked up directly. An embed URL is looked up in the index; on a
        miss the retriever is asked (once) to import it and the caller gets a
        PendingRetrieval to retry later.

        Raises:
            MissingParameter: If neither embed_url nor topic_id is given.
            TopicNotFound: If the topic id, or the topic indexed for the embed URL,
                does not exist or was deleted.
        """
        if topic_id is not None:
            topic = await self.topic_views.get_topic(topic_id)
            return TopicHit(topic_id=topic.id)
        if not embed_url:
            raise MissingParameter()

        found = await self.index.lookup(embed_url)
        if found is not None:
            # Re-importing never revives a deleted topic
            topic = await self.topic_views.get_topic(found)
            return TopicHit(topic_id=topic.id)

        if self.retriever is None:
            raise RuntimeError("EmbedService needs a TopicRetriever to import new URLs")
        await self.retriever.retrieve(embed_url, author_username=author_username)
        return PendingRetrieval(embed_url=embed_url)

    async def render_comments(
        self,
        *,
        embed_url: str | None = None,
        topic_id: int | None = None,
        referrer: str | None = None,
        author_username: str | None = None,
    ) -> CommentsView | PendingRetrieval:
        """Produce the comments view an embedding site displays.

        Raises:
            MissingParameter: If neither embed_url nor topic_id is given.
            EmbedDenied: If the referrer is not allowed.
            TopicNotFound: If the topic does not exist.
        """
        if not embed_url and topic_id is None:
            raise MissingParameter()

        allowed = await self.ensure_embeddable(referrer)

        resolution = await self.resolve_topic(
            embed_url=embed_url, topic_id=topic_id, author_username=author_username
        )
        if isinstance(resolution, PendingRetrieval):
            return resolution

        topic, posts = await self.topic_views.build(
            resolution.topic_id,
            options=TopicViewOptions(
                limit=settings.embed_post_limit,
                exclude_first=True,
                exclude_deleted_users=True,
                exclude_hidden=True,
            ),
        )
        return CommentsView(
            topic=topic,
            posts=posts,
            css_class=allowed.css_class if allowed else "",
        )

    async def reply_counts(self, embed_urls: list[str], referrer: str | None) -> dict[str, int]:
        """Reply counts for the embed URLs a site shows on its index pages.

        Raises:
            EmbedDenied: If the referrer is not allowed.
        """
        await self.ensure_embeddable(referrer)
        return await self.index.reply_counts(embed_urls)

    async def info(
        self,
        embed_url: str | None,
        *,
        api_key: str | None,
        api_username: str | None,
    ) -> EmbedInfoResponse:
        """Report the topic registered for an embed URL to an integration.

        Raises:
            NotFoundError: If the credentials are invalid or the URL is unknown.
                Both cases raise the same error.
        """
        acting_user = await ApiKeyService(self.db).authenticate(api_key, api_username)
        if acting_user is None or not embed_url:
            raise NotFoundError()

        record = await self.index.find_record(embed_url)
        if record is None:
            raise NotFoundError()

        return EmbedInfoResponse(
            topic_id=record.topic_id,
            post_id=record.post_id,
            topic_slug=record.topic_slug,
        )
