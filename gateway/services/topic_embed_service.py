"""Index of external pages whose comments live in forum topics."""

import logging
import re
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.security import content_sha1
from gateway.models.embed import TopicEmbed
from gateway.models.topic import Post, Topic
from gateway.models.user import User

logger = logging.getLogger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_DASH_RE = re.compile(r"[\s_-]+")


def slugify(title: str) -> str:
    """URL slug for a topic title; ``topic`` when nothing usable is left."""
    slug = _SLUG_STRIP_RE.sub("", title.lower())
    slug = _SLUG_DASH_RE.sub("-", slug).strip("-")
    return slug[:250] or "topic"


def normalize_embed_url(url: str) -> str:
    """Canonical form used as the index key."""
    return url.strip()


@dataclass
class EmbedRecord:
    """Indexed embed with the topic slug the info endpoint reports."""

    topic_id: int
    post_id: int
    topic_slug: str


class TopicEmbedIndex:
    """Maps embed URLs to the topics holding their comments."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def lookup(self, embed_url: str) -> int | None:
        """Topic id for an embed URL, or None when it has not been imported yet.

        The topic may since have been deleted; callers load it to find out.
        """
        stmt = select(TopicEmbed.topic_id).where(
            TopicEmbed.embed_url == normalize_embed_url(embed_url)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def find_record(self, embed_url: str) -> EmbedRecord | None:
        """Full index entry for an embed URL."""
        stmt = (
            select(TopicEmbed.topic_id, TopicEmbed.post_id, Topic.slug)
            .join(Topic, Topic.id == TopicEmbed.topic_id)
            .where(TopicEmbed.embed_url == normalize_embed_url(embed_url))
        )
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            return None
        return EmbedRecord(topic_id=row.topic_id, post_id=row.post_id, topic_slug=row.slug)

    async def reply_counts(self, embed_urls: list[str]) -> dict[str, int]:
        """Number of replies (posts after the first) per indexed URL."""
        urls = [normalize_embed_url(url) for url in embed_urls if url]
        if not urls:
            return {}
        stmt = (
            select(TopicEmbed.embed_url, Topic.posts_count)
            .join(Topic, Topic.id == TopicEmbed.topic_id)
            .where(TopicEmbed.embed_url.in_(urls), Topic.deleted_at.is_(None))
        )
        rows = (await self.db.execute(stmt)).all()
        return {row.embed_url: max(row.posts_count - 1, 0) for row in rows}

    async def import_remote(
        self,
        embed_url: str,
        *,
        title: str,
        contents: str,
        author: User,
        category_id: int | None = None,
    ) -> TopicEmbed:
        """Create or refresh the topic for a fetched page.

        A new URL gets a topic whose first post holds the page contents. A
        known URL only has its first post rewritten when the contents changed.
        """
        url = normalize_embed_url(embed_url)
        digest = content_sha1(contents)

        existing = (
            await self.db.execute(select(TopicEmbed).where(TopicEmbed.embed_url == url))
        ).scalar_one_or_none()

        if existing is not None:
            if existing.content_sha1 == digest:
                return existing
            post = await self.db.get(Post, existing.post_id)
            if post is not None:
                post.raw = contents
            existing.content_sha1 = digest
            await self.db.flush()
            logger.info("Refreshed embedded topic %s for %s", existing.topic_id, url)
            return existing

        topic = Topic(
            title=title[:255],
            slug=slugify(title),
            category_id=category_id,
            user_id=author.id,
            posts_count=1,
        )
        self.db.add(topic)
        await self.db.flush()

        post = Post(topic_id=topic.id, user_id=author.id, post_number=1, raw=contents)
        self.db.add(post)
        await self.db.flush()

        embed = TopicEmbed(embed_url=url, topic_id=topic.id, post_id=post.id, content_sha1=digest)
        self.db.add(embed)
        await self.db.flush()
        logger.info("Imported %s as topic %s", url, topic.id)
        return embed
