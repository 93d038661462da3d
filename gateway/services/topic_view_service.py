"""Bounded, filtered views of a topic's posts."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.exceptions import TopicNotFound
from gateway.models.topic import Post, Topic
from gateway.models.user import User
from gateway.schemas.embed import EmbedPost


@dataclass(frozen=True)
class TopicViewOptions:
    """Which posts a view leaves out, and how many it returns."""

    limit: int = 100
    exclude_first: bool = False
    exclude_deleted_users: bool = False
    exclude_hidden: bool = False


class TopicViewService:
    """Loads a topic and a page of its visible posts."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_topic(self, topic_id: int) -> Topic:
        """Load a live topic.

        Raises:
            TopicNotFound: If the topic does not exist or was deleted.
        """
        topic = await self.db.get(Topic, topic_id)
        if topic is None or topic.deleted_at is not None:
            raise TopicNotFound()
        return topic

    async def build(
        self,
        topic_id: int,
        options: TopicViewOptions | None = None,
    ) -> tuple[Topic, list[EmbedPost]]:
        """Return the topic and its posts in post-number order.

        Posts by deleted users have no author row and are dropped by the
        inner join when ``exclude_deleted_users`` is set.

        Raises:
            TopicNotFound: If the topic does not exist or was deleted.
        """
        options = options or TopicViewOptions()
        topic = await self.get_topic(topic_id)

        join = Post.user_id == User.id
        stmt = (
            select(Post, User)
            .join(User, join, isouter=not options.exclude_deleted_users)
            .where(Post.topic_id == topic.id, Post.deleted_at.is_(None))
            .order_by(Post.post_number)
            .limit(options.limit)
        )
        if options.exclude_first:
            stmt = stmt.where(Post.post_number > 1)
        if options.exclude_hidden:
            stmt = stmt.where(Post.hidden.is_(False))

        rows = (await self.db.execute(stmt)).all()
        posts = [
            EmbedPost(
                id=post.id,
                post_number=post.post_number,
                username=user.username if user else "",
                name=user.name if user else None,
                raw=post.raw,
                created_at=post.created_at,
            )
            for post, user in rows
        ]
        return topic, posts
