"""Notification preference storage: topic levels, category watches, mailing flags."""

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.notification import CategoryUser, NotificationLevel, TopicUser
from gateway.models.topic import Topic
from gateway.models.user import UserOption

logger = logging.getLogger(__name__)

MAILING_FLAGS = frozenset(
    {
        "mailing_list_mode",
        "email_digests",
        "email_always",
        "email_direct",
        "email_private_messages",
    }
)


class NotificationStateStore:
    """Reads and bulk-mutates a user's notification preferences.

    Methods only stage statements on the session; committing is the caller's
    job so several steps can share one transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def topic_level_is(self, user_id: int, topic_id: int, level: NotificationLevel) -> bool:
        """Whether the user's level for a topic is exactly ``level``."""
        stmt = select(
            select(TopicUser.id)
            .where(
                TopicUser.user_id == user_id,
                TopicUser.topic_id == topic_id,
                TopicUser.notification_level == level,
            )
            .exists()
        )
        return bool(await self.db.scalar(stmt))

    async def is_watching_category(self, user_id: int, category_id: int) -> bool:
        """Whether the user has a watching-level preference for the category."""
        stmt = select(
            select(CategoryUser.id)
            .where(
                CategoryUser.user_id == user_id,
                CategoryUser.category_id == category_id,
                CategoryUser.notification_level.in_(CategoryUser.watching_levels()),
            )
            .exists()
        )
        return bool(await self.db.scalar(stmt))

    async def count_watched_topics(self, user_id: int, category_id: int) -> int:
        """Count topics in a category the user watches at topic level."""
        stmt = (
            select(func.count(TopicUser.id))
            .join(Topic, Topic.id == TopicUser.topic_id)
            .where(
                TopicUser.user_id == user_id,
                TopicUser.notification_level == NotificationLevel.WATCHING,
                Topic.category_id == category_id,
            )
        )
        return int(await self.db.scalar(stmt) or 0)

    async def set_topic_level(
        self, user_id: int, topic_id: int, level: NotificationLevel
    ) -> int:
        """Overwrite the user's level for one topic. Returns rows changed."""
        stmt = (
            update(TopicUser)
            .where(TopicUser.user_id == user_id, TopicUser.topic_id == topic_id)
            .values(notification_level=level)
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def demote_watched_topics(self, user_id: int, category_id: int) -> int:
        """Move every watched topic in a category down to tracking. Returns rows changed."""
        category_topics = select(Topic.id).where(Topic.category_id == category_id)
        stmt = (
            update(TopicUser)
            .where(
                TopicUser.user_id == user_id,
                TopicUser.notification_level == NotificationLevel.WATCHING,
                TopicUser.topic_id.in_(category_topics),
            )
            .values(notification_level=NotificationLevel.TRACKING)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def delete_category_watch(self, user_id: int, category_id: int) -> int:
        """Drop the user's watching-level preference for a category. Returns rows deleted."""
        stmt = delete(CategoryUser).where(
            CategoryUser.user_id == user_id,
            CategoryUser.category_id == category_id,
            CategoryUser.notification_level.in_(CategoryUser.watching_levels()),
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def update_mailing_preferences(self, user_id: int, **flags: Any) -> UserOption:
        """Set mailing flags on the user's options, creating the row if missing.

        Raises:
            ValueError: If an unknown flag is passed.
        """
        unknown = set(flags) - MAILING_FLAGS
        if unknown:
            raise ValueError(f"Unknown mailing preference(s): {', '.join(sorted(unknown))}")

        option = (
            await self.db.execute(select(UserOption).where(UserOption.user_id == user_id))
        ).scalar_one_or_none()
        if option is None:
            option = UserOption(user_id=user_id)
            self.db.add(option)

        for name, value in flags.items():
            setattr(option, name, value)

        await self.db.flush()
        return option
