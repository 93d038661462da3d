"""Token-gated unsubscribe: resolve a mailed key and apply the requested toggles."""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.exceptions import UnsubscribeKeyNotFound
from gateway.models.notification import NotificationLevel
from gateway.models.topic import Post, Topic
from gateway.models.unsubscribe_key import UnsubscribeKey
from gateway.models.user import User
from gateway.schemas.common import TopicSummary, UserSummary
from gateway.schemas.unsubscribe import (
    ResolvedKey,
    UnsubscribePreview,
    UnsubscribeResult,
    UnsubscribeToggles,
)
from gateway.services.notification_service import NotificationStateStore

logger = logging.getLogger(__name__)


class UnsubscribeKeyRegistry:
    """Lookup of mailed unsubscribe keys."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find(self, key: str) -> UnsubscribeKey | None:
        """Find a key record by its opaque value."""
        if not key:
            return None
        stmt = select(UnsubscribeKey).where(UnsubscribeKey.key == key)
        return (await self.db.execute(stmt)).scalar_one_or_none()


class UnsubscribeService:
    """Resolves unsubscribe keys and mutates the owner's notification state.

    The key is a bearer capability: whoever holds it may change the owning
    user's preferences. A logged-in session is only used for a UX hint.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.keys = UnsubscribeKeyRegistry(db)
        self.store = NotificationStateStore(db)

    async def resolve(self, key: str) -> ResolvedKey:
        """Resolve a key to its user and topic.

        The topic comes from the key's post if it has one, else from the
        key's own topic reference.

        Raises:
            UnsubscribeKeyNotFound: If the key is unknown or has no user.
        """
        record = await self.keys.find(key)
        if record is None or record.user_id is None:
            raise UnsubscribeKeyNotFound()

        user = await self.db.get(User, record.user_id)
        if user is None:
            raise UnsubscribeKeyNotFound()

        topic: Topic | None = None
        if record.post_id is not None:
            post = await self.db.get(Post, record.post_id)
            if post is not None:
                topic = await self.db.get(Topic, post.topic_id)
        if topic is None and record.topic_id is not None:
            topic = await self.db.get(Topic, record.topic_id)

        return ResolvedKey(user=user, topic=topic, key_type=record.unsubscribe_key_type)

    async def preview(
        self,
        key: str,
        *,
        session_user_id: int | None = None,
        request_url: str | None = None,
    ) -> UnsubscribePreview:
        """Build the confirmation screen state without changing anything."""
        try:
            resolved = await self.resolve(key)
        except UnsubscribeKeyNotFound:
            return UnsubscribePreview(not_found=True)

        user, topic = resolved.user, resolved.topic
        preview = UnsubscribePreview(
            user=UserSummary.model_validate(user),
            topic=TopicSummary.model_validate(topic) if topic else None,
            key_type=resolved.key_type,
        )

        if session_user_id is not None and session_user_id != user.id:
            preview.different_user = user.display_name
            preview.return_url = request_url

        if topic is not None:
            preview.watching_topic = await self.store.topic_level_is(
                user.id, topic.id, NotificationLevel.WATCHING
            )
            if topic.category_id is not None and await self.store.is_watching_category(
                user.id, topic.category_id
            ):
                preview.watched_count = await self.store.count_watched_topics(
                    user.id, topic.category_id
                )

        return preview

    async def apply(self, key: str, toggles: UnsubscribeToggles) -> UnsubscribeResult:
        """Apply the requested toggles for the key's owner.

        Each toggle commits on its own. Topic and category toggles are no-ops
        when the key resolves to no topic. ``mute_topic`` runs after
        ``unwatch_topic`` so muting wins when both are requested.

        Raises:
            UnsubscribeKeyNotFound: If the key is unknown or has no user.
        """
        resolved = await self.resolve(key)
        user, topic = resolved.user, resolved.topic
        updated = False

        if topic is not None:
            if toggles.unwatch_topic:
                await self._commit_step(
                    "unwatch_topic",
                    lambda: self.store.set_topic_level(
                        user.id, topic.id, NotificationLevel.TRACKING
                    ),
                )
                updated = True

            if toggles.unwatch_category and topic.category_id is not None:
                category_id = topic.category_id
                await self._commit_step(
                    "unwatch_category",
                    lambda: self._unwatch_category(user.id, category_id),
                )
                updated = True

            if toggles.mute_topic:
                await self._commit_step(
                    "mute_topic",
                    lambda: self.store.set_topic_level(user.id, topic.id, NotificationLevel.MUTED),
                )
                updated = True

        if toggles.disable_mailing_list:
            await self._commit_step(
                "disable_mailing_list",
                lambda: self.store.update_mailing_preferences(user.id, mailing_list_mode=False),
            )
            updated = True

        if toggles.disable_digest_emails:
            await self._commit_step(
                "disable_digest_emails",
                lambda: self.store.update_mailing_preferences(user.id, email_digests=False),
            )
            updated = True

        if toggles.unsubscribe_all:
            await self._commit_step(
                "unsubscribe_all",
                lambda: self.store.update_mailing_preferences(
                    user.id,
                    email_always=False,
                    email_digests=False,
                    email_direct=False,
                    email_private_messages=False,
                ),
            )
            updated = True

        return UnsubscribeResult(updated=updated, topic=topic, email=user.email)

    async def _unwatch_category(self, user_id: int, category_id: int) -> int:
        demoted = await self.store.demote_watched_topics(user_id, category_id)
        await self.store.delete_category_watch(user_id, category_id)
        return demoted

    async def _commit_step(self, name: str, step: Callable[[], Awaitable[object]]) -> None:
        """Run one toggle and commit it, rolling back if any part fails."""
        try:
            await step()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception("Unsubscribe step %s failed", name)
            raise
        logger.info("Applied unsubscribe step %s", name)
