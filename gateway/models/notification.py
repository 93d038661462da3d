"""Per-topic and per-category notification preferences."""

import enum

from sqlalchemy import ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gateway.models.base import Base


class NotificationLevel(enum.IntEnum):
    """Notification levels, ordered from quietest to loudest."""

    MUTED = 0
    REGULAR = 1
    TRACKING = 2
    WATCHING = 3
    # Category-only: notify on new topics, not on every reply
    WATCHING_FIRST_POST = 4


class TopicUser(Base):
    """A user's notification level for one topic."""

    __tablename__ = "topic_users"
    __table_args__ = (UniqueConstraint("user_id", "topic_id", name="uq_topic_users_user_topic"),)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    notification_level: Mapped[int] = mapped_column(
        Integer,
        default=NotificationLevel.REGULAR,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<TopicUser user={self.user_id} topic={self.topic_id} "
            f"level={self.notification_level}>"
        )


class CategoryUser(Base):
    """A user's standing notification preference for a category.

    A row only exists while the user has a preference; deleting it is not
    the same as lowering the level.
    """

    __tablename__ = "category_users"
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_category_users_user_category"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    notification_level: Mapped[int] = mapped_column(Integer, nullable=False)

    @staticmethod
    def watching_levels() -> tuple[NotificationLevel, ...]:
        """Levels that count as watching a category."""
        return (NotificationLevel.WATCHING, NotificationLevel.WATCHING_FIRST_POST)

    def __repr__(self) -> str:
        return (
            f"<CategoryUser user={self.user_id} category={self.category_id} "
            f"level={self.notification_level}>"
        )
