"""UnsubscribeKey model for one-click email unsubscribes."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gateway.models.base import Base

if TYPE_CHECKING:
    from gateway.models.topic import Post, Topic
    from gateway.models.user import User


class UnsubscribeKeyType(str, enum.Enum):
    """Which kind of email the key was mailed in."""

    DIGEST = "digest"
    TOPIC = "topic"


class UnsubscribeKey(Base):
    """Opaque key mailed to a user, granting access to their own preferences.

    Keys are issued by mail dispatch and stay valid until something else
    deletes them; the gateway only reads them.
    """

    __tablename__ = "unsubscribe_keys"

    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    post_id: Mapped[int | None] = mapped_column(
        ForeignKey("posts.id", ondelete="SET NULL"),
        nullable=True,
    )
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"),
        nullable=True,
    )
    unsubscribe_key_type: Mapped[UnsubscribeKeyType] = mapped_column(
        Enum(UnsubscribeKeyType, values_callable=lambda x: [e.value for e in x]),
        default=UnsubscribeKeyType.DIGEST,
        nullable=False,
    )

    user: Mapped["User | None"] = relationship("User", lazy="raise")
    post: Mapped["Post | None"] = relationship("Post", lazy="raise")
    topic: Mapped["Topic | None"] = relationship("Topic", lazy="raise")

    def __repr__(self) -> str:
        return f"<UnsubscribeKey {self.unsubscribe_key_type.value} user={self.user_id}>"
