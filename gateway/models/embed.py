"""Models backing comment embedding on external sites."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gateway.models.base import Base

if TYPE_CHECKING:
    from gateway.models.topic import Post, Topic
    from gateway.models.user import User


class EmbeddableHost(Base):
    """A site allowed to embed forum comments.

    ``host`` is what the admin typed: a bare host, optionally with a scheme
    and a path prefix (``https://example.com/blog``). Rows are matched in id
    order and the first match wins.
    """

    __tablename__ = "embeddable_hosts"

    host: Mapped[str] = mapped_column(String(255), nullable=False)
    class_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<EmbeddableHost {self.host}>"


class TopicEmbed(Base):
    """Link between an external page and the topic holding its comments."""

    __tablename__ = "topic_embeds"

    embed_url: Mapped[str] = mapped_column(String(1000), nullable=False, unique=True)
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    content_sha1: Mapped[str | None] = mapped_column(String(40), nullable=True)

    topic: Mapped["Topic"] = relationship("Topic", lazy="raise")
    post: Mapped["Post"] = relationship("Post", lazy="raise")

    def __repr__(self) -> str:
        return f"<TopicEmbed {self.embed_url}>"


class ApiKey(Base):
    """Elevated credential for integrations.

    A key without a user may act as any user; a key bound to a user may only
    act as that user.
    """

    __tablename__ = "api_keys"

    key_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User | None"] = relationship("User", lazy="raise")

    def __repr__(self) -> str:
        return f"<ApiKey {self.id} user={self.user_id}>"
