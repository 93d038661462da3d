"""Category, Topic and Post models."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gateway.models.base import Base

if TYPE_CHECKING:
    from gateway.models.user import User


class Category(Base):
    """Forum category."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)

    topics: Mapped[list["Topic"]] = relationship(
        "Topic",
        back_populates="category",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Category {self.slug}>"


class Topic(Base):
    """Forum topic."""

    __tablename__ = "topics"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    posts_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    category: Mapped["Category | None"] = relationship(
        "Category", back_populates="topics", lazy="raise"
    )
    user: Mapped["User | None"] = relationship("User", back_populates="topics", lazy="raise")
    posts: Mapped[list["Post"]] = relationship(
        "Post",
        back_populates="topic",
        order_by="Post.post_number",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Topic {self.id} {self.slug}>"


class Post(Base):
    """A post in a topic. Post number 1 is the topic's original body."""

    __tablename__ = "posts"
    __table_args__ = (
        UniqueConstraint("topic_id", "post_number", name="uq_posts_topic_post_number"),
    )

    topic_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL once the author's account is deleted
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    post_number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    topic: Mapped["Topic"] = relationship("Topic", back_populates="posts", lazy="raise")
    user: Mapped["User | None"] = relationship("User", lazy="raise")

    def __repr__(self) -> str:
        return f"<Post {self.topic_id}#{self.post_number}>"
