"""User and UserOption models."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gateway.models.base import Base

if TYPE_CHECKING:
    from gateway.models.topic import Topic


class User(Base):
    """Forum account.

    Only the columns the gateway reads are mapped; the forum owns the rest.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(60), nullable=False)
    # Lowercased copy for case-insensitive lookups by api_username / author
    username_lower: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user_option: Mapped["UserOption | None"] = relationship(
        "UserOption",
        back_populates="user",
        uselist=False,
        lazy="raise",
    )
    topics: Mapped[list["Topic"]] = relationship(
        "Topic",
        back_populates="user",
        lazy="raise",
    )

    @property
    def display_name(self) -> str:
        """Name shown to people, falling back to the username."""
        return self.name or self.username

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class UserOption(Base):
    """Per-user mailing preferences."""

    __tablename__ = "user_options"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    mailing_list_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_digests: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_always: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_direct: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_private_messages: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="user_option", lazy="raise")

    def __repr__(self) -> str:
        return f"<UserOption user={self.user_id}>"
