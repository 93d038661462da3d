"""Schemas for the token-gated unsubscribe flow."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import Field

from gateway.models.unsubscribe_key import UnsubscribeKeyType
from gateway.schemas.common import BaseSchema, TopicSummary, UserSummary

if TYPE_CHECKING:
    from gateway.models.topic import Topic
    from gateway.models.user import User


class UnsubscribeToggles(BaseSchema):
    """The effects a user can ask for from an unsubscribe link."""

    unwatch_topic: bool = False
    unwatch_category: bool = False
    mute_topic: bool = False
    disable_mailing_list: bool = False
    disable_digest_emails: bool = False
    unsubscribe_all: bool = False


class UnsubscribePreview(BaseSchema):
    """Everything needed to render the unsubscribe confirmation screen.

    ``watching_topic`` is only set when the key has a topic. ``watched_count``
    is omitted (not zero) when the user is not watching the topic's category.
    """

    not_found: bool = False
    user: UserSummary | None = None
    topic: TopicSummary | None = None
    key_type: UnsubscribeKeyType | None = None
    different_user: str | None = None
    return_url: str | None = None
    watching_topic: bool | None = None
    watched_count: int | None = Field(default=None)


class UnsubscribedResponse(BaseSchema):
    """Data for the post-unsubscribe confirmation page."""

    email: str | None = None
    topic: TopicSummary | None = None


@dataclass
class ResolvedKey:
    """User (and optional topic) an unsubscribe key grants access to."""

    user: "User"
    topic: "Topic | None"
    key_type: UnsubscribeKeyType


@dataclass
class UnsubscribeResult:
    """Outcome of applying toggles."""

    updated: bool
    topic: "Topic | None"
    email: str
