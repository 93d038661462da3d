"""Schemas for embedding forum comments on external sites."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from gateway.schemas.common import BaseSchema

if TYPE_CHECKING:
    from gateway.models.topic import Topic


class EmbedInfoResponse(BaseSchema):
    """Topic registered for an embed URL."""

    topic_id: int
    post_id: int
    topic_slug: str


class EmbedCountResponse(BaseSchema):
    """Reply counts keyed by embed URL."""

    counts: dict[str, int]


class EmbedPost(BaseSchema):
    """A reply rendered as a comment."""

    id: int
    post_number: int
    username: str
    name: str | None = None
    raw: str
    created_at: datetime


@dataclass
class AllowedHost:
    """Embeddable host that authorized a referrer."""

    host: str
    class_name: str | None = None

    @property
    def css_class(self) -> str:
        """Ready-to-embed class attribute, or empty when no class is set."""
        if not self.class_name:
            return ""
        return f' class="{self.class_name}"'


@dataclass
class TopicHit:
    """The topic to show is known."""

    topic_id: int


@dataclass
class PendingRetrieval:
    """Nothing cached yet; a retrieval has been requested. Retry shortly."""

    embed_url: str


TopicResolution = TopicHit | PendingRetrieval


@dataclass
class CommentsView:
    """Bounded view of a topic's replies for an embedding site."""

    topic: "Topic"
    posts: list[EmbedPost] = field(default_factory=list)
    css_class: str = ""
