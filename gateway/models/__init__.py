"""SQLAlchemy models."""

from gateway.models.base import Base
from gateway.models.embed import ApiKey, EmbeddableHost, TopicEmbed
from gateway.models.notification import CategoryUser, NotificationLevel, TopicUser
from gateway.models.topic import Category, Post, Topic
from gateway.models.unsubscribe_key import UnsubscribeKey, UnsubscribeKeyType
from gateway.models.user import User, UserOption

__all__ = [
    # Base
    "Base",
    # Accounts
    "User",
    "UserOption",
    # Content
    "Category",
    "Topic",
    "Post",
    # Notifications
    "NotificationLevel",
    "TopicUser",
    "CategoryUser",
    "UnsubscribeKey",
    "UnsubscribeKeyType",
    # Embedding
    "EmbeddableHost",
    "TopicEmbed",
    "ApiKey",
]
