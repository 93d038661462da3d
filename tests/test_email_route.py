"""Tests for the /email unsubscribe endpoints."""

from collections.abc import Callable
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.notification import CategoryUser, NotificationLevel, TopicUser
from gateway.models.unsubscribe_key import UnsubscribeKeyType
from gateway.models.user import User, UserOption


@pytest.fixture
def watched_topic(
    alice: User,
    category_factory: Callable[..., Any],
    topic_factory: Callable[..., Any],
    topic_user_factory: Callable[..., Any],
    category_user_factory: Callable[..., Any],
    unsubscribe_key_factory: Callable[..., Any],
) -> Callable[..., Any]:
    """alice watches topic 42 in category 7 and holds key abc123 for it."""

    async def _build() -> None:
        await category_factory(id=7, name="Announcements")
        await topic_factory(id=42, title="Release notes", category_id=7)
        await topic_user_factory(user_id=alice.id, topic_id=42)
        await category_user_factory(user_id=alice.id, category_id=7)
        await unsubscribe_key_factory(key="abc123", user_id=alice.id, topic_id=42)

    return _build


class TestUnsubscribePreview:
    """Tests for GET /email/unsubscribe/{key}."""

    @pytest.mark.asyncio
    async def test_invalid_key(self, client: AsyncClient) -> None:
        """Unknown keys report not_found and nothing else."""
        response = await client.get("/email/unsubscribe/does-not-exist")

        assert response.status_code == 200
        assert response.json() == {"not_found": True}

    @pytest.mark.asyncio
    async def test_preview(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """The preview names the topic and the watch state."""
        await watched_topic()

        response = await client.get("/email/unsubscribe/abc123")

        assert response.status_code == 200
        data = response.json()
        assert data["not_found"] is False
        assert data["user"]["username"] == "alice"
        assert data["topic"]["id"] == 42
        assert data["topic"]["category_id"] == 7
        assert data["watching_topic"] is True
        assert data["watched_count"] == 1
        assert "different_user" not in data

    @pytest.mark.asyncio
    async def test_different_session_user(
        self,
        client: AsyncClient,
        bob: User,
        session_token: Callable[[int], str],
        watched_topic: Callable[..., Any],
    ) -> None:
        """A session for another account gets the owner's name."""
        await watched_topic()

        response = await client.get(
            "/email/unsubscribe/abc123",
            headers={"Authorization": f"Bearer {session_token(bob.id)}"},
        )

        data = response.json()
        assert data["different_user"] == "Alice Liddell"
        assert data["return_url"].endswith("/email/unsubscribe/abc123")

    @pytest.mark.asyncio
    async def test_garbage_session_is_anonymous(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """An unusable session token is ignored rather than rejected."""
        await watched_topic()

        response = await client.get(
            "/email/unsubscribe/abc123",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 200
        assert "different_user" not in response.json()


class TestPerformUnsubscribe:
    """Tests for POST /email/unsubscribe/{key}."""

    @pytest.mark.asyncio
    async def test_unwatch_category_redirects_to_confirmation(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        alice: User,
        watched_topic: Callable[..., Any],
    ) -> None:
        """unwatch_category demotes the topic, drops the watch and redirects."""
        await watched_topic()

        response = await client.post(
            "/email/unsubscribe/abc123", data={"unwatch_category": "true"}
        )

        assert response.status_code == 302
        assert (
            response.headers["location"]
            == "/email/unsubscribed?topic_id=42&email=alice@example.com"
        )
        level = await db_session.scalar(
            select(TopicUser.notification_level).where(
                TopicUser.user_id == alice.id, TopicUser.topic_id == 42
            )
        )
        assert level == NotificationLevel.TRACKING
        watches = await db_session.scalar(
            select(CategoryUser.id).where(
                CategoryUser.user_id == alice.id, CategoryUser.category_id == 7
            )
        )
        assert watches is None

    @pytest.mark.asyncio
    async def test_mute_topic(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        alice: User,
        watched_topic: Callable[..., Any],
    ) -> None:
        """mute_topic mutes the key's topic."""
        await watched_topic()

        response = await client.post("/email/unsubscribe/abc123", data={"mute_topic": "true"})

        assert response.status_code == 302
        level = await db_session.scalar(
            select(TopicUser.notification_level).where(
                TopicUser.user_id == alice.id, TopicUser.topic_id == 42
            )
        )
        assert level == NotificationLevel.MUTED

    @pytest.mark.asyncio
    async def test_invalid_key(self, client: AsyncClient) -> None:
        """Unknown keys get the invalid-link page."""
        response = await client.post("/email/unsubscribe/nope", data={"mute_topic": "true"})

        assert response.status_code == 404
        assert "Invalid Link" in response.text

    @pytest.mark.asyncio
    async def test_no_toggles_redirects_back(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """Submitting nothing returns to the unsubscribe page."""
        await watched_topic()

        response = await client.post("/email/unsubscribe/abc123", data={})

        assert response.status_code == 302
        assert response.headers["location"] == "/email/unsubscribe/abc123"

    @pytest.mark.asyncio
    async def test_no_toggles_honours_same_site_referer(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """A same-site Referer is used for the redirect back."""
        await watched_topic()

        response = await client.post(
            "/email/unsubscribe/abc123",
            data={},
            headers={"Referer": "http://test/email/unsubscribe/abc123?from=mail"},
        )

        assert response.headers["location"] == "http://test/email/unsubscribe/abc123?from=mail"

    @pytest.mark.asyncio
    async def test_no_toggles_ignores_foreign_referer(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """A Referer from another site is not an open redirect."""
        await watched_topic()

        response = await client.post(
            "/email/unsubscribe/abc123",
            data={},
            headers={"Referer": "https://evil.example/phish"},
        )

        assert response.headers["location"] == "/email/unsubscribe/abc123"

    @pytest.mark.asyncio
    async def test_digest_key_without_topic(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        alice: User,
        unsubscribe_key_factory: Callable[..., Any],
    ) -> None:
        """Digest keys redirect without a topic id."""
        await unsubscribe_key_factory(
            key="digest1", user_id=alice.id, key_type=UnsubscribeKeyType.DIGEST
        )

        response = await client.post(
            "/email/unsubscribe/digest1", data={"disable_digest_emails": "true"}
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/email/unsubscribed?email=alice@example.com"
        digests = await db_session.scalar(
            select(UserOption.email_digests).where(UserOption.user_id == alice.id)
        )
        assert digests is False


class TestUnsubscribed:
    """Tests for GET /email/unsubscribed."""

    @pytest.mark.asyncio
    async def test_with_topic(
        self, client: AsyncClient, watched_topic: Callable[..., Any]
    ) -> None:
        """The confirmation page data includes the topic."""
        await watched_topic()

        response = await client.get(
            "/email/unsubscribed", params={"topic_id": 42, "email": "alice@example.com"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "alice@example.com"
        assert data["topic"]["title"] == "Release notes"

    @pytest.mark.asyncio
    async def test_unknown_topic(self, client: AsyncClient) -> None:
        """A stale topic id leaves the topic out."""
        response = await client.get("/email/unsubscribed", params={"topic_id": 999})

        assert response.status_code == 200
        assert response.json()["topic"] is None
