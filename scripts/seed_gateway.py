"""Seed script for local gateway testing.

Creates the tables if they are missing, then demo data for both flows:
- 3 users (alice, bob, and the "system" user imported topics belong to)
- 1 category with 2 topics, watched by alice at topic and category level
- 2 unsubscribe keys (topic and digest) owned by alice
- 2 embeddable hosts (one with a class name)
- 1 already-imported blog post with a reply, and a master API key

Usage:
    uv run python -m scripts.seed_gateway
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import settings
from gateway.core.database import async_session_maker, engine
from gateway.core.security import content_sha1, hash_api_key
from gateway.models import (
    ApiKey,
    Category,
    CategoryUser,
    EmbeddableHost,
    NotificationLevel,
    Post,
    Topic,
    TopicEmbed,
    TopicUser,
    UnsubscribeKey,
    UnsubscribeKeyType,
    User,
    UserOption,
)
from gateway.models.base import Base

# Fixed ids for easy reference
ALICE_ID = 9001
BOB_ID = 9002
SYSTEM_ID = 9003
CATEGORY_ID = 9101
TOPIC_ID = 9201
SIBLING_TOPIC_ID = 9202
EMBED_TOPIC_ID = 9203

TOPIC_KEY = "seed-topic-key"
DIGEST_KEY = "seed-digest-key"
MASTER_API_KEY = "seed-master-key"
EMBED_URL = "http://eviltrout.com/2013/02/10/why-discourse-uses-emberjs.html"

SEED_USER_IDS = (ALICE_ID, BOB_ID, SYSTEM_ID)


async def seed(session: AsyncSession) -> None:
    # ── Cleanup existing seed data ──────────────────────────────────────
    # Users, categories and topics cascade to the rows that reference them
    ids = {"u1": ALICE_ID, "u2": BOB_ID, "u3": SYSTEM_ID}
    await session.execute(text("DELETE FROM api_keys WHERE description = 'seed'"))
    await session.execute(
        text("DELETE FROM embeddable_hosts WHERE host IN (:h1, :h2)"),
        {"h1": "eviltrout.com", "h2": "https://example.com/blog"},
    )
    await session.execute(
        text("DELETE FROM topics WHERE id IN (:t1, :t2, :t3)"),
        {"t1": TOPIC_ID, "t2": SIBLING_TOPIC_ID, "t3": EMBED_TOPIC_ID},
    )
    await session.execute(text("DELETE FROM categories WHERE id = :c"), {"c": CATEGORY_ID})
    await session.execute(text("DELETE FROM users WHERE id IN (:u1, :u2, :u3)"), ids)
    await session.flush()

    # ── Users ───────────────────────────────────────────────────────────
    users = [
        User(id=ALICE_ID, username="alice", username_lower="alice", name="Alice Seed",
             email="alice@test.com"),
        User(id=BOB_ID, username="bob", username_lower="bob", name="Bob Seed",
             email="bob@test.com"),
        User(id=SYSTEM_ID, username=settings.embed_by_username,
             username_lower=settings.embed_by_username.lower(), name="System",
             email="system@test.com", admin=True),
    ]
    session.add_all(users)
    await session.flush()
    session.add_all(
        UserOption(
            user_id=user_id,
            mailing_list_mode=True,
            email_digests=True,
            email_always=True,
        )
        for user_id in SEED_USER_IDS
    )

    # ── Category and topics alice watches ───────────────────────────────
    session.add(Category(id=CATEGORY_ID, name="Seed Category", slug="seed-category"))
    await session.flush()
    session.add_all(
        [
            Topic(id=TOPIC_ID, title="Seeded release notes", slug="seeded-release-notes",
                  category_id=CATEGORY_ID, user_id=BOB_ID, posts_count=1),
            Topic(id=SIBLING_TOPIC_ID, title="Seeded roadmap", slug="seeded-roadmap",
                  category_id=CATEGORY_ID, user_id=BOB_ID, posts_count=1),
        ]
    )
    await session.flush()
    session.add_all(
        [
            TopicUser(user_id=ALICE_ID, topic_id=TOPIC_ID,
                      notification_level=NotificationLevel.WATCHING),
            TopicUser(user_id=ALICE_ID, topic_id=SIBLING_TOPIC_ID,
                      notification_level=NotificationLevel.WATCHING),
            CategoryUser(user_id=ALICE_ID, category_id=CATEGORY_ID,
                         notification_level=NotificationLevel.WATCHING),
        ]
    )

    # ── Unsubscribe keys ────────────────────────────────────────────────
    session.add_all(
        [
            UnsubscribeKey(key=TOPIC_KEY, user_id=ALICE_ID, topic_id=TOPIC_ID,
                           unsubscribe_key_type=UnsubscribeKeyType.TOPIC),
            UnsubscribeKey(key=DIGEST_KEY, user_id=ALICE_ID,
                           unsubscribe_key_type=UnsubscribeKeyType.DIGEST),
        ]
    )

    # ── Embedding ───────────────────────────────────────────────────────
    session.add_all(
        [
            EmbeddableHost(host="eviltrout.com"),
            EmbeddableHost(host="https://example.com/blog", class_name="example"),
        ]
    )
    body = "Ember.js gives us a structure for large client-side applications."
    session.add(
        Topic(id=EMBED_TOPIC_ID, title="Why Discourse uses Ember.js",
              slug="why-discourse-uses-emberjs", user_id=SYSTEM_ID, posts_count=2)
    )
    await session.flush()
    first = Post(topic_id=EMBED_TOPIC_ID, user_id=SYSTEM_ID, post_number=1, raw=body)
    reply = Post(topic_id=EMBED_TOPIC_ID, user_id=BOB_ID, post_number=2,
                 raw="Great write-up, thanks!")
    session.add_all([first, reply])
    await session.flush()
    session.add(
        TopicEmbed(embed_url=EMBED_URL, topic_id=EMBED_TOPIC_ID, post_id=first.id,
                   content_sha1=content_sha1(body))
    )
    session.add(ApiKey(key_hash=hash_api_key(MASTER_API_KEY), description="seed"))

    await session.commit()


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        await seed(session)

    print("=" * 60)
    print("  Gateway seed data created successfully!")
    print("=" * 60)
    print()
    print(f"  Users:            alice={ALICE_ID} bob={BOB_ID} system={SYSTEM_ID}")
    print(f"  Watched topics:   {TOPIC_ID}, {SIBLING_TOPIC_ID} (category {CATEGORY_ID})")
    print()
    print("  Unsubscribe:")
    print(f"    {settings.base_path}/email/unsubscribe/{TOPIC_KEY}   (topic key)")
    print(f"    {settings.base_path}/email/unsubscribe/{DIGEST_KEY}  (digest key)")
    print()
    print("  Embed:")
    print(f"    embed_url:  {EMBED_URL}")
    print("    referers:   http://eviltrout.com/..., https://example.com/blog/...")
    print(f"    api_key:    {MASTER_API_KEY} (api_username={settings.embed_by_username})")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
