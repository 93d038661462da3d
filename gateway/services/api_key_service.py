"""Elevated credentials for integration endpoints."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.security import hash_api_key
from gateway.models.embed import ApiKey
from gateway.models.user import User

logger = logging.getLogger(__name__)


class ApiKeyService:
    """Validates an API key together with the username it acts as."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def authenticate(self, key: str | None, username: str | None) -> User | None:
        """Return the acting user when the credential pair is valid, else None.

        Callers must not tell "bad credentials" apart from other failures in
        what they send back.
        """
        if not key or not username:
            return None

        api_key = (
            await self.db.execute(
                select(ApiKey).where(
                    ApiKey.key_hash == hash_api_key(key),
                    ApiKey.revoked_at.is_(None),
                )
            )
        ).scalar_one_or_none()
        if api_key is None:
            logger.info("Rejected unknown or revoked API key")
            return None

        user = (
            await self.db.execute(
                select(User).where(User.username_lower == username.lower(), User.active.is_(True))
            )
        ).scalar_one_or_none()
        if user is None:
            return None

        if api_key.user_id is not None and api_key.user_id != user.id:
            logger.info("API key %s may not act as %s", api_key.id, username)
            return None

        return user
