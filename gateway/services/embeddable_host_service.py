"""Registry of sites allowed to embed forum comments."""

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.embed import EmbeddableHost
from gateway.schemas.embed import AllowedHost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostPattern:
    """Normalized form of an admin-entered host."""

    host: str
    path: str = ""

    @classmethod
    def parse(cls, raw: str) -> "HostPattern":
        """Normalize ``example.com``, ``http://example.com`` or ``https://example.com/blog``."""
        value = raw.strip()
        if "://" not in value:
            value = f"http://{value}"
        parsed = urlparse(value)
        return cls(host=(parsed.hostname or "").lower(), path=parsed.path.rstrip("/"))

    def matches(self, host: str, path: str) -> bool:
        """Host must be equal; a pattern path must be a whole-segment prefix."""
        if not self.host or host != self.host:
            return False
        if not self.path:
            return True
        return path == self.path or path.startswith(f"{self.path}/")


def split_url(url: str | None) -> tuple[str, str] | None:
    """Return the lowercased host and path of an absolute URL, or None."""
    if not url:
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    return parsed.hostname.lower(), parsed.path


class EmbeddableHostRegistry:
    """Ordered list of embeddable hosts; the first registered match wins."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def all(self) -> list[EmbeddableHost]:
        """All hosts in registration order."""
        stmt = select(EmbeddableHost).order_by(EmbeddableHost.id)
        return list((await self.db.execute(stmt)).scalars().all())

    async def exists(self) -> bool:
        """Whether any site has opted in to embedding."""
        count = await self.db.scalar(select(func.count(EmbeddableHost.id)))
        return bool(count)

    async def record_for_url(self, url: str | None) -> EmbeddableHost | None:
        """Find the first host whose pattern matches the URL."""
        parts = split_url(url)
        if parts is None:
            return None
        host, path = parts

        for record in await self.all():
            if HostPattern.parse(record.host).matches(host, path):
                return record
        return None

    async def authorize(self, referrer: str | None) -> AllowedHost | None:
        """Authorize a referrer, returning the matching host or None when denied."""
        record = await self.record_for_url(referrer)
        if record is None:
            logger.info("Embed referrer not allowed: %s", referrer)
            return None
        return AllowedHost(host=record.host, class_name=record.class_name)
