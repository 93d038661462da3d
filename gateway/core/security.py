"""Opaque keys and digests."""

import hashlib
import secrets


def generate_unsubscribe_key() -> str:
    """Generate an opaque unsubscribe key (hex, like the ones mailed out)."""
    return secrets.token_hex(32)


def hash_api_key(key: str) -> str:
    """Digest stored for an API key; the raw key is never persisted."""
    return hashlib.sha256(key.encode()).hexdigest()


def content_sha1(content: str) -> str:
    """Fingerprint of imported remote content, used to skip unchanged re-imports."""
    return hashlib.sha1(content.encode(), usedforsecurity=False).hexdigest()
