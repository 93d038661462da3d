"""Fetching remote blog pages for import as embedded topics."""

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from gateway.core.config import settings

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SCRIPT_STYLE_RE = re.compile(
    r"<(script|style|nav|header|footer|aside)[^>]*>.*?</\1>", re.DOTALL | re.IGNORECASE
)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.DOTALL | re.IGNORECASE)
_OG_TITLE_RE = re.compile(
    r"<meta[^>]+property=[\"']og:title[\"'][^>]+content=[\"']([^\"']*)[\"']", re.IGNORECASE
)
_ARTICLE_RE = re.compile(r"<article[^>]*>(.*?)</article>", re.DOTALL | re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\n{3,}")


@dataclass
class RemotePage:
    """Title and readable text of a fetched page."""

    url: str
    title: str
    text: str


def _extract_title(html: str) -> str | None:
    """Prefer the Open Graph title, which blogs set without the site suffix."""
    og = _OG_TITLE_RE.search(html)
    if og and og.group(1).strip():
        return og.group(1).strip()
    match = _TITLE_RE.search(html)
    return match.group(1).strip() if match else None


def _html_to_text(html: str) -> tuple[str, str | None]:
    """Strip HTML down to the article text and return it with the title.

    Returns:
        Tuple of (plain_text, title_or_none).
    """
    title = _extract_title(html)

    article = _ARTICLE_RE.search(html)
    body = article.group(1) if article else html

    text = _SCRIPT_STYLE_RE.sub("", body)
    text = _TAG_RE.sub("\n", text)
    text = "\n".join(line.strip() for line in text.splitlines())
    text = _WHITESPACE_RE.sub("\n\n", text).strip()

    return text, title


def _validate_url(url: str) -> None:
    """Validate that a URL is safe to fetch (no SSRF).

    Raises:
        ValueError: If the URL scheme is not http/https or resolves to a private IP.
    """
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL has no hostname.")

    try:
        addr_infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise ValueError(f"Could not resolve hostname: {hostname}") from exc

    for _family, _type, _proto, _canonname, sockaddr in addr_infos:
        ip = ipaddress.ip_address(sockaddr[0])
        if ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved:
            raise ValueError(f"URL resolves to a private/reserved address: {ip}")


async def fetch_remote_page(url: str) -> RemotePage:
    """Fetch a blog page and extract the text to import as a topic.

    Args:
        url: The embed URL to fetch.

    Returns:
        The page title and readable text, truncated to the configured length.

    Raises:
        httpx.HTTPStatusError: If the response status is not 2xx.
        ValueError: If no text could be extracted or the URL is unsafe.
    """
    _validate_url(url)

    async with httpx.AsyncClient(
        follow_redirects=True, timeout=settings.embed_fetch_timeout_seconds
    ) as client:
        response = await client.get(
            url, headers={"User-Agent": f"{settings.project_name}/{settings.version}"}
        )
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")

        if "html" in content_type or "xml" in content_type:
            text, title = _html_to_text(response.text)
        else:
            text = response.text
            title = None

    if not text.strip():
        raise ValueError("No text content could be extracted from the URL.")

    logger.debug("Fetched %s (%d chars)", url, len(text))
    return RemotePage(url=url, title=title or url, text=text[: settings.embed_truncate_length])
