"""Endpoints serving forum comments to embedding sites."""

import html
import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, Response

from gateway.core.config import settings
from gateway.core.deps import DBSession, Retriever
from gateway.core.exceptions import GatewayError, NotFoundError
from gateway.core.rate_limit import limiter
from gateway.schemas.common import ErrorResponse
from gateway.schemas.embed import CommentsView, EmbedCountResponse, EmbedInfoResponse
from gateway.services.embed_service import EmbedService

logger = logging.getLogger(__name__)

router = APIRouter()

# Comments are shown inside an iframe on the embedding site
FRAME_HEADERS = {"X-Frame-Options": "ALLOWALL"}

LOADING_REFRESH_SECONDS = 30


def _page(body: str, *, title: str = "Comments", refresh: int | None = None) -> str:
    meta = f'<meta http-equiv="refresh" content="{refresh}">' if refresh else ""
    return (
        "<!DOCTYPE html><html><head>"
        f'<meta charset="utf-8"><title>{html.escape(title)}</title>{meta}'
        f"</head><body>{body}</body></html>"
    )


def render_comments_html(view: CommentsView) -> str:
    """Render the comments view as a self-contained HTML document."""
    items = "".join(
        f'<article class="comment" id="post-{post.post_number}">'
        f'<header><span class="username">{html.escape(post.username)}</span>'
        f'<time datetime="{post.created_at.isoformat()}"></time></header>'
        f'<div class="cooked">{html.escape(post.raw)}</div></article>'
        for post in view.posts
    )
    topic_url = f"{settings.base_path}/t/{view.topic.slug}/{view.topic.id}"
    body = (
        f"<div id=\"topic\"{view.css_class}>"
        f'<section class="comments">{items}</section>'
        f'<footer><a href="{html.escape(topic_url)}" target="_blank">Continue the discussion</a>'
        "</footer></div>"
    )
    return _page(body, title=view.topic.title)


def embed_error_response(exc: GatewayError) -> HTMLResponse:
    """The embed error page, distinct per error type."""
    body = (
        f'<div class="embed-error" data-error-type="{exc.error_type}">'
        f"<h1>Error embedding</h1><p>{html.escape(exc.message)}</p></div>"
    )
    return HTMLResponse(
        _page(body, title="Error embedding"),
        status_code=exc.status_code,
        headers=FRAME_HEADERS,
    )


def parse_topic_id(raw: str | None) -> int | None:
    """Integer topic id from the query string; a malformed id matches no topic."""
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return 0


@router.get("/comments", response_class=HTMLResponse)
@limiter.limit(settings.rate_limit_embed)
async def comments(
    request: Request,  # noqa: ARG001  # required by slowapi
    db: DBSession,
    retriever: Retriever,
    embed_url: str | None = Query(None),
    topic_id: str | None = Query(None),
    discourse_username: str | None = Query(None),
    referer: Annotated[str | None, Header()] = None,
) -> HTMLResponse:
    """Comments for a blog post, framed by the embedding site."""
    service = EmbedService(db, retriever)
    try:
        view = await service.render_comments(
            embed_url=embed_url,
            topic_id=parse_topic_id(topic_id),
            referrer=referer,
            author_username=discourse_username,
        )
    except GatewayError as exc:
        logger.info("Embed request rejected (%s): %s", exc.error_type, embed_url or topic_id)
        return embed_error_response(exc)

    if not isinstance(view, CommentsView):
        body = '<div class="embed-loading"><p>Loading discussion...</p></div>'
        return HTMLResponse(
            _page(body, refresh=LOADING_REFRESH_SECONDS),
            headers=FRAME_HEADERS,
        )

    return HTMLResponse(render_comments_html(view), headers=FRAME_HEADERS)


@router.get("/count", response_model=EmbedCountResponse)
async def count(
    db: DBSession,
    embed_url: Annotated[list[str] | None, Query()] = None,
    referer: Annotated[str | None, Header()] = None,
) -> Response | EmbedCountResponse:
    """Reply counts for several embed URLs at once."""
    service = EmbedService(db)
    try:
        counts = await service.reply_counts(embed_url or [], referer)
    except GatewayError as exc:
        return JSONResponse(
            ErrorResponse(error_type=exc.error_type, error=exc.message).model_dump(),
            status_code=exc.status_code,
        )
    return EmbedCountResponse(counts=counts)


@router.get("/info", response_model=EmbedInfoResponse, responses={404: {"model": ErrorResponse}})
async def info(
    db: DBSession,
    embed_url: str | None = Query(None),
    api_key: str | None = Query(None),
    api_username: str | None = Query(None),
    api_key_header: Annotated[str | None, Header(alias="Api-Key")] = None,
    api_username_header: Annotated[str | None, Header(alias="Api-Username")] = None,
) -> Response | EmbedInfoResponse:
    """Topic registered for an embed URL, for integrations holding an API key.

    Bad credentials and unknown URLs get the same 404 payload.
    """
    service = EmbedService(db)
    try:
        return await service.info(
            embed_url,
            api_key=api_key_header or api_key,
            api_username=api_username_header or api_username,
        )
    except NotFoundError as exc:
        return JSONResponse(
            ErrorResponse(error_type=exc.error_type, error=exc.message).model_dump(),
            status_code=status.HTTP_404_NOT_FOUND,
        )
