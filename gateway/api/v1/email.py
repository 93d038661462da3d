"""Unsubscribe endpoints reached from links in notification emails."""

import logging
from urllib.parse import quote, urlparse

from fastapi import APIRouter, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from gateway.core.auth import session_user_id
from gateway.core.config import settings
from gateway.core.deps import DBSession, OptionalUser
from gateway.core.exceptions import TopicNotFound, UnsubscribeKeyNotFound
from gateway.core.rate_limit import limiter
from gateway.schemas.common import TopicSummary
from gateway.schemas.unsubscribe import (
    UnsubscribedResponse,
    UnsubscribePreview,
    UnsubscribeToggles,
)
from gateway.services.topic_view_service import TopicViewService
from gateway.services.unsubscribe_service import UnsubscribeService

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_LINK_HTML = (
    "<html><body><h1>Invalid Link</h1>"
    "<p>This unsubscribe link is invalid or has expired.</p></body></html>"
)


def unsubscribed_path(email: str, topic_id: int | None) -> str:
    """Confirmation page the user lands on after a successful unsubscribe."""
    email_param = quote(email, safe="@")
    if topic_id is not None:
        return f"{settings.base_path}/email/unsubscribed?topic_id={topic_id}&email={email_param}"
    return f"{settings.base_path}/email/unsubscribed?email={email_param}"


def _back_url(request: Request, key: str) -> str:
    """Referring page when it is on this site, else the unsubscribe page itself."""
    referer = request.headers.get("referer")
    if referer and urlparse(referer).netloc == request.url.netloc:
        return referer
    return f"{settings.base_path}/email/unsubscribe/{quote(key)}"


@router.get(
    "/unsubscribe/{key}",
    response_model=UnsubscribePreview,
    response_model_exclude_none=True,
)
async def unsubscribe_preview(
    key: str,
    request: Request,
    db: DBSession,
    user: OptionalUser,
) -> UnsubscribePreview:
    """Describe what an unsubscribe link controls, without changing anything.

    Unknown keys produce ``{"not_found": true}`` rather than an error status
    so the page can render its generic invalid-link state.
    """
    service = UnsubscribeService(db)
    return await service.preview(
        key,
        session_user_id=session_user_id(user),
        request_url=str(request.url),
    )


@router.post("/unsubscribe/{key}", response_model=None)
@limiter.limit(settings.rate_limit_unsubscribe)
async def perform_unsubscribe(
    key: str,
    request: Request,
    db: DBSession,
    unwatch_topic: bool = Form(False),
    unwatch_category: bool = Form(False),
    mute_topic: bool = Form(False),
    disable_mailing_list: bool = Form(False),
    disable_digest_emails: bool = Form(False),
    unsubscribe_all: bool = Form(False),
) -> Response:
    """Apply the toggles submitted from the unsubscribe page."""
    toggles = UnsubscribeToggles(
        unwatch_topic=unwatch_topic,
        unwatch_category=unwatch_category,
        mute_topic=mute_topic,
        disable_mailing_list=disable_mailing_list,
        disable_digest_emails=disable_digest_emails,
        unsubscribe_all=unsubscribe_all,
    )

    service = UnsubscribeService(db)
    try:
        result = await service.apply(key, toggles)
    except UnsubscribeKeyNotFound:
        return HTMLResponse(INVALID_LINK_HTML, status_code=status.HTTP_404_NOT_FOUND)

    if not result.updated:
        return RedirectResponse(_back_url(request, key), status_code=status.HTTP_302_FOUND)

    topic_id = result.topic.id if result.topic else None
    logger.info(
        "Unsubscribe applied (topic %s): %s",
        topic_id,
        ",".join(name for name, on in toggles.model_dump().items() if on),
    )
    return RedirectResponse(
        unsubscribed_path(result.email, topic_id),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/unsubscribed", response_model=UnsubscribedResponse)
async def unsubscribed(
    db: DBSession,
    email: str | None = Query(None),
    topic_id: int | None = Query(None),
) -> UnsubscribedResponse:
    """Data for the "you have been unsubscribed" page."""
    topic = None
    if topic_id is not None:
        try:
            topic = TopicSummary.model_validate(await TopicViewService(db).get_topic(topic_id))
        except TopicNotFound:
            topic = None
    return UnsubscribedResponse(email=email, topic=topic)
