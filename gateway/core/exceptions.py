"""Domain errors raised by the gateway services.

Routes translate these into the unsubscribe "invalid link" page, the embed
error page, or the machine-readable ``{error_type, error}`` payload.
"""


class GatewayError(Exception):
    """Base class for gateway errors."""

    error_type = "error"
    status_code = 400
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(GatewayError):
    """Requested record does not resolve."""

    error_type = "not_found"
    status_code = 404
    default_message = "Not found"


class UnsubscribeKeyNotFound(NotFoundError):
    """Unsubscribe key is unknown or has no owning user."""

    default_message = "This unsubscribe link is invalid or has expired."


class TopicNotFound(NotFoundError):
    """Topic for an embed request does not exist."""

    default_message = "The topic could not be found."


class EmbedDenied(GatewayError):
    """Referrer is not a registered embeddable host."""

    error_type = "invalid_access"
    status_code = 403
    default_message = "This site is not allowed to embed comments."


class MissingParameter(GatewayError):
    """Neither embed_url nor topic_id was supplied."""

    error_type = "missing_parameter"
    status_code = 400
    default_message = "An embed_url or topic_id is required."
