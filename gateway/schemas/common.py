"""Common Pydantic schemas used across the API."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class HealthResponse(BaseSchema):
    """Health check response schema."""

    status: str
    version: str
    environment: str
    checks: dict[str, str]


class ErrorResponse(BaseSchema):
    """Machine-readable error payload."""

    error_type: str
    error: str


class UserSummary(BaseSchema):
    """Public identity of a forum user."""

    id: int
    username: str
    name: str | None = None


class TopicSummary(BaseSchema):
    """Minimal topic reference."""

    id: int
    title: str
    slug: str
    category_id: int | None = None
