"""Pydantic schemas for request/response validation."""

from gateway.schemas.common import ErrorResponse, HealthResponse, TopicSummary, UserSummary

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "TopicSummary",
    "UserSummary",
]
