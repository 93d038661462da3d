"""API router combining all route modules."""

from fastapi import APIRouter

from gateway.api.v1 import email, embed, health

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Unsubscribe links from notification emails (no session; the key is the credential)
api_router.include_router(
    email.router,
    prefix="/email",
    tags=["email"],
)

# Comment embedding (no session; referrer or API key is the credential)
api_router.include_router(
    embed.router,
    prefix="/embed",
    tags=["embed"],
)
