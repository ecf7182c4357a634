# src/retrolog/api/v1/endpoints/identity.py
"""Identity endpoints."""

from fastapi import APIRouter

from retrolog.api.v1.dependencies import FeedServiceDep
from retrolog.schemas.user import IdentityResponse
from retrolog.services.identity import short_id

router = APIRouter(prefix="/identity", tags=["identity"])


@router.get("/me", response_model=IdentityResponse)
async def read_identity(feed: FeedServiceDep) -> IdentityResponse:
    """Return who the caller is, their remaining cooldown and unread state."""
    identity = await feed.identity()
    return IdentityResponse(
        id=identity.id,
        short_id=short_id(identity.id),
        is_anonymous=identity.is_anonymous,
        is_admin=identity.is_admin,
        profile=identity.profile,
        cooldown_remaining=feed.cooldown_remaining,
        has_unread=await feed.has_unread(),
    )
