# src/retrolog/schemas/user.py
"""User-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Principal(BaseModel):
    """Authenticated principal reported by the auth collaborator."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    email_verified: bool = False


class UserProfile(BaseModel):
    """Stored profile of an authenticated user."""

    uid: str
    display_name: str | None = None
    photo_url: str | None = Field(None, alias="photoURL")
    email: str | None = None
    karma: int = 0
    created_at: int = 0
    email_verified: bool = False
    is_banned: bool | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class IdentityResponse(BaseModel):
    """Schema describing the caller's resolved identity."""

    id: str
    short_id: str
    is_anonymous: bool
    is_admin: bool
    profile: UserProfile | None = None
    cooldown_remaining: int = 0
    has_unread: bool = False
