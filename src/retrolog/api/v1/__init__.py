# src/retrolog/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    feed_router,
    identity_router,
    messages_router,
    moderation_router,
    votes_router,
)

__all__ = [
    "feed_router",
    "identity_router",
    "messages_router",
    "moderation_router",
    "votes_router",
]
