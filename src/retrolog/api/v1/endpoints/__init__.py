# src/retrolog/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .feed import router as feed_router
from .identity import router as identity_router
from .messages import router as messages_router
from .moderation import router as moderation_router
from .votes import router as votes_router

__all__ = [
    "feed_router",
    "identity_router",
    "messages_router",
    "moderation_router",
    "votes_router",
]
