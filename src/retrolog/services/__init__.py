"""Business logic services for the RetroLog feed core."""

from .feed_service import FeedCore, FeedService
from .feed_sync import FeedSynchronizer
from .identity import IdentityProvider, SessionContext
from .moderation import BanSetSubscription, ModerationService
from .rate_limit import RateLimiter
from .sql_store import SqlDocumentStore

__all__ = [
    "FeedCore",
    "FeedService",
    "FeedSynchronizer",
    "IdentityProvider",
    "SessionContext",
    "BanSetSubscription",
    "ModerationService",
    "RateLimiter",
    "SqlDocumentStore",
]
