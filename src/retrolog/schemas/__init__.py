"""
Pydantic schemas for the feed data model and API request/response bodies.
"""

from .feed import FeedItem, FeedOrder, FeedTab, ParentContext, TagCount
from .message import (
    MAX_MESSAGE_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TITLE_LENGTH,
    Message,
    MessageCreate,
    MessageDraft,
)
from .moderation import BanCreate, BanRecord
from .user import IdentityResponse, Principal, UserProfile
from .vote import VoteCreate, VoteDirection, VoteResponse

__all__ = [
    "FeedItem", "FeedOrder", "FeedTab", "ParentContext", "TagCount",
    "MAX_MESSAGE_LENGTH", "MAX_TAG_LENGTH", "MAX_TITLE_LENGTH",
    "Message", "MessageCreate", "MessageDraft",
    "BanCreate", "BanRecord",
    "IdentityResponse", "Principal", "UserProfile",
    "VoteCreate", "VoteDirection", "VoteResponse",
]
