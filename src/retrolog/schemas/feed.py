# src/retrolog/schemas/feed.py
"""Schemas describing enriched feed output."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .message import Message


class FeedOrder(str, Enum):
    """Sort orders offered by the feed views."""

    NEWEST = "newest"
    OLDEST = "oldest"
    BEST = "best"


class FeedTab(str, Enum):
    """Which slice of the feed the viewer is looking at."""

    ALL = "all"
    MINE = "mine"


class ParentContext(BaseModel):
    """Display context for a reply's parent; all fields empty when dangling."""

    sequence_number: int | None = None
    sender_id: str | None = None
    content: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def resolved(self) -> bool:
        return self.sequence_number is not None


class TagCount(BaseModel):
    """Occurrence count of a tag across the feed."""

    tag: str
    count: int


class FeedItem(BaseModel):
    """A message enriched for display."""

    message: Message
    score: int
    parent: ParentContext | None = None
    is_own: bool = False
