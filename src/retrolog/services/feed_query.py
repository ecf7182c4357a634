"""Read-side feed views: search, tag filtering, sorting and enrichment."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from retrolog.schemas.feed import FeedItem, FeedOrder
from retrolog.schemas.message import Message
from retrolog.services.replies import ReplyResolver
from retrolog.services.votes import score


def search(messages: Iterable[Message], query: str | None) -> list[Message]:
    """Case-insensitive match on content, sequence number digits or tags."""
    items = list(messages)
    if query is None or not query.strip():
        return items

    needle = query.strip().lower()
    return [
        message for message in items
        if needle in message.content.lower()
        or needle in str(message.sequence_number)
        or any(needle in tag.lower() for tag in message.tags)
    ]


def filter_by_tag(messages: Iterable[Message], tag: str | None) -> list[Message]:
    """Keep messages carrying ``tag`` (with or without the leading ``#``)."""
    items = list(messages)
    if not tag or not tag.strip():
        return items

    wanted = tag.strip().lower()
    if not wanted.startswith("#"):
        wanted = f"#{wanted}"
    return [message for message in items if wanted in (t.lower() for t in message.tags)]


def sort_messages(messages: Iterable[Message], order: FeedOrder = FeedOrder.NEWEST) -> list[Message]:
    """Return messages sorted for display."""
    items = list(messages)
    if order is FeedOrder.OLDEST:
        return sorted(items, key=lambda m: m.timestamp)
    if order is FeedOrder.BEST:
        return sorted(items, key=lambda m: (score(m.votes), m.timestamp), reverse=True)
    return sorted(items, key=lambda m: m.timestamp, reverse=True)


def enrich(
    messages: Sequence[Message],
    resolver: ReplyResolver,
    viewer_id: str | None = None,
) -> list[FeedItem]:
    """Attach score and parent context to each message."""
    return [
        FeedItem(
            message=message,
            score=score(message.votes),
            parent=resolver.resolve(message) if message.parent_id else None,
            is_own=viewer_id is not None and message.sender_id == viewer_id,
        )
        for message in messages
    ]
