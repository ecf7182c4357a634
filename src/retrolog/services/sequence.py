"""Per-feed display sequence allocation."""

from __future__ import annotations

from collections.abc import Iterable

from retrolog.schemas.message import Message


def next_sequence(known_messages: Iterable[Message]) -> int:
    """Return the next display sequence number for a new message.

    Returns:
        One more than the highest sequence number in the local snapshot, or 1.

    Notes:
        Only the caller's local snapshot is consulted; the store is never
        queried first. Two clients posting before either sees the other's
        write can therefore allocate the same number.
    """
    return max((message.sequence_number for message in known_messages), default=0) + 1
