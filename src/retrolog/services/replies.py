"""Reply/parent resolution and per-user dialog views."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from retrolog.schemas.feed import ParentContext
from retrolog.schemas.message import Message

UNRESOLVED = ParentContext()


class MessageIndex(Mapping[str, Message]):
    """Immutable id -> message lookup built from one snapshot."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._by_id: dict[str, Message] = {
            message.id: message for message in messages if message.id is not None
        }

    def __getitem__(self, message_id: str) -> Message:
        return self._by_id[message_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_id)

    def __len__(self) -> int:
        return len(self._by_id)


def _context_for(parent: Message | None) -> ParentContext:
    if parent is None:
        return UNRESOLVED
    return ParentContext(
        sequence_number=parent.sequence_number,
        sender_id=parent.sender_id,
        content=parent.content,
    )


def resolve_parent(message: Message, all_messages: Iterable[Message]) -> ParentContext:
    """Find a message's parent by linear scan of ``all_messages``.

    Returns an empty context when the message is top-level or the parent is
    missing (deleted or not yet synced).
    """
    if not message.parent_id:
        return UNRESOLVED
    parent = next((m for m in all_messages if m.id == message.parent_id), None)
    return _context_for(parent)


class ReplyResolver:
    """Parent lookups backed by a ``MessageIndex``."""

    def __init__(self, index: MessageIndex) -> None:
        self._index = index

    @classmethod
    def from_snapshot(cls, messages: Iterable[Message]) -> ReplyResolver:
        return cls(MessageIndex(messages))

    def resolve(self, message: Message) -> ParentContext:
        if not message.parent_id:
            return UNRESOLVED
        return _context_for(self._index.get(message.parent_id))

    def parent_of(self, message: Message) -> Message | None:
        """Return the parent message for "jump to parent" navigation."""
        if not message.parent_id:
            return None
        return self._index.get(message.parent_id)


def dialogs_for(user_id: str, messages: Sequence[Message]) -> list[Message]:
    """Return the user's own messages plus direct replies to them."""
    own_ids = {m.id for m in messages if m.sender_id == user_id and m.id is not None}
    return [
        m for m in messages
        if m.sender_id == user_id or (m.parent_id is not None and m.parent_id in own_ids)
    ]


def has_unread(user_id: str, messages: Sequence[Message], last_read_at: int | None) -> bool:
    """Return True if someone else replied in the user's dialogs after ``last_read_at``."""
    if last_read_at is None:
        return False
    return any(
        m.timestamp > last_read_at and m.sender_id != user_id
        for m in dialogs_for(user_id, messages)
    )
