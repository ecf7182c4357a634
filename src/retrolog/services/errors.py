# src/retrolog/services/errors.py
"""Exception hierarchy for the feed core."""

from __future__ import annotations


class FeedError(RuntimeError):
    """Base exception raised by feed services."""


class StoreError(FeedError):
    """Raised when the remote document store rejects or fails an operation.

    Write-path callers receive this unmodified; nothing in the core retries.
    """


class PermissionStoreError(StoreError):
    """Raised when the store refuses an operation for the caller."""


class DocumentNotFoundError(StoreError):
    """Raised when an update or delete targets a missing document."""


class PermissionDeniedError(FeedError):
    """Raised when the caller's authorization policy forbids an action."""


class MessageNotFoundError(FeedError):
    """Raised when a message id is not present in the local snapshot."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message {message_id!r} not found")
        self.message_id = message_id


class RateLimitedError(FeedError):
    """Raised when a send is attempted during the cooldown window."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Sending is cooling down; retry in {retry_after}s")
        self.retry_after = retry_after
