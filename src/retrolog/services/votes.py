"""Vote toggling and scoring."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from retrolog.schemas.vote import VoteDirection
from retrolog.services.store import DELETE_FIELD, FieldPath

VOTES_FIELD = "votes"


def toggle_vote(
    votes: Mapping[str, int] | None,
    voter_id: str,
    direction: VoteDirection,
) -> dict[str, int]:
    """Return the vote map after ``voter_id`` clicks ``direction``.

    Repeating the voter's current direction removes their entry; any other
    click records the requested direction. A ``0`` is never stored.
    """
    updated = dict(votes or {})
    previous = updated.get(voter_id, 0)
    requested = direction.value_int
    if previous == requested:
        updated.pop(voter_id, None)
    else:
        updated[voter_id] = requested
    return updated


def vote_patch(
    votes: Mapping[str, int] | None,
    voter_id: str,
    direction: VoteDirection,
) -> dict[FieldPath, Any]:
    """Return a single-entry field update equivalent to ``toggle_vote``.

    Only the voter's own key is written, so concurrent voters on the same
    message do not overwrite each other's entries.
    """
    updated = toggle_vote(votes, voter_id, direction)
    value: Any = updated.get(voter_id, DELETE_FIELD)
    return {(VOTES_FIELD, voter_id): value}


def score(votes: Mapping[str, int] | None) -> int:
    """Return the display score: the sum of all recorded votes."""
    return sum((votes or {}).values())
