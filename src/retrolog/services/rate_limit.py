"""
Client send cooldown.

A minimum interval between successful sends per client session. This is an
advisory guard against double submission and casual spam, not abuse
prevention.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum-interval limiter holding the last successful send time."""

    def __init__(
        self,
        cooldown_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_consume: Callable[[RateLimiter], None] | None = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._on_consume = on_consume
        self._last_sent_at: float | None = None
        self._previous_sent_at: float | None = None

    @property
    def last_sent_at(self) -> float | None:
        return self._last_sent_at

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def allowed(self, now: float | None = None) -> bool:
        """Return True if a send at ``now`` would be accepted."""
        if self._last_sent_at is None:
            return True
        return self._now(now) - self._last_sent_at >= self.cooldown_seconds

    def try_consume(self, now: float | None = None) -> bool:
        """Record a send at ``now`` if the cooldown has elapsed.

        Returns:
            True if the send is allowed, False while cooling down.
        """
        current = self._now(now)
        if not self.allowed(current):
            return False
        self._previous_sent_at = self._last_sent_at
        self._last_sent_at = current
        if self._on_consume is not None:
            self._on_consume(self)
        return True

    def refund(self) -> None:
        """Undo the most recent successful ``try_consume``.

        Used when the write it guarded failed, so the user can retry at once.
        """
        self._last_sent_at = self._previous_sent_at
        self._previous_sent_at = None

    def remaining_seconds(self, now: float | None = None) -> int:
        """Return the whole seconds left on the countdown, zero when idle."""
        if self._last_sent_at is None:
            return 0
        remaining = self.cooldown_seconds - (self._now(now) - self._last_sent_at)
        return max(0, math.ceil(remaining))

    def reset(self) -> None:
        self._last_sent_at = None
        self._previous_sent_at = None


class RateLimiterRegistry:
    """One limiter per client id for multi-client service deployments.

    A limiter is only kept once it has accepted a send, and limiters whose
    cooldown has elapsed are dropped, since an idle limiter behaves exactly
    like a fresh one. Read-only clients therefore never occupy an entry.
    """

    def __init__(
        self,
        cooldown_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._limiters: dict[str, RateLimiter] = {}

    def get(self, client_id: str) -> RateLimiter:
        limiter = self._limiters.get(client_id)
        if limiter is None:
            limiter = RateLimiter(
                self.cooldown_seconds,
                clock=self._clock,
                on_consume=lambda consumed: self._register(client_id, consumed),
            )
        return limiter

    def _register(self, client_id: str, limiter: RateLimiter) -> None:
        if self._limiters.get(client_id) is limiter:
            return
        self.prune()
        self._limiters[client_id] = limiter
        logger.debug("Tracking send limiter for client %s", client_id)

    def prune(self) -> int:
        """Drop limiters whose cooldown has elapsed; returns how many."""
        idle = [client_id for client_id, limiter in self._limiters.items() if limiter.allowed()]
        for client_id in idle:
            del self._limiters[client_id]
        return len(idle)

    def __len__(self) -> int:
        return len(self._limiters)
