"""Ordering policy for fetch results.

Fetches for one collection may resolve in any order. Each fetch takes a
ticket before awaiting and may only apply its result if nothing newer has
been committed since. Local mutations commit their own ticket, so a fetch
issued before a mutation cannot revert it when it lands afterwards.
"""

from __future__ import annotations

import itertools
import logging

_logger = logging.getLogger(__name__)


def should_accept_result(*, ticket: int, committed: int) -> bool:
    """Accept a fetch result only if no newer ticket has been committed."""
    return ticket > committed


class FetchSequence:
    """Monotonic tickets for one collection."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._counter = itertools.count(1)
        self._committed = 0

    @property
    def committed(self) -> int:
        return self._committed

    @property
    def is_pristine(self) -> bool:
        """True until a fetch or mutation has populated the collection."""
        return self._committed == 0

    def begin(self) -> int:
        return next(self._counter)

    def accepts(self, ticket: int) -> bool:
        return should_accept_result(ticket=ticket, committed=self._committed)

    def commit(self, ticket: int | None = None) -> bool:
        """Mark *ticket* (or a fresh one) as the latest applied state.

        Returns ``False`` without changing anything when *ticket* is stale.
        """
        if ticket is None:
            ticket = self.begin()
        if not self.accepts(ticket):
            _logger.debug(
                "Discarding stale %s result (ticket %d <= committed %d)",
                self.name,
                ticket,
                self._committed,
            )
            return False
        self._committed = ticket
        return True
