"""Live window subscriptions.

A subscription is an explicit, cancellable handle. Iterating it yields
snapshots: the first immediately, then one after every template change that
affects the subscribed owner. Each snapshot is a full recomputation of the
window; nothing is carried over between snapshots.

Usage:
    async with service.subscribe(owner_id, start, end) as subscription:
        async for occurrences in subscription:
            render(occurrences)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from types import TracebackType
from typing import Optional

from .models import Occurrence
from .repository import ChangeWatch
from .rrule_expander import validate_window

logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[str, datetime, datetime], Awaitable[list[Occurrence]]]


class EventSubscription:
    """Async stream of occurrence snapshots for one owner and window."""

    def __init__(
        self,
        load_snapshot: SnapshotLoader,
        change_watch: ChangeWatch,
        owner_id: str,
        window_start: datetime,
        window_end: datetime,
    ) -> None:
        validate_window(window_start, window_end)
        self._load_snapshot = load_snapshot
        self._watch = change_watch
        self.owner_id = owner_id
        self.window_start = window_start
        self.window_end = window_end
        self._initial_delivered = False
        self.snapshots_delivered = 0

    @property
    def cancelled(self) -> bool:
        return self._watch.closed

    def cancel(self) -> None:
        """Release the subscription. Iteration ends; calling again is a no-op."""
        if not self._watch.closed:
            logger.debug(
                "Cancelling subscription for owner %s after %d snapshots",
                self.owner_id,
                self.snapshots_delivered,
            )
        self._watch.close()

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> list[Occurrence]:
        if self.cancelled:
            raise StopAsyncIteration

        if not self._initial_delivered:
            self._initial_delivered = True
            return await self._snapshot()

        while True:
            changed_owner = await self._watch.get()
            if changed_owner is None:
                raise StopAsyncIteration
            if changed_owner == self.owner_id:
                return await self._snapshot()

    async def _snapshot(self) -> list[Occurrence]:
        occurrences = await self._load_snapshot(self.owner_id, self.window_start, self.window_end)
        self.snapshots_delivered += 1
        return occurrences

    async def __aenter__(self) -> EventSubscription:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.cancel()
