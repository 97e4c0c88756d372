"""Calendar service: the application seam between callers and the template store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, Optional, Union

from .event_merger import OccurrenceMerger
from .exceptions import TemplateNotFoundError
from .models import EventTemplate, EventTemplateInput, Occurrence, build_template_input
from .occurrence_ids import split_occurrence_id
from .repository import TemplateRepository
from .rrule_expander import OccurrenceExpander, validate_window
from .subscriptions import EventSubscription
from .view_windows import CalendarView, Window, view_window

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_LIMIT = 10


class CalendarService:
    """Household calendar operations over an injected template repository.

    Range queries issue the repository's two queries concurrently and merge
    only after both complete. Repository failures propagate unchanged.
    """

    def __init__(
        self,
        repository: TemplateRepository,
        expander: Optional[OccurrenceExpander] = None,
        clock: Callable[[], datetime] = datetime.now,
        upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
    ):
        """Initialize calendar service.

        Args:
            repository: Template storage
            expander: Occurrence expander (default: 1000-iteration cap)
            clock: Returns the naive local "now" used for upcoming listings
            upcoming_limit: Default number of upcoming events returned
        """
        self.repository = repository
        self.merger = OccurrenceMerger(expander)
        self._clock = clock
        self.upcoming_limit = upcoming_limit

    async def get_events_by_date_range(
        self, owner_id: str, window_start: datetime, window_end: datetime
    ) -> list[Occurrence]:
        """Return every occurrence of owner_id's events intersecting the window.

        Raises:
            InvalidWindowError: window is inverted or timezone-aware
            RepositoryError: propagated from the repository
        """
        validate_window(window_start, window_end)
        non_recurring, recurring = await asyncio.gather(
            self.repository.query_non_recurring(owner_id, window_start, window_end),
            self.repository.query_recurring_candidates(owner_id, window_end),
        )
        logger.debug(
            "Range query for %s: %d one-off hits, %d recurring candidates",
            owner_id,
            len(non_recurring),
            len(recurring),
        )
        return self.merger.query_range(non_recurring, recurring, window_start, window_end)

    async def get_view(
        self,
        owner_id: str,
        view: Union[CalendarView, str],
        anchor: Union[date, datetime],
    ) -> tuple[Window, list[Occurrence]]:
        """Return the day/week/month window around anchor and its occurrences."""
        window = view_window(view, anchor)
        occurrences = await self.get_events_by_date_range(owner_id, window.start, window.end)
        return window, occurrences

    async def get_upcoming_events(
        self, owner_id: str, limit: Optional[int] = None
    ) -> list[EventTemplate]:
        """Templates starting from now on, soonest first (series are not expanded)."""
        return await self.repository.query_upcoming(
            owner_id, self._clock(), self.upcoming_limit if limit is None else limit
        )

    async def get_all_events(self, owner_id: str) -> list[EventTemplate]:
        """Every template of owner_id, latest first."""
        return await self.repository.query_all(owner_id)

    async def create_event(
        self, owner_id: str, event_input: Union[EventTemplateInput, Mapping[str, Any]]
    ) -> str:
        """Validate and store a new event for owner_id, returning its id.

        Raises:
            InvalidTemplateError: invalid event fields
            InvalidRecurrenceRuleError: malformed recurrence rule
        """
        data = dict(event_input)
        data["owner_id"] = owner_id
        return await self.repository.create(build_template_input(data))

    async def update_event(self, event_id: str, changes: Mapping[str, Any]) -> EventTemplate:
        """Apply a partial update to the event (or the series of an occurrence id)."""
        template_id = await self._resolve_template_id(event_id)
        return await self.repository.update(template_id, changes)

    async def delete_event(self, event_id: str) -> None:
        """Delete the event (or the whole series of an occurrence id)."""
        template_id = await self._resolve_template_id(event_id)
        await self.repository.delete(template_id)

    def subscribe(
        self, owner_id: str, window_start: datetime, window_end: datetime
    ) -> EventSubscription:
        """Open a live subscription to owner_id's occurrences in the window."""
        validate_window(window_start, window_end)
        return EventSubscription(
            self.get_events_by_date_range,
            self.repository.watch(),
            owner_id,
            window_start,
            window_end,
        )

    async def _resolve_template_id(self, event_id: str) -> str:
        """Map an occurrence id back to its template id.

        Occurrences carry no identity of their own in storage, so editing or
        deleting one acts on its whole series.
        """
        try:
            await self.repository.get(event_id)
            return event_id
        except TemplateNotFoundError:
            try:
                template_id, _start = split_occurrence_id(event_id)
            except ValueError:
                raise TemplateNotFoundError(event_id) from None
            await self.repository.get(template_id)
            return template_id
