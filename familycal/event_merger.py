"""Range query merge: combine one-off hits and expanded series into one sorted list.

The repository over-fetches recurring templates (every series starting at or
before the window end) and this module relies on the expander to discard
occurrences outside the window.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from .exceptions import ContractViolationError
from .models import EventTemplate, Occurrence
from .rrule_expander import OccurrenceExpander, validate_window

logger = logging.getLogger(__name__)


class OccurrenceMerger:
    """Merges non-recurring hits with expanded recurring occurrences."""

    def __init__(self, expander: Optional[OccurrenceExpander] = None):
        self.expander = expander or OccurrenceExpander()

    def query_range(
        self,
        non_recurring_hits: Iterable[EventTemplate],
        recurring_templates: Iterable[EventTemplate],
        window_start: datetime,
        window_end: datetime,
    ) -> list[Occurrence]:
        """Return every occurrence for the window, sorted by start ascending.

        Non-recurring hits are trusted to already start inside the window and are
        passed through with their identity unchanged. Ties on start keep
        discovery order: non-recurring hits in the order given, then each
        series in the order of recurring_templates. No other tie order is
        guaranteed.

        Args:
            non_recurring_hits: One-off templates returned by the repository
            recurring_templates: Recurring candidates returned by the repository
            window_start: Inclusive window start
            window_end: Inclusive window end

        Returns:
            Freshly allocated list of occurrences

        Raises:
            InvalidWindowError: window is inverted or timezone-aware
            ContractViolationError: a recurring template appears among the hits
            NonRecurringTemplateError: a one-off template appears among the series
        """
        validate_window(window_start, window_end)

        merged: list[Occurrence] = []
        one_off_count = 0
        for template in non_recurring_hits:
            if template.is_recurring:
                raise ContractViolationError(
                    f"Template {template.id} is recurring but was passed as a non-recurring hit"
                )
            merged.append(Occurrence.from_template(template))
            one_off_count += 1

        series_count = 0
        for template in recurring_templates:
            merged.extend(self.expander.expand(template, window_start, window_end))
            series_count += 1

        # list.sort is stable, which gives the documented tie order.
        merged.sort(key=lambda occurrence: occurrence.start)

        logger.debug(
            "Merged %d one-off + %d series into %d occurrences for %s..%s",
            one_off_count,
            series_count,
            len(merged),
            window_start.isoformat(),
            window_end.isoformat(),
        )
        return merged


def query_range(
    non_recurring_hits: Iterable[EventTemplate],
    recurring_templates: Iterable[EventTemplate],
    window_start: datetime,
    window_end: datetime,
    expander: Optional[OccurrenceExpander] = None,
) -> list[Occurrence]:
    """Module-level convenience wrapper around OccurrenceMerger.query_range."""
    return OccurrenceMerger(expander).query_range(
        non_recurring_hits, recurring_templates, window_start, window_end
    )
