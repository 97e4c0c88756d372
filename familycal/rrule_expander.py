"""Recurrence expansion for household calendar templates."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidWindowError, NonRecurringTemplateError
from .models import EventTemplate, Occurrence, RecurrenceFrequency, RecurrenceRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 1000


@dataclass
class RRuleExpanderConfig:
    """Configuration for recurrence expansion."""

    # Hard cap on loop iterations per template, independent of stop conditions
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    @classmethod
    def from_settings(cls, settings: Any) -> RRuleExpanderConfig:
        """Extract expansion configuration from a settings object.

        Args:
            settings: Object exposing max_expansion_iterations, or None

        Returns:
            RRuleExpanderConfig with values from settings or defaults
        """
        return cls(
            max_iterations=int(
                getattr(settings, "max_expansion_iterations", DEFAULT_MAX_ITERATIONS)
            ),
        )


def validate_window(window_start: datetime, window_end: datetime) -> None:
    """Reject inverted or timezone-aware windows.

    Raises:
        InvalidWindowError: if window_start > window_end or either bound is aware
    """
    if window_start.tzinfo is not None or window_end.tzinfo is not None:
        raise InvalidWindowError("window bounds must be naive local datetimes")
    if window_start > window_end:
        raise InvalidWindowError(
            f"window start {window_start.isoformat()} is after window end {window_end.isoformat()}"
        )


def cadence_step(rule: RecurrenceRule) -> Union[timedelta, relativedelta]:
    """One cadence step of the rule.

    Steps are chained from the previous occurrence with plain calendar
    addition, so a monthly series anchored on the 31st settles on the 29th
    after passing through February of a leap year.
    """
    amount = rule.interval
    if rule.frequency == RecurrenceFrequency.DAILY:
        return timedelta(days=amount)
    if rule.frequency == RecurrenceFrequency.WEEKLY:
        return timedelta(weeks=amount)
    if rule.frequency == RecurrenceFrequency.MONTHLY:
        return relativedelta(months=amount)
    if rule.frequency == RecurrenceFrequency.YEARLY:
        return relativedelta(years=amount)
    # Frequencies are validated when the rule is built.
    raise ValueError(f"Unsupported recurrence frequency: {rule.frequency!r}")


def _recurrence_rule_of(template: EventTemplate) -> RecurrenceRule:
    """Return the template's rule, rejecting templates that do not recur."""
    rule = template.recurrence_rule
    if not template.is_recurring or rule is None:
        raise NonRecurringTemplateError(
            f"Template {template.id} is not recurring and cannot be expanded"
        )
    return rule


class OccurrenceExpander:
    """Generate the concrete occurrences of recurring templates within a window.

    Expansion is pure: no I/O, no state carried between calls. Each template is
    walked forward from its own start, so occurrences that begin before the
    window but still overlap it are found as long as they lie within the
    iteration cap.
    """

    def __init__(self, settings: Any = None, max_iterations: Optional[int] = None):
        """Initialize expander.

        Args:
            settings: Optional configuration object (see RRuleExpanderConfig)
            max_iterations: Explicit iteration cap, overriding settings
        """
        config = RRuleExpanderConfig.from_settings(settings)
        self.max_iterations = max_iterations if max_iterations is not None else config.max_iterations
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

    def iter_expand(
        self,
        template: EventTemplate,
        window_start: datetime,
        window_end: datetime,
    ) -> Iterator[Occurrence]:
        """Yield occurrences of a recurring template that intersect the window.

        Args:
            template: Recurring template with a recurrence rule
            window_start: Inclusive window start
            window_end: Inclusive window end

        Yields:
            Occurrences in strictly increasing start order

        Raises:
            NonRecurringTemplateError: template has no recurrence rule
            InvalidWindowError: window is inverted or timezone-aware
        """
        rule = _recurrence_rule_of(template)
        validate_window(window_start, window_end)

        duration = template.end - template.start
        last_date: Optional[date] = rule.end_date.date() if rule.end_date is not None else None

        cursor = template.start
        emitted = 0
        for n in range(self.max_iterations):
            if n:
                try:
                    cursor = cursor + cadence_step(rule)
                except (OverflowError, ValueError):
                    # Past the last representable datetime: the series ends here.
                    logger.debug(
                        "Template %s runs past the supported date range after %s",
                        template.id,
                        cursor.isoformat(),
                    )
                    break

            if last_date is not None and cursor.date() > last_date:
                break
            if rule.count is not None and n >= rule.count:
                break

            if cursor <= window_end and window_start - cursor <= duration:
                try:
                    occurrence = Occurrence.from_template(template, cursor)
                except OverflowError:
                    logger.debug("Occurrence of %s at %s ends out of range", template.id, cursor)
                    break
                emitted += 1
                yield occurrence

            if cursor > window_end:
                break
        else:
            logger.debug(
                "Expansion of template %s stopped at iteration cap %d (%d occurrences in window)",
                template.id,
                self.max_iterations,
                emitted,
            )

    def expand(
        self,
        template: EventTemplate,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Occurrence]:
        """Expand a recurring template into the occurrences intersecting the window.

        See iter_expand() for arguments and errors.
        """
        rule = _recurrence_rule_of(template)
        occurrences = list(self.iter_expand(template, window_start, window_end))
        logger.debug(
            "Expanded template %s (%s every %d) into %d occurrences for %s..%s",
            template.id,
            rule.frequency.value,
            rule.interval,
            len(occurrences),
            window_start.isoformat(),
            window_end.isoformat(),
        )
        return occurrences

    def expand_template(
        self,
        template: EventTemplate,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Occurrence]:
        """Expand any template: one-off templates map to themselves.

        A non-recurring template yields exactly one occurrence carrying the
        template's own identity. Window filtering of one-off templates belongs
        to the repository query, so no window test is applied here.
        """
        if not template.is_recurring:
            validate_window(window_start, window_end)
            return [Occurrence.from_template(template)]
        return self.expand(template, window_start, window_end)
