"""Shared fixtures for familycal tests."""

from collections.abc import Callable
from datetime import datetime, timedelta
from itertools import count
from typing import Any, Optional

import pytest

from familycal.calendar_service import CalendarService
from familycal.models import EventTemplate, RecurrenceRule
from familycal.repository import InMemoryTemplateRepository
from familycal.rrule_expander import OccurrenceExpander

FIXED_NOW = datetime(2024, 1, 10, 8, 0)

TemplateFactory = Callable[..., EventTemplate]


@pytest.fixture
def make_template() -> TemplateFactory:
    """Factory building valid EventTemplates with sensible defaults.

    Pass rule=dict(...) to build a recurring template.
    """
    ids = count(1)

    def _make(
        start: datetime,
        end: Optional[datetime] = None,
        rule: Optional[dict[str, Any]] = None,
        template_id: Optional[str] = None,
        owner_id: str = "home",
        title: str = "Event",
        **extra: Any,
    ) -> EventTemplate:
        return EventTemplate(
            id=template_id or f"tpl{next(ids)}",
            owner_id=owner_id,
            title=title,
            start=start,
            end=end or start + timedelta(hours=1),
            is_recurring=rule is not None,
            recurrence_rule=RecurrenceRule(**rule) if rule is not None else None,
            **extra,
        )

    return _make


@pytest.fixture
def expander() -> OccurrenceExpander:
    return OccurrenceExpander()


@pytest.fixture
def repository() -> InMemoryTemplateRepository:
    return InMemoryTemplateRepository(clock=lambda: FIXED_NOW)


@pytest.fixture
def service(repository: InMemoryTemplateRepository) -> CalendarService:
    return CalendarService(repository, clock=lambda: FIXED_NOW)
