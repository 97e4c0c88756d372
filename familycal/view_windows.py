"""Day/week/month viewing windows.

Weeks run Monday through Sunday. Every window ends on the last microsecond of
its final day so that the inclusive window end used by the expander covers
the whole day.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import NamedTuple, Union

from dateutil.relativedelta import relativedelta


class CalendarView(str, Enum):
    """Supported viewing windows."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Window(NamedTuple):
    """Inclusive [start, end] window."""

    start: datetime
    end: datetime


def start_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min)


def end_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def view_window(view: Union[CalendarView, str], anchor: Union[date, datetime]) -> Window:
    """Return the window of the given view containing anchor.

    Raises:
        ValueError: unknown view name
    """
    view = CalendarView(view)
    day = anchor.date() if isinstance(anchor, datetime) else anchor

    if view == CalendarView.DAY:
        return Window(start_of_day(day), end_of_day(day))
    if view == CalendarView.WEEK:
        monday = day - timedelta(days=day.weekday())
        return Window(start_of_day(monday), end_of_day(monday + timedelta(days=6)))

    first = day.replace(day=1)
    last = first + relativedelta(months=1, days=-1)
    return Window(start_of_day(first), end_of_day(last))


def shift_anchor(view: Union[CalendarView, str], anchor: date, steps: int) -> date:
    """Move anchor by steps whole views (negative steps go back in time)."""
    view = CalendarView(view)
    if view == CalendarView.DAY:
        return anchor + timedelta(days=steps)
    if view == CalendarView.WEEK:
        return anchor + timedelta(weeks=steps)
    return anchor + relativedelta(months=steps)
