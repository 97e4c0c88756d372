"""Occurrence identity and ISO serialization helpers.

Occurrence ids have the form ``<template id>-<milliseconds since epoch>``
where the millisecond count is taken on the naive wall-clock start. The same
(template, start) pair always yields the same id, so a consumer can re-fetch
a window without identity churn.
"""

from __future__ import annotations

from datetime import datetime, timedelta

_EPOCH = datetime(1970, 1, 1)
_MILLISECOND = timedelta(milliseconds=1)


def make_occurrence_id(template_id: str, start: datetime) -> str:
    """Return the deterministic id of the occurrence of template_id at start."""
    if start.tzinfo is not None:
        raise ValueError("occurrence start must be a naive datetime")
    return f"{template_id}-{(start - _EPOCH) // _MILLISECOND}"


def split_occurrence_id(occurrence_id: str) -> tuple[str, datetime]:
    """Split an occurrence id back into (template id, start).

    Raises:
        ValueError: if occurrence_id was not produced by make_occurrence_id
    """
    head, sep, tail = occurrence_id.rpartition("-")
    if not sep or not head or not tail.isdigit():
        raise ValueError(f"Not an occurrence id: {occurrence_id!r}")
    millis = int(tail)
    # Starts before 1970 carry a negative offset: "<id>--<ms>"
    if head.endswith("-"):
        head = head[:-1]
        millis = -millis
    if not head:
        raise ValueError(f"Not an occurrence id: {occurrence_id!r}")
    return head, _EPOCH + millis * _MILLISECOND


def serialize_iso(dt: datetime | None) -> str | None:
    """Serialize a naive datetime to ISO-8601, passing None through."""
    if dt is None:
        return None
    return dt.isoformat()


def parse_iso(text: str) -> datetime:
    """Parse an ISO-8601 date or datetime string into a naive datetime.

    Date-only strings resolve to midnight.

    Raises:
        ValueError: malformed input or an explicit UTC offset
    """
    value = datetime.fromisoformat(text.strip())
    if value.tzinfo is not None:
        raise ValueError(f"Expected a naive local datetime, got offset in {text!r}")
    return value
