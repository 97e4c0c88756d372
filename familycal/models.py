"""Data models for household calendar events.

All datetimes are naive local wall-clock values. Timezone-aware values are
rejected at construction time so that expansion arithmetic never mixes the
two kinds.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator, model_validator

from .exceptions import InvalidRecurrenceRuleError, InvalidTemplateError
from .occurrence_ids import make_occurrence_id


def _require_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        raise ValueError("datetimes must be naive local wall-clock values")
    return value


class RecurrenceFrequency(str, Enum):
    """Cadence unit of a recurrence rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EventCategory(str, Enum):
    """Household event categories."""

    MEDICAL = "medical"
    SCHOOL = "school"
    WORK = "work"
    SOCIAL = "social"
    MAINTENANCE = "maintenance"
    OTHER = "other"


# Display metadata used by the API; label/colour pairs follow the household UI palette.
EVENT_CATEGORY_DISPLAY: dict[EventCategory, dict[str, str]] = {
    EventCategory.MEDICAL: {"label": "Medical", "color": "#ef4444"},
    EventCategory.SCHOOL: {"label": "School", "color": "#3b82f6"},
    EventCategory.WORK: {"label": "Work", "color": "#8b5cf6"},
    EventCategory.SOCIAL: {"label": "Social", "color": "#ec4899"},
    EventCategory.MAINTENANCE: {"label": "Maintenance", "color": "#f59e0b"},
    EventCategory.OTHER: {"label": "Other", "color": "#6b7280"},
}


class ReminderSettings(BaseModel):
    """Reminder configuration attached to an event."""

    enabled: bool = Field(default=False, description="Reminder enabled flag")
    minutes_before: int = Field(default=30, ge=0, description="Minutes before start")

    model_config = ConfigDict(frozen=True)


class RecurrenceRule(BaseModel):
    """Recurrence rule for a recurring template.

    end_date and count are independent optional stop conditions; either, both
    or neither may be set. end_date is compared by calendar date only.
    """

    frequency: RecurrenceFrequency = Field(..., description="Cadence unit")
    interval: int = Field(default=1, ge=1, description="Cadence multiplier, at least 1")
    end_date: Optional[datetime] = Field(default=None, description="Last date of the series")
    count: Optional[int] = Field(default=None, ge=0, description="Lifetime occurrence count")

    model_config = ConfigDict(frozen=True)

    @field_validator("end_date")
    @classmethod
    def _naive_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _require_naive(value)

    @field_serializer("end_date", when_used="json-unless-none")
    def serialize_end_date(self, dt: datetime) -> str:
        """Serialize end_date to ISO format."""
        return dt.isoformat()


class EventTemplateInput(BaseModel):
    """Fields supplied by callers when creating a template."""

    owner_id: str = Field(..., min_length=1, description="Owning household account")
    title: str = Field(..., min_length=1, description="Event title")
    description: Optional[str] = Field(default=None, description="Free-form notes")
    category: EventCategory = Field(default=EventCategory.OTHER, description="Event category")
    assigned_to: list[str] = Field(default_factory=list, description="Family member ids")

    start: datetime = Field(..., description="Start wall-clock instant")
    end: datetime = Field(..., description="End wall-clock instant")

    is_recurring: bool = Field(default=False, description="Recurring series flag")
    recurrence_rule: Optional[RecurrenceRule] = Field(default=None, description="Series rule")

    location: Optional[str] = Field(default=None, description="Event location")
    reminder: Optional[ReminderSettings] = Field(default=None, description="Reminder settings")
    color: Optional[str] = Field(default=None, description="Display colour override")

    @field_validator("start", "end")
    @classmethod
    def _naive_bounds(cls, value: datetime) -> datetime:
        return _require_naive(value)  # type: ignore[return-value]

    @model_validator(mode="after")
    def _check_consistency(self) -> EventTemplateInput:
        if self.end <= self.start:
            raise ValueError("end must be strictly after start")
        if self.is_recurring and self.recurrence_rule is None:
            raise ValueError("recurring templates require a recurrence_rule")
        if not self.is_recurring and self.recurrence_rule is not None:
            raise ValueError("non-recurring templates must not carry a recurrence_rule")
        return self

    @property
    def duration(self) -> timedelta:
        """Length of every occurrence generated from this template."""
        return self.end - self.start

    @field_serializer("start", "end", when_used="json")
    def serialize_bounds(self, dt: datetime) -> str:
        """Serialize start/end to ISO format."""
        return dt.isoformat()


class EventTemplate(EventTemplateInput):
    """A stored event definition; one row may generate many occurrences."""

    id: str = Field(..., min_length=1, description="Repository-assigned identifier")
    created_at: Optional[datetime] = Field(default=None, description="Creation time")
    updated_at: Optional[datetime] = Field(default=None, description="Last modification time")

    @field_serializer("created_at", "updated_at", when_used="json-unless-none")
    def serialize_timestamps(self, dt: datetime) -> str:
        """Serialize timestamps to ISO format."""
        return dt.isoformat()


class Occurrence(EventTemplate):
    """A materialized instance of a template for display. Never persisted."""

    template_id: str = Field(..., description="Id of the source template")

    @classmethod
    def from_template(
        cls,
        template: EventTemplate,
        start: Optional[datetime] = None,
        occurrence_id: Optional[str] = None,
    ) -> Occurrence:
        """Materialize an occurrence of template starting at start.

        With no start the template itself is materialized unchanged, including
        its identity. Otherwise the id defaults to the deterministic
        (template id, start) identity and end keeps the template duration.
        """
        fields: dict[str, Any] = dict(template)
        fields.pop("template_id", None)
        fields["assigned_to"] = list(template.assigned_to)
        if start is None:
            fields["template_id"] = template.id
            return cls(**fields)

        fields["id"] = occurrence_id or make_occurrence_id(template.id, start)
        fields["start"] = start
        fields["end"] = start + template.duration
        fields["template_id"] = template.id
        return cls(**fields)


def _raise_contract_violation(exc: ValidationError) -> None:
    rule_error = any(err.get("loc", ())[:1] == ("recurrence_rule",) for err in exc.errors())
    if rule_error:
        raise InvalidRecurrenceRuleError(str(exc)) from exc
    raise InvalidTemplateError(str(exc)) from exc


def build_recurrence_rule(data: dict[str, Any]) -> RecurrenceRule:
    """Validate a raw mapping into a RecurrenceRule.

    Raises:
        InvalidRecurrenceRuleError: unknown frequency, interval < 1, negative count
    """
    try:
        return RecurrenceRule.model_validate(data)
    except ValidationError as exc:
        raise InvalidRecurrenceRuleError(str(exc)) from exc


def build_template_input(data: dict[str, Any]) -> EventTemplateInput:
    """Validate a raw mapping into an EventTemplateInput.

    Raises:
        InvalidRecurrenceRuleError: the nested recurrence rule is malformed
        InvalidTemplateError: any other field is invalid
    """
    try:
        return EventTemplateInput.model_validate(data)
    except ValidationError as exc:
        _raise_contract_violation(exc)
        raise  # pragma: no cover


def build_template(data: dict[str, Any]) -> EventTemplate:
    """Validate a raw mapping (including id) into an EventTemplate."""
    try:
        return EventTemplate.model_validate(data)
    except ValidationError as exc:
        _raise_contract_violation(exc)
        raise  # pragma: no cover
