"""Exception hierarchy for familycal.

Two families of errors exist:

- ContractViolationError: the caller broke a precondition (expanding a
  non-recurring template, an inverted window, a malformed recurrence rule).
  These are fatal to the call and never produce partial results.
- RepositoryError: the template store failed or could not find a template.
  The core never retries or suppresses these; they propagate to the caller.

Truncation at the expansion iteration cap is not an error.
"""


class FamilyCalError(Exception):
    """Base exception for all familycal errors."""


class ContractViolationError(FamilyCalError, ValueError):
    """A caller violated a documented precondition. Also a ValueError."""


class NonRecurringTemplateError(ContractViolationError):
    """Expansion was requested for a template that has no recurrence rule."""


class InvalidWindowError(ContractViolationError):
    """The requested window starts after it ends, or is not naive."""


class InvalidRecurrenceRuleError(ContractViolationError):
    """A recurrence rule failed validation (unknown frequency, interval < 1, ...)."""


class InvalidTemplateError(ContractViolationError):
    """An event template failed validation.

    Raised when:
    - end is not strictly after start
    - is_recurring disagrees with the presence of a recurrence rule
    - timezone-aware datetimes are supplied
    """


class RepositoryError(FamilyCalError):
    """Base exception for template repository failures."""


class TemplateNotFoundError(RepositoryError, KeyError):
    """No template exists with the requested id."""

    def __init__(self, template_id: str) -> None:
        super().__init__(template_id)
        self.template_id = template_id

    def __str__(self) -> str:
        return f"Event template not found: {self.template_id}"


class RepositoryPersistenceError(RepositoryError):
    """The repository could not read or write its backing storage."""
