"""Template repository: storage and the two range queries the expander relies on.

The repository is always passed explicitly to whoever needs it; there is no
process-wide client handle. Two implementations are provided:

- InMemoryTemplateRepository: dict-backed, used by tests and as the base class
- JsonTemplateRepository: persists to a JSON file with atomic replace

The recurring query is one-sided on purpose: a series that started long before
the window may still produce occurrences inside it, so every series starting at
or before the window end is returned and the expander discards the rest.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
import threading
import uuid
import weakref
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from pydantic import ValidationError

from .exceptions import InvalidTemplateError, RepositoryPersistenceError, TemplateNotFoundError
from .models import EventTemplate, EventTemplateInput, build_template
from .rrule_expander import validate_window

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})
_STORE_FORMAT_VERSION = 1


class ChangeWatch:
    """Handle receiving the owner id of every template change.

    Obtained from TemplateRepository.watch(); close() releases it and wakes any
    pending get(). An owner id is queued at most once until it is consumed, so
    a watch nobody reads holds one entry per owner.
    """

    def __init__(self, on_close: Optional[Callable[[ChangeWatch], None]] = None) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._pending: set[str] = set()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of changed owners not yet consumed."""
        return len(self._pending)

    def publish(self, owner_id: str) -> None:
        if self._closed or owner_id in self._pending:
            return
        self._pending.add(owner_id)
        self._queue.put_nowait(owner_id)

    async def get(self) -> Optional[str]:
        """Wait for the next changed owner id; None once the watch is closed."""
        if self._closed:
            return None
        owner_id = await self._queue.get()
        if self._closed or owner_id is None:
            return None
        self._pending.discard(owner_id)
        return owner_id

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Sentinel wakes a consumer blocked in get()
        self._queue.put_nowait(None)
        if self._on_close is not None:
            self._on_close(self)


class TemplateRepository(Protocol):
    """Contract between the calendar core and template storage."""

    async def query_non_recurring(
        self, owner_id: str, window_start: datetime, window_end: datetime
    ) -> list[EventTemplate]:
        """Non-recurring templates of owner_id with start in [window_start, window_end]."""
        ...

    async def query_recurring_candidates(
        self, owner_id: str, window_end: datetime
    ) -> list[EventTemplate]:
        """Recurring templates of owner_id with start <= window_end."""
        ...

    async def create(self, template_input: EventTemplateInput) -> str: ...

    async def update(self, template_id: str, changes: Mapping[str, Any]) -> EventTemplate: ...

    async def delete(self, template_id: str) -> None: ...

    async def get(self, template_id: str) -> EventTemplate: ...

    async def query_upcoming(
        self, owner_id: str, now: datetime, limit: int
    ) -> list[EventTemplate]: ...

    async def query_all(self, owner_id: str) -> list[EventTemplate]: ...

    async def count(self) -> int: ...

    def watch(self) -> ChangeWatch: ...


class InMemoryTemplateRepository:
    """Dict-backed template repository.

    Mutations are serialized by an asyncio.Lock and published to every open
    ChangeWatch after they are committed.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        """Create an empty repository.

        Args:
            clock: Returns the naive local time used for created_at/updated_at
        """
        self._clock = clock
        self._templates: dict[str, EventTemplate] = {}
        self._lock = asyncio.Lock()
        self._watches: weakref.WeakSet[ChangeWatch] = weakref.WeakSet()

    # Queries

    async def query_non_recurring(
        self, owner_id: str, window_start: datetime, window_end: datetime
    ) -> list[EventTemplate]:
        validate_window(window_start, window_end)
        hits = [
            t
            for t in self._templates.values()
            if t.owner_id == owner_id
            and not t.is_recurring
            and window_start <= t.start <= window_end
        ]
        hits.sort(key=lambda t: t.start)
        return hits

    async def query_recurring_candidates(
        self, owner_id: str, window_end: datetime
    ) -> list[EventTemplate]:
        return [
            t
            for t in self._templates.values()
            if t.owner_id == owner_id and t.is_recurring and t.start <= window_end
        ]

    async def query_upcoming(
        self, owner_id: str, now: datetime, limit: int = 10
    ) -> list[EventTemplate]:
        """Templates of owner_id starting at or after now, soonest first.

        Recurring series are listed once, by their own start; they are not
        expanded.
        """
        upcoming = [t for t in self._templates.values() if t.owner_id == owner_id and t.start >= now]
        upcoming.sort(key=lambda t: t.start)
        return upcoming[: max(0, limit)]

    async def query_all(self, owner_id: str) -> list[EventTemplate]:
        """Every template of owner_id, latest start first."""
        templates = [t for t in self._templates.values() if t.owner_id == owner_id]
        templates.sort(key=lambda t: t.start, reverse=True)
        return templates

    async def get(self, template_id: str) -> EventTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    async def count(self) -> int:
        return len(self._templates)

    # Mutations

    async def create(self, template_input: EventTemplateInput) -> str:
        """Store a new template and return its generated id."""
        now = self._clock()
        template_id = uuid.uuid4().hex
        template = build_template(
            {**dict(template_input), "id": template_id, "created_at": now, "updated_at": now}
        )
        async with self._lock:
            self._templates[template_id] = template
            try:
                await self._commit()
            except RepositoryPersistenceError:
                del self._templates[template_id]
                raise
        logger.info(
            "Created %s template %s for owner %s",
            "recurring" if template.is_recurring else "one-off",
            template_id,
            template.owner_id,
        )
        self._notify(template.owner_id)
        return template_id

    async def update(self, template_id: str, changes: Mapping[str, Any]) -> EventTemplate:
        """Apply a partial update and return the re-validated template.

        Clearing is_recurring without mentioning recurrence_rule drops the rule.

        Raises:
            TemplateNotFoundError: unknown template_id
            InvalidTemplateError: immutable fields changed or the result is invalid
            InvalidRecurrenceRuleError: the updated rule is malformed
        """
        forbidden = _IMMUTABLE_FIELDS.intersection(changes)
        if forbidden:
            raise InvalidTemplateError(f"Fields cannot be updated: {', '.join(sorted(forbidden))}")

        async with self._lock:
            current = await self.get(template_id)
            data = current.model_dump()
            data.update(changes)
            if changes.get("is_recurring") is False and "recurrence_rule" not in changes:
                data["recurrence_rule"] = None
            data["updated_at"] = self._clock()
            updated = build_template(data)
            self._templates[template_id] = updated
            try:
                await self._commit()
            except RepositoryPersistenceError:
                self._templates[template_id] = current
                raise

        logger.info("Updated template %s (%s)", template_id, ", ".join(sorted(changes)))
        self._notify(current.owner_id)
        if updated.owner_id != current.owner_id:
            self._notify(updated.owner_id)
        return updated

    async def delete(self, template_id: str) -> None:
        async with self._lock:
            removed = self._templates.pop(template_id, None)
            if removed is None:
                raise TemplateNotFoundError(template_id)
            try:
                await self._commit()
            except RepositoryPersistenceError:
                self._templates[template_id] = removed
                raise
        logger.info("Deleted template %s", template_id)
        self._notify(removed.owner_id)

    # Change notification

    def watch(self) -> ChangeWatch:
        """Open a change watch; close it to stop receiving notifications.

        Watches are held weakly: one that is dropped without being closed stops
        receiving notifications once it is garbage collected.
        """
        change_watch = ChangeWatch(on_close=self._watches.discard)
        self._watches.add(change_watch)
        return change_watch

    @property
    def open_watches(self) -> int:
        return len(self._watches)

    def _notify(self, owner_id: str) -> None:
        for change_watch in list(self._watches):
            change_watch.publish(owner_id)

    async def _commit(self) -> None:
        """Hook run under the mutation lock after the in-memory state changed."""


class JsonTemplateRepository(InMemoryTemplateRepository):
    """Template repository persisted to a JSON file.

    The on-disk format is ``{"version": 1, "templates": [...]}`` with every
    datetime stored as a naive ISO-8601 string. Writes go to a temporary file
    in the same directory and are moved into place with os.replace().
    """

    def __init__(
        self,
        path: Union[str, Path],
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__(clock=clock)
        self._path = Path(path)
        self._file_lock = threading.Lock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RepositoryPersistenceError(
                f"Cannot create directory for template store {self._path}: {exc}"
            ) from exc
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load templates from disk, replacing the in-memory state.

        A missing file yields an empty store. Individual malformed entries are
        skipped with a warning.

        Raises:
            RepositoryPersistenceError: the file is unreadable or not a store document
        """
        with self._file_lock:
            if not self._path.exists():
                logger.debug("Template store file not found; starting empty: %s", self._path)
                self._templates = {}
                return
            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError) as exc:
                raise RepositoryPersistenceError(
                    f"Failed to read template store {self._path}: {exc}"
                ) from exc

            if not isinstance(data, dict) or not isinstance(data.get("templates"), list):
                raise RepositoryPersistenceError(
                    f"Template store {self._path} must be an object with a 'templates' list"
                )

            templates: dict[str, EventTemplate] = {}
            for raw in data["templates"]:
                try:
                    template = EventTemplate.model_validate(raw)
                except ValidationError as exc:
                    logger.warning("Skipping malformed template entry in %s: %s", self._path, exc)
                    continue
                templates[template.id] = template

            self._templates = templates
            logger.debug("Loaded template store %s (%d templates)", self._path, len(templates))

    def _persist(self) -> None:
        """Write the current templates to disk atomically."""
        payload = {
            "version": _STORE_FORMAT_VERSION,
            "templates": [t.model_dump(mode="json") for t in self._templates.values()],
        }
        with self._file_lock:
            tmp_path: Optional[Path] = None
            try:
                with tempfile.NamedTemporaryFile(
                    "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
                ) as tf:
                    tmp_path = Path(tf.name)
                    json.dump(payload, tf, ensure_ascii=False, indent=2)
                    tf.flush()
                    os.fsync(tf.fileno())
                os.replace(tmp_path, self._path)
            except OSError as exc:
                if tmp_path is not None:
                    with contextlib.suppress(OSError):
                        tmp_path.unlink()
                raise RepositoryPersistenceError(
                    f"Failed to persist template store to {self._path}: {exc}"
                ) from exc
        logger.debug("Persisted %d templates to %s", len(payload["templates"]), self._path)

    async def _commit(self) -> None:
        await asyncio.to_thread(self._persist)
