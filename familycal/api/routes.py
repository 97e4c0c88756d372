"""JSON API routes for familycal."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Awaitable, Callable

from aiohttp import web

from familycal.calendar_service import CalendarService
from familycal.exceptions import ContractViolationError, TemplateNotFoundError
from familycal.models import EVENT_CATEGORY_DISPLAY, EventCategory, EventTemplate
from familycal.occurrence_ids import parse_iso, serialize_iso
from familycal.view_windows import CalendarView

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("calendar_service", CalendarService)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def event_to_api_model(event: EventTemplate) -> dict[str, Any]:
    """Convert a template or occurrence to its JSON API shape."""
    data = event.model_dump(mode="json", exclude_none=True)
    display = EVENT_CATEGORY_DISPLAY[EventCategory(event.category)]
    data["category_label"] = display["label"]
    data["display_color"] = event.color or display["color"]
    return data


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate domain errors into JSON error responses."""
    try:
        return await handler(request)
    except TemplateNotFoundError as exc:
        return web.json_response({"error": str(exc)}, status=404)
    except ContractViolationError as exc:
        logger.info("Rejected %s %s: %s", request.method, request.path, exc)
        return web.json_response({"error": str(exc)}, status=400)


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(text=json.dumps({"error": message}), content_type="application/json")


def _require_owner(request: web.Request) -> str:
    owner = request.query.get("owner", "").strip()
    if not owner:
        raise _bad_request("missing owner parameter")
    return owner


async def _read_json_object(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise _bad_request("invalid json") from None
    if not isinstance(body, dict):
        raise _bad_request("request body must be a JSON object")
    return body


def register_api_routes(app: web.Application, service: CalendarService) -> None:
    """Register the event API on app.

    Args:
        app: aiohttp web application
        service: Calendar service handling the requests
    """
    app[SERVICE_KEY] = service

    async def health_check(request: web.Request) -> web.Response:
        count = await request.app[SERVICE_KEY].repository.count()
        return web.json_response({"status": "ok", "template_count": count})

    async def list_events(request: web.Request) -> web.Response:
        owner = _require_owner(request)
        calendar = request.app[SERVICE_KEY]
        query = request.query
        try:
            if "start" in query or "end" in query:
                window_start = parse_iso(query["start"])
                window_end = parse_iso(query["end"])
                occurrences = await calendar.get_events_by_date_range(owner, window_start, window_end)
                view = None
            else:
                view = CalendarView(query.get("view", CalendarView.WEEK.value))
                anchor = parse_iso(query["date"]).date() if "date" in query else date.today()
                (window_start, window_end), occurrences = await calendar.get_view(owner, view, anchor)
        except KeyError as exc:
            raise _bad_request(f"missing parameter {exc.args[0]}") from None
        except ContractViolationError:
            raise
        except ValueError as exc:
            raise _bad_request(str(exc)) from None

        return web.json_response(
            {
                "window": {
                    "view": view.value if view else None,
                    "start": serialize_iso(window_start),
                    "end": serialize_iso(window_end),
                },
                "events": [event_to_api_model(o) for o in occurrences],
            }
        )

    async def upcoming_events(request: web.Request) -> web.Response:
        owner = _require_owner(request)
        limit_raw = request.query.get("limit")
        try:
            limit = int(limit_raw) if limit_raw is not None else None
        except ValueError:
            raise _bad_request("limit must be an integer") from None
        templates = await request.app[SERVICE_KEY].get_upcoming_events(owner, limit)
        return web.json_response({"events": [event_to_api_model(t) for t in templates]})

    async def create_event(request: web.Request) -> web.Response:
        body = await _read_json_object(request)
        owner = str(body.pop("owner_id", "") or request.query.get("owner", "")).strip()
        if not owner:
            raise _bad_request("missing owner_id")
        event_id = await request.app[SERVICE_KEY].create_event(owner, body)
        return web.json_response({"id": event_id}, status=201)

    async def update_event(request: web.Request) -> web.Response:
        changes = await _read_json_object(request)
        await request.app[SERVICE_KEY].update_event(request.match_info["event_id"], changes)
        return web.Response(status=204)

    async def delete_event(request: web.Request) -> web.Response:
        await request.app[SERVICE_KEY].delete_event(request.match_info["event_id"])
        return web.Response(status=204)

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/events", list_events)
    app.router.add_get("/api/events/upcoming", upcoming_events)
    app.router.add_post("/api/events", create_event)
    app.router.add_patch("/api/events/{event_id}", update_event)
    app.router.add_delete("/api/events/{event_id}", delete_event)
