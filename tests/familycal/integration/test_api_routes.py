"""Integration tests for the familycal JSON API."""

from datetime import datetime

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from familycal.api.server import make_app
from familycal.calendar_service import CalendarService
from familycal.occurrence_ids import make_occurrence_id
from familycal.repository import InMemoryTemplateRepository

NOW = datetime(2024, 1, 10, 8, 0)

FOOTBALL = {
    "owner_id": "home",
    "title": "Football",
    "category": "school",
    "start": "2024-01-02T17:00:00",
    "end": "2024-01-02T18:00:00",
    "is_recurring": True,
    "recurrence_rule": {"frequency": "weekly", "count": 3},
}


@pytest.fixture
def calendar_service():
    return CalendarService(InMemoryTemplateRepository(clock=lambda: NOW), clock=lambda: NOW)


@pytest_asyncio.fixture
async def client(calendar_service):
    async with TestClient(TestServer(make_app(calendar_service))) as test_client:
        yield test_client


@pytest.mark.integration
class TestEventApi:
    @pytest.mark.asyncio
    async def test_health_reports_template_count(self, client):
        response = await client.get("/api/health")

        assert response.status == 200
        assert await response.json() == {"status": "ok", "template_count": 0}

    @pytest.mark.asyncio
    async def test_create_then_list_range(self, client):
        created = await client.post("/api/events", json=FOOTBALL)
        assert created.status == 201
        series_id = (await created.json())["id"]

        response = await client.get(
            "/api/events",
            params={"owner": "home", "start": "2024-01-01", "end": "2024-01-31T23:59"},
        )

        assert response.status == 200
        data = await response.json()
        assert data["window"] == {"view": None, "start": "2024-01-01T00:00:00", "end": "2024-01-31T23:59:00"}
        events = data["events"]
        assert [e["start"] for e in events] == [
            "2024-01-02T17:00:00",
            "2024-01-09T17:00:00",
            "2024-01-16T17:00:00",
        ]
        assert {e["template_id"] for e in events} == {series_id}
        assert events[1]["id"] == make_occurrence_id(series_id, datetime(2024, 1, 9, 17, 0))
        assert events[0]["category_label"] == "School"

    @pytest.mark.asyncio
    async def test_list_week_view(self, client):
        await client.post("/api/events", json=FOOTBALL)

        response = await client.get(
            "/api/events", params={"owner": "home", "view": "week", "date": "2024-01-10"}
        )

        data = await response.json()
        assert data["window"]["view"] == "week"
        assert data["window"]["start"] == "2024-01-08T00:00:00"
        assert [e["start"] for e in data["events"]] == ["2024-01-09T17:00:00"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [
            {},
            {"owner": "home", "start": "2024-01-01"},
            {"owner": "home", "start": "yesterday", "end": "2024-01-31"},
            {"owner": "home", "start": "2024-02-01", "end": "2024-01-01"},
            {"owner": "home", "view": "decade"},
        ],
    )
    async def test_bad_list_requests(self, client, params):
        response = await client.get("/api/events", params=params)

        assert response.status == 400
        assert "error" in await response.json()

    @pytest.mark.asyncio
    async def test_invalid_event_is_rejected(self, client):
        response = await client.post(
            "/api/events", json={**FOOTBALL, "recurrence_rule": {"frequency": "weekly", "interval": 0}}
        )

        assert response.status == 400

        response = await client.post("/api/events", data="not json")
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_missing_owner_is_rejected(self, client):
        body = {k: v for k, v in FOOTBALL.items() if k != "owner_id"}

        response = await client.post("/api/events", json=body)

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_upcoming(self, client):
        await client.post("/api/events", json={**FOOTBALL, "start": "2024-01-12T17:00:00", "end": "2024-01-12T18:00:00"})

        response = await client.get("/api/events/upcoming", params={"owner": "home", "limit": "5"})

        data = await response.json()
        assert [e["title"] for e in data["events"]] == ["Football"]

        response = await client.get("/api/events/upcoming", params={"owner": "home", "limit": "many"})
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_patch_and_delete_by_occurrence_id(self, client, calendar_service):
        series_id = (await (await client.post("/api/events", json=FOOTBALL)).json())["id"]
        occurrence_id = make_occurrence_id(series_id, datetime(2024, 1, 9, 17, 0))

        response = await client.patch(f"/api/events/{occurrence_id}", json={"location": "Park"})
        assert response.status == 204
        assert (await calendar_service.repository.get(series_id)).location == "Park"

        response = await client.delete(f"/api/events/{occurrence_id}")
        assert response.status == 204
        assert await calendar_service.repository.count() == 0

    @pytest.mark.asyncio
    async def test_unknown_event_is_404(self, client):
        response = await client.delete("/api/events/missing")

        assert response.status == 404
        assert "missing" in (await response.json())["error"]
