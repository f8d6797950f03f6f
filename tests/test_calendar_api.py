# PURPOSE: background mirroring after todo writes, and the manual /calendar endpoints.

from datetime import UTC, datetime, timedelta

import httpx
import pytest
from google.oauth2.credentials import Credentials

from todo_calendar.api.deps import get_calendar_mirror
from todo_calendar.calendar_sync import CalendarClient, CalendarMirror, CalendarTokenStore
from todo_calendar.identity import CALENDAR_SCOPES
from todo_calendar.main import app
from todo_calendar.store_db import get_event_mapping

API = "/api/v1"
USER_ID = "user-1"  # conftest TEST_USER


def _due(**delta) -> str:
    return (datetime.now(UTC) + timedelta(**delta)).isoformat()


@pytest.fixture()
def calendar(db, encryption_key):
    """Install a mirror backed by a mock Calendar API; yields the recorded requests and a status switch."""
    state = {"status": 200, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if state["status"] >= 400:
            return httpx.Response(state["status"], json={"error": "nope"})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={"id": f"evt-{len(state['requests'])}"})

    mirror = CalendarMirror(
        client=CalendarClient(base_url="https://calendar.test/v3", transport=httpx.MockTransport(handler)),
        tokens=CalendarTokenStore(encryption_key=encryption_key),
        enabled=True,
    )
    mirror.tokens.save_credentials(db, USER_ID, Credentials(token="tok", scopes=CALENDAR_SCOPES))
    app.dependency_overrides[get_calendar_mirror] = lambda: mirror
    yield state
    app.dependency_overrides.pop(get_calendar_mirror, None)


def test_create_mirrors_in_background(client, calendar, db):
    r = client.post(f"{API}/todos/", json={"title": "Gym", "due_date": _due(days=1)})
    assert r.status_code == 201
    # response is sent before mirroring finishes
    assert r.json()["is_calendar_synced"] is False

    got = client.get(f"{API}/todos/{r.json()['id']}").json()
    assert got["is_calendar_synced"] is True
    assert got["calendar_event_id"] == "evt-1"
    assert [req.method for req in calendar["requests"]] == ["POST"]


def test_calendar_failure_leaves_todo_unsynced(client, calendar):
    calendar["status"] = 503
    r = client.post(f"{API}/todos/", json={"title": "Gym", "due_date": _due(days=1)})
    assert r.status_code == 201

    got = client.get(f"{API}/todos/{r.json()['id']}").json()
    assert got["is_calendar_synced"] is False
    assert got["calendar_event_id"] is None


def test_update_reconciles_existing_event(client, calendar):
    created = client.post(f"{API}/todos/", json={"title": "Gym", "due_date": _due(days=1)}).json()
    r = client.patch(f"{API}/todos/{created['id']}", json={"completed": True})
    assert r.status_code == 200

    methods = [(req.method, req.url.path.rsplit("/", 1)[-1]) for req in calendar["requests"]]
    assert methods == [("POST", "events"), ("PUT", "evt-1")]


def test_delete_removes_event_but_keeps_mapping(client, calendar, db):
    created = client.post(f"{API}/todos/", json={"title": "Gym", "due_date": _due(days=1)}).json()
    assert client.delete(f"{API}/todos/{created['id']}").status_code == 204

    assert [req.method for req in calendar["requests"]] == ["POST", "DELETE"]
    assert get_event_mapping(db, created["id"]) is not None


def test_manual_sync_reports_counts(client, calendar):
    calendar["status"] = 500
    client.post(f"{API}/todos/", json={"title": "A", "due_date": _due(days=1)})
    client.post(f"{API}/todos/", json={"title": "B", "due_date": _due(days=2)})

    calendar["status"] = 200
    r = client.post(f"{API}/calendar/sync")
    assert r.status_code == 200
    assert r.json() == {"processed": 2, "synced": 2, "failed": 0}


def test_sync_and_remove_single_todo(client, calendar):
    calendar["status"] = 500
    created = client.post(f"{API}/todos/", json={"title": "A", "due_date": _due(days=1)}).json()
    calendar["status"] = 200

    r = client.post(f"{API}/calendar/todos/{created['id']}")
    assert r.json() == {"success": True}
    assert client.get(f"{API}/todos/{created['id']}").json()["is_calendar_synced"] is True

    r = client.delete(f"{API}/calendar/todos/{created['id']}")
    assert r.json() == {"success": True}
    assert client.get(f"{API}/todos/{created['id']}").json()["is_calendar_synced"] is False

    assert client.post(f"{API}/calendar/todos/unknown").status_code == 404


def test_calendar_status(client, calendar):
    body = client.get(f"{API}/calendar/status").json()
    assert body == {"enabled": True, "connected": True, "auto_sync": False}
