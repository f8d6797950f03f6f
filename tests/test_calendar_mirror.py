# PURPOSE: mirror behaviour against a mocked Calendar REST API (no network).

import json
from datetime import UTC, datetime, timedelta

import httpx
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from todo_calendar.calendar_sync import CalendarClient, CalendarMirror, CalendarTokenStore, Mapped, Unmapped
from todo_calendar.db_models import CalendarCredentialsDB
from todo_calendar.identity import CALENDAR_SCOPES
from todo_calendar.models import TodoCreate, TodoUpdate
from todo_calendar.store_db import (
    create_or_update_user,
    create_todo,
    get_event_mapping,
    get_todo,
    save_event_mapping,
    update_todo,
)

USER_ID = "cal-user"
EVENTS_PATH = "/v3/calendars/primary/events"


class Recorder:
    """MockTransport handler that records requests and replies with a fixed status."""

    def __init__(self, status_code=200, event_id="evt-1"):
        self.status_code = status_code
        self.event_id = event_id
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"error": {"message": "boom"}})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(self.status_code, json={"id": self.event_id})


def _mirror(recorder, key, enabled=True):
    client = CalendarClient(
        base_url="https://calendar.test/v3",
        calendar_id="primary",
        transport=httpx.MockTransport(recorder),
    )
    return CalendarMirror(client=client, tokens=CalendarTokenStore(encryption_key=key), enabled=enabled)


def _setup(db, mirror, with_token=True, **todo_fields):
    create_or_update_user(db, user_id=USER_ID, email="cal@example.com")
    if with_token:
        mirror.tokens.save_credentials(db, USER_ID, Credentials(token="access-123", scopes=CALENDAR_SCOPES))
    data = TodoCreate(
        title=todo_fields.get("title", "Dentist"),
        description=todo_fields.get("description"),
        due_date=datetime.now(UTC) + timedelta(days=2),
    )
    return create_todo(db, data, owner_id=USER_ID)


def test_create_ok_stores_mapping(db, encryption_key):
    rec = Recorder(200, event_id="evt-42")
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror)

    assert mirror.create(db, todo) is True

    assert len(rec.requests) == 1
    req = rec.requests[0]
    assert req.method == "POST"
    assert req.url.path == EVENTS_PATH
    assert req.headers["Authorization"] == "Bearer access-123"
    body = json.loads(req.content)
    assert body["summary"] == "Dentist"
    assert body["description"] == "Todo: Dentist"
    start = datetime.fromisoformat(body["start"]["dateTime"])
    end = datetime.fromisoformat(body["end"]["dateTime"])
    assert end - start == timedelta(minutes=30)
    assert get_event_mapping(db, todo.id).event_id == "evt-42"


def test_create_non_ok_returns_false_and_keeps_todo_unsynced(db, encryption_key):
    rec = Recorder(500)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror)

    assert mirror.sync_todo(db, todo) is False

    assert get_event_mapping(db, todo.id) is None
    assert get_todo(db, todo.id).is_calendar_synced is False


def test_sync_todo_marks_synced(db, encryption_key):
    rec = Recorder(200, event_id="evt-7")
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror)

    assert mirror.sync_todo(db, todo) is True
    row = get_todo(db, todo.id)
    assert row.is_calendar_synced is True
    assert row.calendar_event_id == "evt-7"


def test_update_without_mapping_creates_event(db, encryption_key):
    rec = Recorder(200, event_id="evt-new")
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror)
    assert isinstance(mirror.mapping_state(db, todo.id), Unmapped)

    assert mirror.update(db, todo) is True

    assert [r.method for r in rec.requests] == ["POST"]
    assert mirror.mapping_state(db, todo.id) == Mapped("evt-new")


def test_update_with_mapping_puts_event(db, encryption_key):
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror, description="bring x-rays")
    save_event_mapping(db, owner_id=USER_ID, todo_id=todo.id, event_id="evt-9")
    todo = update_todo(db, todo.id, TodoUpdate(completed=True), owner_id=USER_ID)

    assert mirror.update(db, todo) is True

    req = rec.requests[0]
    assert req.method == "PUT"
    assert req.url.path == f"{EVENTS_PATH}/evt-9"
    assert json.loads(req.content)["description"] == "Todo: Dentist (completed)"


def test_delete_without_mapping_succeeds_offline(db, encryption_key):
    rec = Recorder(500)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror, with_token=False)

    assert mirror.delete(db, todo.id) is True
    assert rec.requests == []


def test_delete_with_mapping_sends_delete_and_keeps_mapping(db, encryption_key):
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror)
    save_event_mapping(db, owner_id=USER_ID, todo_id=todo.id, event_id="evt-3")

    assert mirror.remove_todo(db, todo.id) is True

    assert [(r.method, r.url.path) for r in rec.requests] == [("DELETE", f"{EVENTS_PATH}/evt-3")]
    assert get_event_mapping(db, todo.id) is not None
    assert get_todo(db, todo.id).is_calendar_synced is False


def test_missing_token_fails_without_network(db, encryption_key):
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror, with_token=False)

    assert mirror.create(db, todo) is False
    assert rec.requests == []


def test_disabled_mirror_does_nothing(db, encryption_key):
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key, enabled=False)
    todo = _setup(db, mirror)

    assert mirror.create(db, todo) is False
    assert rec.requests == []


def test_sync_all_counts_outcomes(db, encryption_key):
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    _setup(db, mirror, title="one")
    create_todo(
        db,
        TodoCreate(title="two", due_date=datetime.now(UTC) + timedelta(days=5)),
        owner_id=USER_ID,
    )

    result = mirror.sync_all(db, owner_id=USER_ID)
    assert (result.processed, result.synced, result.failed) == (2, 2, 0)

    # already synced todos are skipped on the next scan
    again = mirror.sync_all(db, owner_id=USER_ID)
    assert again.processed == 0


def test_stored_tokens_are_encrypted(db, encryption_key):
    mirror = _mirror(Recorder(), encryption_key)
    _setup(db, mirror)

    row = db.get(CalendarCredentialsDB, USER_ID)
    assert row.access_token != "access-123"
    assert mirror.tokens.get_access_token(db, USER_ID) == "access-123"


def _save_expired(db, mirror, refresh_token="r1"):
    expired = datetime.now(UTC).replace(tzinfo=None) - timedelta(hours=1)
    creds = Credentials(token="stale", refresh_token=refresh_token, scopes=CALENDAR_SCOPES, expiry=expired)
    assert mirror.tokens.save_credentials(db, USER_ID, creds) is True


def test_expired_token_is_refreshed_and_saved(db, encryption_key, monkeypatch):
    def fake_refresh(self, request):
        self.token = "fresh-token"
        self.expiry = datetime.now(UTC).replace(tzinfo=None) + timedelta(hours=1)

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror, with_token=False)
    _save_expired(db, mirror)

    assert mirror.create(db, todo) is True
    assert rec.requests[0].headers["Authorization"] == "Bearer fresh-token"

    stored = mirror.tokens.load_credentials(db, USER_ID)
    assert stored.token == "fresh-token"
    assert stored.refresh_token == "r1"
    assert stored.valid


def test_expired_token_without_refresh_token_is_unusable(db, encryption_key, monkeypatch):
    def unexpected_refresh(self, request):
        raise AssertionError("refresh must not be attempted")

    monkeypatch.setattr(Credentials, "refresh", unexpected_refresh)
    mirror = _mirror(Recorder(), encryption_key)
    _setup(db, mirror, with_token=False)
    _save_expired(db, mirror, refresh_token=None)

    assert mirror.tokens.get_access_token(db, USER_ID) is None


def test_refresh_error_makes_create_fail_quietly(db, encryption_key, monkeypatch):
    def failing_refresh(self, request):
        raise RefreshError("invalid_grant: Token has been revoked")

    monkeypatch.setattr(Credentials, "refresh", failing_refresh)
    rec = Recorder(200)
    mirror = _mirror(rec, encryption_key)
    todo = _setup(db, mirror, with_token=False)
    _save_expired(db, mirror)

    assert mirror.create(db, todo) is False
    assert rec.requests == []
    assert get_event_mapping(db, todo.id) is None


def test_reconsent_without_refresh_token_keeps_the_stored_one(db, encryption_key):
    mirror = _mirror(Recorder(), encryption_key)
    _setup(db, mirror, with_token=False)
    mirror.tokens.save_credentials(db, USER_ID, Credentials(token="a1", refresh_token="r1", scopes=CALENDAR_SCOPES))

    mirror.tokens.save_credentials(db, USER_ID, Credentials(token="a2", scopes=CALENDAR_SCOPES))

    stored = mirror.tokens.load_credentials(db, USER_ID)
    assert stored.token == "a2"
    assert stored.refresh_token == "r1"


def test_credentials_without_calendar_scope_are_not_stored(db, encryption_key):
    mirror = _mirror(Recorder(), encryption_key)
    _setup(db, mirror, with_token=False)

    assert mirror.tokens.save_credentials(db, USER_ID, Credentials(token="a1", scopes=["openid"])) is False
    assert db.get(CalendarCredentialsDB, USER_ID) is None
    assert mirror.tokens.get_access_token(db, USER_ID) is None
