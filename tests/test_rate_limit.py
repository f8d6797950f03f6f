from datetime import UTC, datetime, timedelta

from todo_calendar.api.deps import get_identity_provider
from todo_calendar.main import app


class _Provider:
    initialized = True

    def authorization_url(self, state):
        return f"https://accounts.example/auth?state={state}"


def test_login_rate_limit(anon_client):
    app.dependency_overrides[get_identity_provider] = lambda: _Provider()

    # RATE_LIMIT_LOGIN defaults to 10/minute
    for _ in range(10):
        r = anon_client.get("/api/v1/auth/google/login", follow_redirects=False)
        assert r.status_code == 302

    # 11th attempt within the same minute should be rate limited
    r_limit = anon_client.get("/api/v1/auth/google/login", follow_redirects=False)
    assert r_limit.status_code == 429


def test_write_rate_limit(client):
    # RATE_LIMIT_WRITES defaults to 60/minute
    due = (datetime.now(UTC) + timedelta(days=1)).isoformat()
    statuses = [
        client.post("/api/v1/todos/", json={"title": f"t{i}", "due_date": due}).status_code
        for i in range(61)
    ]
    assert statuses[:60] == [201] * 60
    assert statuses[60] == 429
