from unittest.mock import MagicMock

import pytest
import requests

from aimate.client import AimateClient, ApiError, ResponseCache, cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = body if body is not None else {"success": True}
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.request.return_value = make_response(body={"success": True, "tasks": []})
    return session


# =============================================================================
# ResponseCache
# =============================================================================

def test_cache_key_sorts_params_and_drops_none():
    assert cache_key("/tasks", {"status": "pending", "goal": None, "priority": "high"}) == (
        "/tasks?priority=high&status=pending"
    )
    assert cache_key("/tasks", {}) == "/tasks"


def test_cache_entries_expire():
    clock = FakeClock()
    cache = ResponseCache(ttl=300, clock=clock)
    cache.set("/tasks", {"count": 1})

    clock.now += 299
    assert cache.get("/tasks") == {"count": 1}

    clock.now += 1
    assert cache.get("/tasks") is None
    assert len(cache) == 0


def test_cache_evicts_oldest_entry():
    cache = ResponseCache(max_entries=2, clock=FakeClock())
    cache.set("/a", 1)
    cache.set("/b", 2)
    cache.set("/c", 3)

    assert cache.get("/a") is None
    assert cache.snapshot() == {"/b": 2, "/c": 3}


def test_invalidate_prefix():
    cache = ResponseCache(clock=FakeClock())
    cache.set("/tasks", 1)
    cache.set("/tasks?status=pending", 2)
    cache.set("/expenses", 3)

    assert cache.invalidate_prefix("/tasks") == 2
    assert cache.snapshot() == {"/expenses": 3}


# =============================================================================
# AimateClient
# =============================================================================

def test_get_requests_are_cached(session):
    client = AimateClient("http://localhost:5000/", token="tok", session=session)

    client.list_tasks(status="pending")
    client.list_tasks(status="pending")

    assert session.request.call_count == 1
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://localhost:5000/api/tasks")
    assert kwargs["params"] == {"status": "pending"}
    assert kwargs["headers"] == {"Authorization": "Bearer tok"}
    assert kwargs["timeout"] == 30.0


def test_mutation_invalidates_resource(session):
    client = AimateClient("http://localhost:5000", token="tok", session=session)
    client.list_tasks()
    client.list_expenses()

    client.create_task(title="New task")
    client.list_tasks()

    assert session.request.call_count == 4
    assert list(client.cache.snapshot()) == ["/expenses", "/tasks"]


def test_convert_action_item_invalidates_tasks_and_meetings(session):
    client = AimateClient("http://localhost:5000", token="tok", session=session)
    client.list_tasks()
    client.list_meetings()

    client.convert_action_item("m1", "i1")

    assert len(client.cache) == 0


def test_login_stores_token_and_logout_clears_cache(session):
    session.request.return_value = make_response(body={"success": True, "token": "jwt-1", "user": {}})
    client = AimateClient("http://localhost:5000", session=session)

    client.login("ana@example.com", "pw")
    assert client.token == "jwt-1"

    client.cache.set("/tasks", {"count": 1})
    client.logout()
    assert client.token is None
    assert len(client.cache) == 0


def test_error_response_raises_api_error(session):
    session.request.return_value = make_response(404, {"success": False, "error": "Task not found"})
    client = AimateClient("http://localhost:5000", token="tok", session=session)

    with pytest.raises(ApiError) as excinfo:
        client.get_task("missing")

    assert str(excinfo.value) == "Task not found"
    assert excinfo.value.status_code == 404
    assert len(client.cache) == 0


def test_timeout_raises_api_error(session):
    session.request.side_effect = requests.Timeout("slow")
    client = AimateClient("http://localhost:5000", session=session)

    with pytest.raises(ApiError, match="Request timeout"):
        client.health()


def test_upload_audio_sends_multipart(session):
    client = AimateClient("http://localhost:5000", token="tok", session=session)

    client.upload_audio("m1", "standup.mp3", b"ID3")

    kwargs = session.request.call_args.kwargs
    assert kwargs["files"] == {"audio": ("standup.mp3", b"ID3", "audio/mpeg")}
