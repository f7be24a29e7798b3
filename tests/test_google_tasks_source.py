# tests/test_google_tasks_source.py

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from task_keeper.config import Credentials
from task_keeper.core.ports import RemoteSourceError
from task_keeper.sources.google_tasks import GoogleTasksSource, task_from_api
from task_keeper.sync.engine import fetch_remote_snapshot
from task_keeper.sync.models import TaskListMeta, TaskStatus, parse_ts

from .fakes import INBOX, T0, make_task

BASE = "https://tasks.example.test/tasks/v1"


def _settings(token: str = "tok") -> SimpleNamespace:
    return SimpleNamespace(
        credentials=Credentials(client_id="cid", api_key="key123", access_token=token),
        api_base_url=BASE,
        page_size=2,
        http_timeout_seconds=5.0,
    )


class FakeTasksApi:
    """Minimal Tasks API behind httpx.MockTransport; records requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None
        self.tasks_pages = {
            None: {
                "items": [
                    {"id": "a", "title": "A", "status": "needsAction", "updated": "2024-01-02T00:00:00.000Z"},
                    {
                        "id": "b",
                        "title": "B",
                        "status": "completed",
                        "updated": "2024-01-03T00:00:00.000Z",
                        "completed": "2024-01-03T00:00:00.000Z",
                        "notes": "n",
                    },
                ],
                "nextPageToken": "p2",
            },
            "p2": {
                "items": [
                    {"id": "gone", "title": "X", "status": "needsAction", "updated": "2024-01-01T00:00:00.000Z", "deleted": True},
                    {"id": "c", "title": "C", "status": "completed", "updated": "2024-01-04T00:00:00.000Z"},
                ]
            },
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": {"code": self.fail_status}})

        path = request.url.path
        if request.method == "GET" and path.endswith("/users/@me/lists"):
            return httpx.Response(200, json={"items": [{"id": "L1", "title": "Inbox"}]})

        if request.method == "GET" and path.endswith("/lists/L1/tasks"):
            page = self.tasks_pages[request.url.params.get("pageToken")]
            return httpx.Response(200, json=page)

        if request.method == "POST" and path.endswith("/lists/L1/tasks"):
            body = json.loads(request.content)
            return httpx.Response(200, json={**body, "id": "new-1", "updated": "2024-02-01T00:00:00.000Z"})

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture()
def api() -> FakeTasksApi:
    return FakeTasksApi()


@pytest.fixture()
def source(api: FakeTasksApi) -> GoogleTasksSource:
    return GoogleTasksSource(_settings(), transport=httpx.MockTransport(api.handler))


@pytest.mark.asyncio
async def test_fetch_drains_pages_with_completed_and_hidden(source: GoogleTasksSource, api: FakeTasksApi) -> None:
    snap = await fetch_remote_snapshot(source)

    assert [lst.id for lst in snap.lists] == ["L1"]
    assert set(snap.tasks) == {"a", "b", "c"}
    assert snap.tasks["b"].notes == "n"
    assert snap.tasks["b"].list_name == "Inbox"
    # completed without a "completed" stamp falls back to "updated"
    assert snap.tasks["c"].completed_at == parse_ts("2024-01-04T00:00:00Z")

    task_reqs = [r for r in api.requests if r.url.path.endswith("/tasks")]
    assert len(task_reqs) == 2
    for r in task_reqs:
        assert r.url.params["showCompleted"] == "true"
        assert r.url.params["showHidden"] == "true"
        assert r.url.params["maxResults"] == "2"
        assert r.url.params["key"] == "key123"
        assert r.headers["Authorization"] == "Bearer tok"
    assert task_reqs[1].url.params["pageToken"] == "p2"


@pytest.mark.asyncio
async def test_insert_sends_completed_copy(source: GoogleTasksSource, api: FakeTasksApi) -> None:
    record = make_task("", title="Pay rent", completed_at=T0, notes="marker")

    created = await source.insert_task("L1", record)

    body = json.loads(api.requests[-1].content)
    assert body["title"] == "Pay rent"
    assert body["status"] == "completed"
    assert body["completed"] == "2024-01-01T12:00:00.000Z"
    assert body["notes"] == "marker"
    assert "id" not in body
    assert created.id == "new-1"
    assert created.status == TaskStatus.COMPLETED
    assert created.completed_at == T0


@pytest.mark.asyncio
async def test_http_errors_become_remote_source_errors(source: GoogleTasksSource, api: FakeTasksApi) -> None:
    api.fail_status = 401

    with pytest.raises(RemoteSourceError) as excinfo:
        await source.list_task_lists()

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_connection_errors_become_remote_source_errors() -> None:
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    src = GoogleTasksSource(_settings(), transport=httpx.MockTransport(boom))

    with pytest.raises(RemoteSourceError):
        await src.list_tasks(INBOX)


def test_live_source_requires_access_token() -> None:
    with pytest.raises(ValueError):
        GoogleTasksSource(_settings(token=""))


def test_task_from_api_enforces_status_and_completion() -> None:
    lst = TaskListMeta(id="L9", title="Misc")
    pending = task_from_api(
        {"id": "p", "status": "needsAction", "updated": "2024-01-01T00:00:00Z", "completed": "2024-01-01T00:00:00Z"},
        lst,
    )
    assert pending is not None
    assert pending.completed_at is None
    assert pending.list_id == "L9"

    with pytest.raises(RemoteSourceError):
        task_from_api({"id": "x", "status": "needsAction"}, lst)
    with pytest.raises(RemoteSourceError):
        task_from_api({"title": "no id", "updated": "2024-01-01T00:00:00Z"}, lst)
