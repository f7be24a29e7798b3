# src/task_keeper/sources/google_tasks.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..core.ports import RemoteSourceError
from ..sync.models import TaskListMeta, TaskRecord, TaskStatus, format_ts, parse_ts

logger = logging.getLogger(__name__)


def _str_or_none(raw: Any) -> str | None:
    return raw if isinstance(raw, str) and raw != "" else None


def list_from_api(item: dict[str, Any]) -> TaskListMeta:
    list_id = _str_or_none(item.get("id"))
    if list_id is None:
        raise RemoteSourceError("task list item without id")
    return TaskListMeta(id=list_id, title=str(item.get("title") or ""))


def task_from_api(item: dict[str, Any], task_list: TaskListMeta) -> TaskRecord | None:
    """
    Convert one raw Tasks API item into a TaskRecord.

    Returns None for items flagged deleted. Raises RemoteSourceError when the
    payload is unusable (no id, no/invalid timestamps).
    """
    if item.get("deleted") is True:
        return None

    task_id = _str_or_none(item.get("id"))
    if task_id is None:
        raise RemoteSourceError(f"task without id in list {task_list.id}")

    try:
        updated_at = parse_ts(_str_or_none(item.get("updated")))
        completed_at = parse_ts(_str_or_none(item.get("completed")))
        due_at = parse_ts(_str_or_none(item.get("due")))
    except ValueError as exc:
        raise RemoteSourceError(f"bad timestamp on task {task_id}: {exc}") from exc

    if updated_at is None:
        raise RemoteSourceError(f"task {task_id} has no 'updated' timestamp")

    status = TaskStatus.from_api(_str_or_none(item.get("status")))
    if status == TaskStatus.COMPLETED:
        completed_at = completed_at or updated_at
    else:
        completed_at = None

    return TaskRecord(
        id=task_id,
        title=str(item.get("title") or ""),
        status=status,
        completed_at=completed_at,
        due_at=due_at,
        updated_at=updated_at,
        notes=_str_or_none(item.get("notes")),
        list_id=task_list.id,
        list_name=task_list.title,
    )


def task_to_api(record: TaskRecord) -> dict[str, Any]:
    """Body for tasks.insert; server-owned fields (id, updated) are left out."""
    body: dict[str, Any] = {
        "title": record.title,
        "status": record.status.value,
        "deleted": False,
        "hidden": False,
    }
    if record.notes:
        body["notes"] = record.notes
    if record.completed_at is not None:
        body["completed"] = format_ts(record.completed_at)
    if record.due_at is not None:
        body["due"] = format_ts(record.due_at)
    return body


class GoogleTasksSource:
    """
    RemoteTaskSource backed by the Google Tasks REST API.

    Token acquisition happens elsewhere; this class only sends the bearer token
    (and the API key, when configured). A short-lived httpx.AsyncClient is opened
    per call so the source can be used from any event loop.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        creds = settings.credentials
        if not creds.is_complete():
            raise ValueError(
                "Live mode needs an OAuth access token. Set TKEEP_ACCESS_TOKEN "
                "(and optionally TKEEP_CLIENT_ID / TKEEP_API_KEY)."
            )
        self._base_url = settings.api_base_url
        self._page_size = settings.page_size
        self._timeout = httpx.Timeout(settings.http_timeout_seconds, connect=5.0)
        self._headers = {
            "Authorization": f"Bearer {creds.access_token}",
            "Accept": "application/json",
        }
        self._params = {"key": creds.api_key} if creds.api_key else {}
        self._transport = transport

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            params=self._params,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            async with self._new_client() as client:
                resp = await client.request(method, path, params=params, json=json)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise RemoteSourceError(f"{method} {path} failed with HTTP {status}", status_code=status) from exc
        except httpx.RequestError as exc:
            raise RemoteSourceError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteSourceError(f"{method} {path} returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise RemoteSourceError(f"{method} {path} returned unexpected payload")
        return data

    async def list_task_lists(self) -> list[TaskListMeta]:
        out: list[TaskListMeta] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"maxResults": self._page_size}
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("GET", "/users/@me/lists", params=params)
            out.extend(list_from_api(item) for item in data.get("items") or [] if isinstance(item, dict))
            page_token = _str_or_none(data.get("nextPageToken"))
            if not page_token:
                break
        logger.debug("Fetched %d task list(s)", len(out))
        return out

    async def list_tasks(
        self,
        task_list: TaskListMeta,
        page_token: str | None = None,
    ) -> tuple[list[TaskRecord], str | None]:
        params: dict[str, Any] = {
            "showCompleted": "true",
            "showHidden": "true",
            "maxResults": self._page_size,
        }
        if page_token:
            params["pageToken"] = page_token

        data = await self._request("GET", f"/lists/{task_list.id}/tasks", params=params)

        items: list[TaskRecord] = []
        for raw in data.get("items") or []:
            if not isinstance(raw, dict):
                continue
            record = task_from_api(raw, task_list)
            if record is not None:
                items.append(record)
        return items, _str_or_none(data.get("nextPageToken"))

    async def insert_task(self, list_id: str, record: TaskRecord) -> TaskRecord:
        data = await self._request("POST", f"/lists/{list_id}/tasks", json=task_to_api(record))
        created = task_from_api(data, TaskListMeta(id=list_id, title=record.list_name or ""))
        if created is None:
            raise RemoteSourceError(f"insert into list {list_id} returned a deleted task")
        return created
