"""Async Asana REST client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from core.models import Project, RemoteTask, Section, User, Workspace


logger = logging.getLogger(__name__)

BASE_URL = "https://app.asana.com/api/1.0"
DEFAULT_TIMEOUT_SECONDS = 30.0
PAGE_LIMIT = 100

TASK_FIELDS = ",".join(
    [
        "gid",
        "name",
        "completed",
        "due_on",
        "assignee",
        "assignee.name",
        "permalink_url",
        "notes",
        "memberships.project",
        "memberships.project.name",
        "memberships.section",
        "memberships.section.name",
    ]
)


class AsanaError(Exception):
    """Base error for Asana calls."""


class AsanaAPIError(AsanaError):
    """Asana answered with a non-2xx status."""

    def __init__(self, status_code: int, payload: Any) -> None:
        super().__init__(f"Asana API error: {status_code} {payload}")
        self.status_code = status_code
        self.payload = payload


class AsanaClient:
    """Thin wrapper over the Asana REST API; one request in flight at a time."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AsanaClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._client.request(
            method,
            endpoint,
            params=params,
            json={"data": body} if body is not None else None,
        )
        if not response.is_success:
            try:
                payload: Any = response.json()
            except ValueError:
                payload = response.text
            raise AsanaAPIError(response.status_code, payload)
        return response.json()

    async def _paginate(self, endpoint: str) -> list[RemoteTask]:
        tasks: list[RemoteTask] = []
        offset: str | None = None
        while True:
            params: dict[str, Any] = {"opt_fields": TASK_FIELDS, "limit": PAGE_LIMIT}
            if offset:
                params["offset"] = offset
            result = await self._request("GET", endpoint, params=params)
            tasks.extend(RemoteTask.from_dict(t) for t in result.get("data") or [])
            offset = (result.get("next_page") or {}).get("offset")
            if not offset:
                break
        logger.debug("Fetched %d tasks from %s", len(tasks), endpoint)
        return tasks

    # ── Reads ─────────────────────────────────────────────────

    async def fetch_workspaces(self) -> list[Workspace]:
        result = await self._request("GET", "/workspaces")
        return [Workspace.from_dict(w) for w in result["data"]]

    async def fetch_projects(self, workspace_gid: str, include_archived: bool = False) -> list[Project]:
        params: dict[str, Any] = {"limit": PAGE_LIMIT}
        if not include_archived:
            params["archived"] = "false"
        result = await self._request("GET", f"/workspaces/{workspace_gid}/projects", params=params)
        return [Project.from_dict(p) for p in result["data"]]

    async def fetch_sections(self, project_gid: str) -> list[Section]:
        result = await self._request("GET", f"/projects/{project_gid}/sections")
        return [Section.from_dict(s) for s in result["data"]]

    async def fetch_current_user(self) -> User:
        result = await self._request("GET", "/users/me")
        return User.from_dict(result["data"])

    async def fetch_user_task_list_gid(self, user_gid: str, workspace_gid: str) -> str:
        result = await self._request(
            "GET", f"/users/{user_gid}/user_task_list", params={"workspace": workspace_gid}
        )
        return str(result["data"]["gid"])

    async def fetch_project_tasks(self, project_gid: str) -> list[RemoteTask]:
        return await self._paginate(f"/projects/{project_gid}/tasks")

    async def fetch_user_tasks(self, user_task_list_gid: str) -> list[RemoteTask]:
        return await self._paginate(f"/user_task_lists/{user_task_list_gid}/tasks")

    # ── Writes ────────────────────────────────────────────────

    async def update_task_completion(self, task_gid: str, completed: bool) -> None:
        await self._request("PUT", f"/tasks/{task_gid}", body={"completed": completed})

    async def create_task(
        self,
        name: str,
        project_gid: str,
        section_gid: str | None = None,
        due_on: str | None = None,
        assignee_gid: str | None = None,
    ) -> RemoteTask:
        body: dict[str, Any] = {"name": name, "projects": [project_gid]}
        if due_on:
            body["due_on"] = due_on
        if assignee_gid:
            body["assignee"] = assignee_gid
        result = await self._request("POST", "/tasks", body=body)
        task = RemoteTask.from_dict(result["data"])

        if section_gid:
            await self._request("POST", f"/sections/{section_gid}/addTask", body={"task": task.gid})
        return task

    async def validate_token(self) -> bool:
        try:
            await self.fetch_current_user()
            return True
        except (AsanaError, httpx.HTTPError, KeyError, ValueError) as e:
            logger.info("Token validation failed: %s", e)
            return False
