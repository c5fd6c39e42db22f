from __future__ import annotations

import logging
import os
import secrets
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from core import (
    SyncService,
    log_dir,
    save_settings,
    validate_settings,
    vault_root,
)
from core.asana import AsanaAPIError
from core.logging_setup import setup_logging
from core.settings import (
    add_my_tasks_source,
    add_project_source,
    available_projects,
    remove_source,
    select_workspace,
)


logger = logging.getLogger(__name__)

ServiceFactory = Callable[[], SyncService]


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("TASKSYNC_USERNAME", "")
    expected_password = os.environ.get("TASKSYNC_PASSWORD", "")

    if credentials is None:
        if not expected_username or not expected_password:
            return "guest"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    if not expected_username or not expected_password:
        return "guest"

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def _service(request: Request) -> SyncService:
    return request.app.state.service


# ── App ───────────────────────────────────────────────────────


def _default_service() -> SyncService:
    root = vault_root()
    setup_logging(log_dir=log_dir(root))
    return SyncService(root)


def create_app(service_factory: ServiceFactory = _default_service, *, watch: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service = service_factory()
        app.state.service = service
        await service.start(watch=watch)
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="Task Sync", version="0.1.0", lifespan=lifespan)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"ok": "true"}

    @app.get("/api/status")
    def api_status(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        return _service(request).status()

    @app.get("/api/notices")
    def api_notices(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        return {"notices": list(_service(request).notices)}

    @app.post("/api/sync")
    async def api_sync(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        """Run a full pass now; dropped if one is already running."""
        report = await _service(request).run_sync()
        if report is None:
            return {"ok": False, "reason": "sync-in-progress-or-failed"}
        return {
            "ok": True,
            "totals": report.totals.to_dict(),
            "failures": report.failures,
        }

    @app.post("/api/validate_token")
    async def api_validate_token(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        return {"ok": await _service(request).client.validate_token()}

    @app.get("/api/workspaces")
    async def api_workspaces(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        service = _service(request)
        workspaces = await service.client.fetch_workspaces()
        return {
            "workspaces": [asdict(w) for w in workspaces],
            "selected": service.settings.workspace_gid or None,
        }

    @app.put("/api/workspace")
    async def api_select_workspace(
        request: Request,
        payload: dict[str, Any] = Body(...),
        username: str = Depends(get_current_user),
    ) -> dict[str, Any]:
        service = _service(request)
        workspace_gid = str(payload.get("workspace_gid") or "")
        if not workspace_gid:
            raise HTTPException(status_code=400, detail="Missing workspace_gid")
        errors = await select_workspace(service.client, service.settings, workspace_gid)
        if errors:
            raise HTTPException(status_code=404, detail="; ".join(errors))
        save_settings(service.settings, service.root)
        return {
            "ok": True,
            "workspace_gid": service.settings.workspace_gid,
            "workspace_name": service.settings.workspace_name,
        }

    @app.get("/api/projects")
    async def api_projects(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        """Projects that can still be added as sources."""
        service = _service(request)
        if not service.settings.workspace_gid:
            raise HTTPException(status_code=400, detail="No workspace selected")
        projects = await available_projects(service.client, service.settings)
        return {"projects": [asdict(p) for p in projects]}

    @app.get("/api/projects/{project_gid}/sections")
    async def api_sections(request: Request, project_gid: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
        try:
            sections = await _service(request).client.fetch_sections(project_gid)
        except AsanaAPIError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=404, detail=f"Project not found: {project_gid}")
            raise
        return {"project_gid": project_gid, "sections": [asdict(s) for s in sections]}

    @app.get("/api/sources")
    def api_list_sources(request: Request, username: str = Depends(get_current_user)) -> dict[str, Any]:
        settings = _service(request).settings
        return {
            "sources": [s.to_dict() for s in settings.synced_projects],
            "errors": validate_settings(settings),
        }

    @app.post("/api/sources")
    async def api_add_source(
        request: Request,
        payload: dict[str, Any] = Body(...),
        username: str = Depends(get_current_user),
    ) -> dict[str, Any]:
        """Add a project (``{"project_gid": ...}``) or My Tasks (``{"my_tasks": true}``)."""
        service = _service(request)
        if payload.get("my_tasks"):
            source, errors = await add_my_tasks_source(service.client, service.settings)
        elif payload.get("project_gid"):
            source, errors = await add_project_source(service.client, service.settings, str(payload["project_gid"]))
        else:
            raise HTTPException(status_code=400, detail="Missing project_gid or my_tasks")
        if errors or source is None:
            raise HTTPException(status_code=400, detail="; ".join(errors))
        save_settings(service.settings, service.root)
        return {"ok": True, "source": source.to_dict()}

    @app.delete("/api/sources/{project_gid}")
    def api_remove_source(request: Request, project_gid: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
        service = _service(request)
        if not remove_source(service.settings, project_gid):
            raise HTTPException(status_code=404, detail=f"Source not found: {project_gid}")
        save_settings(service.settings, service.root)
        return {"ok": True, "project_gid": project_gid}

    return app


app = create_app()
