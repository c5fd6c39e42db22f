"""Settings persistence, validation and source management."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from core.asana import AsanaClient
from core.fileio import read_yaml, write_yaml_atomic
from core.models import Project, Settings, SyncedSource
from core.workspace import settings_path as _settings_path


logger = logging.getLogger(__name__)

TOKEN_ENV = "ASANA_ACCESS_TOKEN"
MY_TASKS_NAME = "My Tasks"

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml; the token env var wins over the file."""
    settings = Settings.from_dict(read_yaml(_settings_path(root)))
    token = os.environ.get(TOKEN_ENV, "")
    if token:
        settings.asana_access_token = token
    return settings


def save_settings(settings: Settings, root: Path | None = None) -> None:
    write_yaml_atomic(_settings_path(root), settings.to_dict())


def validate_settings(settings: Settings) -> list[str]:
    """Validate settings and return list of errors (empty if valid)."""
    errors = []
    if not settings.asana_access_token:
        errors.append("Missing Asana access token")
    if settings.sync_interval_minutes < 0:
        errors.append("sync_interval_minutes must be >= 0")

    seen: set[str] = set()
    for source in settings.synced_projects:
        if not source.project_gid:
            errors.append(f"Source {source.project_name!r} has no project gid")
        if not source.note_path:
            errors.append(f"Source {source.project_name!r} has no note path")
        elif source.note_path in seen:
            errors.append(f"Duplicate note path: {source.note_path}")
        seen.add(source.note_path)
        if source.is_my_tasks and not source.user_task_list_gid:
            errors.append(f"Source {source.project_name!r} is My Tasks but has no task list gid")
    return errors


def note_path_for(folder: str, name: str) -> str:
    sanitized = _UNSAFE_CHARS.sub("-", name)
    folder = folder.strip("/")
    return f"{folder}/{sanitized}.md" if folder else f"{sanitized}.md"


def build_source(
    project: Project,
    folder: str,
    is_my_tasks: bool = False,
    user_task_list_gid: str | None = None,
) -> SyncedSource:
    return SyncedSource(
        project_gid=project.gid,
        project_name=project.name,
        note_path=note_path_for(folder, project.name),
        is_my_tasks=is_my_tasks,
        user_task_list_gid=user_task_list_gid,
    )


def add_source(settings: Settings, source: SyncedSource) -> list[str]:
    """Append *source* unless it duplicates an existing one. Returns errors."""
    for existing in settings.synced_projects:
        if existing.project_gid == source.project_gid:
            return [f"Already syncing: {existing.project_name}"]
        if existing.note_path == source.note_path:
            return [f"Note path already in use: {source.note_path}"]
        if source.is_my_tasks and existing.is_my_tasks:
            return [f"{MY_TASKS_NAME} is already being synced"]
    settings.synced_projects.append(source)
    return []


def remove_source(settings: Settings, project_gid: str) -> bool:
    for i, s in enumerate(settings.synced_projects):
        if s.project_gid == project_gid:
            settings.synced_projects.pop(i)
            return True
    return False


async def add_project_source(
    client: AsanaClient, settings: Settings, project_gid: str
) -> tuple[SyncedSource | None, list[str]]:
    """Look up *project_gid* in the configured workspace and start syncing it."""
    if not settings.workspace_gid:
        return None, ["No workspace selected"]
    projects = await client.fetch_projects(settings.workspace_gid)
    project = next((p for p in projects if p.gid == project_gid), None)
    if project is None:
        return None, [f"Project not found in workspace: {project_gid}"]
    source = build_source(project, settings.sync_folder)
    errors = add_source(settings, source)
    return (None, errors) if errors else (source, [])


async def add_my_tasks_source(
    client: AsanaClient, settings: Settings
) -> tuple[SyncedSource | None, list[str]]:
    """Resolve the user's My Tasks list and start syncing it."""
    if not settings.workspace_gid:
        return None, ["No workspace selected"]
    if not settings.user_gid:
        user = await client.fetch_current_user()
        settings.user_gid = user.gid
    list_gid = await client.fetch_user_task_list_gid(settings.user_gid, settings.workspace_gid)
    source = build_source(
        Project(gid=list_gid, name=MY_TASKS_NAME),
        settings.sync_folder,
        is_my_tasks=True,
        user_task_list_gid=list_gid,
    )
    errors = add_source(settings, source)
    if not errors:
        logger.info("Added %s (task list %s)", MY_TASKS_NAME, list_gid)
    return (None, errors) if errors else (source, [])


async def select_workspace(client: AsanaClient, settings: Settings, workspace_gid: str) -> list[str]:
    """Point settings at *workspace_gid*. Returns errors."""
    workspaces = await client.fetch_workspaces()
    workspace = next((w for w in workspaces if w.gid == workspace_gid), None)
    if workspace is None:
        return [f"Workspace not found: {workspace_gid}"]
    settings.workspace_gid = workspace.gid
    settings.workspace_name = workspace.name
    logger.info("Selected workspace %s (%s)", workspace.name, workspace.gid)
    return []


async def available_projects(client: AsanaClient, settings: Settings) -> list[Project]:
    """Unarchived projects in the selected workspace that are not synced yet."""
    if not settings.workspace_gid:
        return []
    synced = {s.project_gid for s in settings.synced_projects}
    projects = await client.fetch_projects(settings.workspace_gid)
    return [p for p in projects if p.gid not in synced]
