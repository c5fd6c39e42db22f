"""Typed dataclasses for the task sync data model.

Remote models use from_dict for Asana JSON payloads.
Settings use from_dict/to_dict for the YAML settings file.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any


UNSECTIONED = "(Unsectioned)"


def _parse_date(raw: Any) -> date | None:
    if not raw:
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        return None


# ── Remote (Asana) ────────────────────────────────────────────


@dataclass
class Assignee:
    gid: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Assignee | None:
        if not d or not isinstance(d, dict):
            return None
        return cls(gid=str(d.get("gid", "")), name=str(d.get("name") or ""))


@dataclass
class Membership:
    """A task's placement inside one parent list (project or My Tasks)."""

    project_gid: str = ""
    project_name: str = ""
    section_gid: str = ""
    section_name: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Membership:
        project = d.get("project") or {}
        section = d.get("section") or {}
        return cls(
            project_gid=str(project.get("gid", "")),
            project_name=str(project.get("name") or ""),
            section_gid=str(section.get("gid", "")),
            section_name=str(section.get("name") or ""),
        )


@dataclass
class RemoteTask:
    gid: str = ""
    name: str = ""
    completed: bool = False
    due_on: date | None = None
    assignee: Assignee | None = None
    notes: str = ""
    permalink_url: str = ""
    memberships: list[Membership] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RemoteTask:
        return cls(
            gid=str(d.get("gid", "")),
            name=str(d.get("name") or ""),
            completed=bool(d.get("completed", False)),
            due_on=_parse_date(d.get("due_on")),
            assignee=Assignee.from_dict(d.get("assignee")),
            notes=str(d.get("notes") or ""),
            permalink_url=str(d.get("permalink_url") or ""),
            memberships=[
                Membership.from_dict(m)
                for m in (d.get("memberships") or [])
                if isinstance(m, dict)
            ],
        )

    def section_for(self, list_gid: str) -> str | None:
        """Section name of the membership in *list_gid*, if any."""
        for m in self.memberships:
            if m.project_gid == list_gid and m.section_name:
                return m.section_name
        return None


@dataclass
class Workspace:
    gid: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Workspace:
        return cls(gid=str(d.get("gid", "")), name=str(d.get("name") or ""))


@dataclass
class Project:
    gid: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Project:
        return cls(gid=str(d.get("gid", "")), name=str(d.get("name") or ""))


@dataclass
class Section:
    gid: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Section:
        return cls(gid=str(d.get("gid", "")), name=str(d.get("name") or ""))


@dataclass
class User:
    gid: str = ""
    name: str = ""
    email: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> User:
        return cls(
            gid=str(d.get("gid", "")),
            name=str(d.get("name") or ""),
            email=str(d.get("email") or ""),
        )


# ── Local (markdown) ──────────────────────────────────────────


@dataclass(frozen=True)
class LocalTask:
    """One task line as it currently reads in a note."""

    line: str = ""
    line_number: int = 0
    completed: bool = False
    name: str = ""
    due_on: date | None = None
    assignee: str | None = None
    gid: str | None = None


@dataclass
class ParsedDocument:
    frontmatter: str = ""
    header: str = ""
    raw_lines: list[str] = field(default_factory=list)
    tasks: list[LocalTask] = field(default_factory=list)
    sections: dict[str, list[LocalTask]] = field(default_factory=dict)


# ── Sync ──────────────────────────────────────────────────────


@dataclass
class DisplayOptions:
    show_due_dates: bool = True
    show_assignees: bool = True
    show_completed_tasks: bool = False


@dataclass
class SyncStats:
    added: int = 0
    updated: int = 0
    completion_changes: int = 0

    def __add__(self, other: SyncStats) -> SyncStats:
        return SyncStats(
            added=self.added + other.added,
            updated=self.updated + other.updated,
            completion_changes=self.completion_changes + other.completion_changes,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "updated": self.updated,
            "completionChanges": self.completion_changes,
        }


# ── Settings ──────────────────────────────────────────────────


@dataclass
class SyncedSource:
    project_gid: str = ""
    project_name: str = ""
    note_path: str = ""
    is_my_tasks: bool = False
    user_task_list_gid: str | None = None

    @property
    def list_gid(self) -> str:
        """Gid of the parent list whose section memberships apply to this note."""
        if self.is_my_tasks and self.user_task_list_gid:
            return self.user_task_list_gid
        return self.project_gid

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SyncedSource:
        return cls(
            project_gid=str(d.get("project_gid", "")),
            project_name=str(d.get("project_name", "")),
            note_path=str(d.get("note_path", "")),
            is_my_tasks=bool(d.get("is_my_tasks", False)),
            user_task_list_gid=d.get("user_task_list_gid") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "project_gid": self.project_gid,
            "project_name": self.project_name,
            "note_path": self.note_path,
            "is_my_tasks": self.is_my_tasks,
        }
        if self.user_task_list_gid:
            d["user_task_list_gid"] = self.user_task_list_gid
        return d


@dataclass
class Settings:
    asana_access_token: str = ""
    workspace_gid: str = ""
    workspace_name: str = ""
    user_gid: str = ""
    synced_projects: list[SyncedSource] = field(default_factory=list)
    sync_interval_minutes: int = 5
    sync_folder: str = "Asana"
    show_due_dates: bool = True
    show_assignees: bool = True
    show_completed_tasks: bool = False

    @property
    def display(self) -> DisplayOptions:
        return DisplayOptions(
            show_due_dates=self.show_due_dates,
            show_assignees=self.show_assignees,
            show_completed_tasks=self.show_completed_tasks,
        )

    def find_source(self, note_path: str) -> SyncedSource | None:
        for s in self.synced_projects:
            if s.note_path == note_path:
                return s
        return None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        sources = [
            SyncedSource.from_dict(s)
            for s in (d.get("synced_projects") or [])
            if isinstance(s, dict)
        ]
        return cls(
            asana_access_token=str(d.get("asana_access_token") or ""),
            workspace_gid=str(d.get("workspace_gid") or ""),
            workspace_name=str(d.get("workspace_name") or ""),
            user_gid=str(d.get("user_gid") or ""),
            synced_projects=sources,
            sync_interval_minutes=int(d.get("sync_interval_minutes", 5)),
            sync_folder=str(d.get("sync_folder") or "Asana"),
            show_due_dates=bool(d.get("show_due_dates", True)),
            show_assignees=bool(d.get("show_assignees", True)),
            show_completed_tasks=bool(d.get("show_completed_tasks", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "asana_access_token": self.asana_access_token,
            "workspace_gid": self.workspace_gid,
            "workspace_name": self.workspace_name,
            "user_gid": self.user_gid,
            "synced_projects": [s.to_dict() for s in self.synced_projects],
            "sync_interval_minutes": self.sync_interval_minutes,
            "sync_folder": self.sync_folder,
            "show_due_dates": self.show_due_dates,
            "show_assignees": self.show_assignees,
            "show_completed_tasks": self.show_completed_tasks,
        }
