"""Tests for core/models.py: payload parsing and settings round-trips."""

from datetime import date

from core.models import (
    UNSECTIONED,
    Assignee,
    RemoteTask,
    Settings,
    SyncedSource,
    SyncStats,
)


def test_remote_task_from_dict():
    t = RemoteTask.from_dict(
        {
            "gid": 1204,
            "name": "Write report",
            "completed": True,
            "due_on": "2024-01-15",
            "assignee": {"gid": "u1", "name": "Jane"},
            "memberships": [
                {"project": {"gid": "P1", "name": "Proj"}, "section": {"gid": "s1", "name": "Doing"}},
                {"project": {"gid": "P2", "name": "Other"}, "section": None},
            ],
        }
    )
    assert t.gid == "1204"
    assert t.completed is True
    assert t.due_on == date(2024, 1, 15)
    assert t.assignee == Assignee(gid="u1", name="Jane")
    assert t.section_for("P1") == "Doing"
    assert t.section_for("P2") is None
    assert t.section_for("P3") is None


def test_remote_task_tolerates_missing_fields():
    t = RemoteTask.from_dict({"gid": "1", "due_on": "not a date", "assignee": None, "name": None})
    assert t.name == ""
    assert t.due_on is None
    assert t.assignee is None
    assert t.memberships == []


def test_sync_stats_add_and_dict():
    total = SyncStats(added=1, updated=2) + SyncStats(completion_changes=3, added=1)
    assert total == SyncStats(added=2, updated=2, completion_changes=3)
    assert total.to_dict() == {"added": 2, "updated": 2, "completionChanges": 3}


def test_synced_source_list_gid():
    project = SyncedSource(project_gid="P1")
    mine = SyncedSource(project_gid="UTL1", is_my_tasks=True, user_task_list_gid="UTL9")
    assert project.list_gid == "P1"
    assert mine.list_gid == "UTL9"


def test_settings_round_trip():
    settings = Settings(
        asana_access_token="tok",
        workspace_gid="W1",
        synced_projects=[
            SyncedSource(project_gid="P1", project_name="Proj", note_path="Asana/Proj.md"),
            SyncedSource(
                project_gid="UTL1",
                project_name="My Tasks",
                note_path="Asana/My Tasks.md",
                is_my_tasks=True,
                user_task_list_gid="UTL1",
            ),
        ],
        show_assignees=False,
    )
    d = settings.to_dict()
    assert "user_task_list_gid" not in d["synced_projects"][0]
    assert Settings.from_dict(d) == settings


def test_settings_defaults_and_display():
    settings = Settings.from_dict(None)
    assert settings.sync_interval_minutes == 5
    assert settings.sync_folder == "Asana"
    display = settings.display
    assert (display.show_due_dates, display.show_assignees, display.show_completed_tasks) == (
        True,
        True,
        False,
    )


def test_settings_find_source():
    s = SyncedSource(project_gid="P1", note_path="Asana/Proj.md")
    settings = Settings(synced_projects=[s])
    assert settings.find_source("Asana/Proj.md") is s
    assert settings.find_source("Asana/Other.md") is None


def test_unsectioned_label():
    assert UNSECTIONED == "(Unsectioned)"
