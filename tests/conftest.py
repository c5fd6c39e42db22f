"""Shared test fixtures for task sync tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from core.fileio import VaultStore
from core.models import DisplayOptions, SyncedSource


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Create a temporary vault with a settings file."""
    root = tmp_path / "vault"
    (root / ".tasksync").mkdir(parents=True)

    settings = {
        "asana_access_token": "file-token",
        "workspace_gid": "W1",
        "workspace_name": "Acme",
        "synced_projects": [
            {
                "project_gid": "P1",
                "project_name": "Proj",
                "note_path": "Asana/Proj.md",
                "is_my_tasks": False,
            }
        ],
        "sync_interval_minutes": 5,
        "sync_folder": "Asana",
        "show_due_dates": True,
        "show_assignees": True,
        "show_completed_tasks": False,
    }
    (root / ".tasksync" / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    os.environ["VAULT_ROOT"] = str(root)
    os.environ.pop("ASANA_ACCESS_TOKEN", None)
    yield root
    if "VAULT_ROOT" in os.environ:
        del os.environ["VAULT_ROOT"]


@pytest.fixture
def store(vault: Path) -> VaultStore:
    return VaultStore(vault)


@pytest.fixture
def source() -> SyncedSource:
    return SyncedSource(project_gid="P1", project_name="Proj", note_path="Asana/Proj.md")


@pytest.fixture
def options() -> DisplayOptions:
    return DisplayOptions()