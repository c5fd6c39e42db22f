"""Asana ⇄ markdown task sync core library.

Public API re-exports for convenient imports:
    from core import parse_task_line, sync_project, ChangeDetector, ...
"""

# Workspace & paths
from core.workspace import (
    vault_root,
    now_utc,
    config_dir,
    settings_path,
    log_dir,
)

# File I/O
from core.fileio import (
    read_text,
    read_yaml,
    write_text_atomic,
    write_yaml_atomic,
    VaultStore,
)

# Task lines
from core.checkbox import (
    tokenize_task_line,
    parse_task_line,
    format_task_line,
    find_task_gid,
)

# Notes
from core.document import (
    parse_note_content,
    generate_note_content,
    SectionIndex,
)

# Asana
from core.asana import (
    AsanaClient,
    AsanaError,
    AsanaAPIError,
)

# Settings
from core.settings import (
    load_settings,
    save_settings,
    validate_settings,
    build_source,
    add_source,
    remove_source,
    select_workspace,
    available_projects,
)

# Reconciliation
from core.sync import (
    ConflictPolicy,
    LocalWins,
    RemoteWins,
    SyncReport,
    sync_project,
    sync_all_projects,
)

# Local change detection
from core.watcher import ChangeDetector

# Host
from core.service import SyncService

# Models
from core.models import (
    Assignee,
    Membership,
    RemoteTask,
    LocalTask,
    ParsedDocument,
    DisplayOptions,
    SyncStats,
    SyncedSource,
    Settings,
    Workspace,
    Project,
    Section,
    User,
)
