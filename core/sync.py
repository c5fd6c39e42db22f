"""Bidirectional reconciliation between Asana and synced notes.

One pass per source:

0. fetch the remote list
1. create the note if it does not exist yet (and stop)
2. join note tasks and remote tasks on gid
3. arbitrate completion conflicts and push the winner
4. re-fetch the remote list
5. rewrite known task lines from the fresh remote state
6. append tasks the note does not mention yet
7. write the note back only if its content changed
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Protocol

import httpx

from core.asana import AsanaClient, AsanaError
from core.checkbox import find_task_gid, format_task_line, parse_task_line
from core.document import (
    LAST_SYNC_KEY,
    SECTION_PREFIX,
    SectionIndex,
    frontmatter_span,
    generate_note_content,
    group_by_section,
    last_sync_line,
    parse_note_content,
    tasks_by_gid,
)
from core.fileio import VaultStore
from core.models import (
    UNSECTIONED,
    DisplayOptions,
    LocalTask,
    RemoteTask,
    Settings,
    SyncedSource,
    SyncStats,
)
from core.workspace import now_utc


logger = logging.getLogger(__name__)

NoticeFn = Callable[[str], None]
BeforeWriteFn = Callable[[str, str], None]


# ── Conflict arbitration ──────────────────────────────────────


class ConflictPolicy(Protocol):
    def resolve(self, local: LocalTask, remote: RemoteTask) -> bool | None:
        """Completion value to push to Asana, or None to leave Asana alone."""
        ...


class LocalWins:
    """The note's checkbox wins.

    There are no trustworthy edit times on either side; this assumes a
    differing checkbox was edited since the last pass.
    """

    def resolve(self, local: LocalTask, remote: RemoteTask) -> bool | None:
        return local.completed


class RemoteWins:
    """Never push; the rewrite phase copies Asana's state into the note."""

    def resolve(self, local: LocalTask, remote: RemoteTask) -> bool | None:
        return None


LOCAL_WINS = LocalWins()


@dataclass
class SyncReport:
    totals: SyncStats = field(default_factory=SyncStats)
    results: dict[str, SyncStats] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)


# ── Helpers ───────────────────────────────────────────────────


async def fetch_source_tasks(client: AsanaClient, source: SyncedSource) -> list[RemoteTask]:
    if source.is_my_tasks and source.user_task_list_gid:
        return await client.fetch_user_tasks(source.user_task_list_gid)
    return await client.fetch_project_tasks(source.project_gid)


def _touch_last_sync(lines: list[str], end: int, synced_at: datetime) -> None:
    """Refresh (or add) the last-sync key inside the frontmatter block."""
    stamp = last_sync_line(synced_at)
    for i in range(1, end):
        if lines[i].startswith(f"{LAST_SYNC_KEY}:"):
            lines[i] = stamp
            return
    lines.insert(end, stamp)


def _end_insertion_point(lines: list[str], floor: int) -> int:
    """Index after the last non-blank line, keeping trailing blank lines last."""
    idx = len(lines)
    while idx > floor and lines[idx - 1].strip() == "":
        idx -= 1
    return idx


async def _push_conflicts(
    client: AsanaClient,
    local_map: dict[str, LocalTask],
    remote_map: dict[str, RemoteTask],
    policy: ConflictPolicy,
) -> set[str]:
    pushed: set[str] = set()
    for gid, local in local_map.items():
        remote = remote_map.get(gid)
        if remote is None or local.completed == remote.completed:
            continue
        value = policy.resolve(local, remote)
        if value is None or value == remote.completed:
            continue
        try:
            await client.update_task_completion(gid, value)
        except (AsanaError, httpx.HTTPError) as e:
            logger.error("Failed to update task %s in Asana: %s", gid, e)
            continue
        pushed.add(gid)
    return pushed


# ── Reconciliation ────────────────────────────────────────────


async def sync_project(
    client: AsanaClient,
    store: VaultStore,
    options: DisplayOptions,
    source: SyncedSource,
    *,
    policy: ConflictPolicy = LOCAL_WINS,
    before_write: BeforeWriteFn | None = None,
    clock: Callable[[], datetime] = now_utc,
) -> SyncStats:
    """Run one reconciliation pass for *source*."""
    stats = SyncStats()
    note_path = source.note_path

    remote_tasks = await fetch_source_tasks(client, source)

    if not store.exists(note_path):
        content = generate_note_content(source, remote_tasks, options, clock())
        folder = str(PurePosixPath(note_path).parent)
        if folder not in ("", "."):
            store.create_folder(folder)
        if before_write is not None:
            before_write(note_path, content)
        store.create(note_path, content)
        stats.added = sum(
            1 for t in remote_tasks if options.show_completed_tasks or not t.completed
        )
        logger.info("Created %s with %d tasks", note_path, stats.added)
        return stats

    existing = store.read(note_path)
    doc = parse_note_content(existing)
    local_map = tasks_by_gid(doc.tasks)
    remote_map = {t.gid: t for t in remote_tasks}

    pushed = await _push_conflicts(client, local_map, remote_map, policy)
    stats.completion_changes = len(pushed)

    remote_tasks = await fetch_source_tasks(client, source)
    remote_map = {t.gid: t for t in remote_tasks}

    lines = doc.raw_lines
    span = frontmatter_span(lines)
    body_start = span[1] + 1 if span is not None else 0
    seen: set[str] = set()

    new_lines = lines[:body_start]
    for i in range(body_start, len(lines)):
        line = lines[i]
        if line.startswith(SECTION_PREFIX) or line == doc.header:
            new_lines.append(line)
            continue

        task = parse_task_line(line, i)
        if task is None or task.gid is None:
            gid = find_task_gid(line)
            if gid:
                # Unparseable line still claims this task; leave it be.
                seen.add(gid)
            new_lines.append(line)
            continue

        seen.add(task.gid)
        remote = remote_map.get(task.gid)
        if remote is None:
            # Gone from Asana (deleted or moved); never drop user content.
            new_lines.append(line)
            continue
        if not options.show_completed_tasks and remote.completed:
            continue

        formatted = format_task_line(remote, options)
        if formatted != line or task.gid in pushed:
            stats.updated += 1
        new_lines.append(formatted)

    new_tasks = [
        t
        for t in remote_tasks
        if t.gid not in seen and (options.show_completed_tasks or not t.completed)
    ]
    index = SectionIndex(new_lines, body_start)
    tail: list[str] = []
    for name, group in group_by_section(new_tasks, source.list_gid).items():
        formatted_lines = [format_task_line(t, options) for t in group]
        stats.added += len(formatted_lines)
        if name == UNSECTIONED:
            tail.extend(formatted_lines)
        elif name in index:
            at = index.insertion_point(name, new_lines)
            new_lines[at:at] = formatted_lines
            index.insert(at, len(formatted_lines))
        else:
            tail.extend(["", f"{SECTION_PREFIX}{name}", "", *formatted_lines])
    if tail:
        at = _end_insertion_point(new_lines, body_start)
        new_lines[at:at] = tail

    if new_lines != lines and span is not None and span[1] < len(lines):
        _touch_last_sync(new_lines, span[1], clock())

    new_content = "\n".join(new_lines)
    if new_content != existing:
        if before_write is not None:
            before_write(note_path, new_content)
        store.write(note_path, new_content)
        logger.info(
            "Wrote %s (+%d added, %d updated, %d completion changes)",
            note_path,
            stats.added,
            stats.updated,
            stats.completion_changes,
        )
    return stats


async def sync_all_projects(
    client: AsanaClient,
    store: VaultStore,
    settings: Settings,
    *,
    on_notice: NoticeFn | None = None,
    policy: ConflictPolicy = LOCAL_WINS,
    before_write: BeforeWriteFn | None = None,
) -> SyncReport:
    """Sync every configured source; one failing source does not stop the rest."""
    notify = on_notice or (lambda _msg: None)
    report = SyncReport()

    if not settings.asana_access_token:
        notify("Asana Sync: No access token configured")
        return report
    if not settings.synced_projects:
        notify("Asana Sync: No projects configured for sync")
        return report

    for source in settings.synced_projects:
        try:
            stats = await sync_project(
                client,
                store,
                settings.display,
                source,
                policy=policy,
                before_write=before_write,
            )
        except Exception as e:
            logger.exception("Failed to sync project %s", source.project_name)
            report.failures[source.project_name] = str(e)
            notify(f'Asana Sync: Failed to sync "{source.project_name}"')
            continue
        report.results[source.project_name] = stats
        report.totals = report.totals + stats

    parts = []
    if report.totals.added:
        parts.append(f"{report.totals.added} added")
    if report.totals.completion_changes:
        parts.append(f"{report.totals.completion_changes} completion changes")
    if parts:
        notify(f"Asana Sync: {', '.join(parts)}")
    return report
