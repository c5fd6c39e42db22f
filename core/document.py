"""Note structure: frontmatter, header, sections and task lines."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import datetime

from core.checkbox import format_task_line, parse_task_line
from core.models import (
    UNSECTIONED,
    DisplayOptions,
    LocalTask,
    ParsedDocument,
    RemoteTask,
    SyncedSource,
)


FRONTMATTER_DELIMITER = "---"
HEADER_PREFIX = "# "
SECTION_PREFIX = "## "
LAST_SYNC_KEY = "asana_last_sync"


def section_name(line: str) -> str:
    return line[len(SECTION_PREFIX):].strip()


def frontmatter_span(lines: list[str]) -> tuple[int, int] | None:
    """Return (first, last) line indices of the frontmatter block.

    Both indices point at delimiter lines. An unterminated block runs to the
    end of the document and returns last == len(lines).
    """
    if not lines or lines[0] != FRONTMATTER_DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i] == FRONTMATTER_DELIMITER:
            return 0, i
    return 0, len(lines)


def parse_note_content(content: str) -> ParsedDocument:
    lines = content.split("\n")
    doc = ParsedDocument(raw_lines=lines)

    start = 0
    span = frontmatter_span(lines)
    if span is not None:
        end = min(span[1], len(lines) - 1)
        doc.frontmatter = "".join(line + "\n" for line in lines[: end + 1])
        start = end + 1

    current = UNSECTIONED
    for i in range(start, len(lines)):
        line = lines[i]

        if not doc.header and line.startswith(HEADER_PREFIX):
            doc.header = line
            continue

        if line.startswith(SECTION_PREFIX):
            current = section_name(line)
            doc.sections.setdefault(current, [])
            continue

        task = parse_task_line(line, i)
        if task is None:
            continue
        doc.tasks.append(task)
        doc.sections.setdefault(current, []).append(task)

    return doc


def tasks_by_gid(tasks: Iterable[LocalTask]) -> dict[str, LocalTask]:
    return {t.gid: t for t in tasks if t.gid}


def group_by_section(tasks: Iterable[RemoteTask], list_gid: str) -> dict[str, list[RemoteTask]]:
    """Group tasks by their section in *list_gid*, in first-appearance order."""
    groups: dict[str, list[RemoteTask]] = {}
    for task in tasks:
        name = task.section_for(list_gid) or UNSECTIONED
        groups.setdefault(name, []).append(task)
    return groups


def last_sync_line(synced_at: datetime) -> str:
    return f'{LAST_SYNC_KEY}: "{synced_at.isoformat(timespec="milliseconds")}"'


def generate_note_content(
    source: SyncedSource,
    tasks: list[RemoteTask],
    options: DisplayOptions,
    synced_at: datetime,
) -> str:
    """Render a brand-new note for *source* from a remote snapshot."""
    lines = [
        FRONTMATTER_DELIMITER,
        f'asana_project_gid: "{source.project_gid}"',
        f"asana_is_my_tasks: {'true' if source.is_my_tasks else 'false'}",
        last_sync_line(synced_at),
        FRONTMATTER_DELIMITER,
        "",
        f"{HEADER_PREFIX}{source.project_name}",
        "",
    ]

    visible = tasks if options.show_completed_tasks else [t for t in tasks if not t.completed]
    for name, section_tasks in group_by_section(visible, source.list_gid).items():
        if name != UNSECTIONED:
            lines.append(f"{SECTION_PREFIX}{name}")
            lines.append("")
        for task in section_tasks:
            lines.append(format_task_line(task, options))
        lines.append("")

    return "\n".join(lines)


class SectionIndex:
    """Line spans of the `## ` sections in a line list.

    Built once per pass. Each span runs from its heading line up to (not
    including) the next heading, or the end of the document. `insert` keeps
    the spans valid as lines are spliced in, so callers never re-scan.
    Lines before *start* (the frontmatter) are never read as headings.
    """

    def __init__(self, lines: list[str], start: int = 0) -> None:
        self._starts: list[int] = []
        self._names: dict[str, int] = {}
        for i in range(start, len(lines)):
            line = lines[i]
            if line.startswith(SECTION_PREFIX):
                # First heading wins when a name repeats.
                self._names.setdefault(section_name(line), len(self._starts))
                self._starts.append(i)
        self._length = len(lines)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def span(self, name: str) -> tuple[int, int]:
        k = self._names[name]
        end = self._starts[k + 1] if k + 1 < len(self._starts) else self._length
        return self._starts[k], end

    def insertion_point(self, name: str, lines: list[str]) -> int:
        """Index right after the last non-blank line inside the section."""
        start, end = self.span(name)
        idx = end
        while idx > start + 1 and lines[idx - 1].strip() == "":
            idx -= 1
        return idx

    def insert(self, index: int, count: int) -> None:
        """Record *count* lines spliced in at *index*."""
        k = bisect_right(self._starts, index - 1)
        for j in range(k, len(self._starts)):
            self._starts[j] += count
        self._length += count
