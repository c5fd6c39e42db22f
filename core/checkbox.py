"""Task line tokenizer, parser and formatter.

A synced task is one markdown checkbox line:

    - [ ] Task name 📅 2024-01-15 👤 John Doe <!-- id:1204 -->
    - [x] Completed task <!-- id:1205 -->

The due date, assignee and id comment are optional trailing segments and,
when present, appear in exactly that order. They are matched from the right:
the id comment ends the line, the assignee is the last segment before it and
the due date the last ``📅 YYYY-MM-DD`` before those. Marker characters
anywhere else belong to the title.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from core.models import DisplayOptions, LocalTask, RemoteTask


DUE_MARKER = "📅"
ASSIGNEE_MARKER = "👤"

_CHECKBOX_RE = re.compile(r"^(\s*)- \[([ xX])\] (.*)$")
_ID_RE = re.compile(r"<!--\s*id:([A-Za-z0-9_]+)\s*-->")
_ID_TAIL_RE = re.compile(r"(?:^|\s)<!--\s*id:([A-Za-z0-9_]+)\s*-->$")
_ASSIGNEE_TAIL_RE = re.compile(
    rf"(?:^|\s){ASSIGNEE_MARKER} ([^{DUE_MARKER}{ASSIGNEE_MARKER}]*?\S)$"
)
_DUE_TAIL_RE = re.compile(rf"(?:^|\s){DUE_MARKER} (\d{{4}}-\d{{2}}-\d{{2}})$")


class TokenKind(Enum):
    CHECKBOX = "checkbox"
    TEXT = "text"
    DUE = "due"
    ASSIGNEE = "assignee"
    ID = "id"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str


def _valid_date(raw: str) -> bool:
    try:
        date.fromisoformat(raw)
    except ValueError:
        return False
    return True


def tokenize_task_line(line: str) -> list[Token]:
    """Split a checkbox line into CHECKBOX, TEXT, then optional DUE, ASSIGNEE, ID.

    Returns an empty list when the line does not start with a checkbox.
    Segments are peeled off the end of the line; whatever is left is the
    TEXT token, even if it contains marker characters.
    """
    m = _CHECKBOX_RE.match(line)
    if not m:
        return []
    rest = m.group(3).rstrip()
    tail: list[Token] = []

    id_match = _ID_TAIL_RE.search(rest)
    if id_match:
        tail.append(Token(TokenKind.ID, id_match.group(1)))
        rest = rest[:id_match.start()].rstrip()

    assignee_match = _ASSIGNEE_TAIL_RE.search(rest)
    if assignee_match and "<!--" not in assignee_match.group(1):
        tail.append(Token(TokenKind.ASSIGNEE, assignee_match.group(1).strip()))
        rest = rest[:assignee_match.start()].rstrip()

    due_match = _DUE_TAIL_RE.search(rest)
    if due_match and _valid_date(due_match.group(1)):
        tail.append(Token(TokenKind.DUE, due_match.group(1)))
        rest = rest[:due_match.start()].rstrip()

    tokens = [Token(TokenKind.CHECKBOX, m.group(2)), Token(TokenKind.TEXT, rest)]
    tokens.extend(reversed(tail))
    return tokens


def parse_task_line(line: str, line_number: int = 0) -> LocalTask | None:
    """Parse one line into a LocalTask, or None if it is not a task line.

    A checkbox line whose title still holds an id comment (text after the
    comment, or two comments) is not a task.
    """
    tokens = tokenize_task_line(line)
    if not tokens:
        return None

    name = tokens[1].value.strip()
    if _ID_RE.search(name):
        return None

    due_on: date | None = None
    assignee: str | None = None
    gid: str | None = None
    for tok in tokens[2:]:
        if tok.kind is TokenKind.DUE:
            due_on = date.fromisoformat(tok.value)
        elif tok.kind is TokenKind.ASSIGNEE:
            assignee = tok.value
        else:
            gid = tok.value

    return LocalTask(
        line=line,
        line_number=line_number,
        completed=tokens[0].value in ("x", "X"),
        name=name,
        due_on=due_on,
        assignee=assignee,
        gid=gid,
    )


def find_task_gid(line: str) -> str | None:
    """Return the id from an identifier comment anywhere in *line*."""
    m = _ID_RE.search(line)
    return m.group(1) if m else None


def format_task_line(task: RemoteTask, options: DisplayOptions) -> str:
    checkbox = "- [x]" if task.completed else "- [ ]"
    line = f"{checkbox} {task.name}"
    if options.show_due_dates and task.due_on:
        line += f" {DUE_MARKER} {task.due_on.isoformat()}"
    if options.show_assignees and task.assignee and task.assignee.name:
        line += f" {ASSIGNEE_MARKER} {task.assignee.name}"
    line += f" <!-- id:{task.gid} -->"
    return line
