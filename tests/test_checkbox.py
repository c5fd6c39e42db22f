"""Tests for core/checkbox.py."""

from datetime import date

import pytest

from core.checkbox import (
    TokenKind,
    find_task_gid,
    format_task_line,
    parse_task_line,
    tokenize_task_line,
)
from core.models import Assignee, DisplayOptions, RemoteTask


def test_parse_basic():
    t = parse_task_line("- [ ] Buy milk", 3)
    assert t is not None
    assert t.name == "Buy milk"
    assert t.completed is False
    assert t.line_number == 3
    assert t.gid is None
    assert t.due_on is None
    assert t.assignee is None


@pytest.mark.parametrize("box", ["x", "X"])
def test_parse_completed(box):
    t = parse_task_line(f"- [{box}] Done thing <!-- id:42 -->")
    assert t.completed is True
    assert t.gid == "42"


def test_parse_all_markers():
    line = "- [ ] Write report 📅 2024-01-15 👤 John Doe <!-- id:1204 -->"
    t = parse_task_line(line)
    assert t.line == line
    assert t.name == "Write report"
    assert t.due_on == date(2024, 1, 15)
    assert t.assignee == "John Doe"
    assert t.gid == "1204"


def test_parse_subset_of_markers():
    t = parse_task_line("- [ ] Call Bob 👤 Bob <!-- id:7 -->")
    assert t.due_on is None
    assert t.assignee == "Bob"
    t = parse_task_line("- [ ] Ship it 📅 2024-02-01")
    assert t.due_on == date(2024, 2, 1)
    assert t.gid is None


def test_markers_out_of_place_stay_in_title():
    t = parse_task_line("- [ ] Task 👤 Bob 📅 2024-01-15 <!-- id:1 -->")
    assert t.name == "Task 👤 Bob"
    assert t.due_on == date(2024, 1, 15)
    assert t.assignee is None
    assert t.gid == "1"

    t = parse_task_line("- [ ] Book 📅 flights 👤 Ann")
    assert t.name == "Book 📅 flights"
    assert t.assignee == "Ann"


def test_bad_operands_are_title_text():
    t = parse_task_line("- [ ] Task 📅 tomorrow")
    assert (t.name, t.due_on) == ("Task 📅 tomorrow", None)
    t = parse_task_line("- [ ] Task 📅 2024-13-40")
    assert (t.name, t.due_on) == ("Task 📅 2024-13-40", None)
    t = parse_task_line("- [ ] Task 👤  <!-- id:1 -->")
    assert (t.name, t.assignee, t.gid) == ("Task 👤", None, "1")


def test_id_comment_must_end_the_line():
    assert parse_task_line("- [ ] Task <!-- id:1 --> later") is None
    assert parse_task_line("- [ ] Task <!-- id:1 --> 📅 2024-01-15") is None
    assert parse_task_line("- [ ] a <!-- id:1 --> <!-- id:2 -->") is None


def test_parse_trailing_whitespace_is_insignificant():
    t = parse_task_line("- [ ] Task <!-- id:9 -->   ")
    assert t.name == "Task"
    assert t.gid == "9"
    t = parse_task_line("- [ ] Task  📅 2024-01-15   👤 Ann  <!-- id:9 -->")
    assert (t.name, t.due_on, t.assignee) == ("Task", date(2024, 1, 15), "Ann")


def test_parse_empty_title():
    t = parse_task_line("- [ ]  <!-- id:1 -->")
    assert t.name == ""
    assert t.gid == "1"
    t = parse_task_line("- [x]  📅 2024-01-01")
    assert (t.name, t.completed, t.due_on) == ("", True, date(2024, 1, 1))


def test_parse_non_task_lines():
    assert parse_task_line("") is None
    assert parse_task_line("## Section") is None
    assert parse_task_line("Some text <!-- id:1 -->") is None
    assert parse_task_line("- [ ]") is None
    assert parse_task_line("* [ ] Star bullet") is None


def test_parse_tolerates_comment_spacing():
    t = parse_task_line("- [ ] Task <!--id:55-->")
    assert t.gid == "55"


def test_tokenize():
    kinds = [tok.kind for tok in tokenize_task_line("- [x] A 📅 2024-01-01 👤 Ann <!-- id:1 -->")]
    assert kinds == [
        TokenKind.CHECKBOX,
        TokenKind.TEXT,
        TokenKind.DUE,
        TokenKind.ASSIGNEE,
        TokenKind.ID,
    ]
    assert tokenize_task_line("plain text") == []


def test_find_task_gid():
    assert find_task_gid("whatever <!-- id:abc_1 --> trailing") == "abc_1"
    assert find_task_gid("- [ ] no id") is None


def _task(**kw) -> RemoteTask:
    base = dict(
        gid="1",
        name="Write report",
        completed=False,
        due_on=date(2024, 1, 15),
        assignee=Assignee(gid="u1", name="Jane Roe"),
    )
    base.update(kw)
    return RemoteTask(**base)


def test_format_full():
    assert format_task_line(_task(completed=True), DisplayOptions()) == (
        "- [x] Write report 📅 2024-01-15 👤 Jane Roe <!-- id:1 -->"
    )


def test_format_respects_options():
    opts = DisplayOptions(show_due_dates=False, show_assignees=False)
    assert format_task_line(_task(), opts) == "- [ ] Write report <!-- id:1 -->"
    opts = DisplayOptions(show_due_dates=True, show_assignees=False)
    assert format_task_line(_task(), opts) == "- [ ] Write report 📅 2024-01-15 <!-- id:1 -->"


def test_format_omits_absent_fields():
    line = format_task_line(_task(due_on=None, assignee=None), DisplayOptions())
    assert line == "- [ ] Write report <!-- id:1 -->"


@pytest.mark.parametrize(
    "task",
    [
        _task(),
        _task(completed=True, due_on=None),
        _task(assignee=None, gid="998877"),
        _task(name="Fix: the thing (v2)", assignee=Assignee(gid="u2", name="Ann-Marie O'Neil")),
        _task(name="Book 📅 flights"),
        _task(name="Ask 👤 team"),
        _task(name=""),
        _task(name="", due_on=None, assignee=None),
    ],
)
def test_parse_inverts_format(task):
    line = format_task_line(task, DisplayOptions())
    parsed = parse_task_line(line)
    assert parsed is not None
    assert parsed.name == task.name
    assert parsed.completed == task.completed
    assert parsed.due_on == task.due_on
    assert parsed.assignee == (task.assignee.name if task.assignee else None)
    assert parsed.gid == task.gid
    assert format_task_line(task, DisplayOptions()) == line
