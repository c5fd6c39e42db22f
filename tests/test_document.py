"""Tests for core/document.py."""

from datetime import date

from core.document import (
    SectionIndex,
    frontmatter_span,
    generate_note_content,
    group_by_section,
    last_sync_line,
    parse_note_content,
    tasks_by_gid,
)
from core.models import UNSECTIONED, DisplayOptions, SyncedSource

from .fakes import FIXED_NOW, FIXED_STAMP, remote_task


NOTE = """---
asana_project_gid: "P1"
asana_is_my_tasks: false
asana_last_sync: "2024-04-01T08:00:00.000+00:00"
---

# Proj

- [ ] Loose task <!-- id:1 -->

## Doing

- [ ] Write report 📅 2024-01-15 👤 Jane <!-- id:2 -->
Some free text

## Done

- [x] Ship it <!-- id:3 -->
- [ ] Untracked idea
"""


def test_parse_frontmatter_and_header():
    doc = parse_note_content(NOTE)
    assert doc.frontmatter.startswith("---\nasana_project_gid")
    assert doc.frontmatter.endswith("---\n")
    assert doc.header == "# Proj"
    assert doc.raw_lines == NOTE.split("\n")


def test_parse_tasks_and_sections():
    doc = parse_note_content(NOTE)
    assert [t.name for t in doc.tasks] == ["Loose task", "Write report", "Ship it", "Untracked idea"]
    assert list(doc.sections) == [UNSECTIONED, "Doing", "Done"]
    assert [t.gid for t in doc.sections["Done"]] == ["3", None]
    report = doc.sections["Doing"][0]
    assert report.due_on == date(2024, 1, 15)
    assert report.assignee == "Jane"
    assert doc.raw_lines[report.line_number] == report.line


def test_parse_without_frontmatter():
    doc = parse_note_content("# P\n\n## Backlog\n")
    assert doc.frontmatter == ""
    assert doc.header == "# P"
    assert doc.sections == {"Backlog": []}
    assert doc.tasks == []


def test_parse_unterminated_frontmatter_swallows_document():
    doc = parse_note_content("---\nkey: value\n- [ ] a <!-- id:1 -->")
    assert doc.tasks == []
    assert doc.header == ""


def test_only_first_header_is_the_header():
    doc = parse_note_content("# One\n# Two\n- [ ] a <!-- id:1 -->\n")
    assert doc.header == "# One"
    assert len(doc.tasks) == 1


def test_frontmatter_span():
    assert frontmatter_span(["---", "a: 1", "---", "body"]) == (0, 2)
    assert frontmatter_span(["---", "a: 1"]) == (0, 2)
    assert frontmatter_span(["# title", "---"]) is None
    assert frontmatter_span([]) is None


def test_tasks_by_gid_skips_unidentified():
    doc = parse_note_content(NOTE)
    assert sorted(tasks_by_gid(doc.tasks)) == ["1", "2", "3"]


def test_group_by_section_keeps_first_appearance_order():
    tasks = [
        remote_task("1", "a", section="Later"),
        remote_task("2", "b"),
        remote_task("3", "c", section="Now"),
        remote_task("4", "d", section="Later"),
    ]
    groups = group_by_section(tasks, "P1")
    assert list(groups) == ["Later", UNSECTIONED, "Now"]
    assert [t.gid for t in groups["Later"]] == ["1", "4"]


def test_group_by_section_uses_matching_list_only():
    task = remote_task("1", "a", section="Elsewhere", list_gid="OTHER")
    assert list(group_by_section([task], "P1")) == [UNSECTIONED]


def test_last_sync_line():
    assert last_sync_line(FIXED_NOW) == FIXED_STAMP


def test_generate_note_content():
    source = SyncedSource(project_gid="P1", project_name="Proj", note_path="Asana/Proj.md")
    tasks = [
        remote_task("1", "a", section="Todo", due_on=date(2024, 2, 1)),
        remote_task("2", "b", completed=True, section="Todo"),
        remote_task("3", "c", section="Todo", assignee="Ann"),
    ]
    content = generate_note_content(source, tasks, DisplayOptions(), FIXED_NOW)
    assert content == (
        "---\n"
        'asana_project_gid: "P1"\n'
        "asana_is_my_tasks: false\n"
        f"{FIXED_STAMP}\n"
        "---\n"
        "\n"
        "# Proj\n"
        "\n"
        "## Todo\n"
        "\n"
        "- [ ] a 📅 2024-02-01 <!-- id:1 -->\n"
        "- [ ] c 👤 Ann <!-- id:3 -->\n"
    )


def test_generate_includes_completed_when_asked():
    source = SyncedSource(project_gid="P1", project_name="Proj", note_path="Proj.md")
    tasks = [remote_task("1", "a"), remote_task("2", "b", completed=True)]
    content = generate_note_content(
        source, tasks, DisplayOptions(show_completed_tasks=True), FIXED_NOW
    )
    assert content.endswith("# Proj\n\n- [ ] a <!-- id:1 -->\n- [x] b <!-- id:2 -->\n")


def test_generated_note_parses_back():
    source = SyncedSource(project_gid="P1", project_name="Proj", note_path="Proj.md")
    tasks = [remote_task("1", "a", section="S1"), remote_task("2", "b", section="S2")]
    doc = parse_note_content(generate_note_content(source, tasks, DisplayOptions(), FIXED_NOW))
    assert doc.header == "# Proj"
    assert {name: [t.gid for t in ts] for name, ts in doc.sections.items()} == {
        "S1": ["1"],
        "S2": ["2"],
    }


def test_section_index_spans():
    lines = ["# P", "", "## A", "- a", "", "## B", "- b", ""]
    index = SectionIndex(lines)
    assert "A" in index and "B" in index and "C" not in index
    assert index.span("A") == (2, 5)
    assert index.span("B") == (5, 8)
    assert index.insertion_point("A", lines) == 4
    assert index.insertion_point("B", lines) == 7


def test_section_index_empty_section_inserts_after_heading():
    lines = ["## A", "", "", "## B"]
    assert SectionIndex(lines).insertion_point("A", lines) == 1


def test_section_index_tracks_inserts():
    lines = ["## A", "- a", "## B", "- b"]
    index = SectionIndex(lines)
    at = index.insertion_point("A", lines)
    lines[at:at] = ["- a2", "- a3"]
    index.insert(at, 2)
    assert index.span("A") == (0, 4)
    assert index.span("B") == (4, 6)
    assert lines[index.insertion_point("B", lines) - 1] == "- b"


def test_section_index_repeated_heading_uses_first():
    lines = ["## A", "- a", "## A", "- b"]
    assert SectionIndex(lines).span("A") == (0, 2)


def test_section_index_skips_lines_before_start():
    lines = ["---", "## A", "---", "## A", "- a"]
    index = SectionIndex(lines, 3)
    assert index.span("A") == (3, 5)
    assert "A" not in SectionIndex(lines[:3], 3)
