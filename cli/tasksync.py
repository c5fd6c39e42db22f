#!/usr/bin/env python3
"""Task sync TUI: keeps Asana projects and vault notes in agreement."""

from __future__ import annotations

import asyncio
import sys

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import DataTable, Footer, Header, Label, Log

from core import SyncService, log_dir, validate_settings, vault_root
from core.logging_setup import setup_logging


CSS = """
Screen {
    background: $surface;
}

#main-layout {
    height: 1fr;
    padding: 0 1;
}

.section-title {
    text-style: bold;
    color: $text;
    margin: 1 0 0 0;
    padding: 0 1;
}

#sources-table {
    height: auto;
    max-height: 50%;
}

#notice-log {
    height: 1fr;
    border: tall $primary-background-darken-2;
}
"""


class TaskSyncApp(App):
    """Live view of synced sources and sync notices."""

    TITLE = "Task Sync"
    CSS = CSS

    BINDINGS = [
        Binding("s", "sync_now", "Sync now"),
        Binding("r", "reload_settings", "Reload settings"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self, service: SyncService) -> None:
        super().__init__()
        self.service = service
        self.service.on_notice = self._on_notice

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(
            Label("Sources", classes="section-title"),
            DataTable(id="sources-table"),
            Label("Notices", classes="section-title"),
            Log(id="notice-log"),
            id="main-layout",
        )
        yield Footer()

    async def on_mount(self) -> None:
        table = self.query_one("#sources-table", DataTable)
        table.add_columns("Project", "Note", "Added", "Updated", "Completion", "Error")
        for error in validate_settings(self.service.settings):
            self._on_notice(f"Settings: {error}")
        await self.service.start()
        self._refresh_table()

    async def on_unmount(self) -> None:
        await self.service.stop()

    def _on_notice(self, message: str) -> None:
        self.query_one("#notice-log", Log).write_line(message)
        self.notify(message, title="Asana Sync")

    def _refresh_table(self) -> None:
        table = self.query_one("#sources-table", DataTable)
        table.clear()
        report = self.service.last_report
        for s in self.service.settings.synced_projects:
            stats = report.results.get(s.project_name) if report else None
            error = report.failures.get(s.project_name, "") if report else ""
            table.add_row(
                s.project_name,
                s.note_path,
                str(stats.added) if stats else "-",
                str(stats.updated) if stats else "-",
                str(stats.completion_changes) if stats else "-",
                error,
            )
        synced = self.service.last_synced_at
        self.sub_title = f"last sync {synced:%H:%M:%S}" if synced else "not synced yet"

    @work(exclusive=True)
    async def action_sync_now(self) -> None:
        report = await self.service.run_sync()
        if report is None and self.service.is_syncing:
            self.notify("A sync is already running", severity="warning")
        self._refresh_table()

    async def action_reload_settings(self) -> None:
        await self.service.reload_settings()
        self._refresh_table()
        self.notify("Settings reloaded")

    def action_quit_app(self) -> None:
        self.exit()


# ── Entry point ────────────────────────────────────────────────


async def _sync_once(service: SyncService) -> int:
    try:
        report = await service.run_sync()
    finally:
        await service.stop()
    if report is None:
        return 1
    totals = report.totals
    print(
        f"added={totals.added} updated={totals.updated} "
        f"completion_changes={totals.completion_changes} failures={len(report.failures)}"
    )
    return 1 if report.failures else 0


def main() -> None:
    root = vault_root()
    if not root.exists():
        print(f"Vault not found: {root}")
        print("Set VAULT_ROOT to your notes folder.")
        sys.exit(1)

    headless = "--once" in sys.argv[1:]
    setup_logging(log_dir=log_dir(root), console=headless)

    if headless:
        service = SyncService(root)
        sys.exit(asyncio.run(_sync_once(service)))

    app = TaskSyncApp(SyncService(root))
    app.run()


if __name__ == "__main__":
    main()
