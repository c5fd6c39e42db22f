"""Long-running sync host: periodic passes, file watching and notices.

Everything runs on one asyncio loop. The watchdog observer thread only hands
events over to the loop with call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from core.asana import AsanaClient
from core.fileio import VaultStore
from core.models import Settings
from core.settings import load_settings
from core.sync import LOCAL_WINS, ConflictPolicy, SyncReport, sync_all_projects
from core.watcher import ChangeDetector
from core.workspace import now_utc, vault_root


logger = logging.getLogger(__name__)

INITIAL_SYNC_DELAY_SECONDS = 5.0
MAX_NOTICES = 50

ClientFactory = Callable[[str], AsanaClient]
NoticeFn = Callable[[str], None]


class _NoteEventHandler(FileSystemEventHandler):
    """Forward markdown modifications to the service on its loop."""

    def __init__(self, service: SyncService, loop: asyncio.AbstractEventLoop) -> None:
        self._service = service
        self._loop = loop

    def _forward(self, raw_path: str | bytes) -> None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        path = Path(raw_path)
        if path.suffix != ".md":
            return
        try:
            rel = path.resolve().relative_to(self._service.root).as_posix()
        except ValueError:
            return
        self._loop.call_soon_threadsafe(self._service.on_file_modified, rel)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors that save through a temp file + rename.
        if not event.is_directory:
            self._forward(event.dest_path)


class SyncService:
    def __init__(
        self,
        root: Path | None = None,
        *,
        settings: Settings | None = None,
        client_factory: ClientFactory = AsanaClient,
        on_notice: NoticeFn | None = None,
        policy: ConflictPolicy = LOCAL_WINS,
        initial_delay: float = INITIAL_SYNC_DELAY_SECONDS,
    ) -> None:
        self.root = (root or vault_root()).resolve()
        self.settings = settings if settings is not None else load_settings(self.root)
        self.store = VaultStore(self.root)
        self.policy = policy
        self.initial_delay = initial_delay
        self.notices: deque[str] = deque(maxlen=MAX_NOTICES)
        self.is_syncing = False
        self.last_report: SyncReport | None = None
        self.last_synced_at: datetime | None = None

        self._client_factory = client_factory
        self._client: AsanaClient | None = None
        self.on_notice = on_notice
        self._periodic_task: asyncio.Task[None] | None = None
        self._observer: Any = None

        self.detector = ChangeDetector(self.store, self._push_completion, on_notice=self.notice)

    @property
    def client(self) -> AsanaClient:
        if self._client is None:
            self._client = self._client_factory(self.settings.asana_access_token)
        return self._client

    def notice(self, message: str) -> None:
        logger.info("%s", message)
        self.notices.append(message)
        if self.on_notice is not None:
            self.on_notice(message)

    async def _push_completion(self, gid: str, completed: bool) -> None:
        await self.client.update_task_completion(gid, completed)

    # ── Reconciliation ────────────────────────────────────────

    async def run_sync(self) -> SyncReport | None:
        """Run a full pass over all sources; returns None if one is already running."""
        if self.is_syncing:
            logger.debug("Sync already in progress; trigger dropped")
            return None
        self.is_syncing = True
        written: list[str] = []

        def before_write(path: str, content: str) -> None:
            self.detector.expect_write(path, content)
            written.append(path)

        try:
            report = await sync_all_projects(
                self.client,
                self.store,
                self.settings,
                on_notice=self.notice,
                policy=self.policy,
                before_write=before_write,
            )
        except Exception:
            logger.exception("Sync failed")
            self.notice("Asana Sync: sync failed - check the log for details")
            return None
        finally:
            self.is_syncing = False
            for path in written:
                self.detector.unmark_later(path)

        self.last_report = report
        self.last_synced_at = now_utc()
        return report

    def on_file_modified(self, path: str) -> bool:
        """Entry point for file events (vault-relative posix path)."""
        if self.is_syncing:
            return False
        source = self.settings.find_source(path)
        if source is None or not self.settings.asana_access_token:
            return False
        return self.detector.notify_modified(path, source.project_name)

    def prime_snapshots(self) -> None:
        for source in self.settings.synced_projects:
            if self.store.exists(source.note_path):
                self.detector.prime(source.note_path, self.store.read(source.note_path))

    # ── Lifecycle ─────────────────────────────────────────────

    def _configured(self) -> bool:
        return bool(self.settings.asana_access_token and self.settings.synced_projects)

    async def _periodic(self) -> None:
        if self._configured():
            await asyncio.sleep(self.initial_delay)
            await self.run_sync()
        interval = self.settings.sync_interval_minutes
        if interval <= 0:
            return
        while True:
            await asyncio.sleep(interval * 60)
            await self.run_sync()

    def _start_periodic(self) -> None:
        self._periodic_task = asyncio.create_task(self._periodic())

    async def _stop_periodic(self) -> None:
        if self._periodic_task is None:
            return
        self._periodic_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._periodic_task
        self._periodic_task = None

    async def start(self, *, watch: bool = True) -> None:
        self.prime_snapshots()
        if watch:
            if self.root.is_dir():
                observer = Observer()
                observer.schedule(
                    _NoteEventHandler(self, asyncio.get_running_loop()),
                    str(self.root),
                    recursive=True,
                )
                observer.start()
                self._observer = observer
            else:
                logger.warning("Vault not found, file watching disabled: %s", self.root)
        self._start_periodic()
        logger.info(
            "Sync service started (%d sources, every %d min)",
            len(self.settings.synced_projects),
            self.settings.sync_interval_minutes,
        )

    async def reload_settings(self) -> None:
        """Re-read settings.yaml and restart the interval."""
        await self._stop_periodic()
        self.settings = load_settings(self.root)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.prime_snapshots()
        self._start_periodic()

    async def stop(self) -> None:
        await self._stop_periodic()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.detector.cancel_all()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def status(self) -> dict[str, Any]:
        report = self.last_report
        sources = []
        for s in self.settings.synced_projects:
            d = s.to_dict()
            if report is not None and s.project_name in report.results:
                d["lastStats"] = report.results[s.project_name].to_dict()
            if report is not None and s.project_name in report.failures:
                d["lastError"] = report.failures[s.project_name]
            sources.append(d)
        return {
            "syncing": self.is_syncing,
            "lastSyncedAt": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "totals": report.totals.to_dict() if report is not None else None,
            "sources": sources,
        }
