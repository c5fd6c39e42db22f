"""Push checkbox toggles made in a note to Asana without waiting for a full pass.

Each note path has its own debounce timer. When the timer fires the note is
re-parsed and its gid -> completed map is diffed against the last snapshot
taken for that path; every flip is pushed immediately.

Notes written by the reconciliation pass are marked before the write and
unmarked after a delay, so the resulting file event is ignored.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from core.asana import AsanaError
from core.document import parse_note_content
from core.fileio import VaultStore


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.5
DEFAULT_UNMARK_DELAY_SECONDS = 2.0

PushFn = Callable[[str, bool], Awaitable[None]]
NoticeFn = Callable[[str], None]


def completion_map(content: str) -> dict[str, bool]:
    """gid -> completed for every identified task line in *content*."""
    return {t.gid: t.completed for t in parse_note_content(content).tasks if t.gid}


class ChangeDetector:
    def __init__(
        self,
        store: VaultStore,
        push: PushFn,
        *,
        on_notice: NoticeFn | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        unmark_delay_seconds: float = DEFAULT_UNMARK_DELAY_SECONDS,
    ) -> None:
        self._store = store
        self._push = push
        self._notify = on_notice or (lambda _msg: None)
        self.debounce_seconds = debounce_seconds
        self.unmark_delay_seconds = unmark_delay_seconds

        self._snapshots: dict[str, dict[str, bool]] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._marked: set[str] = set()
        self._unmark_timers: dict[str, asyncio.TimerHandle] = {}
        self._scans: set[asyncio.Task[dict[str, bool]]] = set()
        self._active: set[str] = set()
        self._rescan: set[str] = set()

    # ── Snapshots ─────────────────────────────────────────────

    def snapshot(self, path: str) -> dict[str, bool] | None:
        snap = self._snapshots.get(path)
        return dict(snap) if snap is not None else None

    def prime(self, path: str, content: str) -> None:
        """Record *content* as the baseline for *path* without pushing anything."""
        self._snapshots[path] = completion_map(content)

    # ── Self-write suppression ────────────────────────────────

    def mark(self, path: str) -> None:
        handle = self._unmark_timers.pop(path, None)
        if handle is not None:
            handle.cancel()
        self._marked.add(path)

    def is_marked(self, path: str) -> bool:
        return path in self._marked

    def unmark_later(self, path: str, delay: float | None = None) -> None:
        if path not in self._marked:
            return
        loop = asyncio.get_running_loop()
        old = self._unmark_timers.pop(path, None)
        if old is not None:
            old.cancel()
        self._unmark_timers[path] = loop.call_later(
            self.unmark_delay_seconds if delay is None else delay, self._unmark, path
        )

    def _unmark(self, path: str) -> None:
        self._unmark_timers.pop(path, None)
        self._marked.discard(path)

    def expect_write(self, path: str, content: str) -> None:
        """Called right before a sync write: ignore its file event, adopt its state."""
        self.mark(path)
        self.prime(path, content)

    # ── Debounce ──────────────────────────────────────────────

    def notify_modified(self, path: str, label: str = "") -> bool:
        """Handle a file-modified event. Returns False when the event is ignored."""
        if path in self._marked:
            logger.debug("Ignoring sync-originated change to %s", path)
            return False
        loop = asyncio.get_running_loop()
        pending = self._timers.pop(path, None)
        if pending is not None:
            pending.cancel()
        self._timers[path] = loop.call_later(self.debounce_seconds, self._fire, path, label)
        return True

    def pending(self, path: str) -> bool:
        return path in self._timers

    def _fire(self, path: str, label: str) -> None:
        self._timers.pop(path, None)
        task = asyncio.ensure_future(self.scan(path, label))
        self._scans.add(task)
        task.add_done_callback(self._scans.discard)

    async def wait_idle(self) -> None:
        """Wait for scans already started by fired timers."""
        while self._scans:
            await asyncio.gather(*list(self._scans), return_exceptions=True)

    def cancel_all(self) -> None:
        for handle in (*self._timers.values(), *self._unmark_timers.values()):
            handle.cancel()
        self._timers.clear()
        self._unmark_timers.clear()
        self._marked.clear()

    # ── Scan ──────────────────────────────────────────────────

    async def scan(self, path: str, label: str = "") -> dict[str, bool]:
        """Diff *path* against its snapshot and push every flip.

        Returns the flips that were pushed successfully. A scan requested
        while one is running for the same path is folded into a re-read by
        the running scan and returns nothing itself.
        """
        if path in self._active:
            self._rescan.add(path)
            return {}
        self._active.add(path)
        pushed: dict[str, bool] = {}
        try:
            while True:
                self._rescan.discard(path)
                pushed.update(await self._scan_once(path, label))
                if path not in self._rescan:
                    return pushed
        finally:
            self._active.discard(path)
            self._rescan.discard(path)

    async def _scan_once(self, path: str, label: str) -> dict[str, bool]:
        try:
            content = self._store.read(path)
        except (OSError, ValueError) as e:
            # ValueError covers notes that are not valid UTF-8.
            logger.warning("Could not read %s: %s", path, e)
            self._snapshots.pop(path, None)
            return {}

        current = completion_map(content)
        previous = self._snapshots.get(path)
        pushed: dict[str, bool] = {}

        if previous is not None:
            for gid, completed in current.items():
                was = previous.get(gid)
                if was is None or was == completed:
                    continue
                try:
                    await self._push(gid, completed)
                except (AsanaError, httpx.HTTPError) as e:
                    logger.error("Failed to update task %s: %s", gid, e)
                    self._notify("Asana Sync: Failed to update task in Asana")
                    continue
                pushed[gid] = completed
                action = "completed" if completed else "reopened"
                logger.info("Pushed task %s %s from %s", gid, action, path)
                self._notify(f'Asana: Task {action} in "{label or path}"')

        self._snapshots[path] = current
        return pushed
