"""Logging configuration shared by the web and terminal hosts."""

from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow all of our own logs
    - httpx/httpcore request lines and watchdog chatter only at WARNING+
    - python warnings and other third parties only at ERROR+
    """

    _QUIET = ("httpx", "httpcore", "watchdog")

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(("core.", "ui.", "cli.")) or name == "__main__":
            return True
        if name.startswith(self._QUIET):
            return record.levelno >= logging.WARNING
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    console: bool = True,
) -> None:
    """
    Configure logging with:
    - Console handler: filtered, stderr (skipped when *console* is False,
      e.g. under the TUI which owns the terminal)
    - File handler: everything, tasksync.log

    Call this ONCE, before the first sync.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasksync.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(console_level)
        ch.setFormatter(fmt)
        ch.addFilter(_ConsoleNoiseFilter())
        root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
