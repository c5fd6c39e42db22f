"""Vault root, clock and path helpers."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path


def vault_root() -> Path:
    """Get the vault directory that holds the synced notes."""
    return Path(
        os.environ.get("VAULT_ROOT", str(Path.home() / "vault"))
    ).expanduser().resolve()


def now_utc() -> datetime:
    return datetime.now(UTC)


# ── Path helpers ──────────────────────────────────────────────

def config_dir(root: Path | None = None) -> Path:
    if root is None:
        root = vault_root()
    return root / ".tasksync"


def settings_path(root: Path | None = None) -> Path:
    return config_dir(root) / "settings.yaml"


def log_dir(root: Path | None = None) -> Path:
    return config_dir(root) / "logs"
