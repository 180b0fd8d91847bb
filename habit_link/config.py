"""Runtime settings resolved from the environment.

Environment variables:
    HABIT_LINK_STORE_DIR      Directory holding the shared store file (default: ~/.habit_link)
    HABIT_LINK_STORE_NAME     Store namespace; file is <dir>/<name>.json
    HABIT_LINK_LOCK_TIMEOUT   Seconds to wait for the store lock (default: 5.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .exceptions import InputError
from .schemas import STORE_NAMESPACE

DEFAULT_STORE_DIR = Path("~/.habit_link")
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


@dataclass
class Settings:
    store_path: Path
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS


def resolve_store_path(store_dir: Path | None = None) -> Path:
    """Return the store file path. An explicit directory beats the env override."""
    if store_dir is None:
        override = os.getenv("HABIT_LINK_STORE_DIR", "").strip()
        store_dir = Path(override) if override else DEFAULT_STORE_DIR
    name = os.getenv("HABIT_LINK_STORE_NAME", "").strip() or STORE_NAMESPACE
    return store_dir.expanduser().resolve() / f"{name}.json"


def _lock_timeout() -> float:
    raw = os.getenv("HABIT_LINK_LOCK_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_LOCK_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        raise InputError(f"HABIT_LINK_LOCK_TIMEOUT must be a number, got: {raw!r}") from None
    if value < 0:
        raise InputError(f"HABIT_LINK_LOCK_TIMEOUT must be >= 0, got: {raw!r}")
    return value


def load_settings(store_dir: Path | None = None) -> Settings:
    return Settings(
        store_path=resolve_store_path(store_dir),
        lock_timeout_seconds=_lock_timeout(),
    )
