"""Shared key-value flag store.

The router writes and the bridge endpoint reads through the same store
handle. Two implementations of the ``FlagStore`` contract:

    InMemoryFlagStore  process-local dict, for tests and embedding
    FileFlagStore      durable JSON file (one namespace per file), survives restarts

Single-key reads and writes are atomic; callers add no locking of their own.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from time import sleep
from typing import Any, Iterator, Protocol

from .exceptions import StoreError
from .log import get_logger

_log = get_logger("store")

DEFAULT_LOCK_LEASE_SECONDS = 30.0


class FlagStore(Protocol):
    def get_bool(self, key: str, default: bool = False) -> bool: ...

    def set_bool(self, key: str, value: bool) -> None: ...


def _coerce_bool(key: str, raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise StoreError(f"Value for {key!r} is not a boolean: {raw!r}")
    return raw


class InMemoryFlagStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get_bool(self, key: str, default: bool = False) -> bool:
        with self._lock:
            raw = self._values.get(key)
        return _coerce_bool(key, raw, default)

    def set_bool(self, key: str, value: bool) -> None:
        with self._lock:
            self._values[key] = bool(value)

    def items(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)


class FileFlagStore:
    """Durable store backed by ``<dir>/<namespace>.json``.

    Writes go through a temp file + fsync + ``os.replace`` under an exclusive
    lockfile, so a failed write leaves the previous content in place.
    """

    def __init__(self, path: Path, *, lock_timeout_seconds: float = 5.0) -> None:
        self.path = Path(path)
        self.lock_timeout_seconds = lock_timeout_seconds

    def get_bool(self, key: str, default: bool = False) -> bool:
        return _coerce_bool(key, self._read().get(key), default)

    def set_bool(self, key: str, value: bool) -> None:
        value = bool(value)
        with self._locked():
            values = self._read()
            if values.get(key) is value:
                _log.debug("store_unchanged", extra={"key": key, "value": value})
                return
            values[key] = value
            self._write(values)
        _log.debug("store_write", extra={"key": key, "value": value, "file": self.path.name})

    def items(self) -> dict[str, Any]:
        return self._read()

    # ----------------------------------------------------------------- I/O

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            _log.debug("store_miss", extra={"file": self.path.name})
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Cannot read store at {self.path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid store JSON at {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreError(f"Store at {self.path} must hold a JSON object")
        return raw

    def _write(self, values: dict[str, Any]) -> None:
        payload = json.dumps(values, indent=2, sort_keys=True) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
        except OSError as exc:
            raise StoreError(f"Cannot write store at {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StoreError(f"Cannot write store at {self.path}: {exc}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

    @contextmanager
    def _locked(
        self,
        *,
        retry_interval_seconds: float = 0.05,
        lease_seconds: float = DEFAULT_LOCK_LEASE_SECONDS,
    ) -> Iterator[None]:
        """Hold ``<store>.lock`` for the duration of a read-modify-write.

        Lock files carry lease metadata and are broken once the lease expires.
        """
        lock_path = self.path.with_suffix(f"{self.path.suffix}.lock")
        deadline = time.time() + self.lock_timeout_seconds
        owner_id = uuid.uuid4().hex

        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create store directory {lock_path.parent}: {exc}") from exc

        while True:
            try:
                fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if _is_stale_lock(lock_path, lease_seconds):
                    _log.debug("lock_stale", extra={"file": lock_path.name})
                    _unlink_quietly(lock_path)
                    continue
                if time.time() >= deadline:
                    raise StoreError(f"Timed out waiting for lock: {lock_path}") from None
                sleep(retry_interval_seconds)
                continue
            except OSError as exc:
                raise StoreError(f"Cannot lock store {lock_path}: {exc}") from exc
            payload = {
                "owner_id": owner_id,
                "expires_at": _to_iso(time.time() + max(lease_seconds, 0.001)),
            }
            try:
                try:
                    os.write(fd, json.dumps(payload).encode("utf-8"))
                finally:
                    os.close(fd)
            except OSError as exc:
                _unlink_quietly(lock_path)
                raise StoreError(f"Cannot write lock {lock_path}: {exc}") from exc
            break

        try:
            yield
        finally:
            _release_lock(lock_path, owner_id)


def _is_stale_lock(lock_path: Path, lease_seconds: float) -> bool:
    payload = _read_lock_payload(lock_path)
    if payload:
        expires_at = payload.get("expires_at")
        if isinstance(expires_at, str):
            try:
                return time.time() >= datetime.fromisoformat(expires_at).timestamp()
            except ValueError:
                return True
        return True

    try:
        age = time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return False
    return age >= max(lease_seconds, 0.001)


def _release_lock(lock_path: Path, owner_id: str) -> None:
    payload = _read_lock_payload(lock_path)
    if payload and payload.get("owner_id") != owner_id:
        return
    _unlink_quietly(lock_path)


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return


def _read_lock_payload(lock_path: Path) -> dict[str, Any] | None:
    try:
        raw = json.loads(lock_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    return raw if isinstance(raw, dict) else None


def _to_iso(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()
