from __future__ import annotations

import json
import os
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

from habit_link.config import load_settings, resolve_store_path
from habit_link.exceptions import InputError, StoreError
from habit_link.schemas import SETUP_REQUESTED_KEY
from habit_link.store import FileFlagStore, InMemoryFlagStore


class InMemoryStoreTests(unittest.TestCase):
    def test_default_returned_for_missing_key(self) -> None:
        store = InMemoryFlagStore()
        self.assertFalse(store.get_bool("missing"))
        self.assertTrue(store.get_bool("missing", True))

    def test_non_boolean_value_raises(self) -> None:
        store = InMemoryFlagStore({"count": 3})
        with self.assertRaises(StoreError):
            store.get_bool("count")

    def test_concurrent_writes_and_reads(self) -> None:
        store = InMemoryFlagStore()
        results: list[bool] = []

        def writer() -> None:
            store.set_bool(SETUP_REQUESTED_KEY, True)

        def reader() -> None:
            results.append(store.get_bool(SETUP_REQUESTED_KEY))

        threads = [threading.Thread(target=writer if i % 2 else reader) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertTrue(store.get_bool(SETUP_REQUESTED_KEY))
        self.assertEqual(len(results), 10)


class FileStoreTests(unittest.TestCase):
    def test_value_survives_new_instance(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs" / "FlutterSharedPreferences.json"
            FileFlagStore(path).set_bool(SETUP_REQUESTED_KEY, True)

            reopened = FileFlagStore(path)
            self.assertTrue(reopened.get_bool(SETUP_REQUESTED_KEY))
            self.assertFalse(path.with_suffix(".json.lock").exists())

    def test_missing_file_reads_default(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileFlagStore(Path(tmp) / "absent.json")
            self.assertFalse(store.get_bool(SETUP_REQUESTED_KEY))
            self.assertEqual(store.items(), {})

    def test_write_keeps_unrelated_keys(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            path.write_text(json.dumps({"flutter.habits": "[]"}), encoding="utf-8")
            FileFlagStore(path).set_bool(SETUP_REQUESTED_KEY, True)
            self.assertEqual(
                json.loads(path.read_text(encoding="utf-8")),
                {"flutter.habits": "[]", SETUP_REQUESTED_KEY: True},
            )

    def test_rewrite_of_same_value_skips_write(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            store = FileFlagStore(path)
            store.set_bool(SETUP_REQUESTED_KEY, True)
            with mock.patch("habit_link.store.os.replace") as replace:
                store.set_bool(SETUP_REQUESTED_KEY, True)
            replace.assert_not_called()
            self.assertTrue(store.get_bool(SETUP_REQUESTED_KEY))

    def test_corrupt_file_raises_store_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(StoreError):
                FileFlagStore(path).get_bool(SETUP_REQUESTED_KEY)

    def test_non_object_file_raises_store_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            path.write_text("[true]", encoding="utf-8")
            with self.assertRaises(StoreError):
                FileFlagStore(path).items()

    def test_failed_write_keeps_previous_content(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            original = json.dumps({SETUP_REQUESTED_KEY: False})
            path.write_text(original, encoding="utf-8")
            store = FileFlagStore(path)

            with mock.patch("habit_link.store.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(StoreError):
                    store.set_bool(SETUP_REQUESTED_KEY, True)

            self.assertEqual(path.read_text(encoding="utf-8"), original)
            self.assertFalse(store.get_bool(SETUP_REQUESTED_KEY))
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["prefs.json"])

    def test_held_lock_times_out(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            lock_path = Path(tmp) / "prefs.json.lock"
            expires = datetime.now(timezone.utc) + timedelta(minutes=5)
            lock_path.write_text(
                json.dumps({"owner_id": "other", "expires_at": expires.isoformat()}),
                encoding="utf-8",
            )
            store = FileFlagStore(path, lock_timeout_seconds=0.1)
            with self.assertRaises(StoreError):
                store.set_bool(SETUP_REQUESTED_KEY, True)
            self.assertTrue(lock_path.exists())
            self.assertFalse(path.exists())

    def test_failed_lock_write_closes_fd_and_removes_lockfile(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            store = FileFlagStore(path, lock_timeout_seconds=0.1)

            with mock.patch("habit_link.store.os.write", side_effect=OSError("no space")), \
                    mock.patch("habit_link.store.os.close", wraps=os.close) as close:
                with self.assertRaises(StoreError):
                    store.set_bool(SETUP_REQUESTED_KEY, True)

            close.assert_called_once()
            self.assertFalse((Path(tmp) / "prefs.json.lock").exists())
            self.assertFalse(path.exists())

            store.set_bool(SETUP_REQUESTED_KEY, True)
            self.assertTrue(store.get_bool(SETUP_REQUESTED_KEY))

    def test_stale_lock_is_recovered(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            lock_path = Path(tmp) / "prefs.json.lock"
            expired = datetime.now(timezone.utc) - timedelta(minutes=5)
            lock_path.write_text(
                json.dumps({"owner_id": "crashed", "expires_at": expired.isoformat()}),
                encoding="utf-8",
            )
            store = FileFlagStore(path, lock_timeout_seconds=0.1)
            store.set_bool(SETUP_REQUESTED_KEY, True)
            self.assertTrue(store.get_bool(SETUP_REQUESTED_KEY))
            self.assertFalse(lock_path.exists())


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._saved = {
            key: os.environ.pop(key, None)
            for key in ("HABIT_LINK_STORE_DIR", "HABIT_LINK_STORE_NAME", "HABIT_LINK_LOCK_TIMEOUT")
        }

    def tearDown(self) -> None:
        for key, value in self._saved.items():
            os.environ.pop(key, None)
            if value is not None:
                os.environ[key] = value

    def test_store_dir_env_override(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            os.environ["HABIT_LINK_STORE_DIR"] = tmp
            self.assertEqual(
                resolve_store_path(),
                Path(tmp).resolve() / "FlutterSharedPreferences.json",
            )

    def test_explicit_dir_beats_env(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            os.environ["HABIT_LINK_STORE_DIR"] = "/nonexistent/ignored"
            os.environ["HABIT_LINK_STORE_NAME"] = "prefs"
            self.assertEqual(resolve_store_path(Path(tmp)), Path(tmp).resolve() / "prefs.json")

    def test_lock_timeout_from_env(self) -> None:
        os.environ["HABIT_LINK_LOCK_TIMEOUT"] = "0.5"
        self.assertEqual(load_settings(Path("/tmp")).lock_timeout_seconds, 0.5)

    def test_invalid_lock_timeout_raises_input_error(self) -> None:
        for raw in ("soon", "-1"):
            with self.subTest(raw=raw):
                os.environ["HABIT_LINK_LOCK_TIMEOUT"] = raw
                with self.assertRaises(InputError):
                    load_settings(Path("/tmp"))


if __name__ == "__main__":
    unittest.main()
