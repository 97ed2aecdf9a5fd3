from __future__ import annotations

import tests._path_setup  # noqa: F401

import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from converge_atoms.runtime.state import (
    FileLock,
    JournalEntry,
    LockTimeoutError,
    build_state_paths,
    drop_entry,
    get_entry,
    iter_entries,
    journal_key,
    load_journal,
    record_entry,
    save_journal,
)


def _entry(path: str = "/srv/app.conf", previous_mode: int = 0o644) -> JournalEntry:
    return JournalEntry(kind="file.chmod", path=path, mode=0o600, previous_mode=previous_mode)


class JournalTest(unittest.TestCase):
    def test_save_and_load_round_trip_with_private_mode(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            paths = build_state_paths(Path(td) / "state")
            journal: dict = {}
            key = journal_key("file.chmod", Path("/srv/app.conf"))
            record_entry(journal, key, _entry())
            save_journal(journal, paths.journal_file)

            loaded = load_journal(paths.journal_file)
            self.assertEqual(get_entry(loaded, key), _entry())
            if os.name == "posix":
                self.assertEqual(stat.S_IMODE(os.stat(paths.journal_file).st_mode), 0o600)

    def test_first_recorded_previous_mode_wins(self) -> None:
        journal: dict = {}
        record_entry(journal, "k", _entry(previous_mode=0o644))
        record_entry(journal, "k", _entry(previous_mode=0o600))
        self.assertEqual(get_entry(journal, "k").previous_mode, 0o644)

    def test_drop_entry(self) -> None:
        journal: dict = {}
        record_entry(journal, "k", _entry())
        drop_entry(journal, "k")
        drop_entry(journal, "k")
        self.assertIsNone(get_entry(journal, "k"))

    def test_malformed_entries_are_skipped(self) -> None:
        journal = {
            "a": {"kind": "file.chmod", "path": "/a", "mode": 384, "previous_mode": 420},
            "b": {"kind": "file.chmod", "path": "/b"},
            "c": "garbage",
        }
        entries = iter_entries(journal)
        self.assertEqual([e.path for e in entries], ["/a"])

    def test_load_journal_returns_empty_for_missing_or_corrupt_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "journal.json"
            self.assertEqual(load_journal(path), {})
            path.write_text("{not json", encoding="utf-8")
            self.assertEqual(load_journal(path), {})

    def test_journal_key_uses_absolute_path(self) -> None:
        rel = Path("some/file")
        self.assertEqual(
            journal_key("file.chmod", rel),
            journal_key("file.chmod", rel.absolute()),
        )
        self.assertNotEqual(journal_key("file.chmod", rel), journal_key("other", rel))

    def test_file_lock_creates_lock_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            lock = Path(td) / "nested" / "j.lock"
            with FileLock(lock):
                self.assertTrue(lock.exists())

    @unittest.skipUnless(os.name == "posix", "fcntl locking required")
    def test_file_lock_times_out_instead_of_entering_unlocked(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            lock = Path(td) / "j.lock"
            entered = []
            with FileLock(lock):
                with self.assertRaises(LockTimeoutError):
                    with FileLock(lock, timeout_s=0.1):
                        entered.append(True)
            self.assertEqual(entered, [])

            with FileLock(lock, timeout_s=0.1):
                entered.append(True)
            self.assertEqual(entered, [True])

    def test_save_journal_propagates_write_failure(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            journal_file = Path(td) / "journal.json"
            with patch("converge_atoms.runtime.state.atomic_write", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    save_journal({"k": {}}, journal_file)
            self.assertFalse(journal_file.exists())


if __name__ == "__main__":
    unittest.main()
