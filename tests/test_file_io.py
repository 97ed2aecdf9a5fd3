from __future__ import annotations

import tests._path_setup  # noqa: F401

import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from converge_atoms.file_io import atomic_write


@unittest.skipUnless(os.name == "posix", "POSIX permission bits required")
class AtomicWriteTest(unittest.TestCase):
    def setUp(self) -> None:
        self._old_umask = os.umask(0o077)

    def tearDown(self) -> None:
        os.umask(self._old_umask)

    def test_mode_is_exact_regardless_of_umask(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "state" / "journal.json"
            atomic_write(path, b"{}", mode=0o640)
            self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o640)
            self.assertEqual(path.read_bytes(), b"{}")

    def test_replaces_existing_file_without_leaving_temp_files(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "journal.json"
            atomic_write(path, b"old")
            atomic_write(path, b"new")
            self.assertEqual(path.read_bytes(), b"new")
            self.assertEqual(sorted(p.name for p in Path(td).iterdir()), ["journal.json"])

    def test_failed_write_keeps_target_and_removes_temp_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "journal.json"
            atomic_write(path, b"old")
            with patch("converge_atoms.file_io.os.fsync", side_effect=OSError("io error")):
                with self.assertRaises(OSError):
                    atomic_write(path, b"new")
            self.assertEqual(path.read_bytes(), b"old")
            self.assertEqual(sorted(p.name for p in Path(td).iterdir()), ["journal.json"])


if __name__ == "__main__":
    unittest.main()
