"""Revert journal persistence and lock utilities."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from converge_atoms.file_io import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path.home() / ".config" / "converge-atoms" / "state"


@dataclass(frozen=True)
class StatePaths:
    state_dir: Path
    journal_file: Path
    lock_file: Path
    log_file: Path


def build_state_paths(state_dir: Path) -> StatePaths:
    return StatePaths(
        state_dir=state_dir,
        journal_file=state_dir / "revert_journal.json",
        lock_file=state_dir / "revert_journal.lock",
        log_file=state_dir / "converge_atoms.log",
    )


class LockTimeoutError(TimeoutError):
    """The journal lock could not be acquired within the timeout."""


class FileLock:
    """Exclusive ``flock`` on *path*; raises ``LockTimeoutError`` rather than proceeding unlocked."""

    def __init__(self, path: Path, timeout_s: float = 2.0):
        self.path = path
        self.timeout_s = timeout_s
        self._fh = None

    def __enter__(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.path, "a+", encoding="utf-8")
        try:
            import fcntl
        except ImportError:
            logger.debug("File locking unavailable", exc_info=True)
            return self

        deadline = time.time() + self.timeout_s
        while True:
            try:
                fcntl.flock(self._fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return self
            except BlockingIOError:
                if time.time() > deadline:
                    self._fh.close()
                    self._fh = None
                    raise LockTimeoutError(f"Timed out after {self.timeout_s}s waiting for {self.path}")
                time.sleep(0.05)

    def __exit__(self, exc_type, exc, tb):
        try:
            import fcntl

            fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        except Exception:
            logger.debug("File unlock failed", exc_info=True)
        try:
            self._fh.close()
        except Exception:
            logger.debug("File close failed", exc_info=True)


@dataclass
class JournalEntry:
    kind: str
    path: str
    mode: int
    previous_mode: int


def journal_key(kind: str, path: Path) -> str:
    raw = f"{kind}::{path.expanduser().absolute()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def load_journal(journal_file: Path) -> dict[str, Any]:
    try:
        if not journal_file.exists():
            return {}
        return json.loads(journal_file.read_text(encoding="utf-8"))
    except Exception:
        logger.debug("Failed to load journal from %s", journal_file, exc_info=True)
        return {}


def save_journal(journal: dict[str, Any], journal_file: Path) -> None:
    """Persist *journal*. Raises ``OSError`` when the write fails."""
    atomic_write(journal_file, json.dumps(journal, indent=2, sort_keys=True).encode("utf-8"))


def get_entry(journal: dict[str, Any], key: str) -> JournalEntry | None:
    e = journal.get(key)
    if not isinstance(e, dict):
        return None
    try:
        return JournalEntry(
            kind=str(e["kind"]),
            path=str(e["path"]),
            mode=int(e["mode"]),
            previous_mode=int(e["previous_mode"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.debug("Malformed journal entry %s", key, exc_info=True)
        return None


def record_entry(journal: dict[str, Any], key: str, entry: JournalEntry) -> None:
    """Record *entry* unless one already exists; the oldest captured state wins."""
    if key in journal:
        return
    journal[key] = {
        "kind": entry.kind,
        "path": entry.path,
        "mode": entry.mode,
        "previous_mode": entry.previous_mode,
        "updated": datetime.now(timezone.utc).isoformat(),
    }


def drop_entry(journal: dict[str, Any], key: str) -> None:
    journal.pop(key, None)


def iter_entries(journal: dict[str, Any]) -> list[JournalEntry]:
    entries = []
    for key in sorted(journal):
        entry = get_entry(journal, key)
        if entry is not None:
            entries.append(entry)
    return entries
