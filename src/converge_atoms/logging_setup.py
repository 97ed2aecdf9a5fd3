"""Logging configuration for converge-atoms."""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

_PACKAGE = "converge_atoms"
_LOG_BYTES = 1 * 1024 * 1024  # 1 MiB per file
_LOG_BACKUPS = 3
_LOG_FILE_MODE = 0o600


def configure(log_file: Path, *, debug: bool = False, reconfigure: bool = False) -> None:
    """Attach handlers to the converge_atoms package logger.

    Call once per entrypoint. Idempotent unless *reconfigure* is True.
    """
    pkg_logger = logging.getLogger(_PACKAGE)
    if pkg_logger.handlers and not reconfigure:
        return
    if reconfigure:
        for handler in list(pkg_logger.handlers):
            handler.close()
        pkg_logger.handlers.clear()

    pkg_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=_LOG_BYTES,
            backupCount=_LOG_BACKUPS,
            encoding="utf-8",
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        pkg_logger.addHandler(fh)
        _restrict_log_file(log_file)
    except OSError as exc:
        print(
            f"converge-atoms: WARNING: could not open log file {log_file}: {exc}",
            file=sys.stderr,
        )

    # Only warnings and errors reach the terminal
    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(logging.Formatter("converge-atoms: %(message)s"))
    pkg_logger.addHandler(sh)

    pkg_logger.propagate = False


def _restrict_log_file(log_file: Path) -> None:
    """Converge the log file to owner-only permissions."""
    from converge_atoms.atoms import AtomError
    from converge_atoms.atoms.chmod import FilePermissions

    atom = FilePermissions(log_file, _LOG_FILE_MODE)
    if not atom.plan():
        return
    try:
        atom.execute()
    except AtomError as exc:
        print(f"converge-atoms: WARNING: {exc}", file=sys.stderr)
