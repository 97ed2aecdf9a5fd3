"""File permission atom.

The mode is given the way a user passes it to chmod: permission bits only
(``0o644``), never the file-type bits that ``st_mode`` carries.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Protocol

from . import AtomExecutionError, RevertUnavailableError, register_atom
from .modes import format_mode, validate_mode

logger = logging.getLogger(__name__)


class PermissionBackend(Protocol):
    def has_drift(self, path: Path, mode: int) -> bool: ...
    def apply(self, path: Path, mode: int) -> int | None: ...
    def restore(self, path: Path, previous_mode: int | None) -> None: ...


class PosixPermissionBackend:
    """Reads and sets permission bits with ``os.stat`` / ``os.chmod``."""

    def has_drift(self, path: Path, mode: int) -> bool:
        try:
            st = os.stat(path)
        except (OSError, ValueError) as err:
            logger.error("Couldn't get metadata for %s, rejecting atom: %s", path, err)
            return False

        # st_mode carries the file-type bits; S_IMODE strips them from both sides.
        desired = stat.S_IMODE(stat.S_IFREG | mode)
        return desired != stat.S_IMODE(st.st_mode)

    def apply(self, path: Path, mode: int) -> int:
        """Set *mode* on *path* and return the permission bits it replaced."""
        try:
            previous = stat.S_IMODE(os.stat(path).st_mode)
            os.chmod(path, mode)
        except (OSError, ValueError) as err:
            raise AtomExecutionError(
                f"Failed to set permissions on {path} to {format_mode(mode)}: {err}"
            ) from err
        logger.debug("chmod %s %s (was %s)", format_mode(mode), path, format_mode(previous))
        return previous

    def restore(self, path: Path, previous_mode: int | None) -> None:
        if previous_mode is None:
            raise RevertUnavailableError(f"No previous permissions captured for {path}")
        try:
            os.chmod(path, previous_mode)
        except (OSError, ValueError) as err:
            raise AtomExecutionError(
                f"Failed to restore permissions on {path} to {format_mode(previous_mode)}: {err}"
            ) from err
        logger.debug("Restored %s on %s", format_mode(previous_mode), path)


class InertPermissionBackend:
    """Used where the platform has no POSIX permission bits. Never touches the filesystem."""

    def has_drift(self, path: Path, mode: int) -> bool:
        return False

    def apply(self, path: Path, mode: int) -> None:
        return None

    def restore(self, path: Path, previous_mode: int | None) -> None:
        return None


def default_backend() -> PermissionBackend:
    if os.name == "posix":
        return PosixPermissionBackend()
    return InertPermissionBackend()


@register_atom
class FilePermissions:
    kind = "file.chmod"

    def __init__(
        self,
        path: str | os.PathLike[str],
        mode: int,
        *,
        previous_mode: int | None = None,
        backend: PermissionBackend | None = None,
    ) -> None:
        self._path = Path(path)
        self._mode = validate_mode(mode)
        self._previous_mode = None if previous_mode is None else validate_mode(previous_mode)
        self._backend = backend if backend is not None else default_backend()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def mode(self) -> int:
        return self._mode

    @property
    def previous_mode(self) -> int | None:
        """Permission bits captured by the first successful ``execute``, if any."""
        return self._previous_mode

    def plan(self) -> bool:
        return self._backend.has_drift(self._path, self._mode)

    def execute(self) -> None:
        previous = self._backend.apply(self._path, self._mode)
        if self._previous_mode is None:
            self._previous_mode = previous

    def revert(self) -> None:
        self._backend.restore(self._path, self._previous_mode)

    def __str__(self) -> str:
        return f"The permissions on {self._path} need to be set to {format_mode(self._mode)}"

    def __repr__(self) -> str:
        return f"FilePermissions(path={str(self._path)!r}, mode={oct(self._mode)})"
