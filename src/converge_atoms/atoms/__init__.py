"""Atom contract and registry.

An atom is one idempotent unit of desired-state convergence. The runner
calls ``plan()`` to detect drift, ``execute()`` to converge, and may later
call ``revert()`` to undo the change. ``str(atom)`` describes the pending
change for dry-run output.
"""

from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Dict, Protocol, runtime_checkable


class AtomError(Exception):
    """Base class for failures raised by ``execute`` and ``revert``."""


class AtomExecutionError(AtomError):
    """A mutation of the target resource failed. The OS error is the cause."""


class RevertUnavailableError(AtomError):
    """``revert`` was requested but no prior state was captured."""


@runtime_checkable
class Atom(Protocol):
    """Protocol shared by every resource-specific atom."""

    @property
    def kind(self) -> str: ...

    def plan(self) -> bool: ...
    def execute(self) -> None: ...
    def revert(self) -> None: ...
    def __str__(self) -> str: ...


@runtime_checkable
class FileAtom(Atom, Protocol):
    """An atom whose target is a filesystem path."""

    @property
    def path(self) -> Path: ...


ATOM_REGISTRY: Dict[str, type[Atom]] = {}

_NON_ATOM_MODULES = {"modes"}


def register_atom(cls: type[Atom]) -> type[Atom]:
    """Class decorator to register an atom class under its ``kind``."""
    ATOM_REGISTRY[cls.kind] = cls
    return cls


def get_atom_class(kind: str) -> type[Atom]:
    """Get a registered atom class by kind."""
    _ensure_registered()
    if kind not in ATOM_REGISTRY:
        raise ValueError(f"Unknown atom kind: {kind}. Available: {sorted(ATOM_REGISTRY)}")
    return ATOM_REGISTRY[kind]


def available_atoms() -> list[str]:
    """Return kinds of all registered atoms."""
    _ensure_registered()
    return sorted(ATOM_REGISTRY.keys())


def _ensure_registered() -> None:
    """Import all atom modules to trigger @register_atom decorators."""
    if ATOM_REGISTRY:
        return
    package_name = __name__
    for module in pkgutil.iter_modules(__path__):
        if module.name.startswith("_") or module.name in _NON_ATOM_MODULES:
            continue
        importlib.import_module(f"{package_name}.{module.name}")
