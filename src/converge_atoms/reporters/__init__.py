"""Reporter interface for converge-atoms."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from converge_atoms.runner import Outcome


@runtime_checkable
class Reporter(Protocol):
    def emit_outcome(self, outcome: "Outcome") -> None: ...
    def flush(self) -> None: ...
    def shutdown(self) -> None: ...
