"""Single-atom convergence driver."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from converge_atoms.atoms import Atom, AtomError

if TYPE_CHECKING:
    from converge_atoms.reporters import Reporter

logger = logging.getLogger(__name__)


class Status(str, Enum):
    UNCHANGED = "unchanged"
    PLANNED = "planned"
    APPLIED = "applied"
    REVERTED = "reverted"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    kind: str
    description: str
    status: Status
    duration_s: float = 0.0
    error: str = ""

    @property
    def changed(self) -> bool:
        return self.status in (Status.APPLIED, Status.REVERTED)

    @property
    def failed(self) -> bool:
        return self.status is Status.FAILED


def converge(atom: Atom, *, dry_run: bool = False, reporter: "Reporter | None" = None) -> Outcome:
    """Plan *atom* and execute it when drift is found (unless *dry_run*)."""
    start = time.time()
    description = str(atom)

    if not atom.plan():
        logger.debug("No drift: %s", description)
        return _finish(Outcome(atom.kind, description, Status.UNCHANGED), start, reporter)

    if dry_run:
        logger.info("Dry run: %s", description)
        return _finish(Outcome(atom.kind, description, Status.PLANNED), start, reporter)

    try:
        atom.execute()
    except AtomError as err:
        logger.warning("Execute failed for %s: %s", atom.kind, err)
        return _finish(Outcome(atom.kind, description, Status.FAILED, error=str(err)), start, reporter)

    logger.info("Applied: %s", description)
    return _finish(Outcome(atom.kind, description, Status.APPLIED), start, reporter)


def rollback(atom: Atom, *, reporter: "Reporter | None" = None) -> Outcome:
    """Revert a previously executed *atom*."""
    start = time.time()
    description = str(atom)
    try:
        atom.revert()
    except AtomError as err:
        logger.warning("Revert failed for %s: %s", atom.kind, err)
        return _finish(Outcome(atom.kind, description, Status.FAILED, error=str(err)), start, reporter)

    logger.info("Reverted: %s", description)
    return _finish(Outcome(atom.kind, description, Status.REVERTED), start, reporter)


def _finish(outcome: Outcome, start: float, reporter: "Reporter | None") -> Outcome:
    outcome = replace(outcome, duration_s=time.time() - start)
    if reporter is not None:
        try:
            reporter.emit_outcome(outcome)
        except Exception:
            logger.warning("emit_outcome failed", exc_info=True)
    return outcome
