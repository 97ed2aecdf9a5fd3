"""CLI for converge-atoms."""

from __future__ import annotations

import argparse
import os
import stat
import sys
from importlib.metadata import version
from pathlib import Path
from typing import Any

import questionary
from rich.console import Console

from . import config as cfg
from .atoms import available_atoms
from .atoms.chmod import FilePermissions
from .atoms.modes import format_mode, parse_mode
from .config import Scope
from .logging_setup import configure
from .reporters.factory import create_reporter
from .runner import Status, converge, rollback
from .runtime.state import (
    DEFAULT_STATE_DIR,
    FileLock,
    JournalEntry,
    LockTimeoutError,
    StatePaths,
    build_state_paths,
    drop_entry,
    get_entry,
    iter_entries,
    journal_key,
    load_journal,
    record_entry,
    save_journal,
)

console = Console(stderr=True)

REPORTERS = ["otlp"]


class _NoTTYError(SystemExit):
    def __init__(self, flag: str) -> None:
        super().__init__(f"No TTY detected. Use {flag} to run non-interactively.")


def _is_tty() -> bool:
    return sys.stdin.isatty()


def _require_tty(flag: str) -> None:
    if not _is_tty():
        raise _NoTTYError(flag)


def _confirm(message: str, *, default: bool = False) -> bool:
    _require_tty("--yes")
    result = questionary.confirm(message, default=default).ask()
    if result is None:
        raise SystemExit(1)
    return result


def _text(message: str, *, default: str = "", flag: str = "") -> str:
    if flag:
        _require_tty(flag)
    result = questionary.text(message, default=default).ask()
    return result or default


def _resolve_state_paths(config: dict[str, Any]) -> StatePaths:
    configured = config.get("state_dir")
    if configured:
        return build_state_paths(Path(str(configured)).expanduser().resolve())
    return build_state_paths(DEFAULT_STATE_DIR)


def _parse_mode_arg(raw: str) -> int | None:
    try:
        return parse_mode(raw)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return None


def _current_mode(path: Path) -> str:
    try:
        return format_mode(stat.S_IMODE(os.stat(path).st_mode))
    except (OSError, ValueError):
        return "(missing)"


class _Session:
    """Config, state paths and reporter shared by one CLI command."""

    def __init__(self) -> None:
        self.config = cfg.load_config()
        self.paths = _resolve_state_paths(self.config)
        configure(self.paths.log_file, debug=bool(self.config.get("debug", False)))
        self.reporter = create_reporter(self.config.get("reporter"), self.config)

    def close(self) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter.flush()
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] reporter flush failed: {e}")
        try:
            self.reporter.shutdown()
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] reporter shutdown failed: {e}")


def cmd_plan(args: argparse.Namespace) -> int:
    mode = _parse_mode_arg(args.mode)
    if mode is None:
        return 2

    session = _Session()
    try:
        outcome = converge(FilePermissions(args.path, mode), dry_run=True, reporter=session.reporter)
    finally:
        session.close()

    if outcome.status is Status.PLANNED:
        console.print(f"[yellow]~[/yellow] {outcome.description}")
    else:
        console.print(f"[green]No changes.[/green] Nothing to do for {args.path}")
    return 0


def _journal(session: _Session, atom: FilePermissions) -> None:
    if atom.previous_mode is None:
        return
    with FileLock(session.paths.lock_file):
        journal = load_journal(session.paths.journal_file)
        record_entry(
            journal,
            journal_key(atom.kind, atom.path),
            JournalEntry(
                kind=atom.kind,
                path=str(atom.path.expanduser().absolute()),
                mode=atom.mode,
                previous_mode=atom.previous_mode,
            ),
        )
        save_journal(journal, session.paths.journal_file)


def cmd_apply(args: argparse.Namespace) -> int:
    mode = _parse_mode_arg(args.mode)
    if mode is None:
        return 2

    session = _Session()
    try:
        atom = FilePermissions(args.path, mode)
        if not atom.plan():
            console.print(f"[green]No changes.[/green] Nothing to do for {args.path}")
            return 0

        console.print(f"[yellow]~[/yellow] {atom}")
        if getattr(args, "dry_run", False):
            return 0
        if not getattr(args, "yes", False) and not _confirm("Apply this change?"):
            return 1

        outcome = converge(atom, reporter=session.reporter)
        if outcome.failed:
            console.print(f"[red]Failed.[/red] {outcome.error}")
            return 1
        try:
            _journal(session, atom)
        except OSError as e:
            console.print(
                f"[red]Applied, but the previous mode {format_mode(atom.previous_mode)} of {args.path} "
                f"could not be recorded; this change cannot be reverted.[/red] {e}"
            )
            return 1
    finally:
        session.close()

    console.print(f"[green]Applied.[/green] {args.path} is now {format_mode(mode)}")
    return 0


def cmd_revert(args: argparse.Namespace) -> int:
    session = _Session()
    try:
        key = journal_key(FilePermissions.kind, Path(args.path))
        try:
            with FileLock(session.paths.lock_file):
                entry = get_entry(load_journal(session.paths.journal_file), key)
        except LockTimeoutError as e:
            console.print(f"[red]Journal is busy.[/red] {e}")
            return 1
        if entry is None:
            console.print(f"[red]Nothing to revert for {args.path}.[/red]")
            return 1

        atom = FilePermissions(entry.path, entry.mode, previous_mode=entry.previous_mode)
        console.print(f"[yellow]~[/yellow] Restore {entry.path} to {format_mode(entry.previous_mode)}")
        if not getattr(args, "yes", False) and not _confirm("Revert this change?"):
            return 1

        outcome = rollback(atom, reporter=session.reporter)
        if outcome.failed:
            console.print(f"[red]Failed.[/red] {outcome.error}")
            return 1

        try:
            with FileLock(session.paths.lock_file):
                journal = load_journal(session.paths.journal_file)
                drop_entry(journal, key)
                save_journal(journal, session.paths.journal_file)
        except OSError as e:
            console.print(
                f"[yellow]Reverted {entry.path}, but its journal entry could not be removed.[/yellow] {e}"
            )
            return 1
    finally:
        session.close()

    console.print(f"[green]Reverted.[/green] {entry.path} is now {format_mode(entry.previous_mode)}")
    return 0


def cmd_status(_args: argparse.Namespace) -> int:
    from rich.table import Table

    config = cfg.load_config()
    paths = _resolve_state_paths(config)
    try:
        with FileLock(paths.lock_file):
            entries = iter_entries(load_journal(paths.journal_file))
    except LockTimeoutError as e:
        console.print(f"[red]Journal is busy.[/red] {e}")
        return 1

    table = Table(title="converge-atoms journal")
    table.add_column("Atom")
    table.add_column("Path")
    table.add_column("Desired")
    table.add_column("Previous")
    table.add_column("Current")

    for entry in entries:
        table.add_row(
            entry.kind,
            entry.path,
            format_mode(entry.mode),
            format_mode(entry.previous_mode),
            _current_mode(Path(entry.path)),
        )

    console.print(table)
    console.print(f"Reporter: [bold]{config.get('reporter') or '(not set)'}[/bold]")
    return 0


def cmd_atoms(_args: argparse.Namespace) -> int:
    for kind in available_atoms():
        console.print(kind)
    return 0


def cmd_configure(args: argparse.Namespace) -> int:
    scope = Scope.PROJECT if getattr(args, "project", False) else Scope.GLOBAL
    reporter = args.reporter

    data = cfg.load_raw_config(scope)
    data["reporter"] = reporter
    section = data.setdefault(reporter, {})
    for field, env_var in cfg.env_keys_for_reporter(reporter):
        value = getattr(args, field, None)
        if value is None and not section.get(field):
            value = _text(f"{env_var}:", flag=f"--{field}")
        if value:
            section[field] = value

    cfg.save_config(data, scope)
    console.print(f"[green]Saved.[/green] {cfg.config_path(scope)}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="converge-atoms",
        description="Detect and converge filesystem permission drift",
    )
    sub = parser.add_subparsers(dest="command")

    p_plan = sub.add_parser("plan", help="Show whether a path needs a permission change")
    p_plan.add_argument("path")
    p_plan.add_argument("mode", help="Permission bits as typed to chmod, e.g. 644")

    p_apply = sub.add_parser("apply", help="Set permission bits on a path")
    p_apply.add_argument("path")
    p_apply.add_argument("mode", help="Permission bits as typed to chmod, e.g. 644")
    p_apply.add_argument("--dry-run", action="store_true", help="Only show the pending change")
    p_apply.add_argument("--yes", "-y", action="store_true", help="Apply without confirmation")

    p_revert = sub.add_parser("revert", help="Restore the permissions recorded before the last apply")
    p_revert.add_argument("path")
    p_revert.add_argument("--yes", "-y", action="store_true", help="Revert without confirmation")

    sub.add_parser("status", help="Show journaled changes")
    sub.add_parser("atoms", help="List available atom kinds")

    p_configure = sub.add_parser("configure", help="Configure outcome reporting")
    p_configure.add_argument("--reporter", choices=REPORTERS, default="otlp")
    p_configure.add_argument("--endpoint", help="OTLP HTTP endpoint")
    p_configure.add_argument("--headers", help="OTLP headers (k=v,k=v)")
    p_configure.add_argument("--project", action="store_true", help="Write project config")

    sub.add_parser("version", help="Show version")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(0)

    commands = {
        "plan": cmd_plan,
        "apply": cmd_apply,
        "revert": cmd_revert,
        "status": cmd_status,
        "atoms": cmd_atoms,
        "configure": cmd_configure,
        "version": lambda _: console.print(version("converge-atoms")) or 0,
    }
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()
