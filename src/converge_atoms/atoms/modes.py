"""Conversion between chmod-style mode strings and permission bits."""

from __future__ import annotations

import stat

MAX_MODE = 0o7777


def parse_mode(text: str) -> int:
    """Parse a mode the way a user types it to chmod (``644``, ``0755``, ``0o4755``)."""
    raw = text.strip().lower()
    if raw.startswith("0o"):
        raw = raw[2:]
    if not raw or any(ch not in "01234567" for ch in raw):
        raise ValueError(f"Invalid permission mode: {text!r}")
    mode = int(raw, 8)
    if mode > MAX_MODE:
        raise ValueError(f"Permission mode out of range: {text!r}")
    return mode


def validate_mode(mode: int) -> int:
    if isinstance(mode, bool) or not isinstance(mode, int):
        raise TypeError(f"Permission mode must be an int, got {type(mode).__name__}")
    if mode < 0 or mode > MAX_MODE:
        raise ValueError(f"Permission mode out of range: {oct(mode)}")
    return mode


def format_mode(mode: int) -> str:
    """Render permission bits as chmod digits, e.g. ``0o640`` -> ``"640"``."""
    return format(stat.S_IMODE(mode), "03o")
