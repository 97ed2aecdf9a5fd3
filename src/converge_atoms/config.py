"""converge-atoms configuration.

Config files:
  - Global:  ~/.config/converge-atoms/config.json
  - Project: .converge-atoms.json (current directory)

Merge order: global → project → environment variables (highest priority).
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from .file_io import atomic_write

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"


def config_path(scope: Scope) -> Path:
    if scope is Scope.PROJECT:
        return Path.cwd() / ".converge-atoms.json"
    return Path.home() / ".config" / "converge-atoms" / "config.json"


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


_ENV_OVERRIDES: list[tuple[str, str]] = [
    ("debug", "CONVERGE_ATOMS_DEBUG"),
    ("state_dir", "CONVERGE_ATOMS_STATE_DIR"),
    ("reporter", "CONVERGE_ATOMS_REPORTER"),
]

_REPORTER_ENV: Dict[str, list[tuple[str, str]]] = {
    "otlp": [
        ("endpoint", "OTEL_EXPORTER_OTLP_ENDPOINT"),
        ("headers", "OTEL_EXPORTER_OTLP_HEADERS"),
    ],
}


def load_config() -> Dict[str, Any]:
    """Load merged config: global → project → env vars."""
    global_cfg = _read_json(config_path(Scope.GLOBAL))
    project_cfg = _read_json(config_path(Scope.PROJECT))

    merged: Dict[str, Any] = {**global_cfg}
    for k, v in project_cfg.items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            merged[k] = {**merged[k], **v}
        else:
            merged[k] = v

    _apply_env_overrides(merged)

    return merged


def load_raw_config(scope: Scope) -> Dict[str, Any]:
    """Load config for a specific scope without merge/env overrides."""
    return _read_json(config_path(scope))


def _apply_env_overrides(merged: Dict[str, Any]) -> None:
    for config_key, env_var in _ENV_OVERRIDES:
        val = os.environ.get(env_var)
        if val:
            if config_key == "debug":
                merged[config_key] = val.lower() == "true"
            else:
                merged[config_key] = val

    for reporter, fields in _REPORTER_ENV.items():
        if reporter not in merged:
            has_env = any(os.environ.get(env_var) for _, env_var in fields)
            if not has_env:
                continue
        section = merged.setdefault(reporter, {})
        for field, env_var in fields:
            val = os.environ.get(env_var)
            if val:
                section[field] = val


def save_config(data: Dict[str, Any], scope: Scope) -> None:
    atomic_write(config_path(scope), (json.dumps(data, indent=2, ensure_ascii=False) + "\n").encode("utf-8"))


def env_keys_for_reporter(reporter: str) -> list[tuple[str, str]]:
    """Return (config_field, env_var_name) pairs for a reporter."""
    return _REPORTER_ENV.get(reporter, [])
