"""Locate and load ``config.yaml`` and resolve result paths against it."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]

CONFIG_ENV_VAR = "SCC_CONFIG_PATH"
CONFIG_ROOT_KEY = "_config_root"


def get_config_path(default: Path | None = None) -> Path:
    """Return the configuration path, honouring SCC_CONFIG_PATH when set."""

    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    if default is not None:
        return default.resolve()
    return (REPO_ROOT / "config.yaml").resolve()


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load the YAML configuration; a missing file yields an empty mapping."""

    config_path = path or get_config_path()
    if not config_path.exists():
        return {}
    with config_path.open(encoding="utf-8") as handle:
        config = yaml.safe_load(handle) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root in {config_path} must be a mapping.")
    set_config_root(config, config_path.parent)
    return config


def set_config_root(config: MutableMapping[str, object], root: Path) -> None:
    """Annotate a config mapping with its filesystem root for relative paths."""

    if not isinstance(config, MutableMapping):
        return
    config[CONFIG_ROOT_KEY] = str(root.resolve())


def get_config_root(config: Mapping[str, object], fallback: Path | None = None) -> Path:
    if isinstance(config, Mapping):
        value = config.get(CONFIG_ROOT_KEY)
        if isinstance(value, str):
            return Path(value).expanduser().resolve()
    return (fallback or REPO_ROOT).resolve()


def sanitize_run_directory(value: str | None) -> str | None:
    """Return a safe run-directory component (no absolutes, no parent traversals)."""

    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    path = Path(candidate)
    if path.is_absolute():
        raise ValueError("results.run_directory must be a relative path.")
    parts = [part for part in path.parts if part not in ("", ".", "..")]
    if not parts:
        return None
    return "/".join(parts)


def get_results_run_directory(config: Mapping[str, object] | None) -> str | None:
    """Extract ``results.run_directory`` from the root configuration mapping."""

    if not isinstance(config, Mapping):
        return None
    results_cfg = config.get("results")
    if not isinstance(results_cfg, Mapping):
        return None
    raw_value = results_cfg.get("run_directory")
    if raw_value is None:
        return None
    return sanitize_run_directory(str(raw_value))


def resolve_output_path(config: Mapping[str, object], path_like: str | Path) -> Path:
    """Resolve ``path_like`` against the config root.

    Paths under ``results/`` get the configured run directory inserted after
    ``results``.
    """

    root = get_config_root(config)
    path = Path(path_like)
    absolute = path if path.is_absolute() else (root / path)
    run_directory = get_results_run_directory(config)
    if not run_directory:
        return absolute.resolve()
    try:
        rel = absolute.resolve().relative_to(root)
    except ValueError:
        return absolute.resolve()
    if not rel.parts or rel.parts[0] != "results":
        return absolute.resolve()
    return (root / "results" / run_directory / Path(*rel.parts[1:])).resolve()


__all__ = [
    "REPO_ROOT",
    "CONFIG_ENV_VAR",
    "get_config_path",
    "load_config",
    "set_config_root",
    "get_config_root",
    "sanitize_run_directory",
    "get_results_run_directory",
    "resolve_output_path",
]
