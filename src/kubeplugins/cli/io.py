"""Configuration loading for the kubeplugins command line."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from kubeplugins.cli.errors import CliError
from kubeplugins.configuration import (
    PROJECT_FILENAME,
    load_project_config,
    resolve_pyproject_path,
    tomllib,
)

__all__ = ["CONFIG_ENV_VAR", "load_cli_config"]


CONFIG_ENV_VAR = "KUBEPLUGINS_CONFIG"


def _iter_unique_paths(candidates: List[Path]) -> List[Path]:
    seen: Dict[Path, None] = {}
    ordered: List[Path] = []
    for candidate in candidates:
        resolved = candidate.expanduser().resolve(strict=False)
        if resolved in seen:
            continue
        seen[resolved] = None
        ordered.append(resolved)
    return ordered


def _load(candidate: Path) -> Optional[Dict[str, Any]]:
    try:
        loaded = load_project_config(candidate)
    except tomllib.TOMLDecodeError as exc:
        raise CliError(
            f"Invalid configuration file '{candidate}': {exc}",
            category="usage",
            context={"path": candidate},
        ) from exc
    except OSError as exc:
        raise CliError(
            f"Unable to read configuration file '{candidate}': {exc}",
            category="io",
            context={"path": candidate},
        ) from exc
    if loaded is None:
        return None
    payload, source = loaded
    data = {str(key): value for key, value in payload.items()}
    data["_config_path"] = str(source)
    return data


def load_cli_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load CLI defaults from the ``[tool.kubeplugins]`` table.

    ``path`` takes precedence over ``$KUBEPLUGINS_CONFIG``, which takes
    precedence over a ``pyproject.toml`` in the current directory.
    """

    env_config = os.environ.get(CONFIG_ENV_VAR)

    bases: List[Path] = []
    if path is not None:
        bases.append(path)
    if env_config:
        bases.append(Path(env_config))
    bases.append(Path.cwd())

    candidates = []
    for base in bases:
        resolved = resolve_pyproject_path(base)
        if resolved is not None:
            candidates.append(resolved)

    for candidate in _iter_unique_paths(candidates):
        data = _load(candidate)
        if data is not None:
            return data

    if path is not None and resolve_pyproject_path(path) is None:
        raise CliError(
            f"Configuration path '{path}' must be a directory or a {PROJECT_FILENAME} file",
            category="usage",
            context={"path": path},
        )

    return {"_config_path": None}
