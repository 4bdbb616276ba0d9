"""Shared builders for the kubeplugins test-suite."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from textwrap import dedent
from typing import Any

import yaml

from kubeplugins.plugins.descriptor import Plugin
from kubeplugins.plugins.env import EnvProvider, EnvProviderError
from kubeplugins.plugins.runner import PluginRunner, RunningContext

__all__ = [
    "FailingEnvProvider",
    "RecordingRunner",
    "StaticEnvProvider",
    "build_plugin",
    "write_plugin_yaml",
    "write_pyproject",
]


def build_plugin(name: str = "status", **overrides: Any) -> Plugin:
    """Return a :class:`Plugin` with sensible defaults for ``name``."""

    values: dict[str, Any] = {
        "short_desc": f"The {name} plugin",
        "long_desc": f"Long description of {name}.",
        "example": f"kubeplugins plugin {name}",
        "command": "echo hello",
        "dir": "",
        "tree": (),
    }
    values.update(overrides)
    return Plugin(name=name, **values)


def write_plugin_yaml(directory: Path, payload: Mapping[str, Any] | Plugin) -> Path:
    """Persist ``payload`` as ``directory/plugin.yaml`` and return the path."""

    if isinstance(payload, Plugin):
        payload = payload.as_dict()
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / "plugin.yaml"
    target.write_text(yaml.safe_dump(dict(payload), sort_keys=False), encoding="utf8")
    return target


def write_pyproject(directory: Path, contents: str) -> Path:
    """Persist a ``pyproject.toml`` under ``directory`` and return its path."""

    directory.mkdir(parents=True, exist_ok=True)
    target = directory / "pyproject.toml"
    target.write_text(dedent(contents).lstrip(), encoding="utf8")
    return target


class StaticEnvProvider(EnvProvider):
    def __init__(self, entries: Iterable[str] = ()) -> None:
        self.entries = list(entries)
        self.calls = 0

    def env(self) -> list[str]:
        self.calls += 1
        return list(self.entries)


class FailingEnvProvider(EnvProvider):
    def __init__(self, message: str = "provider failed") -> None:
        self.message = message
        self.calls = 0

    def env(self) -> list[str]:
        self.calls += 1
        raise EnvProviderError(self.message)


@dataclass
class RecordingRunner(PluginRunner):
    """Runner capturing invocations and the environment they would receive."""

    calls: list[tuple[Plugin, RunningContext]] = field(default_factory=list)
    environments: list[Sequence[str]] = field(default_factory=list)

    def run(self, plugin: Plugin, ctx: RunningContext) -> None:
        self.calls.append((plugin, ctx))
        self.environments.append(ctx.env_provider.env())
