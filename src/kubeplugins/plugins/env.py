"""Environment providers composing the environment handed to plugins."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from .descriptor import Plugin
from .naming import field_to_env

__all__ = [
    "CALLER_ENV_NAME",
    "DESCRIPTOR_ENV_PREFIX",
    "EmptyEnvProvider",
    "EnvProvider",
    "EnvProviderError",
    "MultiEnvProvider",
    "OSEnvProvider",
    "PluginCallerEnvProvider",
    "PluginDescriptorEnvProvider",
    "env_to_mapping",
]


CALLER_ENV_NAME = "KUBECTL_PLUGINS_CALLER"
DESCRIPTOR_ENV_PREFIX = "KUBECTL_PLUGINS_DESCRIPTOR_"

logger = logging.getLogger(__name__)


class EnvProviderError(RuntimeError):
    """Raised when a provider is unable to produce its environment entries."""


class EnvProvider(ABC):
    """Source of ``KEY=VALUE`` environment entries for a running plugin."""

    @abstractmethod
    def env(self) -> list[str]:
        """Return the ordered environment entries or raise :class:`EnvProviderError`."""


class MultiEnvProvider(EnvProvider):
    """Concatenate several providers in order, stopping at the first failure."""

    def __init__(self, providers: Iterable[EnvProvider] = ()) -> None:
        self.providers: tuple[EnvProvider, ...] = tuple(providers)

    def __iter__(self):
        return iter(self.providers)

    def __len__(self) -> int:
        return len(self.providers)

    def env(self) -> list[str]:
        env: list[str] = []
        for provider in self.providers:
            # Failures propagate untouched so no partial environment escapes.
            env.extend(provider.env())
        return env


class OSEnvProvider(EnvProvider):
    """Provide the environment inherited by the current process."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def env(self) -> list[str]:
        environ = os.environ if self._environ is None else self._environ
        return [f"{key}={value}" for key, value in environ.items()]


class EmptyEnvProvider(EnvProvider):
    def env(self) -> list[str]:
        return []


class PluginCallerEnvProvider(EnvProvider):
    """Expose the absolute path of the running tool as ``KUBECTL_PLUGINS_CALLER``."""

    def __init__(self, argv0: str | None = None) -> None:
        self._argv0 = argv0

    def _caller(self) -> str:
        argv0 = self._argv0
        if argv0 is None:
            argv0 = sys.argv[0] if sys.argv else ""
        if not argv0:
            raise EnvProviderError("unable to determine the path of the calling executable")

        if os.sep in argv0 or (os.altsep and os.altsep in argv0):
            candidate = Path(argv0)
            if not candidate.is_file():
                raise EnvProviderError(
                    f"unable to resolve the calling executable '{argv0}'"
                )
            # Under ``python -m kubeplugins`` the running binary is the interpreter.
            if candidate.name == "__main__.py":
                return str(Path(sys.executable).resolve())
            return str(candidate.resolve())

        # A bare name was found on PATH by the shell, never in the working directory.
        located = shutil.which(argv0)
        if located is None:
            raise EnvProviderError(
                f"unable to resolve the calling executable '{argv0}'"
            )
        return str(Path(located).resolve())

    def env(self) -> list[str]:
        return [f"{CALLER_ENV_NAME}={self._caller()}"]


class PluginDescriptorEnvProvider(EnvProvider):
    """Expose the descriptor fields of the running plugin."""

    def __init__(self, plugin: Plugin | None) -> None:
        self.plugin = plugin

    def env(self) -> list[str]:
        plugin = self.plugin
        if plugin is None:
            raise EnvProviderError("plugin not present to extract env")
        prefix = DESCRIPTOR_ENV_PREFIX
        return [
            field_to_env("Name", plugin.name, prefix),
            field_to_env("ShortDesc", plugin.short_desc, prefix),
            field_to_env("LongDesc", plugin.long_desc, prefix),
            field_to_env("Example", plugin.example, prefix),
            field_to_env("Command", plugin.command, prefix),
        ]


def env_to_mapping(entries: Iterable[str]) -> dict[str, str]:
    """Collapse ``KEY=VALUE`` entries into a mapping; later keys win."""

    environ: dict[str, str] = {}
    for entry in entries:
        key, separator, value = entry.partition("=")
        if not separator or not key:
            logger.debug("Ignoring malformed environment entry %r", entry)
            continue
        environ[key] = value
    return environ
