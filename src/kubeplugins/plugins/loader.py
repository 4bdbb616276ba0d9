"""Plugin loaders reading ``plugin.yaml`` descriptors from disk."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from .descriptor import Plugin, PluginLoadError

__all__ = [
    "DESCRIPTOR_FILENAME",
    "PLUGINS_PATH_ENV_VAR",
    "DirectoryPluginLoader",
    "MultiPluginLoader",
    "PluginLoader",
    "StaticPluginLoader",
    "default_plugin_loader",
    "plugin_search_paths",
]


DESCRIPTOR_FILENAME = "plugin.yaml"
PLUGINS_PATH_ENV_VAR = "KUBECTL_PLUGINS_PATH"

logger = logging.getLogger(__name__)


class PluginLoader(ABC):
    """Source of plugin descriptor trees."""

    @abstractmethod
    def load(self) -> tuple[Plugin, ...]:
        """Return the top-level plugins known to this loader."""


class StaticPluginLoader(PluginLoader):
    """Serve an in-memory sequence of plugins."""

    def __init__(self, plugins: Iterable[Plugin] = ()) -> None:
        self._plugins = tuple(plugins)

    def load(self) -> tuple[Plugin, ...]:
        return self._plugins


class DirectoryPluginLoader(PluginLoader):
    """Load every ``plugin.yaml`` found below ``directory``.

    Directories are visited in sorted order so the resulting command tree is
    stable between runs. A missing directory yields no plugins and a malformed
    descriptor is logged and skipped.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _descriptor_paths(self) -> list[Path]:
        paths: list[Path] = []
        for root, dirnames, filenames in os.walk(self.directory):
            dirnames.sort()
            if DESCRIPTOR_FILENAME in filenames:
                paths.append(Path(root) / DESCRIPTOR_FILENAME)
        return paths

    def _load_descriptor(self, path: Path) -> Plugin:
        try:
            # PyYAML decodes bytes itself and raises ReaderError on bad encodings.
            with path.open("rb") as handle:
                data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise PluginLoadError(f"invalid plugin descriptor '{path}': {exc}") from exc
        except OSError as exc:
            raise PluginLoadError(f"unable to read plugin descriptor '{path}': {exc}") from exc
        return Plugin.from_mapping(data or {}, dir=path.parent, source=str(path))

    def load(self) -> tuple[Plugin, ...]:
        if not self.directory.is_dir():
            logger.debug("Plugin directory '%s' does not exist", self.directory)
            return ()

        plugins = []
        for path in self._descriptor_paths():
            try:
                plugin = self._load_descriptor(path)
            except PluginLoadError:
                logger.warning("Skipping plugin descriptor '%s'", path, exc_info=True)
                continue
            logger.debug("Plugin loaded: %r from '%s'", plugin.name, path)
            plugins.append(plugin)
        return tuple(plugins)

    def __repr__(self) -> str:
        return f"DirectoryPluginLoader({str(self.directory)!r})"


class MultiPluginLoader(PluginLoader):
    """Concatenate plugins from several loaders.

    Loaders that fail are logged and skipped so one broken directory does not
    hide plugins from the others.
    """

    def __init__(self, loaders: Iterable[PluginLoader]) -> None:
        self.loaders = tuple(loaders)

    def load(self) -> tuple[Plugin, ...]:
        plugins: list[Plugin] = []
        for loader in self.loaders:
            try:
                plugins.extend(loader.load())
            except PluginLoadError:
                logger.warning("Unable to load plugins from %r", loader, exc_info=True)
        return tuple(plugins)

    def __repr__(self) -> str:
        return f"MultiPluginLoader({list(self.loaders)!r})"


def _configured_paths(config: Mapping[str, Any] | None) -> list[str]:
    plugins_cfg = (config or {}).get("plugins", {})
    if not isinstance(plugins_cfg, Mapping):
        return []
    raw = plugins_cfg.get("paths", [])
    if isinstance(raw, str):
        return [raw]
    return [str(item) for item in raw if item]


def plugin_search_paths(
    config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[Path]:
    """Return the directories scanned for plugin descriptors.

    ``KUBECTL_PLUGINS_PATH`` replaces every other location when set.
    Otherwise configured paths come first, followed by ``~/.kube/plugins``
    and ``kubectl/plugins`` below each ``XDG_DATA_DIRS`` entry.
    """

    environ = os.environ if environ is None else environ

    env_paths = environ.get(PLUGINS_PATH_ENV_VAR)
    if env_paths:
        return [Path(item).expanduser() for item in env_paths.split(os.pathsep) if item]

    paths = [Path(item).expanduser() for item in _configured_paths(config)]
    paths.append(Path("~/.kube/plugins").expanduser())
    xdg_dirs = environ.get("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"
    for item in xdg_dirs.split(os.pathsep):
        if item:
            paths.append(Path(item) / "kubectl" / "plugins")
    return paths


def default_plugin_loader(
    config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PluginLoader:
    return MultiPluginLoader(
        DirectoryPluginLoader(path) for path in plugin_search_paths(config, environ)
    )
