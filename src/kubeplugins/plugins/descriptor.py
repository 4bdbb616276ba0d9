"""Data model describing discovered command-line plugins."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

__all__ = ["Plugin", "PluginLoadError"]


_STRING_FIELDS: tuple[tuple[str, str], ...] = (
    ("name", "name"),
    ("shortDesc", "short_desc"),
    ("longDesc", "long_desc"),
    ("example", "example"),
    ("command", "command"),
)


class PluginLoadError(RuntimeError):
    """Raised when a plugin descriptor cannot be built from its metadata."""


def _optional_string(data: Mapping[str, Any], key: str, *, source: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PluginLoadError(f"'{key}' must be a string in {source}")
    return value


@dataclass(frozen=True)
class Plugin:
    """Immutable description of a plugin and its child plugins.

    ``command`` is the invocation template: it may reference environment
    variables and is split on whitespace into the executable and its leading
    arguments when the plugin runs. ``dir`` is the directory the descriptor
    was loaded from and becomes the working directory of the child process.
    """

    name: str
    short_desc: str = ""
    long_desc: str = ""
    example: str = ""
    command: str = ""
    dir: str = ""
    tree: tuple["Plugin", ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.tree, tuple):
            object.__setattr__(self, "tree", tuple(self.tree))

    def is_valid(self) -> bool:
        """Return whether the plugin can be exposed as a command."""

        return bool(self.name)

    def walk(self) -> Iterator["Plugin"]:
        """Yield this plugin followed by its descendants, depth first."""

        yield self
        for child in self.tree:
            yield from child.walk()

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        dir: str | Path = "",
        source: str = "<memory>",
    ) -> "Plugin":
        """Build a plugin from ``plugin.yaml`` style metadata.

        Children listed under ``tree`` inherit ``dir`` from their parent.
        A missing or empty ``name`` is accepted; such descriptors are simply
        never bound to a command.
        """

        if not isinstance(data, Mapping):
            raise PluginLoadError(f"plugin descriptor in {source} must be a mapping")

        values = {
            attribute: _optional_string(data, key, source=source)
            for key, attribute in _STRING_FIELDS
        }

        raw_tree = data.get("tree") or ()
        if not isinstance(raw_tree, Sequence) or isinstance(raw_tree, str):
            raise PluginLoadError(f"'tree' must be a list of plugins in {source}")
        children = tuple(
            cls.from_mapping(child, dir=dir, source=source) for child in raw_tree
        )

        return cls(dir=str(dir), tree=children, **values)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "shortDesc": self.short_desc,
            "longDesc": self.long_desc,
            "example": self.example,
            "command": self.command,
            "tree": [child.as_dict() for child in self.tree],
        }
