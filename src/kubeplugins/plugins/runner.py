"""Execution of plugins as child processes."""

from __future__ import annotations

import io
import logging
import os
import re
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import IO, Any, Optional

from .descriptor import Plugin
from .env import EmptyEnvProvider, EnvProvider, env_to_mapping

__all__ = [
    "ExecPluginRunner",
    "PluginExecutionError",
    "PluginRunner",
    "RunningContext",
    "expand_env",
    "split_command",
]


logger = logging.getLogger(__name__)

_ENV_REFERENCE = re.compile(r"\$(?:\{(?P<braced>[^}]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")


class PluginExecutionError(RuntimeError):
    """Raised when a plugin cannot be started or exits unsuccessfully."""

    def __init__(
        self,
        message: str,
        *,
        plugin: Plugin | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.plugin = plugin
        self.returncode = returncode


@dataclass(frozen=True)
class RunningContext:
    """Streams, arguments, environment and working directory of one plugin run.

    Streams left as ``None`` are inherited from the current process.
    """

    stdin: Optional[IO[Any]] = None
    stdout: Optional[IO[Any]] = None
    stderr: Optional[IO[Any]] = None
    args: Sequence[str] = ()
    env_provider: EnvProvider = field(default_factory=EmptyEnvProvider)
    working_dir: str = ""


class PluginRunner(ABC):
    """Capable of running a plugin in a given running context."""

    @abstractmethod
    def run(self, plugin: Plugin, ctx: RunningContext) -> None:
        """Run ``plugin`` raising :class:`PluginExecutionError` on failure."""


def expand_env(template: str, environ: Mapping[str, str]) -> str:
    """Replace ``$VAR`` and ``${VAR}`` in ``template`` using ``environ``.

    Undefined variables expand to an empty string.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group("braced")
        if name is None:
            name = match.group("bare")
        return environ.get(name, "")

    return _ENV_REFERENCE.sub(_substitute, template)


def split_command(command: str) -> list[str]:
    return command.split()


def _has_fileno(stream: IO[Any]) -> bool:
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        # io.UnsupportedOperation derives from OSError and ValueError.
        return False
    return True


def _encoding(stream: IO[Any]) -> str:
    return getattr(stream, "encoding", None) or "utf-8"


def _input_target(stream: IO[Any] | None) -> tuple[Any, bytes | None]:
    if stream is None or _has_fileno(stream):
        return stream, None
    payload = stream.read()
    if isinstance(payload, str):
        payload = payload.encode(_encoding(stream))
    return subprocess.PIPE, payload or b""


def _output_target(stream: IO[Any] | None) -> Any:
    if stream is None:
        return None
    if _has_fileno(stream):
        stream.flush()
        return stream
    return subprocess.PIPE


def _forward_output(data: bytes | None, stream: IO[Any] | None) -> None:
    if not data or stream is None:
        return
    if isinstance(stream, io.TextIOBase):
        stream.write(data.decode(_encoding(stream), errors="replace"))
    else:
        stream.write(data)
    stream.flush()


class ExecPluginRunner(PluginRunner):
    """Run plugins through :mod:`subprocess`.

    The invocation template is expanded against ``ambient_env`` (the current
    process environment unless given). The composed environment from the
    running context only reaches the child process.
    """

    def __init__(self, ambient_env: Mapping[str, str] | None = None) -> None:
        self._ambient_env = ambient_env

    def build_argv(self, plugin: Plugin, args: Sequence[str] = ()) -> list[str]:
        ambient = os.environ if self._ambient_env is None else self._ambient_env
        command = split_command(expand_env(plugin.command, ambient))
        if not command:
            raise PluginExecutionError(
                f"plugin '{plugin.name}' does not define a command to run",
                plugin=plugin,
            )
        return command + list(args)

    def run(self, plugin: Plugin, ctx: RunningContext) -> None:
        argv = self.build_argv(plugin, ctx.args)
        env = ctx.env_provider.env()

        stdin, stdin_payload = _input_target(ctx.stdin)
        stdout = _output_target(ctx.stdout)
        stderr = _output_target(ctx.stderr)

        logger.debug(
            "Running plugin %r as base command %r with args %r",
            plugin.name,
            argv[0],
            argv[1:],
        )
        try:
            process = subprocess.Popen(
                argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                env=env_to_mapping(env),
                cwd=ctx.working_dir or None,
            )
        except OSError as exc:
            raise PluginExecutionError(
                f"unable to start plugin '{plugin.name}': {exc}",
                plugin=plugin,
            ) from exc

        with process:
            out, err = process.communicate(stdin_payload)
        _forward_output(out, ctx.stdout)
        _forward_output(err, ctx.stderr)

        if process.returncode != 0:
            raise PluginExecutionError(
                f"plugin '{plugin.name}' exited with status {process.returncode}",
                plugin=plugin,
                returncode=process.returncode,
            )
