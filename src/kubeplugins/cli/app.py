"""Command line application entry point for kubeplugins."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import IO, Any, Optional, Sequence

from ..logging.config import setup_logging
from ..plugins.loader import PluginLoader
from ..plugins.runner import PluginRunner
from .errors import CliError, log_cli_error
from .io import load_cli_config
from .parser import build_parser


def _preliminary_parser() -> argparse.ArgumentParser:
    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument("--config", dest="config_path", type=Path, default=None)
    config_parser.add_argument("--log-level", dest="log_level", default=None)
    config_parser.add_argument("--log-output", dest="log_output", default=None)
    config_parser.add_argument("--log-format", dest="log_format", choices=("json", "text"), default=None)
    return config_parser


def _global_arguments(args: Sequence[str]) -> list[str]:
    # Options after the subcommand belong to the plugin, not to this tool.
    head = []
    for token in args:
        if token == "plugin":
            break
        head.append(token)
    return head


def _write_line(stream: IO[Any], text: str) -> None:
    stream.write(text)
    if not text.endswith("\n"):
        stream.write("\n")


def run_cli(
    args: Optional[Sequence[str]] = None,
    *,
    stdin: Optional[IO[Any]] = None,
    stdout: Optional[IO[Any]] = None,
    stderr: Optional[IO[Any]] = None,
    plugin_loader: Optional[PluginLoader] = None,
    plugin_runner: Optional[PluginRunner] = None,
) -> str:
    """Execute the kubeplugins command line interface.

    Streams default to the process streams. ``plugin_loader`` and
    ``plugin_runner`` replace the plugin search path and the subprocess runner.
    """

    argv = list(sys.argv[1:] if args is None else args)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    preliminary, _ = _preliminary_parser().parse_known_args(_global_arguments(argv))

    try:
        config = load_cli_config(preliminary.config_path)
    except CliError as exc:
        _write_line(stderr, exc.payload.message)
        raise SystemExit(exc.status_code) from exc

    logging_cfg = dict(config.get("logging", {}))
    if preliminary.log_level is not None:
        logging_cfg["level"] = preliminary.log_level
    if preliminary.log_output is not None:
        logging_cfg["output"] = preliminary.log_output
    if preliminary.log_format is not None:
        logging_cfg["format"] = preliminary.log_format
    logging_cfg.setdefault("level", "warning")
    logging_cfg.setdefault("output", "stderr")
    logging_cfg.setdefault("format", "text")
    config["logging"] = logging_cfg
    try:
        setup_logging(config)
    except ValueError as exc:
        _write_line(stderr, str(exc))
        raise SystemExit(2) from exc

    parser = build_parser(config)
    namespace = parser.parse_args(argv)
    namespace.config = config
    namespace.stdin = stdin
    namespace.stdout = stdout
    namespace.stderr = stderr
    namespace.plugin_loader = plugin_loader
    namespace.plugin_runner = plugin_runner

    handler = getattr(namespace, "handler", None)
    try:
        if handler is None:
            command = getattr(namespace, "command", None)
            raise CliError(
                f"Unknown command '{command}'.",
                category="usage",
                context={"command": command},
            )
        result = handler(namespace, config=config)
    except CliError as exc:
        if not exc.logged:
            # Structured record only, the message itself is written below.
            log_cli_error(exc.payload, exc_info=exc, level=logging.DEBUG)
            exc.logged = True
        if exc.payload.message:
            _write_line(stderr, exc.payload.message)
        raise SystemExit(exc.status_code) from exc
    if result:
        _write_line(stdout, result)
    return result


def main() -> None:  # pragma: no cover - thin wrapper
    run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
