"""Argument parsing helpers for the kubeplugins CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from .._version import __version__
from .plugin import handle_plugin


PLUGIN_DESCRIPTION = """\
Runs a command-line plugin.

Plugins are subcommands that are not part of the major command-line
distribution and can even be provided by third parties. Each plugin is
described by a plugin.yaml file found in the plugin search path."""


def _add_logging_arguments(parser: argparse.ArgumentParser, logging_cfg: Mapping[str, Any]) -> None:
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "warning"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "text"),
        help="Logging formatter (json or text).",
    )


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("connection")
    group.add_argument(
        "-n",
        "--namespace",
        dest="namespace",
        default=None,
        help="Namespace scope exposed to plugins (default: configured namespace or 'default').",
    )
    group.add_argument(
        "-s",
        "--server",
        dest="server",
        default=None,
        help="Address and port of the API server.",
    )
    group.add_argument("--token", dest="token", default=None, help="Bearer token for authentication.")
    group.add_argument("--username", dest="username", default=None, help="Username for basic authentication.")
    group.add_argument("--password", dest="password", default=None, help="Password for basic authentication.")
    group.add_argument("--as", dest="as_user", default=None, help="Username to impersonate.")
    group.add_argument(
        "--as-group",
        dest="as_group",
        action="append",
        default=None,
        help="Group to impersonate; can be repeated.",
    )
    group.add_argument(
        "--insecure-skip-tls-verify",
        dest="insecure_skip_tls_verify",
        action="store_true",
        default=False,
        help="Do not verify the server certificate.",
    )
    group.add_argument(
        "--tls-server-name",
        dest="tls_server_name",
        default=None,
        help="Server name used for certificate validation.",
    )
    group.add_argument(
        "--client-certificate",
        dest="client_certificate",
        default=None,
        help="Path to a client certificate file for TLS.",
    )
    group.add_argument(
        "--client-key",
        dest="client_key",
        default=None,
        help="Path to a client key file for TLS.",
    )
    group.add_argument(
        "--certificate-authority",
        dest="certificate_authority",
        default=None,
        help="Path to a certificate authority file.",
    )
    group.add_argument(
        "--request-timeout",
        dest="request_timeout",
        default=None,
        help="Time to wait for a single server request, e.g. 1s, 2m, 3h (default: 0, no timeout).",
    )


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg_raw = config.get("logging", {})
    logging_cfg = dict(logging_cfg_raw) if isinstance(logging_cfg_raw, Mapping) else {}

    parser = argparse.ArgumentParser(
        prog="kubeplugins",
        description="kubeplugins – run command-line plugins with the tool's configuration",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml (or its directory) holding [tool.kubeplugins].",
    )
    _add_logging_arguments(parser, logging_cfg)
    _add_connection_arguments(parser)

    subparsers = parser.add_subparsers(dest="command", required=True)

    plugin_parser = subparsers.add_parser(
        "plugin",
        help="Runs a command-line plugin.",
        description=PLUGIN_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    plugin_parser.add_argument(
        "plugin_args",
        nargs=argparse.REMAINDER,
        metavar="NAME",
        help="Plugin (and child plugin) names followed by the arguments passed to it.",
    )
    plugin_parser.set_defaults(handler=handle_plugin, flag_parsers=(parser, plugin_parser))

    return parser
