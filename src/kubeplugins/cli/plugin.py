"""Binding of plugin descriptors to ``plugin`` subcommands."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from kubeplugins.cli.errors import CliError, plugin_exit_status
from kubeplugins.connection import (
    ClientConfig,
    ConnectionConfigError,
    format_duration,
    resolve_client_config,
    resolve_namespace,
)
from kubeplugins.plugins.descriptor import Plugin, PluginLoadError
from kubeplugins.plugins.env import (
    EnvProvider,
    EnvProviderError,
    MultiEnvProvider,
    OSEnvProvider,
    PluginCallerEnvProvider,
    PluginDescriptorEnvProvider,
)
from kubeplugins.plugins.loader import PluginLoader, default_plugin_loader
from kubeplugins.plugins.naming import field_to_env, flag_to_env
from kubeplugins.plugins.runner import (
    ExecPluginRunner,
    PluginExecutionError,
    PluginRunner,
    RunningContext,
)

__all__ = [
    "ClientConfigEnvProvider",
    "CurrentNamespaceEnvProvider",
    "FlagsEnvProvider",
    "PluginCommand",
    "bind_plugin",
    "bind_plugins",
    "handle_plugin",
    "plugin_env_provider",
    "resolve_command",
]


GLOBAL_FLAG_ENV_PREFIX = "KUBECTL_PLUGINS_GLOBAL_FLAG_"
CLIENT_CONFIG_ENV_PREFIX = "KUBECTL_PLUGINS_REST_CLIENT_CONFIG_"
CURRENT_NAMESPACE_ENV_NAME = "KUBECTL_PLUGINS_CURRENT_NAMESPACE"

logger = logging.getLogger(__name__)


def _render_flag_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_render_flag_value(item) for item in value)
    return str(value)


def _flag_name(action: argparse.Action) -> str:
    long_options = [option for option in action.option_strings if option.startswith("--")]
    return (long_options or list(action.option_strings))[0]


class FlagsEnvProvider(EnvProvider):
    """Expose every option registered on the invoking command.

    Options are visited whether or not they were given on the command line,
    so plugins always see the effective value.
    """

    def __init__(
        self,
        parsers: Sequence[argparse.ArgumentParser],
        namespace: argparse.Namespace,
    ) -> None:
        self.parsers = tuple(parsers)
        self.namespace = namespace

    def env(self) -> list[str]:
        env: list[str] = []
        seen: set[str] = set()
        for parser in self.parsers:
            # argparse offers no public accessor for registered actions.
            for action in parser._actions:
                if not action.option_strings or action.dest == argparse.SUPPRESS:
                    continue
                # --help and --version carry no value.
                if action.default == argparse.SUPPRESS and not hasattr(self.namespace, action.dest):
                    continue
                if action.dest in seen:
                    continue
                seen.add(action.dest)
                value = getattr(self.namespace, action.dest, action.default)
                env.append(
                    flag_to_env(_flag_name(action), _render_flag_value(value), GLOBAL_FLAG_ENV_PREFIX)
                )
        return env


class CurrentNamespaceEnvProvider(EnvProvider):
    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    def env(self) -> list[str]:
        if not self.namespace:
            raise EnvProviderError("unable to determine the current namespace")
        return [f"{CURRENT_NAMESPACE_ENV_NAME}={self.namespace}"]


class ClientConfigEnvProvider(EnvProvider):
    """Expose the resolved connection settings."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config

    def env(self) -> list[str]:
        cfg = self.config
        prefix = CLIENT_CONFIG_ENV_PREFIX
        fields: tuple[tuple[str, str], ...] = (
            ("Host", cfg.host),
            ("APIPath", cfg.api_path),
            ("Prefix", cfg.prefix),
            ("Username", cfg.username),
            ("Password", cfg.password),
            ("BearerToken", cfg.bearer_token),
            ("Impersonate.UserName", cfg.impersonate.user_name),
            ("Impersonate.Groups", ",".join(cfg.impersonate.groups)),
            ("Insecure", "true" if cfg.insecure else "false"),
            ("ServerName", cfg.server_name),
            ("CertFile", cfg.cert_file),
            ("KeyFile", cfg.key_file),
            ("CAFile", cfg.ca_file),
            ("CertData", cfg.cert_data),
            ("KeyData", cfg.key_data),
            ("CAData", cfg.ca_data),
            ("UserAgent", cfg.user_agent),
            ("Timeout", format_duration(cfg.timeout)),
            ("TimeoutMS", str(cfg.timeout_ms)),
        )
        return [field_to_env(name, value, prefix) for name, value in fields]


def plugin_env_provider(
    plugin: Plugin,
    *,
    flag_parsers: Sequence[argparse.ArgumentParser],
    namespace: argparse.Namespace,
    current_namespace: str,
    client_config: ClientConfig,
    environ: Optional[Mapping[str, str]] = None,
    argv0: Optional[str] = None,
) -> MultiEnvProvider:
    """Return the providers for ``plugin`` in precedence order.

    Later providers shadow earlier ones: caller, OS environment, descriptor,
    flags, current namespace and finally the connection settings.
    """

    return MultiEnvProvider(
        [
            PluginCallerEnvProvider(argv0),
            OSEnvProvider(environ),
            PluginDescriptorEnvProvider(plugin),
            FlagsEnvProvider(flag_parsers, namespace),
            CurrentNamespaceEnvProvider(current_namespace),
            ClientConfigEnvProvider(client_config),
        ]
    )


@dataclass(frozen=True)
class PluginCommand:
    """Command exposing one plugin, mirroring the descriptor tree."""

    name: str
    path: str
    plugin: Plugin
    parser: argparse.ArgumentParser = field(repr=False, compare=False)
    children: tuple["PluginCommand", ...] = ()

    def child(self, name: str) -> Optional["PluginCommand"]:
        for candidate in self.children:
            if candidate.name == name:
                return candidate
        return None

    def format_help(self) -> str:
        return self.parser.format_help()


def _help_kwargs(plugin: Plugin) -> dict[str, Any]:
    epilog = None
    if plugin.example.strip():
        epilog = "examples:\n" + plugin.example.strip("\n")
    return {
        "description": plugin.long_desc.strip() or plugin.short_desc or None,
        "epilog": epilog,
        "formatter_class": argparse.RawDescriptionHelpFormatter,
        "add_help": False,
    }


def _bind(
    plugin: Plugin,
    parser: argparse.ArgumentParser,
    path: str,
) -> PluginCommand:
    valid_children = [child for child in plugin.tree if child.is_valid()]
    skipped = len(plugin.tree) - len(valid_children)
    if skipped:
        logger.debug("Skipping %d unnamed child plugin(s) of %r", skipped, plugin.name)

    children: list[PluginCommand] = []
    if valid_children:
        subparsers = parser.add_subparsers(title="available commands", metavar="COMMAND")
        for child in valid_children:
            if any(bound.name == child.name for bound in children):
                logger.warning("Ignoring duplicate plugin %r below %r", child.name, path)
                continue
            child_parser = subparsers.add_parser(
                child.name, help=child.short_desc, **_help_kwargs(child)
            )
            children.append(_bind(child, child_parser, f"{path} {child.name}"))
    if plugin.command:
        parser.add_argument("args", nargs="*", metavar="ARGS", help="arguments passed to the plugin")

    return PluginCommand(
        name=plugin.name,
        path=path,
        plugin=plugin,
        parser=parser,
        children=tuple(children),
    )


def bind_plugin(plugin: Plugin, *, prog: str) -> Optional[PluginCommand]:
    """Build the command for ``plugin`` and its children.

    Plugins without a name cannot be invoked and yield ``None``.
    """

    if not plugin.is_valid():
        logger.debug("Skipping plugin without a name loaded from %r", plugin.dir)
        return None
    parser = argparse.ArgumentParser(prog=f"{prog} {plugin.name}", **_help_kwargs(plugin))
    return _bind(plugin, parser, plugin.name)


def bind_plugins(plugins: Iterable[Plugin], *, prog: str) -> tuple[PluginCommand, ...]:
    commands: list[PluginCommand] = []
    for plugin in plugins:
        if any(bound.name == plugin.name for bound in commands):
            logger.warning("Ignoring duplicate plugin %r from %r", plugin.name, plugin.dir)
            continue
        command = bind_plugin(plugin, prog=prog)
        if command is not None:
            commands.append(command)
    return tuple(commands)


def format_plugin_list(commands: Sequence[PluginCommand], *, prog: str) -> str:
    width = max(len(command.name) for command in commands)
    lines = [f"usage: {prog} NAME [ARGS ...]", "", "available plugins:"]
    for command in commands:
        lines.append(f"  {command.name.ljust(width)}  {command.plugin.short_desc}".rstrip())
    return "\n".join(lines) + "\n"


def resolve_command(
    commands: Sequence[PluginCommand],
    tokens: Sequence[str],
) -> tuple[PluginCommand, list[str]]:
    """Return the command addressed by the leading ``tokens`` and its arguments."""

    if not tokens:
        raise CliError("A plugin name is required.", category="usage")

    command = next((candidate for candidate in commands if candidate.name == tokens[0]), None)
    if command is None:
        raise CliError(
            f"Unknown plugin '{tokens[0]}'.",
            category="not_found",
            context={"plugin": tokens[0]},
        )

    index = 1
    while index < len(tokens):
        child = command.child(tokens[index])
        if child is None:
            break
        command = child
        index += 1
    return command, list(tokens[index:])


def _load_plugins(loader: PluginLoader) -> tuple[Plugin, ...]:
    try:
        return loader.load()
    except PluginLoadError as exc:
        logger.info("Unable to load plugins: %s", exc)
        return ()


def handle_plugin(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    """Run the plugin addressed by ``namespace.plugin_args``."""

    stdin = getattr(namespace, "stdin", None) or sys.stdin
    stdout = getattr(namespace, "stdout", None) or sys.stdout
    stderr = getattr(namespace, "stderr", None) or sys.stderr
    flag_parsers = tuple(getattr(namespace, "flag_parsers", ()))
    prog = flag_parsers[-1].prog if flag_parsers else "plugin"

    loader = getattr(namespace, "plugin_loader", None) or default_plugin_loader(config)
    runner: PluginRunner = getattr(namespace, "plugin_runner", None) or ExecPluginRunner()

    commands = bind_plugins(_load_plugins(loader), prog=prog)
    if not commands:
        raise CliError("no plugins installed.", category="not_found")

    tokens = list(getattr(namespace, "plugin_args", None) or ())
    if not tokens:
        stderr.write(format_plugin_list(commands, prog=prog))
        raise CliError("A plugin name is required.", category="usage")

    command, args = resolve_command(commands, tokens)
    if args[:1] in (["-h"], ["--help"]):
        stdout.write(command.format_help())
        return ""

    plugin = command.plugin
    if not plugin.command:
        stderr.write(command.format_help())
        if args:
            raise CliError(
                f"Unknown command '{args[0]}' for '{command.path}'.",
                category="usage",
                context={"plugin": command.path},
            )
        raise CliError(
            f"Plugin '{command.path}' requires a subcommand.",
            category="usage",
            context={"plugin": command.path},
        )

    try:
        client_config = resolve_client_config(namespace, config)
    except ConnectionConfigError as exc:
        raise CliError(str(exc), category="usage") from exc

    provider = plugin_env_provider(
        plugin,
        flag_parsers=flag_parsers,
        namespace=namespace,
        current_namespace=resolve_namespace(namespace, config),
        client_config=client_config,
    )
    ctx = RunningContext(
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
        args=args,
        env_provider=provider,
        working_dir=plugin.dir,
    )

    try:
        runner.run(plugin, ctx)
    except EnvProviderError as exc:
        raise CliError(
            f"Unable to prepare the environment for plugin '{command.path}': {exc}",
            category="runtime",
            context={"plugin": command.path},
        ) from exc
    except PluginExecutionError as exc:
        raise CliError(
            str(exc),
            category="execution",
            status_code=plugin_exit_status(exc.returncode),
            context={"plugin": command.path, "returncode": exc.returncode},
        ) from exc
    return ""
