"""Top-level package for kubeplugins.

kubeplugins exposes user-installed executables described by ``plugin.yaml``
files as subcommands of a kubectl-style command line, running each one with
an environment describing the invoking tool: its flags, connection settings,
current namespace and the plugin's own descriptor.
"""

from ._version import __version__
from .connection import ClientConfig, ImpersonationConfig
from .plugins import (
    DirectoryPluginLoader,
    EnvProvider,
    EnvProviderError,
    ExecPluginRunner,
    MultiEnvProvider,
    Plugin,
    PluginExecutionError,
    PluginLoader,
    RunningContext,
)

__all__ = [
    "ClientConfig",
    "DirectoryPluginLoader",
    "EnvProvider",
    "EnvProviderError",
    "ExecPluginRunner",
    "ImpersonationConfig",
    "MultiEnvProvider",
    "Plugin",
    "PluginExecutionError",
    "PluginLoader",
    "RunningContext",
    "__version__",
]
