"""Plugin descriptors, environment providers and the process runner."""

from kubeplugins.plugins.descriptor import Plugin, PluginLoadError
from kubeplugins.plugins.env import (
    EmptyEnvProvider,
    EnvProvider,
    EnvProviderError,
    MultiEnvProvider,
    OSEnvProvider,
    PluginCallerEnvProvider,
    PluginDescriptorEnvProvider,
)
from kubeplugins.plugins.loader import (
    DirectoryPluginLoader,
    MultiPluginLoader,
    PluginLoader,
    StaticPluginLoader,
    default_plugin_loader,
)
from kubeplugins.plugins.naming import (
    field_to_env,
    field_to_env_name,
    flag_to_env,
    flag_to_env_name,
)
from kubeplugins.plugins.runner import (
    ExecPluginRunner,
    PluginExecutionError,
    PluginRunner,
    RunningContext,
)

__all__ = [
    "DirectoryPluginLoader",
    "EmptyEnvProvider",
    "EnvProvider",
    "EnvProviderError",
    "ExecPluginRunner",
    "MultiEnvProvider",
    "MultiPluginLoader",
    "OSEnvProvider",
    "Plugin",
    "PluginCallerEnvProvider",
    "PluginDescriptorEnvProvider",
    "PluginExecutionError",
    "PluginLoadError",
    "PluginLoader",
    "PluginRunner",
    "RunningContext",
    "StaticPluginLoader",
    "default_plugin_loader",
    "field_to_env",
    "field_to_env_name",
    "flag_to_env",
    "flag_to_env_name",
]
