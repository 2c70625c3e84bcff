"""
Cluster Package.

Everything that touches the data directory and the engine
binaries: configuration, settings rendering, path resolution,
initdb, and the transient socket-only server.
"""

from .config import InitialDatabase, InitialScript, InstanceConfig, Schema
from .initializer import Initializer
from .paths import DirectorySource, EnvReference
from .server_control import ServerControl
from .settings import SettingKind, SettingValue, merge_settings, render_config, render_settings
from .transient import TransientServer, TransientServerManager, transient_socket_directory

__all__ = [
    "InstanceConfig",
    "InitialDatabase",
    "InitialScript",
    "Schema",
    "Initializer",
    "DirectorySource",
    "EnvReference",
    "ServerControl",
    "SettingKind",
    "SettingValue",
    "merge_settings",
    "render_config",
    "render_settings",
    "TransientServer",
    "TransientServerManager",
    "transient_socket_directory",
]
