"""confwatch - live, layered configuration.

Merge configuration from multiple providers into one case-insensitive
tree, keep it current while providers watch for changes, and notify
callbacks subscribed to the paths that changed.
"""

from .core.config import Config
from .core.errors import (
    ConfigError,
    DecodeError,
    InvalidConfigError,
    LoadError,
    ProviderError,
    WatchError,
)
from .core.provider import Loader, RegisteredProvider, StatusReporter, Watcher
from .core.types import ProvenanceRecord, WatchState
from .providers.env import EnvProvider
from .providers.file import FileProvider

__all__ = [
    "Config",
    "ConfigError",
    "DecodeError",
    "InvalidConfigError",
    "LoadError",
    "ProviderError",
    "WatchError",
    "Loader",
    "Watcher",
    "StatusReporter",
    "RegisteredProvider",
    "ProvenanceRecord",
    "WatchState",
    "EnvProvider",
    "FileProvider",
]
