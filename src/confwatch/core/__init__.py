from .config import Config
from .merge import merge
from .provider import Loader, RegisteredProvider, StatusReporter, Watcher
from .types import ChangeEvent, ProvenanceRecord, WatchState

__all__ = [
    "Config",
    "merge",
    "Loader",
    "Watcher",
    "StatusReporter",
    "RegisteredProvider",
    "ChangeEvent",
    "ProvenanceRecord",
    "WatchState",
]
