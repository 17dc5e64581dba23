"""Type definitions for the confwatch configuration system."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict


Tree = Dict[str, Any]


class WatchState(Enum):
    """Lifecycle of a Config's watch session."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ProvenanceRecord:
    """Record tracking which provider last wrote a configuration leaf.

    Attributes:
        key: Dotted path of the leaf.
        loader: Display name of the provider that wrote it.
        timestamp_loaded: When the value was merged.
    """

    key: str
    loader: str
    timestamp_loaded: datetime


@dataclass(frozen=True)
class ChangeEvent:
    """A delta pushed by a watching provider.

    Attributes:
        delta: Normalised sub-tree that changed.
        loader: Display name of the provider that pushed it.
    """

    delta: Tree
    loader: str
