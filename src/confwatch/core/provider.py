"""Provider protocols and registration for configuration sources."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

from .types import Tree


DeltaCallback = Callable[[Mapping[str, Any]], None]
StatusCallback = Callable[[bool, Optional[BaseException]], None]


@runtime_checkable
class Loader(Protocol):
    """Protocol every configuration provider must implement.

    A provider may also expose a ``name`` attribute used in logs and error
    messages; when it does not, the class name is used.
    """

    def load(self) -> Optional[Mapping[str, Any]]:
        """Load the provider's full configuration tree.

        Must be safe to call more than once. ``None`` is treated as an
        empty tree. Exceptions propagate to :meth:`Config.load`.
        """
        ...


@runtime_checkable
class Watcher(Protocol):
    """Optional capability for providers that can push changes."""

    def watch(self, cancel: threading.Event, on_delta: DeltaCallback) -> None:
        """Block until ``cancel`` is set, calling ``on_delta`` for each change.

        Returning normally is success. Raising signals a fatal failure of
        this provider's watch only.
        """
        ...


@runtime_checkable
class StatusReporter(Protocol):
    """Optional capability for providers that report their own health."""

    def status(self, on_status: StatusCallback) -> None:
        """Register ``on_status``; the provider may call it any number of times."""
        ...


def provider_name(provider: Any) -> str:
    """Display name of ``provider``, falling back to its class name."""
    name = getattr(provider, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(provider).__name__


@dataclass
class RegisteredProvider:
    """A provider registered with a Config.

    Capabilities are resolved once at registration time.

    Attributes:
        provider: The provider instance (borrowed, never closed by Config).
        name: Display name used in logs and errors.
        order: Registration order, starting at zero.
        watcher: The provider when it can watch, else None.
        status_reporter: The provider when it can report status, else None.
        values: The provider's own last known tree.
    """

    provider: Loader
    name: str
    order: int
    watcher: Optional[Watcher] = None
    status_reporter: Optional[StatusReporter] = None
    values: Tree = field(default_factory=dict)

    @classmethod
    def register(cls, provider: Loader, order: int, values: Tree) -> "RegisteredProvider":
        watcher = provider if callable(getattr(provider, "watch", None)) else None
        reporter = provider if callable(getattr(provider, "status", None)) else None
        return cls(
            provider=provider,
            name=provider_name(provider),
            order=order,
            watcher=watcher,
            status_reporter=reporter,
            values=values,
        )
