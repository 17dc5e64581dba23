"""Change notification for configuration watchers."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .paths import overlaps, touched_paths
from .types import ChangeEvent


OnChange = Callable[[Any], None]


@dataclass
class Subscription:
    """A callback registered through ``Config.on_change``.

    Attributes:
        fn: The callback, invoked with the Config.
        paths: Normalised path prefixes; empty matches every change.
        order: Registration order.
    """

    fn: OnChange
    paths: Tuple[Tuple[str, ...], ...]
    order: int
    _executor: Optional[ThreadPoolExecutor] = field(default=None, repr=False)

    def matches(self, touched: set) -> bool:
        if not self.paths:
            return True
        return any(overlaps(prefix, path) for prefix in self.paths for path in touched)

    def executor(self) -> ThreadPoolExecutor:
        # a single worker keeps this callback's invocations in merge order
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"confwatch-onchange-{self.order}"
            )
        return self._executor


class ChangeNotifier:
    """Dispatch change events to path-filtered callbacks.

    Each event is fanned out to every matching subscription without
    waiting for earlier events to finish. A watchdog thread per event logs
    one warning if the batch has not completed within ``timeout`` seconds;
    it never interrupts a callback.
    """

    def __init__(self, config: Any, logger: Any, timeout: float = 60.0):
        self._config = config
        self._logger = logger
        self._timeout = timeout
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, fn: Optional[OnChange], paths: Tuple[Tuple[str, ...], ...]) -> None:
        if fn is None:
            return
        with self._lock:
            self._subscriptions.append(
                Subscription(fn=fn, paths=paths, order=len(self._subscriptions))
            )

    def notify(self, event: ChangeEvent) -> List[Future]:
        """Dispatch ``event`` and return the futures of the started callbacks."""
        touched = touched_paths(event.delta)
        with self._lock:
            futures = [
                sub.executor().submit(self._invoke, sub)
                for sub in self._subscriptions
                if sub.matches(touched)
            ]
        if futures:
            threading.Thread(
                target=self._watchdog,
                args=(futures,),
                name="confwatch-onchange-watchdog",
                daemon=True,
            ).start()
        return futures

    def close(self) -> None:
        """Let pending callbacks finish, then release worker threads."""
        with self._lock:
            for sub in self._subscriptions:
                if sub._executor is not None:
                    sub._executor.shutdown(wait=False)
                    sub._executor = None

    def _invoke(self, sub: Subscription) -> None:
        try:
            sub.fn(self._config)
        except Exception:
            self._logger.exception("Error in on_change callback.", callback=sub.order)

    def _watchdog(self, futures: List[Future]) -> None:
        _, pending = wait(futures, timeout=self._timeout)
        if pending:
            self._logger.warning(
                "Configuration has not been fully applied to on_change callbacks in time. "
                "Please check if a callback is blocking or takes too long to complete.",
                timeout=self._timeout,
            )
