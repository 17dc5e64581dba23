"""Watch session: one thread per watch-capable provider."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Tuple

from .provider import DeltaCallback, RegisteredProvider


class WatchSession:
    """Run provider watch loops until a shared cancellation event fires.

    Providers can be added while the session runs; once cancellation has
    been observed by :meth:`wait`, further additions are ignored.
    """

    def __init__(
        self,
        cancel: threading.Event,
        on_delta: Callable[[RegisteredProvider], DeltaCallback],
        on_status: Callable[[RegisteredProvider], Callable[[bool, Optional[BaseException]], None]],
    ):
        self.cancel = cancel
        self._on_delta = on_delta
        self._on_status = on_status
        self._lock = threading.Lock()
        self._closed = False
        self._threads: List[threading.Thread] = []
        self._errors: List[Tuple[RegisteredProvider, Exception]] = []

    def start(self, registration: RegisteredProvider) -> bool:
        """Start watching ``registration`` if it can watch.

        Returns:
            True if a watch thread was started.
        """
        if registration.watcher is None:
            return False
        with self._lock:
            if self._closed:
                return False
            if registration.status_reporter is not None:
                try:
                    registration.status_reporter.status(self._on_status(registration))
                except Exception as exc:
                    # reported by wait() once the session ends
                    self._errors.append((registration, exc))
                    return False
            thread = threading.Thread(
                target=self._run,
                args=(registration,),
                name=f"confwatch-watch-{registration.name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()
        return True

    def wait(self) -> Optional[Tuple[RegisteredProvider, Exception]]:
        """Block until cancelled and every watch thread has returned.

        Returns:
            The first fatal (registration, error) pair, or None.
        """
        self.cancel.wait()
        with self._lock:
            self._closed = True
            threads = list(self._threads)
        for thread in threads:
            thread.join()
        with self._lock:
            return self._errors[0] if self._errors else None

    def _run(self, registration: RegisteredProvider) -> None:
        watcher = registration.watcher
        try:
            watcher.watch(self.cancel, self._on_delta(registration))
        except Exception as exc:
            with self._lock:
                self._errors.append((registration, exc))
