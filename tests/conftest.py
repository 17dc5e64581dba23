"""Shared fixtures and fake providers for confwatch tests."""

from __future__ import annotations

import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import pytest
import structlog
from structlog.testing import LogCapture

from confwatch import Config


class StringWatcher:
    """Provider with a single key whose value changes on demand."""

    def __init__(self, key: str = "Config", name: str = "stringWatcher"):
        self.key = key
        self.name = name
        self.watch_calls = 0
        self._changes: "queue.Queue[str]" = queue.Queue()

    def load(self) -> Dict[str, Any]:
        return {self.key: ""}

    def watch(self, cancel: threading.Event, on_delta: Callable[[Dict[str, Any]], None]) -> None:
        self.watch_calls += 1
        while not cancel.is_set():
            try:
                value = self._changes.get(timeout=0.01)
            except queue.Empty:
                continue
            on_delta({self.key: value})

    def change(self, value: str = "changed") -> None:
        self._changes.put(value)


class StaticLoader:
    """Load-only provider returning a fixed tree."""

    def __init__(self, values: Optional[Dict[str, Any]], name: Optional[str] = None):
        self._values = values
        self.load_calls = 0
        if name is not None:
            self.name = name

    def load(self) -> Optional[Dict[str, Any]]:
        self.load_calls += 1
        return self._values


class ErrorLoader:
    name = "error"

    def load(self) -> Dict[str, Any]:
        raise RuntimeError("load error")


class ErrorWatcher:
    name = "error"

    def load(self) -> None:
        return None

    def watch(self, cancel: threading.Event, on_delta: Callable[[Dict[str, Any]], None]) -> None:
        raise RuntimeError("watch error")


class StatusWatcher:
    """Reports one failed status and returns from watch."""

    name = "status"

    def __init__(self) -> None:
        self._on_status: Optional[Callable[[bool, Optional[BaseException]], None]] = None

    def load(self) -> None:
        return None

    def watch(self, cancel: threading.Event, on_delta: Callable[[Dict[str, Any]], None]) -> None:
        assert self._on_status is not None
        self._on_status(False, RuntimeError("watch error"))

    def status(self, on_status: Callable[[bool, Optional[BaseException]], None]) -> None:
        self._on_status = on_status


class WatchRunner:
    """Run ``Config.watch`` on a background thread."""

    def __init__(self, config: Config):
        self.config = config
        self.cancel = threading.Event()
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        try:
            self.config.watch(self.cancel)
        except Exception as exc:
            self.error = exc

    def start(self) -> "WatchRunner":
        self._thread.start()
        return self

    def stop(self, timeout: float = 5.0) -> Optional[BaseException]:
        self.cancel.set()
        self._thread.join(timeout)
        assert not self._thread.is_alive(), "watch did not return after cancellation"
        return self.error

    def __enter__(self) -> "WatchRunner":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def log() -> LogCapture:
    return LogCapture()


@pytest.fixture
def logger(log: LogCapture) -> Any:
    return structlog.wrap_logger(None, processors=[log])


def events(log: LogCapture, level: Optional[str] = None) -> List[Dict[str, Any]]:
    return [
        entry for entry in list(log.entries)
        if level is None or entry["log_level"] == level
    ]
