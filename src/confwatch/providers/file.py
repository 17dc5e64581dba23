"""Configuration provider backed by a file on the local filesystem."""

from __future__ import annotations

import os
import queue
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..core.errors import ProviderError
from ..core.provider import DeltaCallback, StatusCallback


Unmarshal = Callable[[bytes], Any]


def unmarshal_yaml(data: bytes) -> Any:
    """Decode YAML (and therefore JSON) bytes."""
    return yaml.safe_load(data)


class _FileEventHandler(FileSystemEventHandler):
    """Queue write events that concern a single file."""

    def __init__(self, target: str, events: "queue.Queue[str]"):
        self._target = target
        self._events = events

    def _check(self, *paths: Any) -> None:
        for path in paths:
            if path and os.path.realpath(os.fsdecode(path)) == self._target:
                self._events.put(self._target)
                return

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._check(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._check(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._check(event.dest_path)


class FileProvider:
    """Load configuration from a file and watch it for changes.

    The file is read whole and decoded with ``unmarshal``, which must
    return a mapping. The default decodes YAML, which also accepts JSON.

    While watched, every write to the file reloads it and pushes the new
    tree. A reload that fails is reported through the status callback and
    the watch continues; a deleted file is ignored until it is recreated.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        unmarshal: Optional[Unmarshal] = None,
        poll_interval: float = 0.1,
    ):
        """Initialize FileProvider.

        Args:
            path: Path to the configuration file.
            unmarshal: Function decoding the file's bytes into a mapping.
            poll_interval: How often, in seconds, the watch loop checks for
                cancellation while no events arrive.
        """
        self.path = Path(path)
        self._unmarshal = unmarshal or unmarshal_yaml
        self._poll_interval = poll_interval
        self._on_status: Optional[StatusCallback] = None

    @property
    def name(self) -> str:
        try:
            return "file://" + os.path.abspath(self.path)
        except OSError:
            return "file://" + str(self.path)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FileProvider({str(self.path)!r})"

    def load(self) -> Dict[str, Any]:
        """Read and decode the file.

        Raises:
            ProviderError: The file could not be read or decoded.
        """
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise ProviderError(f"read file: {exc}") from exc
        try:
            values = self._unmarshal(data)
        except Exception as exc:
            raise ProviderError(f"unmarshal: {exc}") from exc
        if values is None:
            return {}
        if not isinstance(values, Mapping):
            raise ProviderError(f"unmarshal: expected a mapping, got {type(values).__name__}")
        return dict(values)

    def status(self, on_status: StatusCallback) -> None:
        self._on_status = on_status

    def watch(self, cancel: threading.Event, on_delta: DeltaCallback) -> None:
        """Push the reloaded file to ``on_delta`` after each write until ``cancel`` is set.

        Raises:
            OSError: The file's directory cannot be watched.
        """
        target = os.path.realpath(self.path)
        directory = os.path.dirname(target)
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"watch directory does not exist: {directory}")
        events: "queue.Queue[str]" = queue.Queue()
        observer = Observer()
        observer.schedule(
            _FileEventHandler(target, events), directory, recursive=False
        )
        observer.start()
        try:
            while not cancel.is_set():
                try:
                    events.get(timeout=self._poll_interval)
                except queue.Empty:
                    continue
                # editors often emit several events per save
                self._drain(events)
                if not self.path.exists():
                    continue
                try:
                    values = self.load()
                except ProviderError as exc:
                    self._report(False, exc)
                    continue
                on_delta(values)
                self._report(True, None)
        finally:
            observer.stop()
            observer.join()

    @staticmethod
    def _drain(events: "queue.Queue[str]") -> None:
        while True:
            try:
                events.get_nowait()
            except queue.Empty:
                return

    def _report(self, ok: bool, error: Optional[BaseException]) -> None:
        if self._on_status is not None:
            self._on_status(ok, error)
