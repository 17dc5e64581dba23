"""Merged configuration store with live updates."""

from __future__ import annotations

import functools
import threading
from copy import deepcopy
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

import structlog

from .decode import Decoder, decode, zero_value
from .errors import DecodeError, InvalidConfigError, LoadError, WatchError
from .merge import merge, merge_provenance, normalize
from .notify import ChangeNotifier, OnChange
from .paths import resolve, split_path
from .provider import DeltaCallback, Loader, RegisteredProvider, StatusCallback
from .types import ChangeEvent, ProvenanceRecord, Tree, WatchState
from .watch import WatchSession

F = TypeVar("F", bound=Callable[..., Any])

OnStatus = Callable[[Any, bool, Optional[BaseException]], None]

_MISSING = object()


def _initialized(method: F) -> F:
    @functools.wraps(method)
    def wrapper(self: "Config", *args: Any, **kwargs: Any) -> Any:
        if "_lock" not in self.__dict__:
            raise InvalidConfigError("config is not initialized")
        return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class Config:
    """A merged, hierarchical configuration tree fed by providers.

    Providers are folded in with :meth:`load`, in call order, later values
    winning at conflicting leaves. :meth:`watch` keeps the tree current
    while watch-capable providers push changes, and callbacks registered
    with :meth:`on_change` are told about the changes they care about.

    Keys are case-insensitive unless ``case_sensitive`` is set.
    """

    def __init__(
        self,
        *,
        logger: Optional[Any] = None,
        on_status: Optional[OnStatus] = None,
        delimiter: str = ".",
        case_sensitive: bool = False,
        decoder: Optional[Decoder] = None,
        on_change_timeout: float = 60.0,
    ):
        """Initialize an empty Config.

        Args:
            logger: structlog-style logger. Defaults to ``structlog.get_logger("confwatch")``.
            on_status: Hook called as ``on_status(provider, ok, error)`` for every
                status report made by a provider during a watch.
            delimiter: Path separator used by reads and change subscriptions.
            case_sensitive: Keep keys as loaded instead of lower-casing them.
            decoder: ``decoder(value, target)`` used by :meth:`unmarshal`.
            on_change_timeout: Seconds before slow on_change callbacks are reported.
        """
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._logger = logger if logger is not None else structlog.get_logger("confwatch")
        self._on_status = on_status
        self._delimiter = delimiter
        self._key_map: Optional[Callable[[str], str]] = None if case_sensitive else str.lower
        self._decoder: Decoder = decoder or decode

        self._lock = threading.Lock()
        self._tree: Tree = {}
        self._provenance: Dict[str, ProvenanceRecord] = {}
        self._registered: List[RegisteredProvider] = []

        self._state_lock = threading.Lock()
        self._state = WatchState.IDLE
        self._session: Optional[WatchSession] = None
        self._notifier = ChangeNotifier(self, self._logger, timeout=on_change_timeout)

    @property
    @_initialized
    def state(self) -> WatchState:
        return self._state

    @property
    @_initialized
    def registered_providers(self) -> List[RegisteredProvider]:
        with self._lock:
            return list(self._registered)

    @_initialized
    def load(self, *providers: Loader) -> None:
        """Load providers in order and merge them into the tree.

        Fails fast: the first provider that raises aborts the call, and
        providers after it are not attempted.

        Raises:
            LoadError: A provider's ``load`` raised or returned a non-mapping.
        """
        for provider in providers:
            registration, session = self._load_one(provider)
            if session is not None:
                session.start(registration)

    def _load_one(
        self, provider: Loader
    ) -> Tuple[RegisteredProvider, Optional[WatchSession]]:
        probe = RegisteredProvider.register(provider, order=-1, values={})
        try:
            loaded = provider.load()
        except Exception as exc:
            raise LoadError(exc, loader=probe.name) from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, Mapping):
            raise LoadError(
                TypeError(f"expected a mapping, got {type(loaded).__name__}"),
                loader=probe.name,
            )
        values = normalize(loaded, self._key_map)

        with self._lock:
            probe.order = len(self._registered)
            probe.values = values
            self._provenance = merge_provenance(
                self._provenance, values, probe.name, self._delimiter
            )
            self._registered.append(probe)
            self._tree = merge(self._tree, values)
            # a running session has already snapshotted the earlier registrations
            session = self._session
        return probe, session

    @_initialized
    def watch(self, cancel: threading.Event) -> None:
        """Watch every watch-capable provider until ``cancel`` is set.

        Blocks the calling thread. Only the first call starts a session;
        later calls, including after the session has stopped, log a
        warning and return immediately.

        Raises:
            TypeError: ``cancel`` is None.
            WatchError: A provider's watch raised; reported after the whole
                session has shut down.
        """
        if cancel is None:
            raise TypeError("cannot watch configuration without a cancellation event")

        with self._state_lock:
            if self._state is not WatchState.IDLE:
                self._logger.warning(
                    "Config has been watched, call watch more than once has no effects."
                )
                return
            self._state = WatchState.RUNNING

        session = WatchSession(cancel, self._delta_handler, self._status_handler)
        try:
            with self._lock:
                self._session = session
                registered = list(self._registered)
            for registration in registered:
                session.start(registration)
            failure = session.wait()
        finally:
            with self._lock:
                self._session = None
            with self._state_lock:
                self._state = WatchState.STOPPED
            self._notifier.close()

        if failure is not None:
            registration, exc = failure
            raise WatchError(exc, loader=registration.name) from exc

    def _delta_handler(self, registration: RegisteredProvider) -> DeltaCallback:
        def on_delta(delta: Mapping[str, Any]) -> None:
            self._apply(registration, delta)

        return on_delta

    def _apply(self, registration: RegisteredProvider, delta: Mapping[str, Any]) -> None:
        values = normalize(delta, self._key_map)
        with self._lock:
            tree = merge(self._tree, values)
            registration.values = merge(registration.values, values)
            self._provenance = merge_provenance(
                self._provenance, values, registration.name, self._delimiter
            )
            self._logger.info("Configuration has been changed.", loader=registration.name)
            self._tree = tree
            # dispatch only queues work; under the lock events keep merge order
            self._notifier.notify(ChangeEvent(delta=values, loader=registration.name))

    def _status_handler(self, registration: RegisteredProvider) -> StatusCallback:
        def on_status(ok: bool, error: Optional[BaseException]) -> None:
            if error is not None:
                self._logger.warning(
                    "Error when loading configuration.",
                    loader=registration.name,
                    error=str(error),
                )
            if self._on_status is None:
                return
            try:
                self._on_status(registration.provider, ok, error)
            except Exception:
                self._logger.exception("Error in on_status hook.", loader=registration.name)

        return on_status

    @_initialized
    def on_change(self, fn: Optional[OnChange], *paths: str) -> None:
        """Register ``fn(config)`` to run after changes under ``paths``.

        With no paths the callback runs for every change. ``None`` is
        accepted and ignored.
        """
        prefixes = tuple(
            tuple(split_path(path, self._delimiter, self._key_map)) for path in paths
        )
        self._notifier.subscribe(fn, prefixes)

    def _lookup(self, path: str):
        return resolve(self._tree, split_path(path, self._delimiter, self._key_map))

    @_initialized
    def unmarshal(self, path: str = "", target: Any = None, default: Any = _MISSING) -> Any:
        """Decode the sub-tree at ``path`` into ``target``.

        Args:
            path: Delimited path; empty for the whole tree.
            target: Type to decode into. None returns a copy of the raw value.
            default: Returned when ``path`` does not exist. Without it a
                missing path decodes to the zero value of ``target``, or
                None when ``target`` has required fields.

        Raises:
            DecodeError: The value could not be decoded into ``target``.
        """
        found, value = self._lookup(path)
        if not found and default is not _MISSING:
            return default
        if target is None:
            return deepcopy(value) if found else {}
        try:
            if not found:
                return zero_value(target, self._decoder)
            return self._decoder(value, target)
        except Exception as exc:
            raise DecodeError(path, exc) from exc

    @_initialized
    def get(self, path: str, default: Optional[Any] = None) -> Any:
        found, value = self._lookup(path)
        return deepcopy(value) if found else default

    @_initialized
    def exists(self, path: str) -> bool:
        found, _ = self._lookup(path)
        return found

    @_initialized
    def values(self) -> Tree:
        return deepcopy(self._tree)

    @_initialized
    def provenance(self, path: str) -> Optional[ProvenanceRecord]:
        key = self._delimiter.join(split_path(path, self._delimiter, self._key_map))
        return self._provenance.get(key)

    @_initialized
    def explain(self, path: str) -> str:
        """Describe where the value at ``path`` comes from.

        Lists the provider that last wrote the value and the values other
        providers hold for the same path.
        """
        segments = split_path(path, self._delimiter, self._key_map)
        key = self._delimiter.join(segments)
        found, value = resolve(self._tree, segments)
        if not found:
            return f"{key} has no configuration."

        record = self._provenance.get(key)
        with self._lock:
            registered = list(self._registered)
        if record is not None:
            loader = record.loader
        else:
            # branches carry no record; one contributor still owns the value
            contributors = [
                registration.name
                for registration in registered
                if resolve(registration.values, segments)[0]
            ]
            if len(contributors) != 1:
                return f"{key} has value[{value!r}] that is merged from multiple loaders."
            loader = contributors[0]

        lines = [f"{key} has value[{value!r}] that is loaded by loader[{loader}]."]
        others = []
        for registration in reversed(registered):
            has, other = resolve(registration.values, segments)
            if has and not (registration.name == loader and other == value):
                others.append(f"\t- {other!r}(loader[{registration.name}])")
        if others:
            lines.append("Here are other value(loader)s:")
            lines.extend(others)
        return "\n".join(lines) + "\n"
