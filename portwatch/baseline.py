"""Baseline of expected listeners: storage, membership checks, learning and filtering."""

import json
import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Iterable, Optional, Union

from portwatch.alert.events import Listener

Clock = Callable[[], float]
Window = Union[timedelta, float, int]

_log = logging.getLogger(__name__)


def _key(listener: Listener) -> tuple[str, str, int]:
    return (listener.protocol, listener.ip, listener.port)


def _as_seconds(window: Window) -> float:
    if isinstance(window, timedelta):
        return window.total_seconds()
    return float(window)


class Store:
    """The set of expected listeners, optionally persisted as JSON."""

    def __init__(self, file_path: str = "") -> None:
        self.file_path = file_path
        self._known: set[tuple[str, str, int]] = set()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._known)

    def add(self, listener: Listener) -> None:
        """Record a listener as part of the baseline."""
        with self._lock:
            self._known.add(_key(listener))

    def contains(self, listener: Listener) -> bool:
        """Report whether a listener is in the baseline."""
        with self._lock:
            return _key(listener) in self._known

    def __contains__(self, listener: Listener) -> bool:
        return self.contains(listener)

    def save(self) -> None:
        """Write the baseline to the store's file as JSON."""
        with self._lock:
            entries = [
                {"proto": proto, "address": address, "port": port}
                for proto, address, port in sorted(self._known)
            ]
        with open(self.file_path, "w", encoding="utf-8") as handle:
            json.dump(entries, handle, indent=2)

    def load(self) -> None:
        """Add the entries of a previously saved baseline; a missing file leaves the store as it is."""
        try:
            with open(self.file_path, encoding="utf-8") as handle:
                data = handle.read()
        except FileNotFoundError:
            return
        except OSError as err:
            raise OSError(err.errno, f"baseline: read: {err.strerror}") from err
        try:
            entries = json.loads(data)
        except ValueError as err:
            raise ValueError(f"baseline: unmarshal: {err}") from err
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise ValueError("baseline: unmarshal: expected a list of entries")
        keys = set()
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError("baseline: unmarshal: entry is not an object")
            port = entry.get("port", 0)
            if not isinstance(port, int) or isinstance(port, bool) or not 0 <= port <= 65535:
                raise ValueError(f"baseline: unmarshal: invalid port {port!r}")
            keys.add((str(entry.get("proto", "")), str(entry.get("address", "")), port))
        with self._lock:
            self._known.update(keys)


class Checker:
    """Decides whether listeners are known to a baseline store."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def is_known(self, listener: Listener) -> bool:
        return self.store.contains(listener)

    def filter_unknown(self, listeners: Iterable[Listener]) -> list[Listener]:
        """Return the listeners that are not in the baseline."""
        return [listener for listener in listeners if not self.store.contains(listener)]

    def filter_known(self, listeners: Iterable[Listener]) -> list[Listener]:
        """Return the listeners that are in the baseline."""
        return [listener for listener in listeners if self.store.contains(listener)]


class Learner:
    """Adds observed listeners to the store until its learning window closes."""

    def __init__(self, store: Store, window: Window, clock: Optional[Clock] = None) -> None:
        self.store = store
        self._clock = clock if clock is not None else time.monotonic
        self._deadline = self._clock() + _as_seconds(window)
        self._lock = threading.Lock()

    def observe(self, listener: Listener) -> None:
        """Record the listener if the learning window is still open."""
        with self._lock:
            if self._clock() < self._deadline:
                self.store.add(listener)

    def is_learning(self) -> bool:
        with self._lock:
            return self._clock() < self._deadline

    def remaining(self) -> timedelta:
        """Time left in the learning window, or zero once it has closed."""
        with self._lock:
            left = self._deadline - self._clock()
        return timedelta(seconds=max(left, 0.0))


class BaselineFilter:
    """Passes every listener while learning, and only unknown listeners afterwards."""

    def __init__(
        self, checker: Checker, learner: Learner, logger: Optional[logging.Logger] = None
    ) -> None:
        self.checker = checker
        self.learner = learner
        self.logger = logger if logger is not None else _log

    def apply(self, listeners: list[Listener]) -> list[Listener]:
        if self.learner.is_learning():
            for listener in listeners:
                self.learner.observe(listener)
            self.logger.debug(
                "baseline filter: learning phase, passing all listeners: count=%d",
                len(listeners),
            )
            return listeners
        unknown = self.checker.filter_unknown(listeners)
        if unknown:
            self.logger.info(
                "baseline filter: unknown listeners detected: unknown=%d total=%d",
                len(unknown),
                len(listeners),
            )
        return unknown