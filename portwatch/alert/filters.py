"""Gates that hold back repeated or excessive alerts."""

import threading
import time
from collections import defaultdict
from datetime import timedelta
from typing import Callable, Optional, Union

from portwatch.alert.events import Event, Listener

Clock = Callable[[], float]
Window = Union[timedelta, float, int]


def _as_seconds(window: Window) -> float:
    if isinstance(window, timedelta):
        return window.total_seconds()
    return float(window)


def _type_value(event_type: object) -> str:
    return str(getattr(event_type, "value", event_type))


class CooldownFilter:
    """Holds back an alert for a listener and event until the cooldown since the last one has passed."""

    def __init__(self, window: Window, clock: Optional[Clock] = None) -> None:
        self.window = _as_seconds(window)
        self._clock = clock if clock is not None else time.monotonic
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_seen)

    def allow(self, listener: Listener, event_type: object) -> bool:
        """Return True when the event is not in cooldown, and start a new cooldown for it."""
        if self.window <= 0:
            return True
        key = f"{_type_value(event_type)}:{listener}"
        now = self._clock()
        with self._lock:
            last = self._last_seen.get(key)
            if last is not None and now - last < self.window:
                return False
            self._last_seen[key] = now
            return True

    def purge(self) -> None:
        """Forget every entry whose cooldown has expired."""
        now = self._clock()
        with self._lock:
            self._last_seen = {
                key: seen for key, seen in self._last_seen.items() if now - seen < self.window
            }


class DedupFilter:
    """Recognises an identical alert seen again within a time window."""

    def __init__(self, window: Window, clock: Optional[Clock] = None) -> None:
        self.window = _as_seconds(window)
        self._clock = clock if clock is not None else time.monotonic
        self._seen: dict[tuple, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def is_duplicate(self, listener: Listener, event_type: object) -> bool:
        """Return True for a repeat within the window; otherwise record the event and return False."""
        key = (listener.protocol, listener.ip, listener.port, _type_value(event_type))
        with self._lock:
            now = self._clock()
            last = self._seen.get(key)
            if last is not None and now - last < self.window:
                return True
            self._seen[key] = now
            return False

    def evict(self) -> None:
        """Remove entries older than the window."""
        with self._lock:
            now = self._clock()
            self._seen = {key: seen for key, seen in self._seen.items() if now - seen < self.window}


def _sliding_window_allow(
    buckets: dict, key: str, limit: int, window: float, now: float
) -> bool:
    cutoff = now - window
    valid = [stamp for stamp in buckets[key] if stamp > cutoff]
    if len(valid) >= limit:
        buckets[key] = valid
        return False
    valid.append(now)
    buckets[key] = valid
    return True


class RateLimiter:
    """Allows at most max_burst alerts per listener and event type within a sliding window."""

    def __init__(self, max_burst: int, window: Window, clock: Optional[Clock] = None) -> None:
        self.max_burst = max_burst
        self.window = _as_seconds(window)
        self._clock = clock if clock is not None else time.monotonic
        self._buckets: defaultdict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def allow(self, listener: Listener, event_type: object) -> bool:
        if self.max_burst <= 0:
            return True
        key = f"{_type_value(event_type)}:{listener}"
        now = self._clock()
        with self._lock:
            return _sliding_window_allow(self._buckets, key, self.max_burst, self.window, now)

    def reset(self) -> None:
        """Clear all rate-limit state."""
        with self._lock:
            self._buckets = defaultdict(list)


class SuppressFilter:
    """Stops alerts for a key once it has fired more than max times within the window."""

    def __init__(self, window: Window, max: int, clock: Optional[Clock] = None) -> None:
        self.window = _as_seconds(window)
        self.max = max
        self._clock = clock if clock is not None else time.monotonic
        self._counts: dict[str, int] = {}
        self._expiry: dict[str, float] = {}
        self._lock = threading.Lock()

    def allow(self, event: Event) -> bool:
        if self.window <= 0 or self.max <= 0:
            return True
        listener = event.listener
        key = f"{listener.address}|{listener.protocol}|{_type_value(event.type)}"
        now = self._clock()
        with self._lock:
            expiry = self._expiry.get(key)
            if expiry is not None and now > expiry:
                self._counts.pop(key, None)
                self._expiry.pop(key, None)
            self._counts[key] = self._counts.get(key, 0) + 1
            self._expiry.setdefault(key, now + self.window)
            return self._counts[key] <= self.max


class ThrottleFilter:
    """Limits alerts to rate per rolling window, per port or across all ports."""

    def __init__(
        self,
        rate: int,
        window: Window,
        per_port: bool,
        clock: Optional[Clock] = None,
    ) -> None:
        self.rate = rate
        self.window = _as_seconds(window)
        self.per_port = per_port
        self._clock = clock if clock is not None else time.monotonic
        self._buckets: defaultdict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def _key(self, listener: Listener, event_type: object) -> str:
        kind = _type_value(event_type)
        if self.per_port:
            return f"{listener.protocol}:{listener.port}:{kind}"
        return kind

    def allow(self, listener: Listener, event_type: object) -> bool:
        if self.rate <= 0:
            return True
        with self._lock:
            key = self._key(listener, event_type)
            now = self._clock()
            return _sliding_window_allow(self._buckets, key, self.rate, self.window, now)