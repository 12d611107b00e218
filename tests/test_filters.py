from datetime import timedelta

import pytest

from portwatch.alert.events import Event, EventType, Listener
from portwatch.alert.filters import (
    CooldownFilter,
    DedupFilter,
    RateLimiter,
    SuppressFilter,
    ThrottleFilter,
)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def listener(port: int, proto: str = "tcp", ip: str = "0.0.0.0") -> Listener:
    return Listener(protocol=proto, ip=ip, port=port)


# Cooldown


def test_cooldown_zero_window_always_allows():
    cf = CooldownFilter(0)
    results = [cf.allow(listener(8080), "appeared") for _ in range(5)]
    assert results == [True] * 5


def test_cooldown_first_event_allowed():
    cf = CooldownFilter(timedelta(seconds=5))
    assert cf.allow(listener(9090), "appeared") is True


def test_cooldown_second_event_within_window_suppressed():
    clock = FakeClock()
    cf = CooldownFilter(timedelta(seconds=10), clock=clock)
    cf.allow(listener(3000), "appeared")
    clock.advance(5)
    assert cf.allow(listener(3000), "appeared") is False


def test_cooldown_after_window_expiry_allowed():
    clock = FakeClock()
    cf = CooldownFilter(timedelta(seconds=10), clock=clock)
    cf.allow(listener(3000), "appeared")
    clock.advance(11)
    assert cf.allow(listener(3000), "appeared") is True


def test_cooldown_different_event_types_independent():
    clock = FakeClock()
    cf = CooldownFilter(timedelta(seconds=10), clock=clock)
    cf.allow(listener(4000), "appeared")
    assert cf.allow(listener(4000), "disappeared") is True


def test_cooldown_accepts_enum_event_type():
    clock = FakeClock()
    cf = CooldownFilter(10, clock=clock)
    cf.allow(listener(4000), EventType.APPEARED)
    assert cf.allow(listener(4000), "appeared") is False


def test_cooldown_purge_removes_expired_entries():
    clock = FakeClock()
    cf = CooldownFilter(timedelta(seconds=5), clock=clock)
    cf.allow(listener(5000), "appeared")
    assert len(cf) == 1
    clock.advance(10)
    cf.purge()
    assert len(cf) == 0


# Dedup


def test_dedup_first_event_not_duplicate():
    f = DedupFilter(timedelta(seconds=30))
    assert f.is_duplicate(listener(8080), "appeared") is False


def test_dedup_second_event_within_window_is_duplicate():
    f = DedupFilter(timedelta(seconds=30))
    f.is_duplicate(listener(8080), "appeared")
    assert f.is_duplicate(listener(8080), "appeared") is True


def test_dedup_expired_window_not_duplicate():
    clock = FakeClock()
    f = DedupFilter(timedelta(seconds=5), clock=clock)
    f.is_duplicate(listener(9090), "appeared")
    clock.advance(10)
    assert f.is_duplicate(listener(9090), "appeared") is False


def test_dedup_different_event_types_independent():
    f = DedupFilter(timedelta(seconds=30))
    f.is_duplicate(listener(443), "appeared")
    assert f.is_duplicate(listener(443), "disappeared") is False


def test_dedup_evict_removes_stale_entries():
    clock = FakeClock()
    f = DedupFilter(timedelta(seconds=5), clock=clock)
    f.is_duplicate(listener(53, "udp", "127.0.0.1"), "appeared")
    assert len(f) == 1
    clock.advance(10)
    f.evict()
    assert len(f) == 0


# Rate limiter


def test_ratelimiter_zero_burst_allows_all():
    rl = RateLimiter(0, timedelta(seconds=1))
    assert all(rl.allow(listener(8080), "appeared") for _ in range(20))


def test_ratelimiter_within_burst_allowed():
    rl = RateLimiter(3, timedelta(minutes=1))
    assert [rl.allow(listener(9090), "appeared") for _ in range(3)] == [True, True, True]


def test_ratelimiter_exceeds_burst_suppressed():
    rl = RateLimiter(3, timedelta(minutes=1))
    for _ in range(3):
        rl.allow(listener(9090), "appeared")
    assert rl.allow(listener(9090), "appeared") is False


def test_ratelimiter_window_expiry_allows_again():
    clock = FakeClock()
    rl = RateLimiter(2, timedelta(milliseconds=50), clock=clock)
    rl.allow(listener(7070), "appeared")
    rl.allow(listener(7070), "appeared")
    assert rl.allow(listener(7070), "appeared") is False
    clock.advance(0.051)
    assert rl.allow(listener(7070), "appeared") is True


def test_ratelimiter_different_event_types_independent_buckets():
    rl = RateLimiter(1, timedelta(minutes=1))
    assert rl.allow(listener(3000), "appeared") is True
    assert rl.allow(listener(3000), "disappeared") is True
    assert rl.allow(listener(3000), "appeared") is False


def test_ratelimiter_reset_clears_state():
    rl = RateLimiter(1, timedelta(minutes=1))
    rl.allow(listener(4000), "appeared")
    assert rl.allow(listener(4000), "appeared") is False
    rl.reset()
    assert rl.allow(listener(4000), "appeared") is True


# Suppress


def suppress_event(port: int) -> Event:
    return Event(type=EventType.APPEARED, listener=listener(port))


def test_suppress_zero_window_allows_all():
    sf = SuppressFilter(0, 3)
    assert all(sf.allow(suppress_event(80)) for _ in range(10))


def test_suppress_within_max_allowed():
    sf = SuppressFilter(timedelta(minutes=1), 3)
    assert [sf.allow(suppress_event(8080)) for _ in range(3)] == [True, True, True]


def test_suppress_exceeds_max_suppressed():
    sf = SuppressFilter(timedelta(minutes=1), 2)
    sf.allow(suppress_event(443))
    sf.allow(suppress_event(443))
    assert sf.allow(suppress_event(443)) is False


def test_suppress_window_expiry_resets():
    clock = FakeClock()
    sf = SuppressFilter(timedelta(milliseconds=50), 1, clock=clock)
    event = suppress_event(9000)
    assert sf.allow(event) is True
    assert sf.allow(event) is False
    clock.advance(0.1)
    assert sf.allow(event) is True


def test_suppress_different_ports_independent():
    sf = SuppressFilter(timedelta(minutes=1), 1)
    sf.allow(suppress_event(80))
    assert sf.allow(suppress_event(443)) is True


# Throttle


def test_throttle_zero_rate_allows_all():
    f = ThrottleFilter(0, timedelta(minutes=1), True)
    assert all(f.allow(listener(8080), "appeared") for _ in range(20))


def test_throttle_within_rate_allowed():
    f = ThrottleFilter(3, timedelta(minutes=1), True, clock=FakeClock())
    assert [f.allow(listener(9000), "appeared") for _ in range(3)] == [True, True, True]


def test_throttle_exceeds_rate_suppressed():
    f = ThrottleFilter(3, timedelta(minutes=1), True, clock=FakeClock())
    for _ in range(3):
        f.allow(listener(9000), "appeared")
    assert f.allow(listener(9000), "appeared") is False


def test_throttle_window_expiry_resets():
    clock = FakeClock()
    f = ThrottleFilter(2, timedelta(seconds=30), True, clock=clock)
    f.allow(listener(7070), "appeared")
    f.allow(listener(7070), "appeared")
    assert f.allow(listener(7070), "appeared") is False
    clock.advance(31)
    assert f.allow(listener(7070), "appeared") is True


def test_throttle_per_port_independent_buckets():
    f = ThrottleFilter(1, timedelta(minutes=1), True, clock=FakeClock())
    assert f.allow(listener(80), "appeared") is True
    assert f.allow(listener(443), "appeared") is True
    assert f.allow(listener(80), "appeared") is False


def test_throttle_global_key_shared_bucket():
    f = ThrottleFilter(2, timedelta(minutes=1), False, clock=FakeClock())
    f.allow(listener(80), "appeared")
    f.allow(listener(443), "appeared")
    assert f.allow(listener(80), "appeared") is False


@pytest.mark.parametrize("window", [timedelta(seconds=30), 30, 30.0])
def test_throttle_window_accepts_timedelta_or_seconds(window):
    f = ThrottleFilter(1, window, True)
    assert f.window == 30.0