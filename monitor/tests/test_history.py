"""Tests for HistoryAccumulator: ordering and unbounded growth."""

from datetime import datetime, timedelta, timezone

from monitor.events import SignInEvent
from monitor.history import HistoryAccumulator

_BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _event(t, user="u@contoso.com"):
    return SignInEvent(event_time=_BASE + timedelta(seconds=t), user=user)


class TestSnapshot:
    def test_empty(self):
        assert HistoryAccumulator().snapshot() == []

    def test_sorted_newest_first_across_appends(self):
        history = HistoryAccumulator()
        history.append([_event(10), _event(20)])
        history.append([_event(5), _event(30)])
        times = [(e.event_time - _BASE).total_seconds() for e in history.snapshot()]
        assert times == [30, 20, 10, 5]

    def test_ties_keep_insertion_order(self):
        history = HistoryAccumulator()
        history.append([_event(10, "first"), _event(20, "x")])
        history.append([_event(10, "second")])
        history.append([_event(10, "third")])
        users = [e.user for e in history.snapshot()]
        assert users == ["x", "first", "second", "third"]

    def test_snapshot_is_a_copy(self):
        history = HistoryAccumulator()
        history.append([_event(1)])
        snap = history.snapshot()
        snap.clear()
        assert len(history) == 1


class TestGrowth:
    def test_no_eviction(self):
        history = HistoryAccumulator()
        for i in range(1000):
            history.append([_event(i)])
        assert len(history) == 1000
        assert len(history.snapshot()) == 1000

    def test_append_empty_is_noop(self):
        history = HistoryAccumulator()
        history.append([])
        assert len(history) == 0
