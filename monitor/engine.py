"""Monitor engine: one poll cycle from query to dispatch.

Pure business logic: the source, dispatcher and clock are handed in, so
tests drive cycles with fakes.  The engine owns the only mutable state in
the monitor (the novelty tracker's high-water-mark and the session history)
and nothing else reads or writes it.

State: NoveltyTracker.high_water_mark, HistoryAccumulator
"""

import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from monitor import metrics
from monitor.dispatch import Dispatcher
from monitor.events import SignInEvent
from monitor.filters import FilterCriteria, build_filter, distinct_users, post_filter
from monitor.history import HistoryAccumulator
from monitor.novelty import MIN_TIME, NoveltyTracker
from monitor.sources import EventSource, SourceError


@dataclass
class CycleResult:
    polled_at: datetime
    since: datetime
    new_events: list[SignInEvent] = field(default_factory=list)
    seen_count: int = 0
    users: set[str] = field(default_factory=set)
    error: str | None = None


class MonitorEngine:

    def __init__(self, criteria: FilterCriteria, source: EventSource,
                 dispatcher: Dispatcher | None = None,
                 tracker: NoveltyTracker | None = None,
                 history: HistoryAccumulator | None = None):
        self.criteria = criteria
        self.source = source
        self.dispatcher = dispatcher
        self.tracker = tracker if tracker is not None else NoveltyTracker()
        self.history = history if history is not None else HistoryAccumulator()
        self.lookback = timedelta(minutes=criteria.lookback_minutes)
        self.cycles = 0

    def run_cycle(self, now: datetime | None = None) -> CycleResult:
        """Run one poll cycle.

          1. Query     - build the filter and fetch everything since now - lookback
          2. Filter    - drop events the query language couldn't exclude
          3. Partition - split into new / seen against the high-water-mark
          4. Record    - append new events to the session history
          5. Notify    - one alert for the cycle, one investigation per user

        A source failure ends the cycle early with no state change; the next
        cycle's lookback window covers the same period again.
        """
        now = now or datetime.now(timezone.utc)
        since = now - self.lookback
        result = CycleResult(polled_at=now, since=since)
        self.cycles += 1
        metrics.polls_total.inc()

        # 1. Query
        expression = build_filter(self.criteria, since)
        try:
            fetched = self.source.fetch(expression, since)
        except SourceError as e:
            metrics.poll_errors_total.labels(stage="query").inc()
            result.error = str(e)
            print(f"Poll failed  source={self.source.name}  error={e}", file=sys.stderr)
            return result
        metrics.events_fetched_total.inc(len(fetched))

        # 2. Filter
        events = post_filter(fetched, self.criteria)
        metrics.events_filtered_total.inc(len(fetched) - len(events))

        # 3. Partition
        new, seen = self.tracker.partition(events)
        result.new_events = new
        result.seen_count = len(seen)
        metrics.events_new_total.inc(len(new))
        metrics.events_seen_total.inc(len(seen))
        if self.tracker.high_water_mark > MIN_TIME:
            metrics.high_water_mark.set(self.tracker.high_water_mark.timestamp())

        if not new:
            return result

        # 4. Record
        self.history.append(new)
        metrics.history_size.set(len(self.history))

        # 5. Notify
        result.users = distinct_users(new)
        if self.dispatcher is not None:
            metrics.alerts_total.inc()
            self.dispatcher.notify(set(result.users), list(new))
        return result

    def snapshot(self) -> list[SignInEvent]:
        return self.history.snapshot()
