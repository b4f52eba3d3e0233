"""High-water-mark novelty tracking.

Each poll re-queries a lookback window that is usually wider than the poll
interval, so consecutive batches overlap.  The tracker remembers the newest
event time it has reported and only calls events strictly after that mark
"new".  The mark only ever moves forward.

Keyed on event time alone: a second sign-in carrying exactly the same
timestamp as one already reported is classified seen.
"""

from datetime import datetime, timezone

from monitor.events import SignInEvent

MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)


class NoveltyTracker:
    __slots__ = ("high_water_mark",)

    def __init__(self, start: datetime = MIN_TIME):
        self.high_water_mark = start

    def partition(self, events: list[SignInEvent]) -> tuple[list[SignInEvent], list[SignInEvent]]:
        """Split a batch into (new, seen) and advance the mark.

        The whole batch is classified against the mark as it stood before the
        call; the mark is updated once, afterwards.
        """
        new, seen = [], []
        for event in events:
            if self.is_new(event):
                new.append(event)
            else:
                seen.append(event)

        if new:
            newest = max(e.event_time for e in new)
            if newest > self.high_water_mark:
                self.high_water_mark = newest
        return new, seen

    def is_new(self, event: SignInEvent) -> bool:
        return event.event_time > self.high_water_mark
