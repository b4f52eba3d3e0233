"""Running history of every event confirmed new during this session.

No eviction and no capacity bound: a session lasting days keeps every matched
sign-in in memory.  History is not persisted; it dies with the process.
"""

from monitor.events import SignInEvent


class HistoryAccumulator:

    def __init__(self):
        self._events: list[SignInEvent] = []

    def append(self, events: list[SignInEvent]) -> None:
        self._events.extend(events)

    def snapshot(self) -> list[SignInEvent]:
        """Newest first.  Equal timestamps keep insertion order (stable sort)."""
        return sorted(self._events, key=lambda e: e.event_time, reverse=True)

    def __len__(self) -> int:
        return len(self._events)
