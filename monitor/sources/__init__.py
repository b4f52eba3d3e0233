# Event sources feed sign-in records into the monitor.
#
# A source takes the OData filter expression built from the run's criteria
# plus the absolute lower time bound, and returns every matching sign-in at
# or after that time in no particular order.  Retries, auth and paging are
# the source's business; the engine only sees a list or a SourceError.

from datetime import datetime


class SourceError(Exception):
    """The source could not produce a result for this poll."""


class EventSource:
    """Base event source.  Subclass and implement fetch()."""

    name: str

    def fetch(self, expression: str, since: datetime) -> list:
        """Return SignInEvents matching *expression* with event_time >= since."""
        raise NotImplementedError


from monitor.sources.graph import GraphEventSource
from monitor.sources.simulated import SimulatedEventSource

SOURCES = {"graph": GraphEventSource, "simulated": SimulatedEventSource}
