"""Prometheus metrics for the sign-in monitor.

Module-level collectors register themselves in prometheus_client's global
REGISTRY on import.  ``serve(port)`` exposes them on /metrics from a daemon
thread; without it the collectors are still updated, just not scraped.
"""

from prometheus_client import Counter, Gauge, start_http_server

# ---------------------------------------------------------------------------
# Poll cycle
# ---------------------------------------------------------------------------
polls_total = Counter(
    "signin_monitor_polls_total",
    "Poll cycles started",
)
poll_errors_total = Counter(
    "signin_monitor_poll_errors_total",
    "Poll cycles that failed, by stage",
    ["stage"],
)

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
events_fetched_total = Counter(
    "signin_monitor_events_fetched_total",
    "Sign-in events returned by the source",
)
events_filtered_total = Counter(
    "signin_monitor_events_filtered_total",
    "Sign-in events dropped by the IP family filter",
)
events_new_total = Counter(
    "signin_monitor_events_new_total",
    "Sign-in events classified new",
)
events_seen_total = Counter(
    "signin_monitor_events_seen_total",
    "Sign-in events classified already seen",
)

# ---------------------------------------------------------------------------
# Alerts & investigations
# ---------------------------------------------------------------------------
alerts_total = Counter(
    "signin_monitor_alerts_total",
    "Cycles that raised an alert",
)
investigations_total = Counter(
    "signin_monitor_investigations_total",
    "Per-user investigation launches",
    ["outcome"],
)

# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------
high_water_mark = Gauge(
    "signin_monitor_high_water_mark_seconds",
    "Newest event time reported so far (unix seconds)",
)
history_size = Gauge(
    "signin_monitor_history_events",
    "Events held in the session history",
)


def serve(port: int) -> None:
    start_http_server(port)
