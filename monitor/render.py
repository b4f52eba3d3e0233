"""Console rendering of new sign-ins and the running history table."""

import sys

from monitor.engine import CycleResult

# (header, width, accessor)
_COLUMNS = [
    ("TIME (UTC)", 19, lambda e: e.event_time.strftime("%Y-%m-%d %H:%M:%S")),
    ("USER", 30, lambda e: e.user),
    ("APP", 24, lambda e: e.application),
    ("OS", 12, lambda e: e.operating_system),
    ("BROWSER", 16, lambda e: e.browser),
    ("LOCATION", 28, lambda e: e.location),
    ("IP", 39, lambda e: e.ip_address),
    ("CA", 10, lambda e: e.conditional_access_status),
    ("REG", 3, lambda e: "yes" if e.device_registered else "no"),
    ("FAILURE", 40, lambda e: e.failure_reason),
]


def _cell(value: str, width: int) -> str:
    value = value or "-"
    if len(value) > width:
        value = value[:width - 1] + "~"
    return f"{value:<{width}s}"


def format_row(event) -> str:
    return " ".join(_cell(get(event), width) for _, width, get in _COLUMNS).rstrip()


def format_header() -> str:
    return " ".join(_cell(name, width) for name, width, _ in _COLUMNS).rstrip()


def render_cycle(result: CycleResult, snapshot: list, rows: int | None = None,
                 out=None) -> None:
    out = out or sys.stdout
    stamp = result.polled_at.strftime("%Y-%m-%d %H:%M:%S")

    if result.error:
        print(f"[{stamp}Z] poll failed: {result.error}", file=out)
        return

    print(f"[{stamp}Z] new={len(result.new_events)}  seen={result.seen_count}  "
          f"history={len(snapshot)}", file=out)
    if not result.new_events:
        return

    print("NEW", file=out)
    for event in sorted(result.new_events, key=lambda e: e.event_time, reverse=True):
        print(f"  {format_row(event)}", file=out)

    shown = snapshot if rows is None else snapshot[:rows]
    print(f"HISTORY (showing {len(shown)} of {len(snapshot)})", file=out)
    print(f"  {format_header()}", file=out)
    for event in shown:
        print(f"  {format_row(event)}", file=out)
