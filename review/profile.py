"""Per-user sign-in profile: the evidence package for a review.

Everything is derived from the user's own sign-ins over the review window.
No external enrichment (geo-IP, threat intel) happens here.
"""

from collections import Counter

from monitor.filters import is_ipv6

_RECENT = 10


def build_profile(user: str, events: list, window_days: float) -> dict:
    """Summarize *events* (all for *user*) into review evidence."""
    ordered = sorted(events, key=lambda e: e.event_time, reverse=True)
    failed = [e for e in ordered if e.failed]

    return {
        "user": user,
        "window_days": window_days,
        "sign_in_count": len(ordered),
        "failed_count": len(failed),
        "failure_reasons": dict(Counter(e.failure_reason for e in failed).most_common()),
        "countries": sorted({e.country for e in ordered if e.country}),
        "locations": dict(Counter(e.location for e in ordered if e.location).most_common()),
        "applications": dict(Counter(e.application for e in ordered if e.application).most_common()),
        "operating_systems": sorted({e.operating_system for e in ordered if e.operating_system}),
        "browsers": sorted({e.browser for e in ordered if e.browser}),
        "distinct_ips": len({e.ip_address for e in ordered if e.ip_address}),
        "ipv6_count": sum(1 for e in ordered if is_ipv6(e.ip_address)),
        "unregistered_device_count": sum(1 for e in ordered if not e.device_registered),
        "conditional_access_failures": sum(
            1 for e in ordered if e.conditional_access_status == "failure"
        ),
        "first_seen": ordered[-1].event_time.isoformat() if ordered else None,
        "last_seen": ordered[0].event_time.isoformat() if ordered else None,
        "recent": [e.to_dict() for e in ordered[:_RECENT]],
    }
