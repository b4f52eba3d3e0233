"""Filter criteria, query construction and post-query filtering.

Three pure pieces used once per poll cycle:

  build_filter    - criteria -> OData $filter expression for the event source
  post_filter     - criteria the query language can't express (IP family)
  distinct_users  - one identity per user for one-shot follow-up actions
"""

import ipaddress
from dataclasses import dataclass
from datetime import datetime

from monitor.events import SignInEvent, format_time

EXCLUDE_IPV6 = "exclude-ipv6"
EXCLUDE_IPV4 = "exclude-ipv4"

# Accepted spellings -> canonical token.  Matching is case-insensitive.
_FAMILY_TOKENS = {
    "": "",
    "both": "",
    "exclude-ipv6": EXCLUDE_IPV6,
    "noipv6": EXCLUDE_IPV6,
    "ipv4": EXCLUDE_IPV6,
    "ipv4only": EXCLUDE_IPV6,
    "exclude-ipv4": EXCLUDE_IPV4,
    "noipv4": EXCLUDE_IPV4,
    "ipv6": EXCLUDE_IPV4,
    "ipv6only": EXCLUDE_IPV4,
}

# (criteria attribute, Graph property path, operator) in clause order.
_CLAUSES = (
    ("user", "userPrincipalName", "eq"),
    ("application", "appDisplayName", "eq"),
    ("operating_system", "deviceDetail/operatingSystem", "eq"),
    ("browser", "deviceDetail/browser", "eq"),
    ("city", "location/city", "eq"),
    ("state", "location/state", "eq"),
    ("country", "location/countryOrRegion", "eq"),
    ("exclude_state", "location/state", "ne"),
    ("ip_address", "ipAddress", "eq"),
)


def normalize_family(token: str | None) -> str:
    key = (token or "").strip().lower()
    if key not in _FAMILY_TOKENS:
        raise ValueError(
            f"unknown IP family '{token}' "
            f"(expected {EXCLUDE_IPV6}, {EXCLUDE_IPV4} or empty)"
        )
    return _FAMILY_TOKENS[key]


@dataclass(frozen=True)
class FilterCriteria:
    """Match constraints for one monitoring run.  Empty string = unset."""

    application: str = ""
    operating_system: str = ""
    browser: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    exclude_state: str = ""
    ip_address: str = ""
    user: str = ""
    ip_family: str = ""
    strict_ip_parsing: bool = False
    interval_seconds: float = 60
    lookback_minutes: float = 30

    def __post_init__(self):
        object.__setattr__(self, "ip_family", normalize_family(self.ip_family))
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.lookback_minutes <= 0:
            raise ValueError("lookback_minutes must be positive")

    def active(self) -> dict:
        """Non-empty match criteria, for banners and logs."""
        out = {attr: getattr(self, attr) for attr, _, _ in _CLAUSES
               if getattr(self, attr)}
        if self.ip_family:
            out["ip_family"] = self.ip_family
        return out


# ---------------------------------------------------------------------------
# FilterBuilder
# ---------------------------------------------------------------------------

def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_filter(criteria: FilterCriteria, since: datetime) -> str:
    """AND together one clause per set criterion, then the time lower bound."""
    clauses = [
        f"{path} {op} {_quote(getattr(criteria, attr))}"
        for attr, path, op in _CLAUSES
        if getattr(criteria, attr)
    ]
    clauses.append(f"createdDateTime ge {format_time(since)}")
    return " and ".join(clauses)


# ---------------------------------------------------------------------------
# PostFilter
# ---------------------------------------------------------------------------

def is_ipv6(address: str) -> bool:
    """Colon-presence heuristic.  Not a validator: '1:2' counts as IPv6."""
    return ":" in address


def ip_version_strict(address: str) -> int | None:
    """Parsed address family (4 or 6), or None if the address doesn't parse."""
    try:
        return ipaddress.ip_address(address.strip()).version
    except ValueError:
        return None


def post_filter(events: list[SignInEvent], criteria: FilterCriteria) -> list[SignInEvent]:
    """Apply the IP-family preference.  Order is preserved."""
    family = criteria.ip_family
    if not family:
        return list(events)

    if criteria.strict_ip_parsing:
        wanted = 4 if family == EXCLUDE_IPV6 else 6
        return [e for e in events if ip_version_strict(e.ip_address) == wanted]

    if family == EXCLUDE_IPV6:
        return [e for e in events if not is_ipv6(e.ip_address)]
    return [e for e in events if is_ipv6(e.ip_address)]


# ---------------------------------------------------------------------------
# UserDedup
# ---------------------------------------------------------------------------

def distinct_users(events: list[SignInEvent]) -> set[str]:
    return {e.user for e in events}
