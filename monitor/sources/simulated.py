"""Simulated sign-in source.

Generates Graph-shaped signIn records for a pool of user profiles as wall
time advances, so the whole monitor runs without a tenant.  Profiles:

  normal    - home location, registered device, business hours apps
  traveler  - same user, rotating through a few cities
  attacker  - foreign IPs (some IPv6), unregistered devices, many failures

The builder's OData expression is evaluated against each generated record
(eq / ne / ge clauses joined by 'and'), so criteria behave as they would
against Graph.
"""

import random
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from monitor.events import SignInEvent, format_time, parse_time
from monitor.sources import EventSource

APPS = [
    "Office 365 Exchange Online",
    "Microsoft Teams",
    "SharePoint Online",
    "Azure Portal",
    "Microsoft Authentication Broker",
]
DEVICES = [
    ("Windows 10", "Edge 120.0.0"),
    ("Windows 10", "Chrome 120.0.0"),
    ("MacOs", "Safari 17.1"),
    ("Ios 17.1.2", "Mobile Safari 17.1"),
    ("Android 14", "Chrome Mobile 120.0.0"),
]
HOME = ("Seattle", "Washington", "US")
TRAVEL = [("Chicago", "Illinois", "US"), ("New York", "New York", "US"),
          ("Austin", "Texas", "US"), ("London", "England", "GB")]
HOSTILE = [("Lagos", "Lagos", "NG"), ("Moscow", "Moscow", "RU"),
           ("Sao Paulo", "Sao Paulo", "BR"), ("Hanoi", "Ha Noi", "VN")]
FAILURES = [
    (50126, "Error validating credentials due to invalid username or password."),
    (50053, "Account is locked because user tried to sign in too many times."),
    (50074, "Strong Authentication is required."),
    (530003, "Your device is required to be managed to access this resource."),
]

_CLAUSE = re.compile(r"(\S+) (eq|ne|ge) ('(?:[^']|'')*'|\S+)")


# ---------------------------------------------------------------------------
# User profiles
# ---------------------------------------------------------------------------

@dataclass
class Profile:
    user: str
    role: str  # normal | traveler | attacker
    sign_ins_per_hour: float
    failure_rate: float
    ipv6_rate: float


def create_profiles(n_normal=6, n_travelers=1, n_attacked=1, domain="contoso.com"):
    names = ["adele.vance", "alex.wilber", "diego.siciliani", "grady.archie",
             "isaiah.langer", "johanna.lorenz", "lee.gu", "lidia.holloway",
             "lynne.robbins", "megan.bowen", "miriam.graham", "nestor.wilke",
             "patti.fernandez", "pradeep.gupta"]
    roles = (["normal"] * n_normal + ["traveler"] * n_travelers +
             ["attacker"] * n_attacked)
    profiles = []
    for i, role in enumerate(roles):
        name = names[i % len(names)] + ("" if i < len(names) else str(i))
        user = f"{name}@{domain}"
        if role == "attacker":
            profiles.append(Profile(user, role, 12.0, 0.6, 0.3))
        elif role == "traveler":
            profiles.append(Profile(user, role, 4.0, 0.05, 0.1))
        else:
            profiles.append(Profile(user, role, 3.0, 0.02, 0.05))
    return profiles


# ---------------------------------------------------------------------------
# OData evaluation
# ---------------------------------------------------------------------------

def _lookup(record: dict, path: str):
    value = record
    for part in path.split("/"):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _literal(token: str):
    if token.startswith("'"):
        return token[1:-1].replace("''", "'")
    return parse_time(token)


def matches(expression: str, record: dict) -> bool:
    """Evaluate an AND-only OData expression against a Graph record."""
    for path, op, token in _CLAUSE.findall(expression):
        expected = _literal(token)
        actual = _lookup(record, path)
        if isinstance(expected, datetime):
            if actual is None or parse_time(actual) < expected:
                return False
            continue
        equal = (actual or "").casefold() == expected.casefold()
        if op == "eq" and not equal:
            return False
        if op == "ne" and equal:
            return False
    return True


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------

class SimulatedEventSource(EventSource):
    name = "simulated"

    def __init__(self, profiles=None, seed=None, clock=None):
        self.profiles = profiles or create_profiles()
        self._rng = random.Random(seed)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._records: list[dict] = []
        self._generated_until: datetime | None = None

    def fetch(self, expression, since):
        now = self._clock()
        start = self._generated_until or since
        if now > start:
            for profile in self.profiles:
                self._generate(profile, start, now)
            self._generated_until = now
        return [SignInEvent.from_graph(r) for r in self._records
                if matches(expression, r)]

    def _generate(self, profile: Profile, start: datetime, end: datetime) -> None:
        t = start
        while True:
            t += timedelta(hours=self._rng.expovariate(profile.sign_ins_per_hour))
            if t > end:
                return
            self._records.append(self._make_record(profile, t.replace(microsecond=0)))

    def _make_record(self, profile: Profile, ts: datetime) -> dict:
        rng = self._rng
        if profile.role == "attacker" and rng.random() < 0.7:
            city, state, country = rng.choice(HOSTILE)
            device_id = ""
        elif profile.role == "traveler" and rng.random() < 0.5:
            city, state, country = rng.choice(TRAVEL)
            device_id = str(uuid.UUID(int=rng.getrandbits(128)))
        else:
            city, state, country = HOME
            device_id = str(uuid.UUID(int=rng.getrandbits(128)))

        if rng.random() < profile.ipv6_rate:
            ip = "2001:db8:" + ":".join(f"{rng.randint(0, 0xffff):x}" for _ in range(6))
        else:
            ip = ".".join(str(rng.randint(1, 254)) for _ in range(4))

        if rng.random() < profile.failure_rate:
            error_code, failure = rng.choice(FAILURES)
        else:
            error_code, failure = 0, None

        os_name, browser = rng.choice(DEVICES)
        return {
            "id": str(uuid.UUID(int=rng.getrandbits(128))),
            "createdDateTime": format_time(ts),
            "userPrincipalName": profile.user,
            "appDisplayName": rng.choice(APPS),
            "ipAddress": ip,
            "conditionalAccessStatus": rng.choice(["success", "notApplied", "failure"])
            if error_code else rng.choice(["success", "notApplied"]),
            "deviceDetail": {
                "deviceId": device_id,
                "operatingSystem": os_name,
                "browser": browser,
            },
            "location": {"city": city, "state": state, "countryOrRegion": country},
            "status": {"errorCode": error_code, "failureReason": failure},
        }
