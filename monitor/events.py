"""Sign-in event model.

One ``SignInEvent`` per authentication attempt returned by the identity
provider.  Field names follow Python conventions; ``from_graph`` maps the
Microsoft Graph ``signIn`` resource (auditLogs/signIns) onto them.

``event_time`` is the only ordering and novelty key.  Two distinct sign-ins
with identical timestamps are indistinguishable to the novelty tracker.
"""

import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

# Graph emits up to 7 fractional digits (100ns ticks); datetime keeps 6.
_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_time(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if not value:
        raise ValueError("empty timestamp")
    text = _FRACTION.sub(r".\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_time(ts: datetime) -> str:
    """UTC timestamp in the form the Graph $filter grammar accepts."""
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class SignInEvent:
    event_time: datetime
    user: str
    application: str = ""
    operating_system: str = ""
    browser: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    ip_address: str = ""
    conditional_access_status: str = ""
    failure_reason: str = ""
    device_registered: bool = False

    def __post_init__(self):
        if not self.user:
            raise ValueError("sign-in event without a user identity")

    @property
    def location(self) -> str:
        return ", ".join(p for p in (self.city, self.state, self.country) if p)

    @property
    def failed(self) -> bool:
        return bool(self.failure_reason)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["event_time"] = self.event_time.isoformat()
        return d

    @classmethod
    def from_graph(cls, record: dict) -> "SignInEvent":
        """Build an event from a raw Graph ``signIn`` record.

        Nested objects (deviceDetail, location, status) are optional in the
        Graph payload and frequently null, so every lookup tolerates None.
        """
        created = record.get("createdDateTime")
        user = record.get("userPrincipalName")
        if not created:
            raise ValueError("signIn record missing createdDateTime")
        if not user:
            raise ValueError("signIn record missing userPrincipalName")

        device = record.get("deviceDetail") or {}
        location = record.get("location") or {}
        status = record.get("status") or {}

        failure = ""
        if status.get("errorCode", 0) != 0:
            failure = status.get("failureReason") or f"error {status['errorCode']}"

        return cls(
            event_time=parse_time(created),
            user=user,
            application=record.get("appDisplayName") or "",
            operating_system=device.get("operatingSystem") or "",
            browser=device.get("browser") or "",
            city=location.get("city") or "",
            state=location.get("state") or "",
            country=location.get("countryOrRegion") or "",
            ip_address=record.get("ipAddress") or "",
            conditional_access_status=record.get("conditionalAccessStatus") or "",
            failure_reason=failure,
            device_registered=bool(device.get("deviceId")),
        )
