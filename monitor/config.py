"""Load filter criteria profiles from YAML.

A profile is a flat mapping of criteria names to values, e.g.::

    application: Azure Portal
    exclude_state: Washington
    ip_family: exclude-ipv6
    interval_seconds: 60
    lookback_minutes: 30

Command-line flags are layered on top with ``merge``.
"""

from dataclasses import fields
from pathlib import Path

import yaml

from monitor.filters import FilterCriteria

_FIELDS = {f.name: f for f in fields(FilterCriteria)}
_NUMERIC = ("interval_seconds", "lookback_minutes")


def load_criteria(path: str | Path) -> FilterCriteria:
    """Parse and validate a criteria profile."""
    return FilterCriteria(**load_profile(path))


def load_profile(path: str | Path) -> dict:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Criteria profile not found: {path}")

    with open(path) as f:
        profile = yaml.safe_load(f) or {}

    if not isinstance(profile, dict):
        raise ValueError(f"{path.name}: profile must be a mapping")

    for key, value in profile.items():
        if key not in _FIELDS:
            raise ValueError(f"{path.name}: unknown criterion '{key}'")
        if key in _NUMERIC:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{path.name}: '{key}' must be a number")
        elif key == "strict_ip_parsing":
            if not isinstance(value, bool):
                raise ValueError(f"{path.name}: '{key}' must be true or false")
        elif value is None:
            profile[key] = ""
        else:
            profile[key] = str(value)
    return profile


def merge(profile: dict, overrides: dict) -> FilterCriteria:
    """Profile values overridden by every override that was actually given."""
    merged = dict(profile)
    merged.update({k: v for k, v in overrides.items() if v not in (None, "")})
    return FilterCriteria(**merged)
