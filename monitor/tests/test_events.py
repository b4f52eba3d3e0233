"""Tests for SignInEvent parsing from Graph signIn records."""

from datetime import datetime, timezone

import pytest

from monitor.events import SignInEvent, format_time, parse_time


def _record(**overrides):
    record = {
        "id": "66ea54eb-6301-4ee5-be62-ff5a759b0100",
        "createdDateTime": "2024-03-01T12:34:56Z",
        "userPrincipalName": "adele.vance@contoso.com",
        "appDisplayName": "Azure Portal",
        "ipAddress": "131.107.159.37",
        "conditionalAccessStatus": "success",
        "deviceDetail": {
            "deviceId": "8e6f8ad1-5a4e-4c43-9b5b-2d6a6f0a1d5c",
            "operatingSystem": "Windows 10",
            "browser": "Edge 120.0.0",
        },
        "location": {"city": "Redmond", "state": "Washington", "countryOrRegion": "US"},
        "status": {"errorCode": 0, "failureReason": "Other."},
    }
    record.update(overrides)
    return record


class TestParseTime:
    def test_z_suffix(self):
        assert parse_time("2024-03-01T12:34:56Z") == \
            datetime(2024, 3, 1, 12, 34, 56, tzinfo=timezone.utc)

    def test_seven_fractional_digits(self):
        ts = parse_time("2024-03-01T12:34:56.1234567Z")
        assert ts.microsecond == 123456

    def test_offset_converted_to_utc(self):
        ts = parse_time("2024-03-01T07:34:56-05:00")
        assert ts == datetime(2024, 3, 1, 12, 34, 56, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        assert parse_time("2024-03-01T12:34:56").tzinfo == timezone.utc

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            parse_time("")

    def test_format_round_trip_drops_fraction(self):
        assert format_time(parse_time("2024-03-01T12:34:56.9Z")) == "2024-03-01T12:34:56Z"


class TestFromGraph:
    def test_full_record(self):
        e = SignInEvent.from_graph(_record())
        assert e.event_time == datetime(2024, 3, 1, 12, 34, 56, tzinfo=timezone.utc)
        assert e.user == "adele.vance@contoso.com"
        assert e.application == "Azure Portal"
        assert e.operating_system == "Windows 10"
        assert e.browser == "Edge 120.0.0"
        assert e.location == "Redmond, Washington, US"
        assert e.ip_address == "131.107.159.37"
        assert e.conditional_access_status == "success"
        assert e.device_registered is True

    def test_success_has_no_failure_reason(self):
        """Graph reports 'Other.' even for successes; only errorCode != 0 counts."""
        e = SignInEvent.from_graph(_record())
        assert e.failure_reason == ""
        assert not e.failed

    def test_failure_reason_kept_on_error(self):
        e = SignInEvent.from_graph(_record(status={
            "errorCode": 50126,
            "failureReason": "Invalid username or password.",
        }))
        assert e.failure_reason == "Invalid username or password."
        assert e.failed

    def test_failure_without_reason_uses_code(self):
        e = SignInEvent.from_graph(_record(status={"errorCode": 50053, "failureReason": None}))
        assert e.failure_reason == "error 50053"

    def test_null_nested_objects(self):
        e = SignInEvent.from_graph(_record(deviceDetail=None, location=None, status=None))
        assert e.device_registered is False
        assert e.location == ""
        assert e.failure_reason == ""

    def test_empty_device_id_is_unregistered(self):
        e = SignInEvent.from_graph(_record(deviceDetail={"deviceId": "", "operatingSystem": "Ios"}))
        assert e.device_registered is False

    def test_missing_time_rejected(self):
        with pytest.raises(ValueError, match="createdDateTime"):
            SignInEvent.from_graph(_record(createdDateTime=None))

    def test_missing_user_rejected(self):
        with pytest.raises(ValueError, match="userPrincipalName"):
            SignInEvent.from_graph(_record(userPrincipalName=""))


class TestEvent:
    def test_empty_user_rejected(self):
        with pytest.raises(ValueError):
            SignInEvent(event_time=datetime(2024, 1, 1, tzinfo=timezone.utc), user="")

    def test_immutable(self):
        e = SignInEvent(event_time=datetime(2024, 1, 1, tzinfo=timezone.utc), user="u")
        with pytest.raises(AttributeError):
            e.event_time = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_to_dict_serializes_time(self):
        e = SignInEvent(event_time=datetime(2024, 1, 1, tzinfo=timezone.utc), user="u")
        d = e.to_dict()
        assert d["event_time"] == "2024-01-01T00:00:00+00:00"
        assert d["user"] == "u"

    def test_partial_location(self):
        e = SignInEvent(event_time=datetime(2024, 1, 1, tzinfo=timezone.utc), user="u",
                        country="GB")
        assert e.location == "GB"
