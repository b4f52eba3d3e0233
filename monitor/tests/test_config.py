"""Tests for criteria profiles: loading, validation, CLI overrides."""

from pathlib import Path

import pytest

from monitor.config import load_criteria, load_profile, merge
from monitor.filters import EXCLUDE_IPV4, EXCLUDE_IPV6

_PROFILES = Path(__file__).resolve().parent.parent / "profiles"


def _write(tmp_path, text):
    path = tmp_path / "profile.yml"
    path.write_text(text)
    return path


class TestShippedProfiles:
    def test_portal_outside_home(self):
        c = load_criteria(_PROFILES / "portal_outside_home.yml")
        assert c.application == "Azure Portal"
        assert c.exclude_state == "Washington"
        assert c.ip_family == EXCLUDE_IPV6
        assert c.interval_seconds == 60
        assert c.lookback_minutes == 30

    def test_all_ipv6(self):
        c = load_criteria(_PROFILES / "all_ipv6.yml")
        assert c.ip_family == EXCLUDE_IPV4
        assert c.strict_ip_parsing is True


class TestValidation:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_profile(tmp_path / "nope.yml")

    def test_empty_file_is_empty_profile(self, tmp_path):
        assert load_profile(_write(tmp_path, "")) == {}

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            load_profile(_write(tmp_path, "- city: Austin\n"))

    def test_unknown_key(self, tmp_path):
        with pytest.raises(ValueError, match="unknown criterion 'town'"):
            load_profile(_write(tmp_path, "town: Austin\n"))

    def test_non_numeric_interval(self, tmp_path):
        with pytest.raises(ValueError, match="interval_seconds"):
            load_profile(_write(tmp_path, "interval_seconds: soon\n"))

    def test_bool_interval_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="interval_seconds"):
            load_profile(_write(tmp_path, "interval_seconds: true\n"))

    def test_strict_flag_must_be_bool(self, tmp_path):
        with pytest.raises(ValueError, match="strict_ip_parsing"):
            load_profile(_write(tmp_path, "strict_ip_parsing: maybe\n"))

    def test_values_coerced_to_strings(self, tmp_path):
        # YAML reads a bare IP-looking value or a number as non-string.
        profile = load_profile(_write(tmp_path, "ip_address: 10.0.0.1\ncity: 1234\nstate:\n"))
        assert profile == {"ip_address": "10.0.0.1", "city": "1234", "state": ""}

    def test_bad_family_token_rejected_on_build(self, tmp_path):
        with pytest.raises(ValueError, match="unknown IP family"):
            load_criteria(_write(tmp_path, "ip_family: ipv5\n"))


class TestMerge:
    def test_flags_override_profile(self):
        c = merge({"city": "Austin", "interval_seconds": 120},
                  {"city": "Dallas", "state": None, "interval_seconds": None})
        assert c.city == "Dallas"
        assert c.interval_seconds == 120

    def test_unset_flags_keep_profile_values(self):
        c = merge({"strict_ip_parsing": True, "ip_family": "ipv6"},
                  {"strict_ip_parsing": None, "ip_family": None})
        assert c.strict_ip_parsing is True
        assert c.ip_family == EXCLUDE_IPV4

    def test_no_profile(self):
        c = merge({}, {"application": "Microsoft Teams", "lookback_minutes": 10.0})
        assert c.application == "Microsoft Teams"
        assert c.lookback_minutes == 10.0
