"""Tests for GraphEventSource: paging, throttling, auth and error mapping."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from monitor.sources import SourceError
from monitor.sources.graph import GRAPH_URL, GraphEventSource

_SINCE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _signin(ts, user="a@contoso.com"):
    return {"createdDateTime": ts, "userPrincipalName": user, "ipAddress": "10.0.0.1"}


def _response(status=200, body=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body or {}
    resp.headers = headers or {}
    resp.text = str(body)
    return resp


def _source(*responses, token_result=None):
    app = MagicMock()
    app.acquire_token_for_client.return_value = token_result or {"access_token": "tok"}
    session = MagicMock()
    session.request.side_effect = list(responses)
    sleeps = []
    source = GraphEventSource(app=app, session=session, sleep=sleeps.append, max_retries=3)
    return source, session, sleeps


class TestFetch:
    def test_single_page(self):
        source, session, _ = _source(_response(body={"value": [
            _signin("2024-03-01T10:00:00Z"), _signin("2024-03-01T10:05:00Z", "b@contoso.com"),
        ]}))
        events = source.fetch("createdDateTime ge 2024-03-01T00:00:00Z", _SINCE)
        assert [e.user for e in events] == ["a@contoso.com", "b@contoso.com"]

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url == f"{GRAPH_URL}/auditLogs/signIns"
        assert kwargs["params"] == {"$filter": "createdDateTime ge 2024-03-01T00:00:00Z",
                                    "$top": 999}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_follows_next_link(self):
        next_link = f"{GRAPH_URL}/auditLogs/signIns?$skiptoken=abc"
        source, session, _ = _source(
            _response(body={"value": [_signin("2024-03-01T10:00:00Z")],
                            "@odata.nextLink": next_link}),
            _response(body={"value": [_signin("2024-03-01T11:00:00Z")]}),
        )
        events = source.fetch("x", _SINCE)
        assert len(events) == 2
        second = session.request.call_args_list[1]
        assert second.args[1] == next_link
        assert second.kwargs["params"] is None

    def test_empty_result(self):
        source, _, _ = _source(_response(body={"value": []}))
        assert source.fetch("x", _SINCE) == []

    def test_malformed_records_skipped(self, capsys):
        source, _, _ = _source(_response(body={"value": [
            _signin("2024-03-01T10:00:00Z"), {"userPrincipalName": "no-time@contoso.com"},
        ]}))
        assert len(source.fetch("x", _SINCE)) == 1
        assert "Skipping malformed" in capsys.readouterr().err


class TestThrottling:
    def test_retry_after_honoured(self):
        source, _, sleeps = _source(
            _response(429, headers={"Retry-After": "7"}),
            _response(body={"value": [_signin("2024-03-01T10:00:00Z")]}),
        )
        assert len(source.fetch("x", _SINCE)) == 1
        assert sleeps == [7]

    def test_exponential_backoff_without_header(self):
        source, _, sleeps = _source(
            _response(503), _response(503),
            _response(body={"value": []}),
        )
        source.fetch("x", _SINCE)
        assert sleeps == [5, 10]

    def test_gives_up_after_max_retries(self):
        source, session, sleeps = _source(*[_response(429) for _ in range(4)])
        with pytest.raises(SourceError, match="HTTP 429"):
            source.fetch("x", _SINCE)
        assert session.request.call_count == 4
        assert len(sleeps) == 3

    def test_connection_errors_retried_then_mapped(self):
        source, _, sleeps = _source(*[requests.ConnectionError("reset")] * 4)
        with pytest.raises(SourceError, match="reset"):
            source.fetch("x", _SINCE)
        assert len(sleeps) == 3

    def test_client_errors_not_retried(self):
        source, session, sleeps = _source(_response(403, body={"error": "Forbidden"}))
        with pytest.raises(SourceError, match="HTTP 403"):
            source.fetch("x", _SINCE)
        assert session.request.call_count == 1
        assert sleeps == []

    def test_backoff_is_capped(self):
        assert GraphEventSource._backoff(10) == 120


class TestAuth:
    def test_token_failure(self):
        source, _, _ = _source(token_result={"error": "invalid_client",
                                             "error_description": "bad secret"})
        with pytest.raises(SourceError, match="invalid_client"):
            source.fetch("x", _SINCE)

    def test_missing_credentials(self, monkeypatch):
        for name in ("GRAPH_TENANT_ID", "GRAPH_CLIENT_ID", "GRAPH_CLIENT_SECRET"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr("monitor.sources.graph._read_secret", lambda name: None)
        with pytest.raises(SourceError, match="tenant id, client id, client secret"):
            GraphEventSource()


class TestRevoke:
    def test_revoke_posts_to_user(self):
        source, session, _ = _source(_response(body={"value": True}))
        assert source.revoke_sessions("a@contoso.com") is True
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url == f"{GRAPH_URL}/users/a%40contoso.com/revokeSignInSessions"
