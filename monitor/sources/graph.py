"""Microsoft Graph sign-in log source.

GET /v1.0/auditLogs/signIns with the builder's $filter, following
@odata.nextLink until the result set is exhausted.  Authenticates app-only
(client credentials) through MSAL; the application needs the
AuditLog.Read.All permission, plus User.RevokeSessions.All for
revoke_sessions().

Credentials are read from Docker secrets (/run/secrets/graph_tenant_id,
graph_client_id, graph_client_secret) and fall back to the GRAPH_TENANT_ID,
GRAPH_CLIENT_ID and GRAPH_CLIENT_SECRET environment variables.
"""

import os
import sys
import time
from urllib.parse import quote

import msal
import requests

from monitor.events import SignInEvent
from monitor.sources import EventSource, SourceError

GRAPH_URL = "https://graph.microsoft.com/v1.0"
_SCOPES = ["https://graph.microsoft.com/.default"]
_PAGE_SIZE = 999  # Graph maximum for signIns
_BASE_BACKOFF = 5
_MAX_BACKOFF = 120
_TIMEOUT = 60


def _read_secret(name: str) -> str | None:
    """Docker secret file first, then the upper-cased environment variable."""
    try:
        with open(f"/run/secrets/{name}") as f:
            value = f.read().strip()
            if value:
                return value
    except FileNotFoundError:
        pass
    return os.environ.get(name.upper())


class GraphEventSource(EventSource):
    name = "graph"

    def __init__(self, tenant_id=None, client_id=None, client_secret=None,
                 app=None, session=None, sleep=time.sleep, max_retries=5):
        if app is None:
            tenant_id = tenant_id or _read_secret("graph_tenant_id")
            client_id = client_id or _read_secret("graph_client_id")
            client_secret = client_secret or _read_secret("graph_client_secret")
            missing = [n for n, v in (("tenant id", tenant_id),
                                      ("client id", client_id),
                                      ("client secret", client_secret)) if not v]
            if missing:
                raise SourceError(
                    "Graph credentials missing: " + ", ".join(missing) +
                    " (checked /run/secrets/graph_* and GRAPH_* env)"
                )
            app = msal.ConfidentialClientApplication(
                client_id,
                authority=f"https://login.microsoftonline.com/{tenant_id}",
                client_credential=client_secret,
            )
        self._app = app
        self._session = session or requests.Session()
        self._sleep = sleep
        self._max_retries = max_retries

    # ------------------------------------------------------------------
    # EventSource interface
    # ------------------------------------------------------------------

    def fetch(self, expression, since):
        params = {"$filter": expression, "$top": _PAGE_SIZE}
        url = f"{GRAPH_URL}/auditLogs/signIns"

        records = []
        while url:
            data = self._request("GET", url, params=params).json()
            records.extend(data.get("value", []))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        events = []
        for record in records:
            try:
                events.append(SignInEvent.from_graph(record))
            except ValueError as e:
                print(f"Skipping malformed signIn record ({e})", file=sys.stderr)
        return events

    def revoke_sessions(self, user: str) -> bool:
        """Invalidate every refresh token issued to *user*."""
        url = f"{GRAPH_URL}/users/{quote(user)}/revokeSignInSessions"
        data = self._request("POST", url).json()
        return bool(data.get("value", False))

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _token(self) -> str:
        # MSAL serves cached tokens until shortly before expiry.
        result = self._app.acquire_token_for_client(scopes=_SCOPES)
        if "access_token" not in result:
            raise SourceError(
                f"token acquisition failed: {result.get('error')}: "
                f"{result.get('error_description')}"
            )
        return result["access_token"]

    def _request(self, method, url, params=None):
        """Send a Graph request, backing off on 429 and 5xx responses."""
        for attempt in range(self._max_retries + 1):
            headers = {"Authorization": f"Bearer {self._token()}"}
            try:
                response = self._session.request(
                    method, url, headers=headers, params=params, timeout=_TIMEOUT,
                )
            except requests.RequestException as e:
                if attempt == self._max_retries:
                    raise SourceError(f"Graph request failed: {e}") from e
                wait = self._backoff(attempt)
                print(f"Graph request error ({e}), retrying in {wait}s "
                      f"(attempt {attempt + 1}/{self._max_retries})", file=sys.stderr)
                self._sleep(wait)
                continue

            if response.status_code < 400:
                return response

            retryable = response.status_code == 429 or response.status_code >= 500
            if not retryable or attempt == self._max_retries:
                raise SourceError(
                    f"Graph returned HTTP {response.status_code}: "
                    f"{response.text[:200]}"
                )

            retry_after = response.headers.get("Retry-After")
            wait = int(retry_after) if retry_after and retry_after.isdigit() \
                else self._backoff(attempt)
            print(f"Graph throttled (HTTP {response.status_code}), waiting {wait}s "
                  f"(attempt {attempt + 1}/{self._max_retries})", file=sys.stderr)
            self._sleep(wait)

        raise SourceError(f"Graph request failed after {self._max_retries} retries")

    @staticmethod
    def _backoff(attempt: int) -> int:
        return min(_BASE_BACKOFF * 2 ** attempt, _MAX_BACKOFF)
