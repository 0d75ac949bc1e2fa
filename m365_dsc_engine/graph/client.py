"""
Synchronous Graph API client: the remote gateway every resource reads
and writes through. Pagination and safety enforcement; no retries.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    GRAPH_BETA_VERSION,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
    CONNECT_TIMEOUT_SECONDS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_dsc_engine.graph")


class GraphAPIError(Exception):
    """Raised when a Graph request fails."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        self.message = message
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphAuthorizationError(GraphAPIError):
    """401/403: missing permission, consent, or tenant license."""
    pass


class GraphTransportError(GraphAPIError):
    """The request never produced an HTTP response."""
    def __init__(self, message: str, url: str):
        super().__init__(0, message, url)


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


class GraphClient:
    """
    Microsoft Graph API client.
    Features:
      - Safety-validated requests (read-only unless writes are allowed)
      - Automatic pagination with @odata.nextLink
      - v1.0 and beta endpoint support
      - Typed errors for authorization and transport failures
    Throttled requests are surfaced as GraphAPIError, never retried.
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self._request_count = 0
        self._client = httpx.Client(
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self):
        self._client.close()

    def _build_url(self, endpoint: str, beta: bool = False) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        version = GRAPH_BETA_VERSION if beta else GRAPH_API_VERSION
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{version}/{endpoint}"

    # ─── Reads ───────────────────────────────────────────────────────────────

    def list(
        self,
        collection: str,
        filter: Optional[str] = None,
        beta: bool = False,
    ) -> list[dict]:
        """
        Fetch every item of a collection, following @odata.nextLink.
        `filter` is passed through as the OData $filter expression.
        """
        params: Optional[dict] = {}
        if filter:
            params["$filter"] = filter
        else:
            params["$top"] = str(DEFAULT_PAGE_SIZE)

        url: Optional[str] = self._build_url(collection, beta=beta)
        items: list[dict] = []
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            data = self._request("GET", url, params=params)
            items.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
            params = None  # nextLink contains all params
            pages += 1

        if url:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {collection}"
            )
        logger.debug(f"Listed {len(items)} items from {collection}")
        return items

    def get_by_id(self, collection: str, object_id: str, beta: bool = False) -> Optional[dict]:
        """Fetch a single object. Returns None on 404."""
        url = self._build_url(f"{collection.rstrip('/')}/{object_id}", beta=beta)
        try:
            return self._request("GET", url)
        except GraphAPIError as e:
            if e.status_code == 404:
                logger.debug(f"404 Not Found: {url}")
                return None
            raise

    # ─── Writes ──────────────────────────────────────────────────────────────

    def create(self, collection: str, payload: dict, beta: bool = False) -> dict:
        """POST a new object to a collection and return the created record."""
        url = self._build_url(collection, beta=beta)
        return self._request("POST", url, json_body=payload)

    def update(self, collection: str, object_id: str, payload: dict, beta: bool = False) -> None:
        """PATCH an existing object addressed by id."""
        url = self._build_url(f"{collection.rstrip('/')}/{object_id}", beta=beta)
        self._request("PATCH", url, json_body=payload)

    def delete(self, collection: str, object_id: str, beta: bool = False) -> None:
        """DELETE an object addressed by id."""
        url = self._build_url(f"{collection.rstrip('/')}/{object_id}", beta=beta)
        self._request("DELETE", url)

    # ─── Transport ───────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict:
        """Execute one request and decode the JSON body."""
        self.guardian.validate_request(method, url, json_body)

        try:
            response = self._client.request(method, url, params=params, json=json_body)
        except httpx.TransportError as e:
            logger.warning(f"Transport error on {method} {url}: {e}")
            raise GraphTransportError(f"{type(e).__name__}: {e}", url) from e

        self._request_count += 1
        logger.debug(f"{method} {url} -> {response.status_code}")

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                logger.debug(f"{response.status_code} response with non-JSON body from {url}")
                return {}

        error_msg = self._error_message(response)
        if response.status_code in (401, 403):
            logger.warning(f"{response.status_code} on {method} {url} — {error_msg}")
            raise GraphAuthorizationError(response.status_code, error_msg, url)
        raise GraphAPIError(response.status_code, error_msg, url)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error_body: Any = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(error_body, dict):
            return error_body.get("error", {}).get("message", response.text[:200])
        return response.text[:200]

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {"total_requests": self._request_count}
