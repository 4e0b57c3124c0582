"""
REST Backend Client

Thin async wrapper over the per-resource REST contract:

    GET    /<resource>/health   liveness
    GET    /<resource>          full collection
    POST   /<resource>          bulk replace
    POST   /<resource>/item     create one
    PUT    /<resource>/<id>     update one
    DELETE /<resource>/<id>     delete one

Every call carries an explicit timeout. Transport problems (including
timeouts) surface as NetworkError, non-2xx responses as BackendError.
Callers decide what a failure means; this module never swallows one.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from finsync.config import BackendSettings, get_settings

logger = structlog.get_logger(__name__)


class BackendClientError(Exception):
    """Base exception for backend calls."""
    pass


class NetworkError(BackendClientError):
    """The request never produced a response (refused, reset, timed out)."""
    pass


class BackendError(BackendClientError):
    """The backend answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def response_message(response: httpx.Response) -> str:
    """Best human-readable error for a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}"


def unwrap_collection(body: Any) -> list[dict[str, Any]]:
    """
    Flatten the collection shapes the backend is known to return.

    Accepts a JSON array of records, an {"items": [...]} envelope, or an
    array of {"items": [...]} groups. Group names are copied onto their
    items as `section` when the items do not carry one.
    """
    if isinstance(body, dict):
        if not isinstance(body.get("items"), list):
            raise BackendError("Collection response has no items")
        body = body["items"]
    if not isinstance(body, list):
        raise BackendError(f"Unexpected collection type: {type(body).__name__}")

    rows: list[dict[str, Any]] = []
    for entry in body:
        if not isinstance(entry, dict):
            logger.warning("collection_entry_skipped", type=type(entry).__name__)
            continue
        group_items = entry.get("items")
        if isinstance(group_items, list):
            group_name = entry.get("name") or entry.get("section")
            for item in group_items:
                if not isinstance(item, dict):
                    continue
                if group_name and not item.get("section"):
                    item = {**item, "section": group_name}
                rows.append(item)
        else:
            rows.append(entry)
    return rows


def extract_canonical_id(body: Any) -> Optional[str]:
    """Backend-assigned id from a create response: data.id, data._id, id or _id."""
    if not isinstance(body, dict):
        return None
    candidates = []
    data = body.get("data")
    if isinstance(data, dict):
        candidates.extend([data.get("id"), data.get("_id")])
    candidates.extend([body.get("id"), body.get("_id")])
    for candidate in candidates:
        if candidate not in (None, ""):
            return str(candidate)
    return None


class BackendClient:
    """
    Async client for one backend base URL.

    Pass `http_client` to share a connection pool or to inject an
    httpx.MockTransport in tests; otherwise the client owns its own.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[BackendSettings] = None,
    ):
        self._settings = settings or get_settings().backend
        self.base_url = (base_url or self._settings.base_url).rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            headers={"Accept": "application/json"},
        )

    @property
    def settings(self) -> BackendSettings:
        return self._settings

    def url(self, resource: Optional[str], *parts: str) -> str:
        segments = [self.base_url]
        if resource:
            segments.append(resource.strip("/"))
        segments.extend(quote(str(part), safe="") for part in parts)
        return "/".join(segments)

    async def request(
        self,
        method: str,
        url: str,
        timeout: float,
        json: Any = None,
    ) -> httpx.Response:
        """
        Send one request and enforce a 2xx response.

        Raises:
            NetworkError: On any transport failure or timeout
            BackendError: On a non-2xx status
        """
        try:
            response = await self._http.request(method, url, json=json, timeout=timeout)
        except httpx.RequestError as e:
            logger.debug("backend_request_error", method=method, url=url, error=repr(e))
            raise NetworkError(f"{method} {url} failed: {e!r}") from e

        if not response.is_success:
            raise BackendError(response_message(response), status_code=response.status_code)
        return response

    @staticmethod
    def json_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Response is not JSON: {e}", status_code=response.status_code) from e

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    async def health(self, resource: Optional[str] = None, timeout: Optional[float] = None) -> None:
        """Raises unless the health endpoint answers 2xx."""
        await self.request(
            "GET",
            self.url(resource, "health"),
            timeout=timeout or self._settings.health_timeout_seconds,
        )

    async def fetch_collection(self, resource: str) -> list[dict[str, Any]]:
        response = await self.request(
            "GET",
            self.url(resource),
            timeout=self._settings.fetch_timeout_seconds,
        )
        return unwrap_collection(self.json_body(response))

    async def replace_collection(self, resource: str, records: list[dict[str, Any]]) -> Any:
        response = await self.request(
            "POST",
            self.url(resource),
            timeout=self._settings.submit_timeout_seconds,
            json=records,
        )
        return self.json_body(response)

    async def create_record(self, resource: str, payload: dict[str, Any]) -> Any:
        response = await self.request(
            "POST",
            self.url(resource, "item"),
            timeout=self._settings.request_timeout_seconds,
            json=payload,
        )
        return self.json_body(response)

    async def update_record(self, resource: str, record_id: str, payload: dict[str, Any]) -> Any:
        response = await self.request(
            "PUT",
            self.url(resource, record_id),
            timeout=self._settings.request_timeout_seconds,
            json=payload,
        )
        return self.json_body(response)

    async def delete_record(self, resource: str, record_id: str) -> None:
        await self.request(
            "DELETE",
            self.url(resource, record_id),
            timeout=self._settings.request_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
