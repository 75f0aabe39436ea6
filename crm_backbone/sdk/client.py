"""HubSpot REST API client with structured errors and rate-limit handling."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx

from crm_backbone import config

logger = logging.getLogger(__name__)

# longest we are willing to sleep on a single 429
MAX_RETRY_WAIT = 30.0
BACKOFF_BASE = 1.0


class HubSpotApiError(Exception):
    """Exception raised when a HubSpot request fails.

    ``status`` is 0 when the request never got a response.
    """

    def __init__(
        self,
        status: int,
        category: str,
        message: str,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.category = category
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "status": self.status,
            "category": self.category,
            "message": self.message,
        }
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


def status_to_category(status: int) -> str:
    """Map an HTTP status to HubSpot's error category names."""
    categories = {
        400: "VALIDATION_ERROR",
        401: "AUTHENTICATION_ERROR",
        403: "PERMISSION_DENIED",
        404: "OBJECT_NOT_FOUND",
        409: "CONFLICT",
        429: "RATE_LIMIT",
    }
    if status in categories:
        return categories[status]
    return "SERVER_ERROR" if status >= 500 else "CLIENT_ERROR"


def get_suggestion(status: int, path: str) -> str | None:
    """a hint for the caller on how to recover from common failures."""
    if status == 404:
        return "Check the object type and ID. Use list_objects or search_crm to find valid IDs."
    if status == 403:
        if "sequences" in path:
            return "Sequences API requires Sales Hub Professional or Enterprise."
        if "analytics" in path:
            return "Analytics API may require Marketing Hub Professional or Enterprise."
        if "automation" in path:
            return "Workflows API requires the 'automation' scope on your Private App."
        return "Check that your Private App has the required scopes for this endpoint."
    if status == 401:
        return "The access token is invalid or expired. Check HUBSPOT_ACCESS_TOKEN."
    return None


def _retry_wait(response: httpx.Response, attempt: int) -> float:
    """seconds to wait before retrying a rate-limited request."""
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            wait = float(retry_after)
        except ValueError:
            wait = BACKOFF_BASE * 2 ** attempt
    else:
        wait = BACKOFF_BASE * 2 ** attempt
    return min(max(wait, 0.0), MAX_RETRY_WAIT)


def _error_from_response(response: httpx.Response, path: str) -> HubSpotApiError:
    text = response.text
    try:
        parsed = response.json()
    except ValueError:
        parsed = {}
    if not isinstance(parsed, dict):
        parsed = {}

    category = parsed.get("category") or status_to_category(response.status_code)
    message = parsed.get("message") or text or response.reason_phrase
    return HubSpotApiError(
        response.status_code,
        category,
        message,
        get_suggestion(response.status_code, path),
    )


class HubSpotClient:
    """Authenticated async access to the HubSpot REST API.

    Rate-limited requests (HTTP 429) are retried a bounded number of times,
    honouring ``Retry-After`` when present. Every other failure surfaces as a
    HubSpotApiError.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = config.HUBSPOT_BASE_URL,
        timeout: float = config.HUBSPOT_TIMEOUT,
        max_retries: int = config.HUBSPOT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            access_token: Private app access token
            base_url: API root, without a trailing slash
            timeout: HTTP request timeout in seconds
            max_retries: How many times a 429 is retried before giving up
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    @classmethod
    def from_env(cls) -> HubSpotClient:
        """Build a client from HUBSPOT_* environment variables."""
        return cls(config.get_access_token())

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        path: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """Make an authenticated request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        ) as client:
            attempt = 0
            while True:
                try:
                    response = await client.request(
                        method,
                        url,
                        params=query,
                        json=body,
                    )
                except httpx.RequestError as e:
                    raise HubSpotApiError(
                        0,
                        "NETWORK_ERROR",
                        f"Failed to reach {self.base_url}: {e}",
                    ) from e

                if response.status_code != 429 or attempt >= self.max_retries:
                    break

                wait = _retry_wait(response, attempt)
                logger.warning(
                    "rate limited on %s %s, retrying in %.1fs (attempt %d/%d)",
                    method, path, wait, attempt + 1, self.max_retries,
                )
                await asyncio.sleep(wait)
                attempt += 1

        if response.is_error:
            raise _error_from_response(response, path)

        # some endpoints return 204 No Content
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Convenience for GET requests."""
        return await self.request(path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        """Convenience for POST requests."""
        return await self.request(path, method="POST", body=body)

    async def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        results_key: str = "results",
    ) -> AsyncIterator[list[dict]]:
        """Yield each page's results, following ``paging.next.after``."""
        page_params = dict(params or {})
        while True:
            data = await self.get(path, page_params) or {}
            yield data.get(results_key) or []
            after = next_cursor(data)
            if not after:
                break
            page_params["after"] = after

    async def search_all(
        self,
        object_type: str,
        body: dict,
        max_results: int | None = None,
    ) -> tuple[list[dict], int, bool]:
        """Page through a CRM search.

        Returns ``(results, pages, hit_limit)``. ``hit_limit`` is True when
        ``max_results`` was reached while more pages remained.
        """
        results: list[dict] = []
        pages = 0
        page_body = dict(body)
        while True:
            data = await self.post(f"/crm/v3/objects/{object_type}/search", page_body) or {}
            results.extend(data.get("results") or [])
            pages += 1
            after = next_cursor(data)
            if not after:
                return results, pages, False
            if max_results is not None and len(results) >= max_results:
                return results, pages, True
            page_body["after"] = after


def next_cursor(data: dict) -> str | None:
    """the ``after`` cursor of a paged response, if there is another page."""
    paging = data.get("paging") or {}
    return (paging.get("next") or {}).get("after")
