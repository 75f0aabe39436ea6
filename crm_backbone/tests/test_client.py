"""Tests for the HubSpot API client."""

import asyncio
import json

import httpx
import pytest

from crm_backbone.config import ConfigurationError
from crm_backbone.sdk.client import (
    HubSpotApiError,
    HubSpotClient,
    get_suggestion,
    status_to_category,
)


def _client(handler, max_retries: int = 3) -> HubSpotClient:
    return HubSpotClient(
        "test-token",
        base_url="https://api.test",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Test request construction and response decoding."""

    def test_sends_bearer_token_and_drops_none_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"ok": True})

        client = _client(handler)
        data = asyncio.run(client.get("/crm/v3/owners", {"limit": 100, "after": None}))

        assert data == {"ok": True}
        assert seen["auth"] == "Bearer test-token"
        assert seen["params"] == {"limit": "100"}

    def test_post_sends_json_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"results": []})

        asyncio.run(_client(handler).post("/crm/v3/lists/search", {"count": 20}))
        assert seen == {"method": "POST", "body": {"count": 20}}

    def test_no_content_returns_none(self):
        client = _client(lambda request: httpx.Response(204))
        assert asyncio.run(client.get("/anything")) is None


class TestErrors:
    """Test error categorisation."""

    @pytest.mark.parametrize("status,category", [
        (400, "VALIDATION_ERROR"),
        (401, "AUTHENTICATION_ERROR"),
        (403, "PERMISSION_DENIED"),
        (404, "OBJECT_NOT_FOUND"),
        (409, "CONFLICT"),
        (429, "RATE_LIMIT"),
        (500, "SERVER_ERROR"),
        (503, "SERVER_ERROR"),
        (418, "CLIENT_ERROR"),
    ])
    def test_status_to_category(self, status, category):
        assert status_to_category(status) == category

    def test_forbidden_suggestion_depends_on_path(self):
        assert "Sales Hub" in get_suggestion(403, "/automation/v4/sequences")
        assert "Marketing Hub" in get_suggestion(403, "/analytics/v2/reports/sources/daily")
        assert "automation" in get_suggestion(403, "/automation/v4/flows")
        assert get_suggestion(500, "/crm/v3/objects/contacts") is None

    def test_error_body_category_wins(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"category": "INVALID_FILTER", "message": "bad filter"})

        with pytest.raises(HubSpotApiError) as exc_info:
            asyncio.run(_client(handler).post("/crm/v3/objects/deals/search", {}))

        error = exc_info.value
        assert error.status == 400
        assert error.category == "INVALID_FILTER"
        assert error.message == "bad filter"

    def test_not_found_has_suggestion(self):
        client = _client(lambda request: httpx.Response(404, text="not here"))
        with pytest.raises(HubSpotApiError) as exc_info:
            asyncio.run(client.get("/crm/v3/objects/deals/1"))

        data = exc_info.value.to_dict()
        assert data["status"] == 404
        assert data["category"] == "OBJECT_NOT_FOUND"
        assert data["message"] == "not here"
        assert "suggestion" in data

    def test_transport_failure_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(HubSpotApiError) as exc_info:
            asyncio.run(_client(handler).get("/crm/v3/owners"))

        assert exc_info.value.status == 0
        assert exc_info.value.category == "NETWORK_ERROR"


class TestRateLimit:
    """Test 429 retry behavior."""

    def test_retries_after_rate_limit(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"results": [1]})

        data = asyncio.run(_client(handler).get("/crm/v3/owners"))
        assert data == {"results": [1]}
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "0"})

        with pytest.raises(HubSpotApiError) as exc_info:
            asyncio.run(_client(handler, max_retries=2).get("/crm/v3/owners"))

        assert exc_info.value.category == "RATE_LIMIT"
        assert len(calls) == 3


class TestPagination:
    """Test cursor-following helpers."""

    def test_paginate_follows_cursor(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("after") == "2":
                return httpx.Response(200, json={"results": [{"id": "b"}]})
            return httpx.Response(200, json={"results": [{"id": "a"}], "paging": {"next": {"after": "2"}}})

        async def collect():
            pages = []
            async for page in _client(handler).paginate("/crm/v3/owners", {"limit": 1}):
                pages.append(page)
            return pages

        assert asyncio.run(collect()) == [[{"id": "a"}], [{"id": "b"}]]

    def test_search_all_stops_at_max_results(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            after = int(body.get("after", 0))
            return httpx.Response(200, json={
                "results": [{"id": str(after)}, {"id": str(after + 1)}],
                "paging": {"next": {"after": str(after + 2)}},
            })

        results, pages, hit_limit = asyncio.run(
            _client(handler).search_all("emails", {"limit": 2}, max_results=4)
        )
        assert hit_limit
        assert pages == 2
        assert [r["id"] for r in results] == ["0", "1", "2", "3"]


class TestConfiguration:
    """Test environment configuration."""

    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("HUBSPOT_ACCESS_TOKEN", raising=False)
        with pytest.raises(ConfigurationError):
            HubSpotClient.from_env()

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "env-token")
        assert HubSpotClient.from_env().access_token == "env-token"
