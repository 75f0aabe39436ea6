"""Shared fixtures for backbone and server tests."""

import asyncio

import pytest

from crm_backbone.sdk.client import HubSpotApiError, next_cursor


class FakeClient:
    """Async stand-in for HubSpotClient that answers from a route table.

    Routes map ``(method, path)`` to a response, an exception, or a callable
    taking the params/body. Each call yields to the event loop once, like a
    real request would.
    """

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls: list[tuple] = []

    async def _respond(self, method: str, path: str, payload):
        self.calls.append((method, path, payload))
        await asyncio.sleep(0)
        response = self.routes.get((method, path))
        if callable(response):
            response = response(payload)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise HubSpotApiError(404, "OBJECT_NOT_FOUND", f"no route for {method} {path}")
        return response

    async def get(self, path, params=None):
        return await self._respond("GET", path, params)

    async def post(self, path, body=None):
        return await self._respond("POST", path, body)

    async def paginate(self, path, params=None, results_key="results"):
        page_params = dict(params or {})
        while True:
            data = await self.get(path, dict(page_params)) or {}
            yield data.get(results_key) or []
            after = next_cursor(data)
            if not after:
                break
            page_params["after"] = after

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if (m, p) == (method, path))

    def last(self, method: str, path: str):
        """payload of the most recent matching call."""
        return [payload for m, p, payload in self.calls if (m, p) == (method, path)][-1]


@pytest.fixture
def fake_client():
    """Factory for FakeClient instances."""
    return FakeClient
