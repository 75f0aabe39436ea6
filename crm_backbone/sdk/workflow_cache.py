"""Lazy-loading cache for HubSpot v4 workflows with fuzzy name search."""

from __future__ import annotations

from crm_backbone.models.workflow import WorkflowFlow
from crm_backbone.sdk.client import HubSpotClient, next_cursor
from crm_backbone.sdk.entity_cache import DEFAULT_CATEGORY, EntityCache
from crm_backbone.utils.fuzzy import fuzzy_match

FLOWS_PATH = "/automation/v4/flows"
LIST_PAGE_SIZE = 500


class WorkflowCache(EntityCache[WorkflowFlow]):
    """All flows in the portal, with action graphs merged in from batch reads.

    The list endpoint may return summaries without actions; in that case the
    full records are batch-read in chunks and merged by flow id.
    """

    def __init__(self, client: HubSpotClient) -> None:
        super().__init__()
        self.client = client

    async def fetch_page(self, category: str, after: str | None) -> tuple[list[dict], str | None]:
        data = await self.client.get(FLOWS_PATH, {"limit": LIST_PAGE_SIZE, "after": after}) or {}
        flows = data.get("flows") or data.get("results") or []
        return flows, next_cursor(data)

    def needs_detail(self, summaries: list[dict]) -> bool:
        return any(not s.get("actions") for s in summaries)

    async def fetch_details(self, ids: list[str]) -> list[dict]:
        data = await self.client.post(
            f"{FLOWS_PATH}/batch/read",
            {"inputs": [{"id": flow_id} for flow_id in ids]},
        ) or {}
        return data.get("results") or []

    async def fetch_one(self, entity_id: str, category: str) -> dict:
        return await self.client.get(f"{FLOWS_PATH}/{entity_id}")

    def build(self, raw: dict) -> WorkflowFlow:
        return WorkflowFlow.model_validate(raw)

    async def search_by_name(self, query: str) -> list[WorkflowFlow]:
        """Fuzzy search workflows by name, best match first."""
        flows = await self.get_all(DEFAULT_CATEGORY)
        return [m.item for m in fuzzy_match(query, flows, lambda w: w.name or "")]
