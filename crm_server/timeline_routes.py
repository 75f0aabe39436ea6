"""API routes for contact activity timelines and engagement search."""

import asyncio
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from crm_backbone.analysis.page_views import PAGE_VIEW_PROPERTY
from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient
from crm_server.deps import get_client
from crm_server.search_routes import SearchFilter, SearchSort, build_search_body

logger = logging.getLogger(__name__)

router = APIRouter()

EngagementType = Literal["calls", "emails", "meetings", "notes", "tasks"]
ENGAGEMENT_TYPES: list[str] = ["calls", "emails", "meetings", "notes", "tasks"]

# records fetched per engagement type for a contact timeline
ENGAGEMENTS_PER_TYPE = 10

ENGAGEMENT_PROPERTIES = [
    "hs_timestamp",
    "hs_createdate",
    "hs_body_preview",
    "hs_call_title",
    "hs_call_duration",
    "hs_email_subject",
    "hs_meeting_title",
    "hs_note_body",
    "hs_task_subject",
    "hs_task_status",
]


class EngagementSearchRequest(BaseModel):
    """Request body for engagement search."""

    filters: list[SearchFilter] = []
    properties: list[str] | None = None
    sorts: list[SearchSort] | None = None
    limit: int = 10
    after: str | None = None


async def _page_views(client: HubSpotClient, contact_id: str) -> list[dict]:
    contact = await client.get(
        f"/crm/v3/objects/contacts/{contact_id}",
        {"propertiesWithHistory": PAGE_VIEW_PROPERTY},
    ) or {}
    return (contact.get("propertiesWithHistory") or {}).get(PAGE_VIEW_PROPERTY) or []


async def _engagements_of_type(client: HubSpotClient, contact_id: str, engagement_type: str) -> dict | None:
    """Recent engagements of one type, or None when the type can't be read."""
    try:
        associated = await client.get(
            f"/crm/v4/objects/contacts/{contact_id}/associations/{engagement_type}"
        ) or {}
        links = associated.get("results") or []
        if not links:
            return None
        ids = [str(link["toObjectId"]) for link in links[:ENGAGEMENTS_PER_TYPE]]
        records = await client.post(
            f"/crm/v3/objects/{engagement_type}/batch/read",
            {"inputs": [{"id": i} for i in ids], "properties": ENGAGEMENT_PROPERTIES},
        ) or {}
    except HubSpotApiError as e:
        # missing scopes on one engagement type should not sink the timeline
        logger.warning("skipping %s for contact %s: %s", engagement_type, contact_id, e.message)
        return None
    return {"type": engagement_type, "records": records.get("results") or []}


async def _engagements(client: HubSpotClient, contact_id: str) -> list[dict]:
    found = await asyncio.gather(
        *(_engagements_of_type(client, contact_id, t) for t in ENGAGEMENT_TYPES)
    )
    return [group for group in found if group is not None]


@router.get("/contacts/{contact_id}/activity")
async def get_contact_activity(
    contact_id: str,
    include_page_views: bool = True,
    include_engagements: bool = True,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Page view history and associated engagements for a contact, fetched in parallel."""
    result: dict = {"contactId": contact_id}

    keys = []
    tasks = []
    if include_page_views:
        keys.append("pageViews")
        tasks.append(_page_views(client, contact_id))
    if include_engagements:
        keys.append("engagements")
        tasks.append(_engagements(client, contact_id))

    for key, value in zip(keys, await asyncio.gather(*tasks)):
        result[key] = value
    return result


@router.post("/engagements/{engagement_type}/search")
async def search_engagements(
    engagement_type: EngagementType,
    request: EngagementSearchRequest,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    filters = [f.model_dump(exclude_none=True) for f in request.filters]
    body = build_search_body(filters, request.sorts, request.properties, request.limit, request.after)
    return await client.post(f"/crm/v3/objects/{engagement_type}/search", body)
