"""API routes for marketing emails, marketing events and web analytics."""

from typing import Literal

from fastapi import APIRouter, Depends

from crm_backbone.sdk.client import HubSpotClient
from crm_server.deps import get_client

router = APIRouter()

AnalyticsBreakdown = Literal[
    "sources",
    "geolocation",
    "utm-campaigns",
    "utm-contents",
    "utm-mediums",
    "utm-sources",
    "utm-terms",
    "totals",
]

AnalyticsPeriod = Literal["daily", "weekly", "monthly"]


@router.get("/email-campaigns")
async def list_email_campaigns(
    limit: int = 20,
    offset: int | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    return await client.get("/email/public/v1/campaigns", {"limit": limit, "offset": offset})


@router.get("/email-campaigns/{campaign_id}")
async def get_email_campaign(
    campaign_id: str,
    include_events: bool = False,
    event_type: str | None = None,
    event_limit: int = 50,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Campaign details, optionally with its recipient events (one event type at a time)."""
    campaign = await client.get(f"/email/public/v1/campaigns/{campaign_id}")
    if not include_events:
        return campaign

    events = await client.get(
        "/email/public/v1/events",
        {"campaignId": campaign_id, "limit": event_limit, "eventType": event_type},
    )
    return {"campaign": campaign, "events": events}


@router.get("/marketing-events")
async def list_marketing_events(
    query: str | None = None,
    limit: int = 20,
    after: str | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """List marketing events; ``query`` filters the returned page by event name."""
    data = await client.get("/marketing/v3/marketing-events", {"limit": limit, "after": after}) or {}
    if query and data.get("results"):
        needle = query.lower()
        data["results"] = [
            event for event in data["results"]
            if needle in _event_name(event).lower()
        ]
    return data


def _event_name(event: dict) -> str:
    props = event.get("properties") or {}
    return props.get("hs_event_name") or event.get("eventName") or ""


@router.get("/analytics/{breakdown}/{period}")
async def get_analytics(
    breakdown: AnalyticsBreakdown,
    period: AnalyticsPeriod,
    summarize: bool = False,
    start: str | None = None,
    end: str | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Web analytics by dimension; ``summarize`` returns totals instead of a series.

    ``start`` and ``end`` are YYYYMMDD dates.
    """
    time_period = f"summarize/{period}" if summarize else period
    return await client.get(
        f"/analytics/v2/reports/{breakdown}/{time_period}",
        {"start": start, "end": end},
    )
