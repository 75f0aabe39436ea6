"""Webinar registrant analysis: new acquisitions vs existing contacts.

Finds the registrant list by name, reads every member contact and splits
them by creation date.

Usage:
    python -m crm_backbone.scripts.webinar_analysis webinar "deep dive" --prefer "dives|real.time"
"""

import argparse
import asyncio
import json
import logging
import sys

from crm_backbone.analysis.webinar import (
    CONTACT_PROPERTIES,
    NEW_CONTACT_DAYS,
    AcquisitionSplit,
    classify_registrants,
    format_summary,
    member_ids,
    pick_list,
    unique_lists,
)
from crm_backbone.config import ConfigurationError, setup_logging
from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient

logger = logging.getLogger(__name__)

MEMBERSHIP_PAGE_SIZE = 250
BATCH_READ_SIZE = 100


async def search_lists(client: HubSpotClient, queries: list[str]) -> list[dict]:
    pages = []
    for query in queries:
        data = await client.post("/crm/v3/lists/search", {"query": query, "count": 20}) or {}
        pages.append(data.get("lists") or [])
    return unique_lists(*pages)


async def list_member_ids(client: HubSpotClient, list_id: str) -> list[str]:
    ids: list[str] = []
    async for page in client.paginate(
        f"/crm/v3/lists/{list_id}/memberships",
        {"limit": MEMBERSHIP_PAGE_SIZE},
    ):
        ids.extend(member_ids(page))
    return ids


async def read_contacts(client: HubSpotClient, ids: list[str]) -> list[dict]:
    """Batch-read contacts in chunks of BATCH_READ_SIZE."""
    chunks = [ids[i:i + BATCH_READ_SIZE] for i in range(0, len(ids), BATCH_READ_SIZE)]
    responses = await asyncio.gather(*(
        client.post(
            "/crm/v3/objects/contacts/batch/read",
            {"inputs": [{"id": contact_id} for contact_id in chunk], "properties": CONTACT_PROPERTIES},
        )
        for chunk in chunks
    ))
    contacts = []
    for data in responses:
        contacts.extend((data or {}).get("results") or [])
    return contacts


async def list_marketing_events(client: HubSpotClient) -> list[dict]:
    data = await client.get("/marketing/v3/marketing-events", {"limit": 50}) or {}
    return data.get("results") or []


async def run_analysis(
    client: HubSpotClient,
    queries: list[str],
    prefer: str | None,
    days: int,
) -> tuple[dict | None, AcquisitionSplit | None]:
    """Find the registrant list and classify its members.

    Returns ``(None, None)`` when no list matches any query.
    """
    lists = await search_lists(client, queries)
    for item in lists:
        logger.info("  %s: %s (%s, size: %s)", item.get("listId"), item.get("name"),
                    item.get("processingType"), item.get("size"))

    target = pick_list(lists, prefer)
    if target is None:
        return None, None

    logger.info("using list %r (ID: %s)", target.get("name"), target.get("listId"))
    ids = await list_member_ids(client, str(target["listId"]))
    logger.info("found %d members", len(ids))
    contacts = await read_contacts(client, ids)
    logger.info("fetched %d contacts", len(contacts))
    return target, classify_registrants(contacts, days)


def main():
    parser = argparse.ArgumentParser(
        description="Split webinar registrants into new acquisitions and existing contacts."
    )
    parser.add_argument(
        "queries",
        nargs="*",
        default=["webinar"],
        help="list name searches (default: webinar)",
    )
    parser.add_argument(
        "--prefer",
        help="regex; the first list whose name matches is analysed instead of the first found",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=NEW_CONTACT_DAYS,
        help=f"contacts created within this many days are new (default {NEW_CONTACT_DAYS})",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="print JSON instead of a text summary",
    )
    args = parser.parse_args()
    setup_logging()

    try:
        client = HubSpotClient.from_env()
        target, split = asyncio.run(run_analysis(client, args.queries, args.prefer, args.days))
        if target is None:
            print("No lists found. Marketing events:")
            for event in asyncio.run(list_marketing_events(client)):
                print(f"  Event: {event.get('eventName') or event.get('id')} (id: {event.get('id')})")
            return
    except (ConfigurationError, HubSpotApiError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps({"list": target, **split.to_dict()}, indent=2))
    else:
        print(format_summary(split, target.get("name")))


if __name__ == "__main__":
    main()
