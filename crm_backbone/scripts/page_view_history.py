"""Print recent page view history for a contact, or for recent visitors.

Usage:
    python -m crm_backbone.scripts.page_view_history 12345 --days 7
    python -m crm_backbone.scripts.page_view_history          # recent visitors
"""

import argparse
import asyncio
import json
import logging
import sys

from crm_backbone.analysis.page_views import (
    PAGE_VIEW_PROPERTY,
    PageViewHistory,
    page_view_history,
    recent_visitors_search,
)
from crm_backbone.config import ConfigurationError, setup_logging
from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient

logger = logging.getLogger(__name__)


async def fetch_history(client: HubSpotClient, contact_id: str, days_back: int) -> PageViewHistory:
    contact = await client.get(
        f"/crm/v3/objects/contacts/{contact_id}",
        {"propertiesWithHistory": PAGE_VIEW_PROPERTY},
    ) or {}
    return page_view_history(contact_id, contact, days_back)


async def recent_visitors(client: HubSpotClient, days_back: int, limit: int) -> list[PageViewHistory]:
    """History for each contact whose last visit falls inside the window."""
    data = await client.post(
        "/crm/v3/objects/contacts/search",
        recent_visitors_search(days_back, limit),
    ) or {}
    contacts = data.get("results") or []

    histories = await asyncio.gather(
        *(fetch_history(client, contact["id"], days_back) for contact in contacts)
    )
    for contact, history in zip(contacts, histories):
        props = contact.get("properties") or {}
        history.email = props.get("email")
        history.name = f"{props.get('firstname') or ''} {props.get('lastname') or ''}".strip()
    return list(histories)


def main():
    parser = argparse.ArgumentParser(
        description="Show a contact's recent page views from hs_analytics_last_url history."
    )
    parser.add_argument(
        "contact_id",
        nargs="?",
        help="contact id; omit to search contacts with a recent visit",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=3,
        help="how many days back to include (default 3)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=5,
        help="contacts to report when searching (default 5)",
    )
    args = parser.parse_args()
    setup_logging()

    try:
        client = HubSpotClient.from_env()
        if args.contact_id:
            logger.info("fetching page view history for contact %s (last %d days)", args.contact_id, args.days)
            result = asyncio.run(fetch_history(client, args.contact_id, args.days)).to_dict()
        else:
            logger.info("searching contacts with activity in the last %d days", args.days)
            histories = asyncio.run(recent_visitors(client, args.days, args.limit))
            result = [history.to_dict() for history in histories]
    except (ConfigurationError, HubSpotApiError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
