"""Sales sequence email effectiveness analysis.

Collects outbound sequence emails and inbound replies since ANALYSIS_START,
resolves owner and sequence names, then writes a JSON dump and a Markdown
report.

Usage:
    python -m crm_backbone.scripts.sequence_effectiveness --team sales-team.csv
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from crm_backbone.analysis.sequence_metrics import (
    ANALYSIS_START,
    INBOUND_PROPERTIES,
    MAX_SPLIT_DEPTH,
    OUTBOUND_PROPERTIES,
    SEARCH_RESULT_CAP,
    Owner,
    SequenceMetrics,
    TimeWindow,
    compute_metrics,
    generate_report,
    inbound_filters,
    load_sales_team,
    monthly_windows,
    outbound_filters,
    owner_from_api,
)
from crm_backbone.config import ConfigurationError, setup_logging
from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100


async def fetch_owners(client: HubSpotClient) -> dict[str, Owner]:
    owners = {}
    async for page in client.paginate("/crm/v3/owners", {"limit": 100}):
        for raw in page:
            owners[str(raw["id"])] = owner_from_api(raw)
    logger.info("found %d owners", len(owners))
    return owners


async def collect_window(
    client: HubSpotClient,
    window: TimeWindow,
    make_filters: Callable[[TimeWindow], list[dict]],
    properties: list[str],
    depth: int = 0,
) -> tuple[list[dict], int]:
    """Search one window, halving it while the search result cap is hit."""
    body = {
        "filterGroups": make_filters(window),
        "properties": properties,
        "limit": SEARCH_PAGE_SIZE,
    }
    results, pages, hit_limit = await client.search_all("emails", body, max_results=SEARCH_RESULT_CAP)
    if not hit_limit or depth >= MAX_SPLIT_DEPTH:
        return results, pages

    # the searched window is discarded; its halves are searched in full
    collected: list[dict] = []
    total_pages = pages
    for half in window.split():
        half_results, half_pages = await collect_window(
            client, half, make_filters, properties, depth + 1
        )
        collected.extend(half_results)
        total_pages += half_pages
    return collected, total_pages


async def collect_emails(
    client: HubSpotClient,
    make_filters: Callable[[TimeWindow], list[dict]],
    properties: list[str],
    kind: str,
    start: datetime = ANALYSIS_START,
) -> list[dict]:
    emails: list[dict] = []
    total_pages = 0
    for window in monthly_windows(start, datetime.now(timezone.utc)):
        results, pages = await collect_window(client, window, make_filters, properties)
        logger.info("%s: %d %s (%d pages)", window.label, len(results), kind, pages)
        emails.extend(results)
        total_pages += pages
    logger.info("total: %d %s (%d API calls)", len(emails), kind, total_pages)
    return emails


async def fetch_sequence_names(
    client: HubSpotClient,
    sequence_ids: list[str],
    owners: dict[str, Owner],
) -> dict[str, str]:
    """Look up sequence names; the sequences API is scoped to one user at a time."""
    wanted = set(sequence_ids)
    names: dict[str, str] = {}
    user_ids = list(dict.fromkeys(o.user_id for o in owners.values() if o.user_id))
    logger.info("querying sequences for %d users", len(user_ids))

    for user_id in user_ids:
        if len(names) >= len(wanted):
            break
        try:
            async for page in client.paginate(
                "/automation/v4/sequences", {"limit": 100, "userId": user_id}
            ):
                for sequence in page:
                    seq_id = str(sequence.get("id"))
                    if seq_id in wanted and seq_id not in names:
                        names[seq_id] = sequence.get("name") or f"Sequence {seq_id}"
        except HubSpotApiError as e:
            logger.warning("skipping sequences for user %s: %s", user_id, e.message)

    resolved = len(names)
    for seq_id in sequence_ids:
        names.setdefault(seq_id, f"Sequence {seq_id}")
    logger.info("resolved %d/%d sequence names", resolved, len(sequence_ids))
    return names


async def run_analysis(client: HubSpotClient, team_path: Path | None) -> SequenceMetrics:
    owners = await fetch_owners(client)
    team = load_sales_team(team_path) if team_path and team_path.exists() else {}
    if team_path and not team:
        logger.warning("no sales team roster at %s; roles will be Unknown", team_path)

    outbound = await collect_emails(client, outbound_filters, OUTBOUND_PROPERTIES, "emails")
    inbound = await collect_emails(client, inbound_filters, INBOUND_PROPERTIES, "replies")

    sequence_ids = list(dict.fromkeys(
        e["properties"]["hs_sequence_id"]
        for e in outbound
        if (e.get("properties") or {}).get("hs_sequence_id")
    ))
    names = await fetch_sequence_names(client, sequence_ids, owners)

    metrics = compute_metrics(outbound, inbound, owners, team, names)
    logger.info(
        "%d emails, %d opens (%.1f%%), %d replies (%.1f%%)",
        metrics.total_sent,
        metrics.total_opens,
        metrics.open_rate * 100,
        metrics.total_replies,
        metrics.reply_rate * 100,
    )
    return metrics


def metrics_to_dict(metrics: SequenceMetrics) -> dict:
    data = asdict(metrics)
    data["open_rate"] = metrics.open_rate
    data["reply_rate"] = metrics.reply_rate
    return data


def main():
    parser = argparse.ArgumentParser(
        description="Analyze sequence email open and reply rates and write a report."
    )
    parser.add_argument(
        "--team",
        type=Path,
        default=Path("sales-team.csv"),
        help="CSV roster with email,name,role columns (default sales-team.csv)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="where to write the JSON data and Markdown report",
    )
    args = parser.parse_args()
    setup_logging()

    started = time.monotonic()
    try:
        client = HubSpotClient.from_env()
        metrics = asyncio.run(run_analysis(client, args.team))
    except (ConfigurationError, HubSpotApiError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    json_path = args.output_dir / "sequence-effectiveness-data.json"
    report_path = args.output_dir / "sequence-effectiveness-report.md"
    json_path.write_text(json.dumps(metrics_to_dict(metrics), indent=2))
    report_path.write_text(generate_report(metrics))

    print(f"JSON:   {json_path}")
    print(f"Report: {report_path}")
    print(f"Done in {time.monotonic() - started:.1f}s")


if __name__ == "__main__":
    main()
