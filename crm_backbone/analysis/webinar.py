"""Webinar registrant analysis: new acquisitions vs existing contacts.

Registrants are the members of a list. A registrant created within
NEW_CONTACT_DAYS of the analysis date counts as a new acquisition,
everyone else as an existing contact.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

NEW_CONTACT_DAYS = 30
TOP_CREATION_DATES = 10
SAMPLE_SIZE = 10

CONTACT_PROPERTIES = [
    "createdate",
    "firstname",
    "lastname",
    "email",
    "company",
    "hs_analytics_source",
    "hs_analytics_first_url",
    "lifecyclestage",
]


def unique_lists(*pages: list[dict]) -> list[dict]:
    """Merge list search results, first occurrence of each listId wins."""
    seen = set()
    merged = []
    for page in pages:
        for item in page:
            list_id = item.get("listId")
            if list_id in seen:
                continue
            seen.add(list_id)
            merged.append(item)
    return merged


def pick_list(lists: list[dict], prefer: str | None = None) -> dict | None:
    """First list whose name matches ``prefer`` (a regex), else the first list."""
    if not lists:
        return None
    if prefer:
        pattern = re.compile(prefer, re.IGNORECASE)
        for item in lists:
            if pattern.search(item.get("name") or ""):
                return item
    return lists[0]


def member_ids(memberships: list) -> list[str]:
    """Record ids from a memberships page; entries may be bare ids."""
    return [
        str(m.get("recordId")) if isinstance(m, dict) else str(m)
        for m in memberships
    ]


def _created_at(contact: dict) -> datetime | None:
    value = (contact.get("properties") or {}).get("createdate")
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _breakdown(contacts: list[dict], prop: str, missing: str) -> list[tuple[str, int]]:
    counts = Counter((c.get("properties") or {}).get(prop) or missing for c in contacts)
    return counts.most_common()


@dataclass
class AcquisitionSplit:
    """Registrants split by creation date, with source and lifecycle breakdowns."""

    cutoff: datetime
    new_contacts: list[dict] = field(default_factory=list)
    existing_contacts: list[dict] = field(default_factory=list)
    creation_dates: list[tuple[str, int]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.new_contacts) + len(self.existing_contacts)

    @property
    def new_share(self) -> float:
        return len(self.new_contacts) / self.total if self.total else 0.0

    @property
    def existing_share(self) -> float:
        return len(self.existing_contacts) / self.total if self.total else 0.0

    def sources(self, new: bool) -> list[tuple[str, int]]:
        return _breakdown(self.new_contacts if new else self.existing_contacts, "hs_analytics_source", "UNKNOWN")

    def stages(self, new: bool) -> list[tuple[str, int]]:
        return _breakdown(self.new_contacts if new else self.existing_contacts, "lifecyclestage", "unknown")

    def to_dict(self) -> dict:
        return {
            "cutoff": self.cutoff.isoformat(),
            "total": self.total,
            "new": len(self.new_contacts),
            "existing": len(self.existing_contacts),
            "newShare": self.new_share,
            "existingShare": self.existing_share,
            "topCreationDates": dict(self.creation_dates),
            "newSources": dict(self.sources(new=True)),
            "existingSources": dict(self.sources(new=False)),
            "newLifecycleStages": dict(self.stages(new=True)),
            "existingLifecycleStages": dict(self.stages(new=False)),
            "sampleNewContacts": [c.get("properties") or {} for c in self.new_contacts[:SAMPLE_SIZE]],
        }


def classify_registrants(
    contacts: list[dict],
    days: int = NEW_CONTACT_DAYS,
    now: datetime | None = None,
) -> AcquisitionSplit:
    """Split contacts at ``days`` before ``now``.

    Contacts without a readable createdate count as existing.
    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    split = AcquisitionSplit(cutoff=cutoff)

    dates: Counter = Counter()
    for contact in contacts:
        created = _created_at(contact)
        if created is not None:
            dates[created.date().isoformat()] += 1
        if created is not None and created >= cutoff:
            split.new_contacts.append(contact)
        else:
            split.existing_contacts.append(contact)

    split.creation_dates = dates.most_common(TOP_CREATION_DATES)
    return split


def format_summary(split: AcquisitionSplit, list_name: str | None = None) -> str:
    """Plain-text acquisition summary."""
    lines = []
    if list_name:
        lines.append(f"List: {list_name}")
    lines.append("Top contact creation dates:")
    lines.extend(f"  {date}: {count} contacts" for date, count in split.creation_dates)

    lines.append("")
    lines.append("=== ACQUISITION ANALYSIS ===")
    lines.append(f"Total registrants: {split.total}")
    lines.append(f"New contacts (created since {split.cutoff.date()}): "
                 f"{len(split.new_contacts)} ({split.new_share * 100:.1f}%)")
    lines.append(f"Existing contacts: {len(split.existing_contacts)} ({split.existing_share * 100:.1f}%)")

    for title, rows in (
        ("New contact sources", split.sources(new=True)),
        ("Existing contact sources", split.sources(new=False)),
        ("Lifecycle stages (new contacts)", split.stages(new=True)),
        ("Lifecycle stages (existing contacts)", split.stages(new=False)),
    ):
        lines.append("")
        lines.append(f"{title}:")
        lines.extend(f"  {name}: {count}" for name, count in rows)

    lines.append("")
    lines.append("Sample new contacts:")
    for contact in split.new_contacts[:SAMPLE_SIZE]:
        p = contact.get("properties") or {}
        name = f"{p.get('firstname') or ''} {p.get('lastname') or ''}".strip()
        created = (p.get("createdate") or "").split("T")[0]
        lines.append(
            f"  {name} <{p.get('email') or 'no email'}> | {p.get('company') or 'no company'}"
            f" | created {created} | source: {p.get('hs_analytics_source') or '?'}"
        )
    return "\n".join(lines)
