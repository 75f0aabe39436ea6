"""Page view history from the ``hs_analytics_last_url`` property history."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

PAGE_VIEW_PROPERTY = "hs_analytics_last_url"
LAST_VISIT_PROPERTY = "hs_analytics_last_visit_timestamp"


@dataclass
class PageView:
    url: str
    timestamp: str


@dataclass
class PageViewHistory:
    """Recent page views for one contact."""

    contact_id: str
    total_history_entries: int
    recent_page_views: list[PageView] = field(default_factory=list)
    email: str | None = None
    name: str | None = None

    @property
    def summary(self) -> str:
        return " → ".join(view.url for view in self.recent_page_views)

    def to_dict(self) -> dict:
        data = {
            "contactId": self.contact_id,
            "totalHistoryEntries": self.total_history_entries,
            "recentPageViews": [{"url": v.url, "timestamp": v.timestamp} for v in self.recent_page_views],
            "summary": self.summary,
        }
        if self.email is not None or self.name is not None:
            data["email"] = self.email
            data["name"] = self.name
        return data


def _parse_timestamp(ts: str) -> datetime:
    """Parse ISO8601 timestamp."""
    parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def cutoff_for(days_back: int, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) - timedelta(days=days_back)


def url_history(contact: dict) -> list[dict]:
    """The raw timestamped history entries from a contact payload."""
    history = contact.get("propertiesWithHistory") or {}
    return history.get(PAGE_VIEW_PROPERTY) or []


def page_view_history(
    contact_id: str,
    contact: dict,
    days_back: int = 3,
    now: datetime | None = None,
) -> PageViewHistory:
    """Keep the history entries at or after ``days_back`` days before ``now``."""
    entries = url_history(contact)
    cutoff = cutoff_for(days_back, now)
    recent = [
        PageView(url=entry.get("value", ""), timestamp=entry["timestamp"])
        for entry in entries
        if entry.get("timestamp") and _parse_timestamp(entry["timestamp"]) >= cutoff
    ]
    return PageViewHistory(
        contact_id=contact_id,
        total_history_entries=len(entries),
        recent_page_views=recent,
    )


def recent_visitors_search(days_back: int, limit: int) -> dict:
    """Search body for contacts whose last visit is inside the window."""
    cutoff_ms = int(cutoff_for(days_back).timestamp() * 1000)
    return {
        "filterGroups": [{
            "filters": [{
                "propertyName": LAST_VISIT_PROPERTY,
                "operator": "GTE",
                "value": str(cutoff_ms),
            }],
        }],
        "properties": ["email", "firstname", "lastname", PAGE_VIEW_PROPERTY],
        "limit": limit,
    }
