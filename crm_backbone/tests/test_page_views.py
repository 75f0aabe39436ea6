"""Tests for page view history filtering."""

from datetime import datetime, timedelta, timezone

from crm_backbone.analysis.page_views import page_view_history, recent_visitors_search

UTC = timezone.utc


class TestPageViews:
    """Test page view history filtering."""

    def test_keeps_recent_entries(self):
        now = datetime(2025, 8, 10, 12, 0, tzinfo=UTC)
        contact = {
            "propertiesWithHistory": {
                "hs_analytics_last_url": [
                    {"value": "https://x.com/pricing", "timestamp": (now - timedelta(days=1)).isoformat()},
                    {"value": "https://x.com/", "timestamp": (now - timedelta(days=2)).isoformat()},
                    {"value": "https://x.com/old", "timestamp": (now - timedelta(days=9)).isoformat()},
                ],
            },
        }
        history = page_view_history("42", contact, days_back=3, now=now)

        assert history.total_history_entries == 3
        assert [v.url for v in history.recent_page_views] == ["https://x.com/pricing", "https://x.com/"]
        assert history.summary == "https://x.com/pricing → https://x.com/"
        assert history.to_dict()["contactId"] == "42"

    def test_missing_history(self):
        history = page_view_history("42", {}, days_back=3)
        assert history.total_history_entries == 0
        assert history.summary == ""

    def test_recent_visitors_search_filters_on_last_visit(self):
        body = recent_visitors_search(days_back=3, limit=5)
        visit_filter = body["filterGroups"][0]["filters"][0]

        assert visit_filter["propertyName"] == "hs_analytics_last_visit_timestamp"
        assert visit_filter["operator"] == "GTE"
        assert visit_filter["value"].isdigit()
        assert body["limit"] == 5
