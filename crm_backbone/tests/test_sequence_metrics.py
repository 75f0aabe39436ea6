"""Tests for sequence effectiveness metrics."""

from datetime import datetime, timezone

from crm_backbone.analysis.sequence_metrics import (
    Owner,
    TeamMember,
    TimeWindow,
    compute_metrics,
    generate_report,
    has_reply,
    index_replies,
    load_sales_team,
    monthly_windows,
    owner_from_api,
)

UTC = timezone.utc


def _outbound(seq, template, ts, to, owner="10", opens=0, subject="Hello"):
    return {
        "id": f"{seq}-{template}-{ts}",
        "properties": {
            "hs_sequence_id": seq,
            "hs_template_id": template,
            "hs_email_subject": subject,
            "hs_body_preview": "Hi there",
            "hs_email_open_count": str(opens),
            "hubspot_owner_id": owner,
            "hs_timestamp": ts,
            "hs_email_to_email": to,
        },
    }


def _inbound(sender, ts):
    return {"properties": {"hs_email_from_email": sender, "hs_timestamp": ts}}


class TestWindows:
    """Test the search window helpers."""

    def test_monthly_windows_clip_last_month(self):
        windows = monthly_windows(datetime(2025, 8, 1, tzinfo=UTC), datetime(2025, 10, 15, tzinfo=UTC))
        assert [w.label for w in windows] == ["2025-08", "2025-09", "2025-10"]
        assert windows[0].end == datetime(2025, 9, 1, tzinfo=UTC)
        assert windows[-1].end == datetime(2025, 10, 15, tzinfo=UTC)

    def test_windows_cross_year_end(self):
        windows = monthly_windows(datetime(2025, 12, 1, tzinfo=UTC), datetime(2026, 2, 1, tzinfo=UTC))
        assert [w.label for w in windows] == ["2025-12", "2026-01"]

    def test_split_halves_window(self):
        window = TimeWindow(datetime(2025, 8, 1, tzinfo=UTC), datetime(2025, 8, 3, tzinfo=UTC))
        first, second = window.split()
        assert first.end == second.start == datetime(2025, 8, 2, tzinfo=UTC)


class TestReplyMatching:
    """Test reply attribution."""

    def test_reply_within_window(self):
        replies = index_replies([_inbound("Ann@Example.com", "2025-08-05T10:00:00Z")])
        sent = datetime(2025, 8, 1, tzinfo=UTC).timestamp() * 1000
        assert has_reply(["ann@example.com"], sent, replies)

    def test_reply_before_send_or_too_late_does_not_count(self):
        replies = index_replies([
            _inbound("ann@example.com", "2025-07-30T10:00:00Z"),
            _inbound("ann@example.com", "2025-08-20T10:00:00Z"),
        ])
        sent = datetime(2025, 8, 1, tzinfo=UTC).timestamp() * 1000
        assert not has_reply(["ann@example.com"], sent, replies)

    def test_any_recipient_counts(self):
        replies = index_replies([_inbound("bob@example.com", "2025-08-02T00:00:00Z")])
        sent = datetime(2025, 8, 1, tzinfo=UTC).timestamp() * 1000
        assert has_reply(["ann@example.com", "bob@example.com"], sent, replies)


class TestComputeMetrics:
    """Test metric aggregation."""

    def _metrics(self):
        outbound = [
            _outbound("s1", "t1", "2025-08-01T09:00:00Z", "ann@example.com", opens=1),
            _outbound("s1", "t1", "2025-08-01T10:00:00Z", "bob@example.com"),
            _outbound("s1", "t2", "2025-08-04T09:00:00Z", "ann@example.com; carl@example.com", opens=2),
            _outbound("s2", None, "2025-08-02T09:00:00Z", "dee@example.com", owner="20"),
        ]
        inbound = [_inbound("carl@example.com", "2025-08-05T09:00:00Z")]
        owners = {
            "10": Owner(name="Rita Rep", email="rita@co.com", user_id="1"),
            "20": Owner(name="", email=None, user_id=None),
        }
        team = {"rita@co.com": TeamMember(name="Rita R.", role="AE")}
        return compute_metrics(
            outbound, inbound, owners, team, {"s1": "Onboarding"},
            end=datetime(2025, 9, 1, tzinfo=UTC),
        )

    def test_totals(self):
        metrics = self._metrics()
        assert metrics.total_sent == 4
        assert metrics.total_opens == 2
        assert metrics.total_replies == 1
        assert metrics.unique_sequences == 2
        assert metrics.start_date == "2025-08-01"
        assert metrics.end_date == "2025-09-01"

    def test_steps_follow_first_send(self):
        metrics = self._metrics()
        steps = {(t.sequence_id, t.template_id): t.step for t in metrics.templates}
        assert steps[("s1", "t1")] == 1
        assert steps[("s1", "t2")] == 2
        assert steps[("s2", "unknown")] == 1
        assert [(s.step, s.sent) for s in metrics.steps] == [(1, 3), (2, 1)]

    def test_sequences_sorted_by_volume_with_names(self):
        metrics = self._metrics()
        assert [(s.name, s.steps, s.emails_sent) for s in metrics.sequences] == [
            ("Onboarding", 2, 3),
            ("Sequence s2", 1, 1),
        ]

    def test_reps_use_roster_then_owner_then_id(self):
        metrics = self._metrics()
        assert [(r.name, r.role, r.sent) for r in metrics.reps] == [
            ("Rita R.", "AE", 3),
            ("Owner 20", "Unknown", 1),
        ]

    def test_small_templates_are_not_ranked(self):
        assert self._metrics().top_by_open_rate == []

    def test_ranking_needs_fifty_sends(self):
        outbound = [
            _outbound("s1", "t1", f"2025-08-01T{h:02d}:00:00Z", "x@example.com", opens=1 if h % 2 else 0)
            for h in range(24)
        ] * 3
        metrics = compute_metrics(outbound, [], {}, {}, {}, end=datetime(2025, 9, 1, tzinfo=UTC))
        assert len(metrics.top_by_open_rate) == 1
        top = metrics.top_by_open_rate[0]
        assert top.sent == 72
        assert top.open_rate == 0.5
        assert top.sequence == "s1"


class TestReport:
    """Test Markdown rendering."""

    def test_report_sections(self):
        metrics = TestComputeMetrics()._metrics()
        report = generate_report(metrics, generated_on="2025-09-01")

        assert report.startswith("# Sales Sequence Email Performance Report")
        assert "**Period:** 2025-08-01 to 2025-09-01" in report
        assert "| Total sequence emails sent | 4 |" in report
        assert "| Overall open rate | 50.0% |" in report
        assert "No subject lines met the minimum send threshold." in report
        assert "| Onboarding | 2 | 3 | 66.7% | 33.3% |" in report
        assert "| Rita R. | AE | 3 |" in report

    def test_pipes_are_escaped(self):
        outbound = [_outbound("s1", "t1", "2025-08-01T09:00:00Z", "a@x.com")]
        metrics = compute_metrics(outbound, [], {}, {}, {"s1": "A|B"}, end=datetime(2025, 9, 1, tzinfo=UTC))
        assert "| A\\|B |" in generate_report(metrics)


class TestInputs:
    """Test owner and roster parsing."""

    def test_owner_from_api(self):
        owner = owner_from_api({"id": "1", "firstName": "Ann", "lastName": None, "email": "a@x.com", "userId": 55})
        assert owner == Owner(name="Ann", email="a@x.com", user_id="55")

    def test_load_sales_team(self, tmp_path):
        roster = tmp_path / "sales-team.csv"
        roster.write_text("email,name,role\nrita@co.com, Rita R. ,AE\nsam@co.com,Sam,SDR\n")
        team = load_sales_team(roster)
        assert team["rita@co.com"] == TeamMember(name="Rita R.", role="AE")
        assert team["sam@co.com"].role == "SDR"
