"""Sequence email effectiveness metrics.

Pure functions over already-collected email records: template, sequence,
step-position and rep aggregates, reply attribution and the Markdown report.
Collection against the API lives in ``crm_backbone.scripts.sequence_effectiveness``.
"""

import bisect
import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pandas as pd

REPLY_WINDOW = timedelta(days=14)
MIN_SENDS_FOR_RANKING = 50
TOP_SUBJECTS = 10

ANALYSIS_START = datetime(2025, 8, 1, tzinfo=timezone.utc)

# the search endpoint stops paging at 10k results
SEARCH_RESULT_CAP = 9800
MAX_SPLIT_DEPTH = 4

OUTBOUND_PROPERTIES = [
    "hs_sequence_id",
    "hs_template_id",
    "hs_email_subject",
    "hs_body_preview",
    "hs_email_open_count",
    "hs_email_click_count",
    "hubspot_owner_id",
    "hs_timestamp",
    "hs_email_to_email",
    "hs_email_status",
    "hs_email_post_send_status",
]

INBOUND_PROPERTIES = [
    "hs_email_subject",
    "hs_timestamp",
    "hs_email_from_email",
    "hs_email_direction",
]


# ── Time windows ───────────────────────────────────────────────────


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) search window."""

    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        return self.start.strftime("%Y-%m")

    def split(self) -> tuple["TimeWindow", "TimeWindow"]:
        mid = self.start + (self.end - self.start) / 2
        return TimeWindow(self.start, mid), TimeWindow(mid, self.end)


def _add_month(dt: datetime) -> datetime:
    year, month = (dt.year + 1, 1) if dt.month == 12 else (dt.year, dt.month + 1)
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def monthly_windows(start: datetime, end: datetime) -> list[TimeWindow]:
    """Calendar-month windows covering [start, end); the last one is clipped."""
    windows = []
    current = start
    while current < end:
        following = _add_month(current)
        windows.append(TimeWindow(current, min(following, end)))
        current = following
    return windows


def _epoch_ms(dt: datetime) -> str:
    return str(int(dt.timestamp() * 1000))


def outbound_filters(window: TimeWindow) -> list[dict]:
    """Search filter groups for sequence emails sent inside ``window``."""
    return [{
        "filters": [
            {"propertyName": "hs_email_direction", "operator": "EQ", "value": "EMAIL"},
            {"propertyName": "hs_sequence_id", "operator": "HAS_PROPERTY"},
            {"propertyName": "hs_timestamp", "operator": "GTE", "value": _epoch_ms(window.start)},
            {"propertyName": "hs_timestamp", "operator": "LT", "value": _epoch_ms(window.end)},
        ],
    }]


def inbound_filters(window: TimeWindow) -> list[dict]:
    """Search filter groups for incoming emails received inside ``window``."""
    return [{
        "filters": [
            {"propertyName": "hs_email_direction", "operator": "EQ", "value": "INCOMING_EMAIL"},
            {"propertyName": "hs_timestamp", "operator": "GTE", "value": _epoch_ms(window.start)},
            {"propertyName": "hs_timestamp", "operator": "LT", "value": _epoch_ms(window.end)},
        ],
    }]


# ── Inputs ─────────────────────────────────────────────────────────


@dataclass
class Owner:
    name: str
    email: str | None = None
    user_id: str | None = None


@dataclass
class TeamMember:
    name: str
    role: str


def owner_from_api(raw: dict) -> Owner:
    name = f"{raw.get('firstName') or ''} {raw.get('lastName') or ''}".strip()
    user_id = raw.get("userId")
    return Owner(
        name=name,
        email=raw.get("email"),
        user_id=str(user_id) if user_id is not None else None,
    )


def load_sales_team(path) -> dict[str, TeamMember]:
    """Read the email,name,role roster CSV into an email-keyed map."""
    roster = pd.read_csv(path, dtype=str).fillna("")
    team = {}
    for email, name, role in roster.iloc[:, :3].itertuples(index=False):
        team[email.strip()] = TeamMember(name=name.strip(), role=role.strip())
    return team


def _parse_timestamp(ts: str | None) -> float | None:
    """Parse an ISO8601 or epoch-millis timestamp to epoch milliseconds."""
    if not ts:
        return None
    if ts.isdigit():
        return float(ts)
    # handle the trailing Z HubSpot uses
    parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# ── Metrics ────────────────────────────────────────────────────────


@dataclass
class Counts:
    sent: int = 0
    opens: int = 0
    replies: int = 0

    def add(self, opened: bool, replied: bool) -> None:
        self.sent += 1
        self.opens += opened
        self.replies += replied

    @property
    def open_rate(self) -> float:
        return self.opens / self.sent if self.sent else 0.0

    @property
    def reply_rate(self) -> float:
        return self.replies / self.sent if self.sent else 0.0


@dataclass
class TemplateStats:
    sequence_id: str
    template_id: str
    subject: str
    body_preview: str
    counts: Counts = field(default_factory=Counts)
    step: int | None = None


@dataclass
class SequenceStats:
    sequence_id: str
    name: str
    steps: int
    emails_sent: int
    opens: int
    replies: int
    open_rate: float
    reply_rate: float


@dataclass
class RepStats:
    owner_id: str
    name: str
    role: str
    sent: int
    opens: int
    replies: int
    open_rate: float
    reply_rate: float


@dataclass
class StepStats:
    step: int
    sent: int
    open_rate: float
    reply_rate: float


@dataclass
class SubjectStats:
    subject: str
    sequence: str
    step: int | None
    sent: int
    open_rate: float
    reply_rate: float


@dataclass
class SequenceMetrics:
    """Everything the report and the JSON dump are built from."""

    total_sent: int
    total_opens: int
    total_replies: int
    unique_sequences: int
    start_date: str
    end_date: str
    top_by_open_rate: list[SubjectStats] = field(default_factory=list)
    top_by_reply_rate: list[SubjectStats] = field(default_factory=list)
    steps: list[StepStats] = field(default_factory=list)
    sequences: list[SequenceStats] = field(default_factory=list)
    reps: list[RepStats] = field(default_factory=list)
    templates: list[TemplateStats] = field(default_factory=list)

    @property
    def open_rate(self) -> float:
        return self.total_opens / self.total_sent if self.total_sent else 0.0

    @property
    def reply_rate(self) -> float:
        return self.total_replies / self.total_sent if self.total_sent else 0.0


def index_replies(inbound: list[dict]) -> dict[str, list[float]]:
    """Map lowercased sender address to its sorted reply timestamps."""
    by_sender: dict[str, list[float]] = defaultdict(list)
    for reply in inbound:
        props = reply.get("properties") or {}
        sender = (props.get("hs_email_from_email") or "").lower().strip()
        ts = _parse_timestamp(props.get("hs_timestamp"))
        if not sender or ts is None:
            continue
        by_sender[sender].append(ts)
    for timestamps in by_sender.values():
        timestamps.sort()
    return dict(by_sender)


def has_reply(recipients: list[str], sent_at: float, replies: dict[str, list[float]]) -> bool:
    """True if any recipient wrote back after ``sent_at`` and within REPLY_WINDOW."""
    cutoff = sent_at + REPLY_WINDOW.total_seconds() * 1000
    for recipient in recipients:
        timestamps = replies.get(recipient)
        if not timestamps:
            continue
        idx = bisect.bisect_right(timestamps, sent_at)
        if idx < len(timestamps) and timestamps[idx] <= cutoff:
            return True
    return False


def compute_metrics(
    outbound: list[dict],
    inbound: list[dict],
    owners: dict[str, Owner],
    team: dict[str, TeamMember],
    sequence_names: dict[str, str],
    start: datetime = ANALYSIS_START,
    end: datetime | None = None,
) -> SequenceMetrics:
    """Aggregate outbound sequence emails into template, sequence and rep metrics.

    Args:
        outbound: Email search results with OUTBOUND_PROPERTIES.
        inbound: Email search results with INBOUND_PROPERTIES.
        owners: Owner id to owner.
        team: Owner email to roster entry, used for display names and roles.
        sequence_names: Sequence id to name.

    Returns:
        SequenceMetrics. Replies are estimated: an inbound email from any
        recipient within 14 days of the send counts as a reply.
    """
    end = end or datetime.now(timezone.utc)
    replies = index_replies(inbound)

    templates: dict[tuple[str, str], TemplateStats] = {}
    first_sent: dict[str, dict[str, float]] = defaultdict(dict)
    sequence_counts: dict[str, Counts] = defaultdict(Counts)
    sequence_templates: dict[str, set[str]] = defaultdict(set)
    rep_counts: dict[str, Counts] = defaultdict(Counts)

    for email in outbound:
        props = email.get("properties") or {}
        sequence_id = props.get("hs_sequence_id")
        template_id = props.get("hs_template_id") or "unknown"
        sent_at = _parse_timestamp(props.get("hs_timestamp")) or 0.0
        opened = _int(props.get("hs_email_open_count")) > 0
        # the to field may hold several addresses separated by ;
        recipients = [
            addr.strip()
            for addr in (props.get("hs_email_to_email") or "").lower().split(";")
            if addr.strip()
        ]
        replied = has_reply(recipients, sent_at, replies)

        key = (sequence_id, template_id)
        if key not in templates:
            templates[key] = TemplateStats(
                sequence_id=sequence_id,
                template_id=template_id,
                subject=props.get("hs_email_subject") or "(no subject)",
                body_preview=(props.get("hs_body_preview") or "")[:200],
            )
        templates[key].counts.add(opened, replied)

        earliest = first_sent[sequence_id].get(template_id)
        if earliest is None or sent_at < earliest:
            first_sent[sequence_id][template_id] = sent_at

        sequence_templates[sequence_id].add(template_id)
        sequence_counts[sequence_id].add(opened, replied)

        owner_id = props.get("hubspot_owner_id")
        if owner_id:
            rep_counts[owner_id].add(opened, replied)

    # step number = order of first use within the sequence
    for sequence_id, by_template in first_sent.items():
        ordered = sorted(by_template.items(), key=lambda item: item[1])
        for step, (template_id, _) in enumerate(ordered, start=1):
            templates[(sequence_id, template_id)].step = step

    step_counts: dict[int, Counts] = defaultdict(Counts)
    for stats in templates.values():
        if not stats.step:
            continue
        bucket = step_counts[stats.step]
        bucket.sent += stats.counts.sent
        bucket.opens += stats.counts.opens
        bucket.replies += stats.counts.replies

    def sequence_name(sequence_id: str) -> str:
        return sequence_names.get(sequence_id) or f"Sequence {sequence_id}"

    reps = []
    for owner_id, counts in rep_counts.items():
        owner = owners.get(owner_id)
        member = team.get(owner.email or "") if owner else None
        reps.append(RepStats(
            owner_id=owner_id,
            name=(member.name if member else "") or (owner.name if owner else "") or f"Owner {owner_id}",
            role=(member.role if member else "") or "Unknown",
            sent=counts.sent,
            opens=counts.opens,
            replies=counts.replies,
            open_rate=counts.open_rate,
            reply_rate=counts.reply_rate,
        ))
    reps.sort(key=lambda rep: rep.sent, reverse=True)

    sequences = [
        SequenceStats(
            sequence_id=sequence_id,
            name=sequence_name(sequence_id),
            steps=len(sequence_templates[sequence_id]),
            emails_sent=counts.sent,
            opens=counts.opens,
            replies=counts.replies,
            open_rate=counts.open_rate,
            reply_rate=counts.reply_rate,
        )
        for sequence_id, counts in sequence_counts.items()
    ]
    sequences.sort(key=lambda seq: seq.emails_sent, reverse=True)

    def subject_row(stats: TemplateStats) -> SubjectStats:
        return SubjectStats(
            subject=stats.subject,
            sequence=sequence_names.get(stats.sequence_id) or str(stats.sequence_id),
            step=stats.step,
            sent=stats.counts.sent,
            open_rate=stats.counts.open_rate,
            reply_rate=stats.counts.reply_rate,
        )

    all_templates = list(templates.values())
    qualified = [t for t in all_templates if t.counts.sent >= MIN_SENDS_FOR_RANKING]
    by_open = sorted(qualified, key=lambda t: t.counts.open_rate, reverse=True)[:TOP_SUBJECTS]
    by_reply = sorted(qualified, key=lambda t: t.counts.reply_rate, reverse=True)[:TOP_SUBJECTS]

    return SequenceMetrics(
        total_sent=len(outbound),
        total_opens=sum(t.counts.opens for t in all_templates),
        total_replies=sum(t.counts.replies for t in all_templates),
        unique_sequences=len(sequence_counts),
        start_date=start.date().isoformat(),
        end_date=end.date().isoformat(),
        top_by_open_rate=[subject_row(t) for t in by_open],
        top_by_reply_rate=[subject_row(t) for t in by_reply],
        steps=[
            StepStats(step=step, sent=c.sent, open_rate=c.open_rate, reply_rate=c.reply_rate)
            for step, c in sorted(step_counts.items())
        ],
        sequences=sequences,
        reps=reps,
        templates=all_templates,
    )


# ── Report ─────────────────────────────────────────────────────────


def _pct(rate: float) -> str:
    return f"{rate * 100:.1f}%"


def _esc(text: str | None) -> str:
    return (text or "").replace("|", "\\|")


def _subject_table(rows: list[SubjectStats]) -> list[str]:
    if not rows:
        return ["No subject lines met the minimum send threshold.", ""]
    lines = [
        "| # | Subject | Sequence | Step | Sent | Open % | Reply % |",
        "|---|---------|----------|------|------|--------|--------|",
    ]
    for rank, row in enumerate(rows, start=1):
        lines.append(
            f"| {rank} | {_esc(row.subject)[:60]} | {_esc(row.sequence)[:30]} | {row.step or '-'} "
            f"| {row.sent} | {_pct(row.open_rate)} | {_pct(row.reply_rate)} |"
        )
    lines.append("")
    return lines


def generate_report(metrics: SequenceMetrics, generated_on: str | None = None) -> str:
    """Render metrics as a Markdown report."""
    generated_on = generated_on or datetime.now(timezone.utc).date().isoformat()
    lines = [
        "# Sales Sequence Email Performance Report",
        "",
        f"**Period:** {metrics.start_date} to {metrics.end_date}  ",
        f"**Generated:** {generated_on}",
        "",
        "## Executive Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total sequence emails sent | {metrics.total_sent:,} |",
        f"| Total opens | {metrics.total_opens:,} |",
        f"| Total replies (est.) | {metrics.total_replies:,} |",
        f"| Overall open rate | {_pct(metrics.open_rate)} |",
        f"| Overall reply rate | {_pct(metrics.reply_rate)} |",
        f"| Unique sequences | {metrics.unique_sequences} |",
        "",
    ]

    for title, rows in (
        ("Top Subject Lines by Open Rate", metrics.top_by_open_rate),
        ("Top Subject Lines by Reply Rate", metrics.top_by_reply_rate),
    ):
        lines += [f"## {title}", "", f"_Minimum {MIN_SENDS_FOR_RANKING} sends_", ""]
        lines += _subject_table(rows)

    lines += [
        "## Engagement by Step Position",
        "",
        "_Open and reply rates across sequence steps (all sequences combined)_",
        "",
        "| Step | Emails Sent | Open Rate | Reply Rate |",
        "|------|-------------|-----------|------------|",
    ]
    lines += [
        f"| {row.step} | {row.sent:,} | {_pct(row.open_rate)} | {_pct(row.reply_rate)} |"
        for row in metrics.steps
    ]
    lines.append("")

    lines += [
        "## Sequence Performance",
        "",
        "| Sequence | Steps | Emails Sent | Open % | Reply % |",
        "|----------|-------|-------------|--------|--------|",
    ]
    lines += [
        f"| {_esc(seq.name)[:50]} | {seq.steps} | {seq.emails_sent:,} "
        f"| {_pct(seq.open_rate)} | {_pct(seq.reply_rate)} |"
        for seq in metrics.sequences
    ]
    lines.append("")

    lines += [
        "## Rep Performance",
        "",
        "| Name | Role | Emails Sent | Open % | Reply % |",
        "|------|------|-------------|--------|--------|",
    ]
    lines += [
        f"| {rep.name} | {rep.role} | {rep.sent:,} | {_pct(rep.open_rate)} | {_pct(rep.reply_rate)} |"
        for rep in metrics.reps
    ]
    lines += [
        "",
        "---",
        "",
        "_Reply rate is estimated by matching inbound emails from the same recipient "
        "within 14 days of the outbound send. Actual reply rates may differ._",
        "",
    ]
    return "\n".join(lines)
