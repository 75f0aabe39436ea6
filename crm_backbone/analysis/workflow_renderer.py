"""ASCII rendering of HubSpot v4 workflow action graphs.

Renders a flow as a box-and-arrow diagram meant to be read as-is next to
the structured JSON. The walk is depth-first from the start action:

- every action gets a step number the first time it is reached;
- reaching an action again prints ``[→ step N]`` instead of redrawing it,
  which keeps cycles and converging branches finite;
- past MAX_DEPTH the walk stops with a placeholder;
- connections to ids that are not in the flow draw an "unknown" box.

None of these cases raise. Output depends only on the flow: branch columns follow input order and a
fresh RenderContext is used for every call.
"""

from __future__ import annotations

import math
import textwrap
from dataclasses import dataclass, field
from typing import Any, Callable

from crm_backbone.models.workflow import (
    BranchConnection,
    EnrollmentCriteria,
    WorkflowAction,
    WorkflowFlow,
)

MAX_DEPTH = 50

ACTION_MIN_WIDTH = 16
HEADER_MIN_WIDTH = 30
COLUMN_MIN_WIDTH = 8
COLUMN_GAP = 2
DETAIL_WRAP_WIDTH = 28
DETAIL_INDENT = "   "

MAX_DEPTH_PLACEHOLDER = "[... max depth reached]"
NO_ACTIONS_PLACEHOLDER = "(no actions)"
END_LEAF = "(end)"


# ── Action type labels ─────────────────────────────────────────────
# v4 uses both numeric ids ("0-5") and legacy string ids
# ("SET_CONTACT_PROPERTY"). Unknown ids fall back to the raw id.

ACTION_LABELS: dict[str, str] = {
    "0-1": "Delay",
    "0-2": "IF/THEN",
    "0-3": "Send Email",
    "0-4": "Send Internal Email",
    "0-5": "Set Property",
    "0-6": "Copy Property",
    "0-7": "Create Task",
    "0-8": "Send Notification",
    "0-9": "Add to List",
    "0-10": "Remove from List",
    "0-11": "Webhook",
    "0-12": "Delay Until Date",
    "0-13": "Create Record",
    "0-14": "Delete Record",
    "0-15": "Enroll in Workflow",
    "0-16": "Unenroll from Workflow",
    "0-17": "Rotate Owner",
    "0-18": "Custom Code",
    "0-19": "Format Data",
    "0-20": "A/B Test",
    "0-21": "Value Branch",
    "0-22": "Send In-App Email",
    "0-35": "Manage Subscription",
    "SEND_EMAIL": "Send Email",
    "SEND_IN_APP_EMAIL": "Send In-App Email",
    "DELAY": "Delay",
    "DELAY_UNTIL_DATE": "Delay Until Date",
    "IF_THEN_BRANCH": "IF/THEN",
    "VALUE_BRANCH": "Value Branch",
    "RANDOM_BRANCH": "A/B Test",
    "SET_CONTACT_PROPERTY": "Set Property",
    "SET_COMPANY_PROPERTY": "Set Property",
    "SET_DEAL_PROPERTY": "Set Property",
    "SET_TICKET_PROPERTY": "Set Property",
    "COPY_PROPERTY": "Copy Property",
    "CREATE_RECORD": "Create Record",
    "DELETE_RECORD": "Delete Record",
    "ENROLL_IN_WORKFLOW": "Enroll in Workflow",
    "UNENROLL_FROM_WORKFLOW": "Unenroll from Workflow",
    "ADD_TO_LIST": "Add to List",
    "REMOVE_FROM_LIST": "Remove from List",
    "CREATE_TASK": "Create Task",
    "SEND_NOTIFICATION": "Send Notification",
    "SEND_INTERNAL_EMAIL": "Send Internal Email",
    "WEBHOOK": "Webhook",
    "CUSTOM_CODE": "Custom Code",
    "ROTATE_OWNER": "Rotate Owner",
    "FORMAT_DATA": "Format Data",
    "MANAGE_SUBSCRIPTION": "Manage Subscription",
}

# keyed by the prefix of eventTypeId ("4-1639801" -> "4")
EVENT_TYPE_LABELS: dict[str, str] = {
    "1": "Contact property change",
    "3": "Deal property change",
    "4": "Form submission",
    "6": "Page view",
    "10": "Email open",
    "11": "Email click",
}


def action_label(action_type_id: str | None) -> str:
    """Human label for an action type; branch containers have no type id."""
    if not action_type_id:
        return "Branch"
    return ACTION_LABELS.get(action_type_id, action_type_id)


# ── Detail extraction ──────────────────────────────────────────────
# Each logical field lists the names it has gone by, newest first.

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "property": ("property_name", "propertyName"),
    "value": ("value", "propertyValue"),
    "delay_amount": ("delta", "delay.amount", "amount"),
    "delay_unit": ("time_unit", "delay.unit", "unit"),
    "delay_millis": ("delayMillis", "delay.amount"),
    "email_id": ("emailId", "email", "content_id"),
    "source": ("sourceProperty", "source_property"),
    "target": ("targetProperty", "target_property"),
    "method": ("httpMethod", "method"),
    "url": ("url", "webhookUrl"),
    "runtime": ("runtime", "language"),
    "subject": ("subject", "taskSubject"),
}

DURATION_UNITS = (
    ("day", 86_400_000),
    ("hour", 3_600_000),
    ("minute", 60_000),
    ("second", 1_000),
)


def _humanize(raw: str) -> str:
    return raw.lower().replace("_", " ")


def _lookup(fields: dict[str, Any], key: str) -> Any:
    if key in fields:
        return fields[key]
    # dotted legacy names sometimes arrive nested instead of flattened
    if "." in key:
        node: Any = fields
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node
    return None


def field_value(fields: dict[str, Any] | None, key: str) -> Any:
    """Read one field, unwrapping v4 value objects.

    ``{"staticValue": x}`` becomes ``x``; typed values such as timestamps
    become a parenthesized phrase. Anything still structured is treated as
    absent.
    """
    if not fields:
        return None
    value = _lookup(fields, key)
    if isinstance(value, dict):
        if "staticValue" in value:
            return value["staticValue"]
        if value.get("type") == "TIMESTAMP":
            timestamp_type = value.get("timestampType")
            if timestamp_type == "EXECUTION_TIME":
                return "(current date/time)"
            return f"({_humanize(timestamp_type)})" if timestamp_type else "(timestamp)"
        if "type" in value:
            return f"({_humanize(str(value['type']))})"
        return None
    if isinstance(value, list):
        return None
    return value


def _field(fields: dict[str, Any] | None, logical_name: str) -> str | None:
    """first present alias of a logical field, as text."""
    for key in FIELD_ALIASES[logical_name]:
        value = field_value(fields, key)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    return None


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit - 3] + "..."
    return text


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def humanize_millis(millis: float) -> str:
    """Express a millisecond delay in the largest unit that divides it evenly."""
    for unit, size in DURATION_UNITS:
        if millis >= size and millis % size == 0:
            return _plural(int(millis // size), unit)
    for unit, size in DURATION_UNITS:
        if millis >= size:
            return _plural(round(millis / size), unit)
    return _plural(round(millis / 1000), "second")


def _set_property_detail(fields: dict | None) -> str | None:
    prop = _field(fields, "property")
    value = _field(fields, "value")
    if prop and value:
        return f"{prop} = {_truncate(value, 50)}"
    return prop


def _delay_detail(fields: dict | None) -> str | None:
    amount = _field(fields, "delay_amount")
    unit = _field(fields, "delay_unit")
    if amount and unit:
        return f"{amount} {unit}".lower()

    millis = _field(fields, "delay_millis")
    if millis is None:
        return None
    try:
        value = float(millis)
    except ValueError:
        return None
    # inf and nan parse as floats but have no duration
    if not math.isfinite(value):
        return None
    return humanize_millis(value)


def _email_detail(fields: dict | None) -> str | None:
    email_id = _field(fields, "email_id")
    return f"ID: {email_id}" if email_id else None


def _copy_property_detail(fields: dict | None) -> str | None:
    source = _field(fields, "source")
    target = _field(fields, "target")
    if source and target:
        return f"{source} → {target}"
    return None


def _webhook_detail(fields: dict | None) -> str | None:
    url = _field(fields, "url")
    if not url:
        return None
    method = _field(fields, "method") or "POST"
    return f"{method} {_truncate(url, 40)}"


def _custom_code_detail(fields: dict | None) -> str | None:
    runtime = _field(fields, "runtime")
    return f"Runtime: {runtime}" if runtime else None


def _create_task_detail(fields: dict | None) -> str | None:
    subject = _field(fields, "subject")
    return f'"{subject[:30]}"' if subject else None


DETAIL_EXTRACTORS: dict[str, Callable[[dict | None], str | None]] = {}
for _type_ids, _extractor in (
    (("0-5",), _set_property_detail),
    (("0-1", "DELAY"), _delay_detail),
    (("0-3", "0-4", "0-22", "SEND_EMAIL", "SEND_IN_APP_EMAIL", "SEND_INTERNAL_EMAIL"), _email_detail),
    (("0-6", "COPY_PROPERTY"), _copy_property_detail),
    (("0-11", "WEBHOOK"), _webhook_detail),
    (("0-18", "CUSTOM_CODE"), _custom_code_detail),
    (("0-7", "CREATE_TASK"), _create_task_detail),
):
    for _type_id in _type_ids:
        DETAIL_EXTRACTORS[_type_id] = _extractor


def extract_detail(action: WorkflowAction) -> str | None:
    """One-line summary of an action's configuration, or None."""
    type_id = action.action_type_id or ""
    if not type_id:
        return None

    extractor = DETAIL_EXTRACTORS.get(type_id)
    if extractor is None and type_id.startswith("SET_") and type_id.endswith("_PROPERTY"):
        extractor = _set_property_detail
    if extractor is None:
        return None
    return extractor(action.field_values)


# ── Trigger description ────────────────────────────────────────────


def describe_trigger(criteria: EnrollmentCriteria | None) -> list[str]:
    """Header lines describing how records enroll in the flow."""
    if criteria is None:
        return []
    lines: list[str] = []

    if criteria.type == "EVENT_BASED":
        for branch in criteria.event_filter_branches:
            event_id = branch.event_type_id or ""
            label = EVENT_TYPE_LABELS.get(event_id.split("-")[0], f"Event {event_id}")
            if branch.operator == "HAS_COMPLETED":
                op = "completed"
            else:
                op = (branch.operator or "").lower()
            lines.append(f"When: {label} {op}".rstrip())
        for branch in criteria.list_membership_filter_branches:
            for f in branch.filters:
                if f.filter_type == "IN_LIST" and f.list_id:
                    lines.append(f"When: Added to list {f.list_id}")
        if not lines:
            lines.append("Trigger: Event-based")

    elif criteria.type == "LIST_BASED":
        branches = criteria.list_filter_branch.filter_branches if criteria.list_filter_branch else []
        for branch in branches:
            for f in branch.filters:
                if f.filter_type == "PROPERTY" and f.property:
                    operator = (f.operation or {}).get("operator") or ""
                    lines.append(f"When: {f.property} {_humanize(operator)}".rstrip())
        if not lines:
            lines.append("Trigger: Filter-based")

    elif criteria.type:
        lines.append(f"Trigger: {_humanize(criteria.type)}")

    lines.append("Re-enroll: on" if criteria.should_re_enroll else "Re-enroll: off")
    return lines


# ── Layout primitives ──────────────────────────────────────────────


def _center_text(text: str, width: int) -> str:
    pad = max(0, width - len(text))
    left = pad // 2
    return " " * left + text + " " * (pad - left)


def _center_lines(lines: list[str], total_width: int) -> list[str]:
    if not lines:
        return []
    widest = max(len(line) for line in lines)
    pad = " " * max(0, (total_width - widest) // 2)
    return [pad + line for line in lines]


def _hang(top: list[str], below: list[str], stem: list[str]) -> list[str]:
    """Stack ``below`` under ``top`` on one centre axis, joined by ``stem`` markers.

    Whichever block is wider sets the width; the narrower one is centred in it.
    """
    top_width = len(top[0])
    total_width = max([top_width, *(len(line) for line in below)])
    pad = (total_width - top_width) // 2
    col = pad + top_width // 2
    out = [" " * pad + line for line in top]
    out.extend(" " * col + marker for marker in stem)
    out.extend(_center_lines(below, total_width))
    return out


def _wrap(text: str) -> list[str]:
    return textwrap.wrap(
        text,
        DETAIL_WRAP_WIDTH,
        break_long_words=False,
        break_on_hyphens=False,
    ) or [""]


def _box(lines: list[str], connector: bool = False, min_width: int = ACTION_MIN_WIDTH) -> list[str]:
    """Draw ``lines`` in a box; ``connector`` puts a ┬ in the bottom border."""
    width = max([min_width, *(len(line) for line in lines)])
    inner = width + 2
    out = [f"┌{'─' * inner}┐"]
    out.extend(f"│ {_center_text(line, width)} │" for line in lines)
    if connector:
        half = inner // 2
        out.append(f"└{'─' * half}┬{'─' * (inner - half - 1)}┘")
    else:
        out.append(f"└{'─' * inner}┘")
    return out


def _marker_line(columns: list[int], marker: str) -> str:
    line = ""
    for col in columns:
        line += " " * (col - len(line)) + marker
    return line


def _split_line(columns: list[int]) -> str:
    """The fan-out joining every branch column: ┌──┬──┐."""
    if len(columns) == 1:
        return " " * columns[0] + "│"
    line = " " * columns[0] + "┌"
    for col in columns[1:-1]:
        line += "─" * (col - len(line)) + "┬"
    line += "─" * (columns[-1] - len(line)) + "┐"
    return line


# ── Renderer ───────────────────────────────────────────────────────


@dataclass
class RenderContext:
    """Walk state for one render: actions by id and step numbers handed out."""

    action_map: dict[str, WorkflowAction]
    visited: dict[str, int] = field(default_factory=dict)
    step_counter: int = 0

    @classmethod
    def for_flow(cls, flow: WorkflowFlow) -> RenderContext:
        return cls(action_map={action.action_id: action for action in flow.actions})

    def visit(self, action_id: str) -> int:
        """assign the next step number to a first-time action."""
        self.step_counter += 1
        self.visited[action_id] = self.step_counter
        return self.step_counter


def _branch_label(action: WorkflowAction, branch: BranchConnection, index: int, count: int) -> str:
    if branch.branch_name:
        return branch.branch_name
    if action.type == "AB_TEST_BRANCH":
        # round half up, so 3 ways read 33% and 8 ways 13%
        return f"{int(100 / count + 0.5)}%"
    return f"Branch {index}"


def render_action(action_id: str, ctx: RenderContext, depth: int) -> list[str]:
    """Render an action and everything below it as a list of lines."""
    if depth > MAX_DEPTH:
        return [MAX_DEPTH_PLACEHOLDER]

    action = ctx.action_map.get(action_id)
    if action is None:
        return _box([f"Unknown action: {action_id}"])

    if action_id in ctx.visited:
        return [f"[→ step {ctx.visited[action_id]}]"]

    step = ctx.visit(action_id)
    box_lines = [f"{step}. {action_label(action.action_type_id)}"]
    detail = extract_detail(action)
    if detail:
        box_lines.extend(DETAIL_INDENT + line for line in _wrap(detail))

    branches = action.branch_connections()
    if branches:
        return _render_branch(action, branches, box_lines, ctx, depth)

    next_id = action.next_action_id
    if not next_id:
        return _box(box_lines)

    box = _box(box_lines, connector=True)
    return _hang(box, render_action(next_id, ctx, depth + 1), ["│", "▼"])


def _render_branch(
    action: WorkflowAction,
    branches: list[BranchConnection],
    box_lines: list[str],
    ctx: RenderContext,
    depth: int,
) -> list[str]:
    header = _box(box_lines)
    count = len(branches)

    columns: list[tuple[str, list[str]]] = []
    for index, branch in enumerate(branches, start=1):
        label = _branch_label(action, branch, index, count)
        if branch.next_action_id:
            lines = render_action(branch.next_action_id, ctx, depth + 1)
        else:
            lines = [END_LEAF]
        columns.append((label, lines))

    widths = [
        max(len(label) + 2, max((len(line) for line in lines), default=0), COLUMN_MIN_WIDTH)
        for label, lines in columns
    ]
    branch_width = sum(widths) + COLUMN_GAP * (count - 1)
    total_width = max(len(header[0]), branch_width)
    offset = max(0, (total_width - branch_width) // 2)

    centers = []
    cursor = offset
    for width in widths:
        centers.append(cursor + width // 2)
        cursor += width + COLUMN_GAP

    gap = " " * COLUMN_GAP
    out = _center_lines(header, total_width)
    out.append(_split_line(centers))
    out.append(" " * offset + gap.join(
        _center_text(f"[{label}]", width) for (label, _), width in zip(columns, widths)
    ))
    out.append(_marker_line(centers, "▼"))

    # centre each column's block under its ▼
    blocks = [_center_lines(lines, width) for (_, lines), width in zip(columns, widths)]
    height = max(len(block) for block in blocks)
    for row in range(height):
        cells = [
            (block[row] if row < len(block) else "").ljust(width)
            for block, width in zip(blocks, widths)
        ]
        out.append(" " * offset + gap.join(cells))
    return out


def render_header(flow: WorkflowFlow) -> list[str]:
    """Double-line box with the flow name, status and trigger."""
    status = "enabled" if flow.is_enabled else "disabled"
    header_lines = [f"{flow.name} ({status})"]

    trigger_lines = describe_trigger(flow.enrollment_criteria)
    if trigger_lines:
        header_lines.append("")
        header_lines.extend(trigger_lines)
    elif flow.trigger_type:
        header_lines.append(f"Trigger: {flow.trigger_type}")

    width = max([HEADER_MIN_WIDTH, *(len(line) for line in header_lines)])
    inner = width + 2
    half = inner // 2
    out = [f"╔{'═' * inner}╗"]
    out.extend(f"║ {_center_text(line, width)} ║" for line in header_lines)
    out.append(f"╚{'═' * half}╤{'═' * (inner - half - 1)}╝")
    return out


def render_workflow(flow: WorkflowFlow | dict) -> str:
    """Render a flow as a multi-line ASCII diagram.

    Accepts either a WorkflowFlow or the raw v4 flow payload.
    """
    if not isinstance(flow, WorkflowFlow):
        flow = WorkflowFlow.model_validate(flow)

    header = render_header(flow)
    if not flow.start_action_id or not flow.actions:
        lines = _hang(header, [NO_ACTIONS_PLACEHOLDER], ["▼"])
    else:
        ctx = RenderContext.for_flow(flow)
        lines = _hang(header, render_action(flow.start_action_id, ctx, 0), ["│", "▼"])

    return "\n".join(line.rstrip() for line in lines)
