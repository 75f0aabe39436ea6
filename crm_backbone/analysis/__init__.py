"""Analysis utilities: workflow diagrams and engagement reports."""

from crm_backbone.analysis.workflow_renderer import (
    RenderContext,
    action_label,
    describe_trigger,
    extract_detail,
    render_workflow,
)
from crm_backbone.analysis.page_views import (
    PageView,
    PageViewHistory,
    page_view_history,
)
from crm_backbone.analysis.sequence_metrics import (
    SequenceMetrics,
    TimeWindow,
    compute_metrics,
    generate_report,
    monthly_windows,
)
from crm_backbone.analysis.webinar import (
    AcquisitionSplit,
    classify_registrants,
)

__all__ = [
    # workflow_renderer exports
    "RenderContext",
    "action_label",
    "describe_trigger",
    "extract_detail",
    "render_workflow",
    # page_views exports
    "PageView",
    "PageViewHistory",
    "page_view_history",
    # sequence_metrics exports
    "SequenceMetrics",
    "TimeWindow",
    "compute_metrics",
    "generate_report",
    "monthly_windows",
    # webinar exports
    "AcquisitionSplit",
    "classify_registrants",
]
