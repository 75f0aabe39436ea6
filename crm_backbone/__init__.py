"""HubSpot CRM backbone - API client, entity caches and workflow diagrams."""

from crm_backbone.models.workflow import (
    WorkflowAction,
    WorkflowFlow,
)
from crm_backbone.models.pipeline import (
    Pipeline,
    PipelineStage,
    ResolvedPipeline,
)
from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_backbone.sdk.workflow_cache import WorkflowCache
from crm_backbone.analysis.workflow_renderer import render_workflow
from crm_backbone.utils.fuzzy import fuzzy_match, fuzzy_score

__all__ = [
    # Workflows
    "WorkflowAction",
    "WorkflowFlow",
    # Pipelines
    "Pipeline",
    "PipelineStage",
    "ResolvedPipeline",
    # API access
    "HubSpotApiError",
    "HubSpotClient",
    "PipelineCache",
    "WorkflowCache",
    # High-level APIs
    "render_workflow",
    "fuzzy_match",
    "fuzzy_score",
]
