"""Core data models for the HubSpot backbone."""

from crm_backbone.models.pipeline import (
    MatchCandidate,
    Pipeline,
    PipelineStage,
    ResolvedPipeline,
)
from crm_backbone.models.workflow import (
    BRANCH_TYPES,
    BranchConnection,
    Connection,
    CriteriaFilter,
    EnrollmentCriteria,
    EventFilterBranch,
    FilterBranch,
    ListBranch,
    ListFilterBranch,
    WorkflowAction,
    WorkflowFlow,
)

__all__ = [
    # Pipelines
    "MatchCandidate",
    "Pipeline",
    "PipelineStage",
    "ResolvedPipeline",
    # Workflows
    "BRANCH_TYPES",
    "BranchConnection",
    "Connection",
    "CriteriaFilter",
    "EnrollmentCriteria",
    "EventFilterBranch",
    "FilterBranch",
    "ListBranch",
    "ListFilterBranch",
    "WorkflowAction",
    "WorkflowFlow",
]
