"""Data model for deal/ticket pipelines and fuzzy resolution results."""

from pydantic import BaseModel

from crm_backbone.models.base import HubSpotModel


class PipelineStage(HubSpotModel):
    """a stage inside a pipeline."""

    id: str
    label: str
    display_order: int = 0


class Pipeline(HubSpotModel):
    """a pipeline and its ordered stages."""

    id: str
    label: str
    stages: list[PipelineStage] = []


class MatchCandidate(BaseModel):
    """an alternative surfaced when a name match is not confident."""

    label: str
    id: str
    score: float


class ResolvedPipeline(BaseModel):
    """Best pipeline (and optionally stage) match for a human-friendly name.

    When confidence is low, ``alternatives`` carries the other candidates so
    the caller can ask for clarification instead of guessing.
    """

    pipeline_id: str
    pipeline_label: str
    confidence: float
    stage_id: str | None = None
    stage_label: str | None = None
    stage_confidence: float | None = None
    alternatives: list[MatchCandidate] | None = None
