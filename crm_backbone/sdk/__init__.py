"""SDK for talking to HubSpot: API client and entity caches."""

from crm_backbone.sdk.client import HubSpotApiError, HubSpotClient
from crm_backbone.sdk.entity_cache import EntityCache
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_backbone.sdk.workflow_cache import WorkflowCache

__all__ = [
    "EntityCache",
    "HubSpotApiError",
    "HubSpotClient",
    "PipelineCache",
    "WorkflowCache",
]
