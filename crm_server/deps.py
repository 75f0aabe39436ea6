"""Shared client and caches for the tool routes.

One client and one set of caches per process, so pipelines and workflows
are loaded at most once per server lifetime.
"""

from functools import lru_cache

from crm_backbone.sdk.client import HubSpotClient
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_backbone.sdk.workflow_cache import WorkflowCache


@lru_cache
def get_client() -> HubSpotClient:
    return HubSpotClient.from_env()


@lru_cache
def get_pipeline_cache() -> PipelineCache:
    return PipelineCache(get_client())


@lru_cache
def get_workflow_cache() -> WorkflowCache:
    return WorkflowCache(get_client())
