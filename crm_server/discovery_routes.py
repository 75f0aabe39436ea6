"""API routes for discovering pipelines, properties, owners and schemas."""

from typing import Literal

from fastapi import APIRouter, Depends

from crm_backbone.sdk.client import HubSpotClient
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_server.deps import get_client, get_pipeline_cache

router = APIRouter()


@router.get("/pipelines/{object_type}")
async def list_pipelines(
    object_type: Literal["deals", "tickets"],
    cache: PipelineCache = Depends(get_pipeline_cache),
) -> dict:
    """List pipelines and their stages, served from the pipeline cache."""
    pipelines = await cache.get_pipelines(object_type)
    return {"results": [p.to_api() for p in pipelines]}


@router.get("/properties/{object_type}")
async def list_properties(object_type: str, client: HubSpotClient = Depends(get_client)) -> dict:
    """List property definitions for an object type."""
    return await client.get(f"/crm/v3/properties/{object_type}")


@router.get("/owners")
async def list_owners(
    limit: int = 100,
    after: str | None = None,
    email: str | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    return await client.get("/crm/v3/owners", {"limit": limit, "after": after, "email": email})


@router.get("/schemas")
async def list_custom_object_schemas(client: HubSpotClient = Depends(get_client)) -> dict:
    """Custom object schemas; the objectTypeId is what other routes accept."""
    return await client.get("/crm/v3/schemas")
