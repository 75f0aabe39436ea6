"""API routes for reading CRM objects and their associations."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator

from crm_backbone.sdk.client import HubSpotClient
from crm_server.deps import get_client

router = APIRouter()

MAX_BATCH_OBJECTS = 100
MAX_BATCH_ASSOCIATIONS = 1000


# --- Request Models ---


class BatchReadRequest(BaseModel):
    """Request body for reading several objects of one type."""

    object_ids: list[str] = Field(min_length=1, max_length=MAX_BATCH_OBJECTS)
    properties: list[str] | None = None
    properties_with_history: list[str] | None = None


class AssociationsRequest(BaseModel):
    """Request body for association lookups (one id or a batch of ids)."""

    from_object_type: str
    to_object_type: str
    object_id: str | None = None
    object_ids: list[str] | None = Field(default=None, max_length=MAX_BATCH_ASSOCIATIONS)

    @model_validator(mode="after")
    def exactly_one_source(self) -> "AssociationsRequest":
        if not self.object_id and not self.object_ids:
            raise ValueError("Provide either object_id (single) or object_ids (batch), not neither.")
        if self.object_id and self.object_ids:
            raise ValueError("Provide either object_id (single) or object_ids (batch), not both.")
        return self


def _joined(values: list[str] | None) -> str | None:
    return ",".join(values) if values else None


# --- Routes ---


@router.get("/objects/{object_type}/{object_id}")
async def get_object(
    object_type: str,
    object_id: str,
    properties: list[str] | None = Query(None),
    properties_with_history: list[str] | None = Query(None),
    associations: list[str] | None = Query(None),
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Get one object, optionally with property history and associations."""
    return await client.get(
        f"/crm/v3/objects/{object_type}/{object_id}",
        {
            "properties": _joined(properties),
            "propertiesWithHistory": _joined(properties_with_history),
            "associations": _joined(associations),
        },
    )


@router.get("/objects/{object_type}")
async def list_objects(
    object_type: str,
    limit: int = 10,
    after: str | None = None,
    properties: list[str] | None = Query(None),
    client: HubSpotClient = Depends(get_client),
) -> dict:
    return await client.get(
        f"/crm/v3/objects/{object_type}",
        {"limit": limit, "after": after, "properties": _joined(properties)},
    )


@router.post("/objects/{object_type}/batch")
async def get_objects_batch(
    object_type: str,
    request: BatchReadRequest,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Read up to 100 objects by id. Associations are not included."""
    body: dict = {"inputs": [{"id": object_id} for object_id in request.object_ids]}
    if request.properties:
        body["properties"] = request.properties
    if request.properties_with_history:
        body["propertiesWithHistory"] = request.properties_with_history
    return await client.post(f"/crm/v3/objects/{object_type}/batch/read", body)


@router.post("/associations")
async def get_associations(
    request: AssociationsRequest,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    """Associated object ids for one record, or for up to 1,000 records at once."""
    if request.object_ids:
        return await client.post(
            f"/crm/v4/associations/{request.from_object_type}/{request.to_object_type}/batch/read",
            {"inputs": [{"id": object_id} for object_id in request.object_ids]},
        )
    return await client.get(
        f"/crm/v4/objects/{request.from_object_type}/{request.object_id}"
        f"/associations/{request.to_object_type}"
    )
