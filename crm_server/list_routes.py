"""API routes for contact lists."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from crm_backbone.sdk.client import HubSpotClient
from crm_server.deps import get_client

router = APIRouter()


class ListSearchRequest(BaseModel):
    """Request body for searching lists by name."""

    query: str | None = None
    count: int = 20
    offset: int | None = None


@router.post("/lists/search")
async def search_lists(request: ListSearchRequest, client: HubSpotClient = Depends(get_client)) -> dict:
    body: dict = {"count": request.count}
    if request.query:
        body["query"] = request.query
    if request.offset is not None:
        body["offset"] = request.offset
    return await client.post("/crm/v3/lists/search", body)


@router.get("/lists/{list_id}/memberships")
async def get_list_memberships(
    list_id: str,
    limit: int = 100,
    after: str | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    return await client.get(f"/crm/v3/lists/{list_id}/memberships", {"limit": limit, "after": after})
