"""API routes for sales sequences and enrollments."""

from fastapi import APIRouter, Depends, HTTPException

from crm_backbone.sdk.client import HubSpotClient
from crm_server.deps import get_client

router = APIRouter()


async def _default_user_id(client: HubSpotClient) -> str:
    """the userId of the first owner; the sequences API is scoped per user."""
    owners = await client.get("/crm/v3/owners", {"limit": 1}) or {}
    results = owners.get("results") or []
    user_id = results[0].get("userId") if results else None
    if user_id is None:
        raise HTTPException(
            status_code=400,
            detail="Could not resolve a userId from owners. Pass user_id explicitly.",
        )
    return str(user_id)


@router.get("/sequences")
async def list_sequences(
    user_id: str | None = None,
    limit: int = 20,
    after: str | None = None,
    client: HubSpotClient = Depends(get_client),
) -> dict:
    if user_id is None:
        user_id = await _default_user_id(client)
    return await client.get(
        "/automation/v4/sequences",
        {"userId": user_id, "limit": limit, "after": after},
    )


@router.get("/contacts/{contact_id}/sequence-enrollments")
async def get_sequence_enrollments(contact_id: str, client: HubSpotClient = Depends(get_client)) -> dict:
    return await client.get(f"/automation/v4/sequences/enrollments/contact/{contact_id}")
