"""API route for CRM search with fuzzy pipeline and stage names."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from crm_backbone.sdk.client import HubSpotClient
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_backbone.utils.fuzzy import CONFIDENT_SCORE
from crm_server.deps import get_client, get_pipeline_cache

router = APIRouter()

FilterOperator = Literal[
    "EQ", "NEQ", "LT", "LTE", "GT", "GTE", "BETWEEN", "IN", "NOT_IN",
    "HAS_PROPERTY", "NOT_HAS_PROPERTY", "CONTAINS_TOKEN", "NOT_CONTAINS_TOKEN",
]

# stage property per object type that has pipelines
STAGE_PROPERTIES = {"deals": "dealstage", "tickets": "hs_pipeline_stage"}


# --- Request Models ---


class SearchFilter(BaseModel):
    """One property filter; filters in a request are ANDed together."""

    propertyName: str
    operator: FilterOperator
    value: str | None = None
    highValue: str | None = None
    values: list[str] | None = None


class SearchSort(BaseModel):
    propertyName: str
    direction: Literal["ASCENDING", "DESCENDING"]


class SearchRequest(BaseModel):
    """Request body for a CRM search."""

    filters: list[SearchFilter] = []
    pipeline_name: str | None = None  # deals/tickets only, fuzzy matched
    stage_name: str | None = None  # requires pipeline_name
    sorts: list[SearchSort] | None = None
    properties: list[str] | None = None
    limit: int = 10
    after: str | None = None


def build_search_body(
    filters: list[dict],
    sorts: list[SearchSort] | None,
    properties: list[str] | None,
    limit: int,
    after: str | None,
) -> dict:
    """Assemble a v3 search request body, leaving out empty parts."""
    body: dict = {"limit": limit}
    if filters:
        body["filterGroups"] = [{"filters": filters}]
    if sorts:
        body["sorts"] = [s.model_dump() for s in sorts]
    if properties:
        body["properties"] = properties
    if after:
        body["after"] = after
    return body


def _percent(score: float) -> str:
    return f"{score * 100:.0f}%"


@router.post("/search/{object_type}")
async def search_crm(
    object_type: str,
    request: SearchRequest,
    client: HubSpotClient = Depends(get_client),
    pipelines: PipelineCache = Depends(get_pipeline_cache),
) -> dict:
    """Search any object type.

    For deals and tickets, ``pipeline_name`` and ``stage_name`` are resolved
    to ids by fuzzy matching. Unresolvable or ambiguous names come back as a
    soft result (``error`` or ``warning`` with candidates) rather than a search.
    """
    filters = [f.model_dump(exclude_none=True) for f in request.filters]

    if request.pipeline_name and object_type in STAGE_PROPERTIES:
        resolved = await pipelines.resolve_pipeline(
            object_type, request.pipeline_name, request.stage_name
        )
        if resolved is None:
            return {
                "error": "NO_PIPELINE_MATCH",
                "message": f'No pipeline matching "{request.pipeline_name}" found for {object_type}.',
                "suggestion": "Use list_pipelines to see available pipelines and their exact names.",
            }

        if resolved.confidence < CONFIDENT_SCORE:
            return {
                "warning": "AMBIGUOUS_PIPELINE_MATCH",
                "message": (
                    f'Pipeline "{request.pipeline_name}" matched "{resolved.pipeline_label}" '
                    f"with low confidence ({_percent(resolved.confidence)})."
                ),
                "candidates": [c.model_dump() for c in resolved.alternatives or []],
                "suggestion": "Use list_pipelines to see exact names, or use a more specific name.",
            }

        filters.append({"propertyName": "pipeline", "operator": "EQ", "value": resolved.pipeline_id})

        if resolved.stage_id:
            if resolved.stage_confidence is not None and resolved.stage_confidence < CONFIDENT_SCORE:
                return {
                    "warning": "AMBIGUOUS_STAGE_MATCH",
                    "message": (
                        f'Stage "{request.stage_name}" matched "{resolved.stage_label}" '
                        f"with low confidence ({_percent(resolved.stage_confidence)})."
                    ),
                    "candidates": [c.model_dump() for c in resolved.alternatives or []],
                    "suggestion": "Use list_pipelines to see exact stage names for this pipeline.",
                }
            filters.append({
                "propertyName": STAGE_PROPERTIES[object_type],
                "operator": "EQ",
                "value": resolved.stage_id,
            })

    elif request.stage_name and not request.pipeline_name:
        return {
            "error": "MISSING_PIPELINE",
            "message": "stage_name requires pipeline_name to be specified as well.",
            "suggestion": "Add pipeline_name or use list_pipelines to find the pipeline first.",
        }

    body = build_search_body(filters, request.sorts, request.properties, request.limit, request.after)
    return await client.post(f"/crm/v3/objects/{object_type}/search", body)
