"""API routes for automation workflows and their ASCII diagrams."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from crm_backbone.analysis.workflow_renderer import render_workflow
from crm_backbone.models.workflow import WorkflowFlow
from crm_backbone.sdk.workflow_cache import WorkflowCache
from crm_server.deps import get_workflow_cache

router = APIRouter()


async def _load_flow(flow_id: str, cache: WorkflowCache) -> WorkflowFlow:
    """Get a flow from the cache or raise 404."""
    flow = await cache.get_by_id(flow_id)
    if flow is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "WORKFLOW_NOT_FOUND",
                "message": f'No workflow found with flowId "{flow_id}"',
                "suggestion": "Use list_workflows to find valid flow IDs.",
            },
        )
    return flow


@router.get("/workflows")
async def list_workflows(
    query: str | None = None,
    enabled_only: bool = False,
    cache: WorkflowCache = Depends(get_workflow_cache),
) -> dict:
    """List workflows, best name match first when ``query`` is given."""
    flows = await cache.search_by_name(query) if query else await cache.get_all()
    if enabled_only:
        flows = [f for f in flows if f.is_enabled]
    return {
        "total": len(flows),
        "workflows": [f.summary() for f in flows],
    }


@router.get("/workflows/{flow_id}")
async def get_workflow(flow_id: str, cache: WorkflowCache = Depends(get_workflow_cache)) -> dict:
    """A workflow's diagram alongside its structured action data."""
    flow = await _load_flow(flow_id, cache)
    data = flow.summary()
    data["startActionId"] = flow.start_action_id
    data["actions"] = [action.to_api() for action in flow.actions]
    return {
        "diagram": render_workflow(flow),
        "workflow": data,
    }


@router.get("/workflows/{flow_id}/diagram", response_class=PlainTextResponse)
async def get_workflow_diagram(flow_id: str, cache: WorkflowCache = Depends(get_workflow_cache)) -> str:
    flow = await _load_flow(flow_id, cache)
    return render_workflow(flow)
