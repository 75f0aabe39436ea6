"""FastAPI application exposing HubSpot CRM tools."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm_backbone.config import CORS_ORIGINS, get_access_token, setup_logging
from crm_backbone.sdk.client import HubSpotApiError
from crm_server.discovery_routes import router as discovery_router
from crm_server.list_routes import router as list_router
from crm_server.marketing_routes import router as marketing_router
from crm_server.object_routes import router as object_router
from crm_server.search_routes import router as search_router
from crm_server.sequence_routes import router as sequence_router
from crm_server.timeline_routes import router as timeline_router
from crm_server.workflow_routes import router as workflow_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fail fast on startup when the access token is missing."""
    setup_logging()
    get_access_token()
    logger.info("HubSpot tool server started")
    yield


app = FastAPI(
    title="HubSpot CRM Tools API",
    description="Read-only HubSpot CRM tools: search, timelines, marketing, sequences and workflow diagrams",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HubSpotApiError)
async def hubspot_error_handler(request: Request, exc: HubSpotApiError) -> JSONResponse:
    """Return upstream failures as structured JSON with the upstream status."""
    # status 0 means HubSpot was never reached
    status_code = exc.status if exc.status else 502
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status, exc.category)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# include routes
app.include_router(discovery_router, prefix="/api")
app.include_router(object_router, prefix="/api")
app.include_router(search_router, prefix="/api")
app.include_router(timeline_router, prefix="/api")
app.include_router(marketing_router, prefix="/api")
app.include_router(sequence_router, prefix="/api")
app.include_router(list_router, prefix="/api")
app.include_router(workflow_router, prefix="/api")


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": VERSION,
        "endpoints": {
            "pipelines": "/api/pipelines/{object_type}",
            "objects": "/api/objects/{object_type}",
            "search": "/api/search/{object_type}",
            "activity": "/api/contacts/{contact_id}/activity",
            "email_campaigns": "/api/email-campaigns",
            "analytics": "/api/analytics/{breakdown}/{period}",
            "sequences": "/api/sequences",
            "lists": "/api/lists/search",
            "workflows": "/api/workflows",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
