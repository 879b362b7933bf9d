# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn regqa.main:app --reload
#
# Routers:
#   POST /context   → regulatory context retrieval
#   POST /validate  → answer completeness validation
#   POST /ask       → retrieve + draft + validate
#   GET  /health    → liveness
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException

from regqa.api import ask, context, validate
from regqa.api.deps import get_store
from regqa.config import Settings, get_settings, settings
from regqa.models.responses import HealthResponse

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the configured knowledge store at startup so a broken seed file or
    database URL shows up in the logs before the first request.

    The service still starts when the store is unavailable; requests then
    get 503 from the store dependency.
    """
    logger.info(
        "Starting %s v%s (knowledge store: %s)",
        settings.app_name, settings.app_version, settings.knowledge_store_type,
    )
    try:
        get_store()
    except HTTPException as e:
        logger.error("Knowledge store not ready at startup: %s", e.detail)
    yield
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    lifespan=lifespan,
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Retrieves ranked, citation-tagged regulatory context for Listing "
        "Rules and Takeovers Code questions, and checks drafted answers for "
        "truncation and missing elements."
    ),
)

app.include_router(context.router)
app.include_router(validate.router)
app.include_router(ask.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(config: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        version=config.app_version,
        service=config.app_name,
        knowledge_store=config.knowledge_store_type,
    )
