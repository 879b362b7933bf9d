# =============================================================================
# Shared FastAPI Dependencies
# =============================================================================
#
# DESIGN DECISION: The knowledge store is a FastAPI dependency, built once
# and cached. The retrieval pipeline itself takes the store as an argument,
# so this is the only place a process-wide instance exists. Tests replace it
# with app.dependency_overrides[get_store].
# =============================================================================

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import HTTPException

from regqa.services.knowledge_store import (
    KnowledgeStore,
    KnowledgeStoreError,
    get_knowledge_store,
)
from regqa.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)


@lru_cache
def _configured_store() -> KnowledgeStore:
    return get_knowledge_store()


def get_store() -> KnowledgeStore:
    """
    FastAPI dependency returning the configured knowledge store.

    A seed file that cannot be loaded is a deployment problem, reported as
    503 rather than a generic 500.
    """
    try:
        return _configured_store()
    except KnowledgeStoreError as e:
        logger.error("Knowledge store could not be initialised: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Knowledge store unavailable: {e}",
        ) from e


def get_llm() -> LLMProvider:
    """
    FastAPI dependency returning the configured LLM provider.

    Missing API keys surface as 503.
    """
    try:
        return get_llm_provider()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
