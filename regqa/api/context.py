# =============================================================================
# Context API — Regulatory Context Retrieval Endpoint
# =============================================================================
#
# POST /context runs the retrieval pipeline (classify → search → inject →
# rank → format) and returns the formatted context with its justification.
#
# Error handling:
# - Every retrieval strategy failed → 503 Service Unavailable
# - No matching entries → 200 with the "not found" sentinel (not an error)
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from regqa.agents.orchestrator import RankedContext, get_context
from regqa.agents.search import KnowledgeStoreUnavailableError
from regqa.api.deps import get_store
from regqa.models.requests import ContextRequest
from regqa.models.responses import (
    ContextResponse,
    EntryResponse,
    StrategyTraceResponse,
)
from regqa.services.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Context Retrieval"])


@router.post(
    "/context",
    response_model=ContextResponse,
    summary="Retrieve regulatory context for a question",
    description=(
        "Classifies the question, runs the prioritised retrieval strategies "
        "against the knowledge store, adds canonical reference notes for "
        "under-covered scenarios, and returns ranked, citation-tagged context."
    ),
)
async def context_endpoint(
    request: ContextRequest,
    store: KnowledgeStore = Depends(get_store),
) -> ContextResponse:
    logger.info("Context request: query='%s'", request.query[:80])

    context = await retrieve_or_503(request.query, store)
    return to_context_response(request.query, context)


async def retrieve_or_503(query: str, store: KnowledgeStore) -> RankedContext:
    """Run the pipeline, mapping a total store outage to 503."""
    try:
        return await get_context(query, store)
    except KnowledgeStoreUnavailableError as e:
        logger.error("Retrieval failed: %s", e)
        raise HTTPException(
            status_code=503,
            detail="Knowledge store unavailable; no retrieval strategy succeeded.",
        ) from e


def to_context_response(query: str, context: RankedContext) -> ContextResponse:
    return ContextResponse(
        query=query,
        query_type=context.query_type.value,
        rule_reference=context.signals.rule_reference,
        authoritative_match=context.authoritative_match,
        formatted_context=context.formatted_context,
        reasoning=context.reasoning,
        entries=[
            EntryResponse(
                id=entry.id,
                title=entry.title,
                source=entry.source,
                category=entry.category.value,
                section=entry.section,
                last_updated=entry.last_updated,
            )
            for entry in context.entries
        ],
        trace=[
            StrategyTraceResponse(
                name=t.name, num_results=t.num_results, error=t.error,
            )
            for t in context.trace
        ],
    )
