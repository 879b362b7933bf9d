# =============================================================================
# Ask API — Retrieve, Draft and Validate
# =============================================================================
#
# FLOW:
#   1. Retrieve regulatory context (same pipeline as POST /context)
#   2. Draft an answer with the configured LLM provider
#   3. Validate the draft against the checklist for the query type
#
# The verdict is returned alongside the answer rather than used to reject
# it; callers decide whether to retry or show the answer with a warning.
#
# Error handling:
# - Missing API key → 503 Service Unavailable
# - Knowledge store outage → 503 Service Unavailable
# - LLM API errors → 502 Bad Gateway
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from regqa.agents.analyst import draft_answer
from regqa.api.context import retrieve_or_503, to_context_response
from regqa.api.deps import get_llm, get_store
from regqa.models.requests import AskRequest
from regqa.models.responses import AskResponse
from regqa.services.knowledge_store import KnowledgeStore
from regqa.services.llm import LLMProvider
from regqa.validation import validate_answer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Answer a regulatory question and check the answer",
)
async def ask_endpoint(
    request: AskRequest,
    store: KnowledgeStore = Depends(get_store),
    llm: LLMProvider = Depends(get_llm),
) -> AskResponse:
    logger.info("Ask request: query='%s'", request.query[:80])

    context = await retrieve_or_503(request.query, store)

    try:
        draft = await draft_answer(request.query, context, llm)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Answer drafting failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"LLM service error: {e}",
        ) from e

    verdict = validate_answer(draft.answer, context.query_type)
    if not verdict.is_complete:
        logger.warning(
            "Drafted answer incomplete (confidence=%s): %s",
            verdict.confidence.value, verdict.missing_elements,
        )

    return AskResponse(
        query=request.query,
        query_type=context.query_type.value,
        answer=draft.answer,
        model=draft.model,
        context=to_context_response(request.query, context),
        verdict=verdict,
    )
