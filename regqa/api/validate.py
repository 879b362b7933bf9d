# =============================================================================
# Validate API — Answer Completeness Endpoint
# =============================================================================
#
# POST /validate runs the two-tier completeness validator on a drafted
# answer. The validator is pure and fast, so the handler calls it inline.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter

from regqa.models.requests import ValidateRequest
from regqa.validation import CompletenessVerdict, validate_answer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Answer Validation"])


@router.post(
    "/validate",
    response_model=CompletenessVerdict,
    summary="Check a drafted answer for truncation and missing elements",
    description=(
        "Applies structural truncation checks to every answer and the "
        "domain checklist for the given query type. Returns whether the "
        "answer is complete, whether it looks truncated, the missing "
        "elements and a confidence level."
    ),
)
async def validate_endpoint(request: ValidateRequest) -> CompletenessVerdict:
    logger.info(
        "Validate request: %d chars, query_type=%s",
        len(request.answer_text), request.query_type,
    )
    return validate_answer(request.answer_text, request.query_type)
