# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI validates bodies against these
# (automatic 422 on bad input) and publishes them in the OpenAPI docs.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class ContextRequest(BaseModel):
    """
    Request body for POST /context — retrieve regulatory context.

    Example:
        {"query": "What is the rights issue aggregation threshold under rule 7.19A?"}
    """

    query: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        description="The regulatory question",
        examples=["What is the rights issue aggregation threshold under rule 7.19A?"],
    )


class ValidateRequest(BaseModel):
    """
    Request body for POST /validate — check a drafted answer.

    `query_type` is optional and lenient: "rights_issue", "Rights Issue"
    and "rights-issue" are equivalent. Unknown labels skip the domain
    checklist rather than failing the request.
    """

    answer_text: str = Field(
        ...,
        max_length=100_000,
        description="The drafted answer to validate",
    )
    query_type: str | None = Field(
        default=None,
        description=(
            "Query type whose checklist applies: rights-issue, open-offer, "
            "takeover-offer, whitewash, share-consolidation, board-lot-change, "
            "company-name-change, general"
        ),
        examples=["open-offer"],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "answer_text": (
                        "An open offer under Listing Rules Chapter 7 has no "
                        "nil-paid rights trading."
                    ),
                    "query_type": "open-offer",
                },
            ]
        }
    )


class AskRequest(BaseModel):
    """Request body for POST /ask — retrieve, draft and validate in one call."""

    query: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        description="The regulatory question",
        examples=["What is the timetable for a rights issue?"],
    )
