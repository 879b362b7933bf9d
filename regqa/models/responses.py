# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API. The completeness verdict is returned
# as-is (regqa.validation.CompletenessVerdict is already a Pydantic model).
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from regqa.validation import CompletenessVerdict


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    knowledge_store: str = Field(description='Configured backend: "memory" or "sql"')


class EntryResponse(BaseModel):
    """One regulatory entry included in the context."""

    id: str
    title: str
    source: str
    category: str
    section: str | None = None
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class StrategyTraceResponse(BaseModel):
    """What one retrieval strategy contributed."""

    name: str
    num_results: int
    error: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ContextResponse(BaseModel):
    """Response for POST /context."""

    query: str
    query_type: str = Field(description="Classified query type")
    rule_reference: str | None = Field(
        default=None, description="Rule number cited by the query, normalised",
    )
    authoritative_match: bool = Field(
        default=False,
        description="True when the context came from an exact rule lookup",
    )
    formatted_context: str
    reasoning: str
    entries: list[EntryResponse] = Field(default_factory=list)
    trace: list[StrategyTraceResponse] = Field(default_factory=list)


class AskResponse(BaseModel):
    """Response for POST /ask."""

    query: str
    query_type: str
    answer: str
    model: str
    context: ContextResponse
    verdict: CompletenessVerdict
