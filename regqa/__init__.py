# =============================================================================
# Regulatory Context Retrieval & Answer Completeness Service
# =============================================================================
# Answers questions about Hong Kong Listing Rules and Takeovers Code
# obligations by retrieving, ranking and formatting regulatory context, and
# checks drafted answers for truncation and missing domain elements.
#
# Package structure:
#   regqa/
#   ├── api/          → FastAPI route handlers (context, validate, ask)
#   ├── agents/       → Classification, retrieval strategies, fallbacks,
#   │                    ranking, formatting, LangGraph pipeline, drafting
#   ├── db/           → Async engine and ORM model for the SQL store
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → Knowledge store backends, LLM providers
#   └── validation/   → Completeness validator rule tables
# =============================================================================
