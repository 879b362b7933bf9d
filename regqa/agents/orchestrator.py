# =============================================================================
# LangGraph Orchestrator — Context Retrieval Pipeline
# =============================================================================
#
# Wires the retrieval stages into a LangGraph StateGraph:
#
#   START ──▶ classify ──▶ search ──▶ inject ──▶ rank ──▶ format ──▶ END
#
# DESIGN DECISION: Linear graph (no conditional edges).
# The only branch in retrieval (authoritative rule match short-circuits the
# remaining strategies) lives inside the search node. Fallback injection,
# ranking and formatting always run.
#
# DESIGN DECISION: Store carried in state, not a module-level singleton.
# Callers pass the store per call, so tests and concurrent callers with
# different stores never interfere.
# NOTE: The store is not JSON-serialisable. Safe as long as no checkpointer
# is configured on the graph (current: no checkpointer).
#
# DESIGN DECISION: Graph compiled once at module level and reused for every
# request.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from regqa.agents.classifier import QuerySignals, QueryType, classify
from regqa.agents.fallbacks import inject_fallbacks, is_fallback
from regqa.agents.formatter import format_context
from regqa.agents.ranking import process
from regqa.agents.search import SearchResult, StrategyTrace, retrieve
from regqa.services.knowledge_store import KnowledgeStore, RegulatoryEntry

logger = logging.getLogger(__name__)


class RetrievalCancelledError(Exception):
    """The caller's cancellation signal fired before retrieval finished."""


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass
class RankedContext:
    """
    Final pipeline output.

    `entries` is non-empty whenever any stage produced a result; when it is
    empty, `formatted_context` and `reasoning` are the formatter sentinels.
    """

    entries: list[RegulatoryEntry]
    formatted_context: str
    reasoning: str
    signals: QuerySignals
    authoritative_match: bool = False
    trace: list[StrategyTrace] = field(default_factory=list)

    @property
    def query_type(self) -> QueryType:
        return self.signals.query_type


# ---------------------------------------------------------------------------
# Pipeline State Schema
# ---------------------------------------------------------------------------


class RetrievalState(TypedDict, total=False):
    """
    State that flows through the retrieval graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    query: str
    store: KnowledgeStore

    # --- Intermediate (set by nodes) ---
    signals: QuerySignals
    search_result: SearchResult
    augmented: list[RegulatoryEntry]
    ranked: list[RegulatoryEntry]

    # --- Output (set by format node) ---
    formatted_context: str
    reasoning: str


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def classify_node(state: RetrievalState) -> dict:
    signals = classify(state["query"])
    logger.info(
        "Classified query: type=%s, rule=%s (query: '%s')",
        signals.query_type.value,
        signals.rule_reference,
        state["query"][:80],
    )
    return {"signals": signals}


async def search_node(state: RetrievalState) -> dict:
    result = await retrieve(
        state["query"], state["store"], signals=state["signals"],
    )
    return {"search_result": result}


async def inject_node(state: RetrievalState) -> dict:
    augmented = inject_fallbacks(
        state["search_result"].entries, state["query"], state["signals"],
    )
    return {"augmented": augmented}


async def rank_node(state: RetrievalState) -> dict:
    ranked = process(state["augmented"], list(state["signals"].financial_terms))
    return {"ranked": ranked}


async def format_node(state: RetrievalState) -> dict:
    ranked = state["ranked"]
    formatted, reasoning = format_context(
        ranked,
        rule_reference=state["signals"].rule_reference,
        authoritative_match=state["search_result"].authoritative_match,
        fallback_count=sum(1 for e in ranked if is_fallback(e)),
    )
    return {"formatted_context": formatted, "reasoning": reasoning}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(RetrievalState)
_builder.add_node("classify", classify_node)
_builder.add_node("search", search_node)
_builder.add_node("inject", inject_node)
_builder.add_node("rank", rank_node)
_builder.add_node("format", format_node)

_builder.add_edge(START, "classify")
_builder.add_edge("classify", "search")
_builder.add_edge("search", "inject")
_builder.add_edge("inject", "rank")
_builder.add_edge("rank", "format")
_builder.add_edge("format", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def get_context(
    query: str,
    store: KnowledgeStore,
    cancel_event: asyncio.Event | None = None,
) -> RankedContext:
    """
    Entry point: run the retrieval graph for one query.

    Args:
        query: The user's question.
        store: Knowledge store to search.
        cancel_event: Optional signal. Setting it cancels in-flight store
            calls and raises RetrievalCancelledError.

    Raises:
        KnowledgeStoreUnavailableError: If every retrieval strategy failed.
        RetrievalCancelledError: If `cancel_event` fired first.
    """
    initial_state: RetrievalState = {"query": query, "store": store}

    if cancel_event is None:
        final_state = await graph.ainvoke(initial_state)
        return _to_ranked_context(final_state)

    if cancel_event.is_set():
        raise RetrievalCancelledError("Retrieval cancelled before it started")

    pipeline = asyncio.ensure_future(graph.ainvoke(initial_state))
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {pipeline, waiter}, return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        pipeline.cancel()
        raise
    finally:
        waiter.cancel()

    if pipeline in done:
        return _to_ranked_context(pipeline.result())

    pipeline.cancel()
    # return_exceptions=True collects the pipeline's CancelledError without
    # masking a cancellation of this task.
    await asyncio.gather(pipeline, return_exceptions=True)
    logger.info("Retrieval cancelled by caller (query: '%s')", query[:80])
    raise RetrievalCancelledError("Retrieval cancelled by caller")


def get_context_sync(query: str, store: KnowledgeStore) -> RankedContext:
    """Blocking wrapper around get_context for non-async callers."""
    return asyncio.run(get_context(query, store))


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _to_ranked_context(state: RetrievalState) -> RankedContext:
    search_result = state["search_result"]
    context = RankedContext(
        entries=state["ranked"],
        formatted_context=state["formatted_context"],
        reasoning=state["reasoning"],
        signals=state["signals"],
        authoritative_match=search_result.authoritative_match,
        trace=search_result.trace,
    )
    logger.info(
        "Context ready: %d entries, authoritative=%s",
        len(context.entries), context.authoritative_match,
    )
    return context
