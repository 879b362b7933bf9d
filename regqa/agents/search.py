# =============================================================================
# Search Orchestrator — Prioritised Multi-Strategy Retrieval
# =============================================================================
#
# Runs the retrieval strategies for one classified query against the
# knowledge store and returns the raw merged results (unranked, possibly
# with duplicates) plus a per-strategy trace.
#
# STAGES:
#   1. rule_reference    — exact rule lookup. Authoritative: any hit ends
#                          retrieval here.
#   2. fan-out           — category search plus the specialised strategies
#                          the signals enable, run concurrently:
#                          takeover_documents, trading_arrangements,
#                          aggregation, faq, timetable_documents
#   3. keyword_fallback  — only when stage 2 found too little
#
# DESIGN DECISION: Merge in initiation order, not completion order.
# asyncio.gather returns results positionally, so the merged list (and the
# trace) is identical run to run however the store schedules its replies.
#
# DESIGN DECISION: A failing strategy contributes nothing, it does not fail
# the request. Only when EVERY attempted strategy fails is the store
# considered unavailable, and that is reported as one aggregated error.
# Cancellation is never absorbed.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from regqa.agents.classifier import QuerySignals, QueryType, classify
from regqa.agents.terms import AGGREGATION_RULE_TERM, TIMETABLE_TERM
from regqa.config import settings
from regqa.db.models import Category
from regqa.services.knowledge_store import KnowledgeStore, RegulatoryEntry

logger = logging.getLogger(__name__)

StrategyCall = Callable[[], Awaitable[list[RegulatoryEntry]]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class KnowledgeStoreUnavailableError(Exception):
    """Every retrieval strategy attempted for a query failed."""

    def __init__(self, strategy_errors: dict[str, BaseException]) -> None:
        self.strategy_errors = strategy_errors
        causes = "; ".join(
            f"{name}: {type(err).__name__}: {err}"
            for name, err in strategy_errors.items()
        )
        super().__init__(
            f"Knowledge store unavailable: all {len(strategy_errors)} "
            f"retrieval strategies failed ({causes})"
        )


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class StrategyTrace:
    """Record of a single strategy execution for the trace."""

    name: str
    num_results: int
    error: str | None = None


@dataclass
class SearchResult:
    """
    Raw retrieval output for one query.

    `entries` is in strategy order and may contain duplicates; ranking and
    de-duplication happen downstream.
    """

    entries: list[RegulatoryEntry]
    trace: list[StrategyTrace] = field(default_factory=list)
    authoritative_match: bool = False


# ---------------------------------------------------------------------------
# Category Selection
# ---------------------------------------------------------------------------
# Every QueryType must appear here (enforced by tests).
# ---------------------------------------------------------------------------

CATEGORY_BY_QUERY_TYPE: dict[QueryType, Category] = {
    QueryType.RIGHTS_ISSUE: Category.PRIMARY_RULES,
    QueryType.OPEN_OFFER: Category.PRIMARY_RULES,
    QueryType.TAKEOVER_OFFER: Category.TAKEOVER_RULES,
    QueryType.WHITEWASH: Category.TAKEOVER_RULES,
    QueryType.SHARE_CONSOLIDATION: Category.PRIMARY_RULES,
    QueryType.BOARD_LOT_CHANGE: Category.PRIMARY_RULES,
    QueryType.COMPANY_NAME_CHANGE: Category.PRIMARY_RULES,
    QueryType.RIGHTS_ISSUE_VS_OPEN_OFFER: Category.PRIMARY_RULES,
    QueryType.GENERAL: Category.PRIMARY_RULES,
}


def select_category(signals: QuerySignals) -> Category:
    """Category the scoped searches run against for this query."""
    return CATEGORY_BY_QUERY_TYPE[signals.query_type]


# ---------------------------------------------------------------------------
# Strategy Runner
# ---------------------------------------------------------------------------


class _StrategyRunner:
    """
    Executes strategies under a shared concurrency bound and timeout,
    recording a trace entry and any failure for each.
    """

    def __init__(self, max_concurrency: int, timeout: float) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._timeout = timeout
        self.trace: list[StrategyTrace] = []
        self.errors: dict[str, BaseException] = {}

    @property
    def all_failed(self) -> bool:
        return bool(self.trace) and len(self.errors) == len(self.trace)

    async def run(self, name: str, call: StrategyCall) -> list[RegulatoryEntry]:
        entries, record = await self._execute(name, call)
        self.trace.append(record)
        return entries

    async def run_stage(
        self, strategies: list[tuple[str, StrategyCall]],
    ) -> list[RegulatoryEntry]:
        outcomes = await asyncio.gather(
            *(self._execute(name, call) for name, call in strategies)
        )
        merged: list[RegulatoryEntry] = []
        for entries, record in outcomes:
            self.trace.append(record)
            merged.extend(entries)
        return merged

    async def _execute(
        self, name: str, call: StrategyCall,
    ) -> tuple[list[RegulatoryEntry], StrategyTrace]:
        try:
            async with self._semaphore:
                entries = await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning(
                "Strategy %s timed out after %.1fs", name, self._timeout,
            )
            self.errors[name] = e
            return [], StrategyTrace(name, 0, f"timed out after {self._timeout}s")
        except Exception as e:
            logger.warning("Strategy %s failed: %s", name, e)
            self.errors[name] = e
            return [], StrategyTrace(name, 0, f"{type(e).__name__}: {e}")

        entries = list(entries)
        logger.debug("Strategy %s returned %d entries", name, len(entries))
        return entries, StrategyTrace(name, len(entries))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def retrieve(
    query: str,
    store: KnowledgeStore,
    signals: QuerySignals | None = None,
    strategy_timeout: float | None = None,
    max_concurrency: int | None = None,
) -> SearchResult:
    """
    Run every applicable retrieval strategy for a query.

    Args:
        query: The user's question.
        store: Knowledge store to search.
        signals: Pre-computed classification; derived from `query` if omitted.
        strategy_timeout: Per-strategy bound in seconds (default from config).
        max_concurrency: Simultaneous store calls (default from config).

    Returns:
        SearchResult with raw entries and the strategy trace.

    Raises:
        KnowledgeStoreUnavailableError: If every attempted strategy failed.
    """
    signals = signals or classify(query)
    runner = _StrategyRunner(
        max_concurrency=max_concurrency or settings.max_concurrent_strategies,
        timeout=strategy_timeout or settings.strategy_timeout_seconds,
    )

    # --- Stage 1: authoritative rule lookup ---
    if signals.rule_reference:
        ref = signals.rule_reference
        hits = await runner.run(
            "rule_reference", lambda: _rule_reference_lookup(store, ref),
        )
        if hits:
            logger.info(
                "Authoritative match for rule %s: %d entries", ref, len(hits),
            )
            return SearchResult(
                entries=hits, trace=runner.trace, authoritative_match=True,
            )

    # --- Stage 2: category + specialised strategies, concurrently ---
    entries = await runner.run_stage(_plan_strategies(store, signals))

    # --- Stage 3: keyword fallback ---
    distinct = {entry.dedup_key for entry in entries}
    if len(distinct) < settings.min_context_results:
        entries.extend(
            await runner.run(
                "keyword_fallback", lambda: _keyword_fallback(store, signals),
            )
        )

    if runner.all_failed:
        raise KnowledgeStoreUnavailableError(runner.errors)

    logger.info(
        "Retrieval complete: %d entries from %d strategies (%d failed)",
        len(entries), len(runner.trace), len(runner.errors),
    )
    return SearchResult(entries=entries, trace=runner.trace)


# ---------------------------------------------------------------------------
# Strategy Planning
# ---------------------------------------------------------------------------


def _plan_strategies(
    store: KnowledgeStore, signals: QuerySignals,
) -> list[tuple[str, StrategyCall]]:
    """Stage 2 strategies in priority order, gated by the signals."""
    category = select_category(signals)
    query = signals.normalized_query

    strategies: list[tuple[str, StrategyCall]] = [
        ("category", lambda: store.search(query, category=category)),
    ]

    if signals.is_general_offer:
        strategies.append(
            ("takeover_documents", lambda: _takeover_documents(store, signals)),
        )
    if signals.is_corporate_action and signals.is_trading_arrangement:
        strategies.append(
            ("trading_arrangements", lambda: _trading_arrangements(store)),
        )
    if AGGREGATION_RULE_TERM in signals.financial_terms:
        strategies.append(
            ("aggregation", lambda: _aggregation(store)),
        )
    if signals.is_faq:
        strategies.append(("faq", lambda: _faq_documents(store)))
    if signals.is_timetable or TIMETABLE_TERM in signals.financial_terms:
        strategies.append(
            ("timetable_documents", lambda: _timetable_documents(store, signals)),
        )

    return strategies


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def rule_token_pattern(rule_reference: str) -> re.Pattern[str]:
    """
    Matcher for a rule citation such as "Rule 7.19A". The number must be a
    whole token: "rule 7.1" does not match inside "rule 7.19A".
    """
    return re.compile(
        rf"\brules?\s+{re.escape(rule_reference)}(?!\w|\.\d)",
        re.IGNORECASE,
    )


async def _rule_reference_lookup(
    store: KnowledgeStore, rule_reference: str,
) -> list[RegulatoryEntry]:
    pattern = rule_token_pattern(rule_reference)
    candidates = await store.search_across_categories(rule_reference)
    return [
        entry
        for entry in candidates
        if (entry.section and entry.section.upper() == rule_reference)
        or pattern.search(entry.title)
        or pattern.search(entry.content)
    ]


async def _takeover_documents(
    store: KnowledgeStore, signals: QuerySignals,
) -> list[RegulatoryEntry]:
    enriched = f"{signals.normalized_query} takeovers code general offer"
    if signals.is_whitewash:
        enriched += " whitewash waiver dealing"
    return await store.search(enriched, category=Category.TAKEOVER_RULES)


async def _trading_arrangements(store: KnowledgeStore) -> list[RegulatoryEntry]:
    documents = await store.search_by_title("Trading Arrangements")
    if documents:
        return documents
    return await store.search(
        "trading arrangement corporate action", category=Category.PRIMARY_RULES,
    )


async def _aggregation(store: KnowledgeStore) -> list[RegulatoryEntry]:
    return await store.search(
        "aggregation 7.19A rights issue", category=Category.PRIMARY_RULES,
    )


async def _faq_documents(store: KnowledgeStore) -> list[RegulatoryEntry]:
    faqs = await store.search_by_title("FAQ")
    obligations = await store.search_by_title("Continuing Obligations")
    return [*faqs, *obligations]


async def _timetable_documents(
    store: KnowledgeStore, signals: QuerySignals,
) -> list[RegulatoryEntry]:
    documents = [
        entry
        for entry in await store.search_by_title("timetable")
        if entry.category == Category.REFERENCE_DOCUMENT
    ]
    if signals.is_general_offer:
        documents += await store.search(
            "general offer timetable", category=Category.TAKEOVER_RULES,
        )
    elif signals.mentions_rights_issue:
        documents += await store.search(
            "rights issue timetable", category=Category.PRIMARY_RULES,
        )
    return documents


async def _keyword_fallback(
    store: KnowledgeStore, signals: QuerySignals,
) -> list[RegulatoryEntry]:
    keywords = " ".join(signals.financial_terms) or signals.normalized_query
    scoped = await store.search(keywords, category=select_category(signals))
    if scoped:
        return scoped
    return await store.search_across_categories(keywords)
