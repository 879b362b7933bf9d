# =============================================================================
# Query Classifier — Rule-Based Regulatory Intent Detection
# =============================================================================
#
# Turns a raw question into QuerySignals: which regulatory framework it
# touches (Listing Rules corporate action vs. Takeovers Code offer), which
# rule it cites, and what flavour of answer it wants (timetable, FAQ).
#
# DESIGN DECISION: Keyword/regex classification, no LLM.
# The categories are a closed, well-known set and the signals gate which
# knowledge-store queries run. A deterministic classifier makes the whole
# retrieval pipeline reproducible for a given store.
#
# DESIGN DECISION: Open offers are checked before takeover offers.
# An "open offer" is a Listing Rules corporate action; a "general offer" is
# a Takeovers Code event. Confusing the two sends the answer to the wrong
# rule book, so the more specific corporate-action check wins.
#
# A question comparing a rights issue with an open offer ("difference
# between", "compare", "versus", "vs") gets its own query type: its answer
# must cover both terminologies, which neither single-action checklist asks.
#
# RULE REFERENCES:
#   "rule 7.19A"          → "7.19A"
#   "Rule 13.36(2)(a)"    → "13.36"  (sub-paragraphs cut)
#   "chapter 14 rule 6"   → "14.6"
#   "chapter 7 rule 7.21" → "7.21"
#   "rule of thumb"       → discarded (fails the rule-number grammar)
# =============================================================================

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass

from regqa.agents.terms import extract_terms

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CorporateActionType(str, enum.Enum):
    """Listing Rules corporate actions the pipeline knows how to serve."""

    RIGHTS_ISSUE = "rights-issue"
    OPEN_OFFER = "open-offer"
    SHARE_CONSOLIDATION = "share-consolidation"
    BOARD_LOT_CHANGE = "board-lot-change"
    COMPANY_NAME_CHANGE = "company-name-change"


class QueryType(str, enum.Enum):
    """
    Closed set of query types.

    Retrieval category selection and the validator's checklist table both
    dispatch on this enum; each must cover every member.
    """

    RIGHTS_ISSUE = "rights-issue"
    OPEN_OFFER = "open-offer"
    TAKEOVER_OFFER = "takeover-offer"
    WHITEWASH = "whitewash"
    SHARE_CONSOLIDATION = "share-consolidation"
    BOARD_LOT_CHANGE = "board-lot-change"
    COMPANY_NAME_CHANGE = "company-name-change"
    RIGHTS_ISSUE_VS_OPEN_OFFER = "rights-issue-vs-open-offer"
    GENERAL = "general"

    @classmethod
    def parse(cls, label: str | None) -> QueryType | None:
        """
        Resolve a loosely formatted label ("rights_issue", "Rights Issue")
        to a member, or None when it names no known type.
        """
        if not label:
            return None
        normalised = re.sub(r"[\s_]+", "-", label.strip().lower())
        try:
            return cls(normalised)
        except ValueError:
            return None


_QUERY_TYPE_BY_ACTION: dict[CorporateActionType, QueryType] = {
    CorporateActionType.RIGHTS_ISSUE: QueryType.RIGHTS_ISSUE,
    CorporateActionType.OPEN_OFFER: QueryType.OPEN_OFFER,
    CorporateActionType.SHARE_CONSOLIDATION: QueryType.SHARE_CONSOLIDATION,
    CorporateActionType.BOARD_LOT_CHANGE: QueryType.BOARD_LOT_CHANGE,
    CorporateActionType.COMPANY_NAME_CHANGE: QueryType.COMPANY_NAME_CHANGE,
}


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuerySignals:
    """Classification output for one query. Built per call, never stored."""

    normalized_query: str
    is_whitewash: bool = False
    is_general_offer: bool = False
    is_trading_arrangement: bool = False
    is_corporate_action: bool = False
    rule_reference: str | None = None
    corporate_action_type: CorporateActionType | None = None
    financial_terms: tuple[str, ...] = ()
    is_faq: bool = False
    is_timetable: bool = False
    is_comparison: bool = False

    @property
    def query_type(self) -> QueryType:
        if self.compares_rights_issue_and_open_offer:
            return QueryType.RIGHTS_ISSUE_VS_OPEN_OFFER
        if self.corporate_action_type == CorporateActionType.OPEN_OFFER:
            return QueryType.OPEN_OFFER
        if self.is_whitewash:
            return QueryType.WHITEWASH
        if self.is_general_offer:
            return QueryType.TAKEOVER_OFFER
        if self.corporate_action_type is not None:
            return _QUERY_TYPE_BY_ACTION[self.corporate_action_type]
        return QueryType.GENERAL

    @property
    def mentions_rights_issue(self) -> bool:
        return "rights issue" in self.normalized_query

    @property
    def compares_rights_issue_and_open_offer(self) -> bool:
        return (
            self.is_comparison
            and self.mentions_rights_issue
            and "open offer" in self.normalized_query
        )


# ---------------------------------------------------------------------------
# Detection Patterns
# ---------------------------------------------------------------------------

# Common variants rewritten before any detection runs
_NORMALISATIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\brights?\s+issues?\b"), "rights issue"),
    (re.compile(r"\bopen\s+offers\b"), "open offer"),
    (re.compile(r"\btake-?\s?overs\b"), "takeovers"),
    (re.compile(r"\btake-?\s?over\b"), "takeover"),
    (re.compile(r"\bwhite-?\s?wash\b"), "whitewash"),
    (re.compile(r"\bsub\s+division\b"), "sub-division"),
    (re.compile(r"\s+"), " "),
)

_GENERAL_OFFER = re.compile(
    r"\bgeneral offers?\b|\bmandatory (?:general )?offers?\b"
    r"|\bvoluntary (?:general )?offers?\b|\btakeover offers?\b"
    r"|\btakeover bids?\b|\btakeovers? code\b|\bofferor\b|\bofferee\b"
)

_SHARE_CONSOLIDATION = re.compile(
    r"\bshare consolidation\b|\bconsolidation of shares\b|\bsub-?division\b"
)
_BOARD_LOT = re.compile(r"\bboard lots?\b|\blot size\b")
_NAME_CHANGE = re.compile(
    r"\bcompany name\b|\bchange (?:of|in) (?:company )?name\b|\bstock short name\b"
)
_TIMETABLE = re.compile(r"\btime ?tables?\b|\bschedule\b|\btimeline\b|\bkey dates\b")
_COMPARISON = re.compile(
    r"\bdifferences? between\b|\bcompar(?:e|ed|es|ing|ison)\b|\bversus\b|\bvs\b"
)

# "10.4" is the Listing Rules FAQ series on continuing obligations
_FAQ = re.compile(
    r"\bfaqs?\b|\bfrequently asked\b|\bcontinuing obligations?\b|\b10\.4\b"
)

# Permissive captures; every candidate is re-checked against _RULE_GRAMMAR
_CHAPTER_RULE = re.compile(r"\bchapter\s+([^\s,;]+)\s+rule\s+([^\s,;]+)")
_RULE = re.compile(r"\brules?\s+([^\s,;]+)")

_RULE_GRAMMAR = re.compile(r"^\d{1,2}[A-Z]?(\.\d{1,3}[A-Z]?)?$")
_CHAPTER_GRAMMAR = re.compile(r"^\d{1,2}[A-Z]?$")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_query(query: str) -> str:
    """Lowercase the query and rewrite common spelling variants."""
    normalised = query.lower().strip()
    for pattern, replacement in _NORMALISATIONS:
        normalised = pattern.sub(replacement, normalised)
    return normalised


def classify(query: str) -> QuerySignals:
    """
    Classify a regulatory question.

    Pure and deterministic. Flags compose: a whitewash query is always a
    general offer query too, and a corporate action asked about "timetable"
    is a trading-arrangement query.
    """
    normalised = normalize_query(query)

    corporate_action = _detect_corporate_action(normalised)
    is_whitewash = "whitewash" in normalised
    is_general_offer = is_whitewash or bool(_GENERAL_OFFER.search(normalised))
    is_timetable = bool(_TIMETABLE.search(normalised))

    is_trading_arrangement = (
        "trading arrangement" in normalised
        or ("trading" in normalised and "schedule" in normalised)
        or (corporate_action is not None and is_timetable)
    )

    signals = QuerySignals(
        normalized_query=normalised,
        is_whitewash=is_whitewash,
        is_general_offer=is_general_offer,
        is_trading_arrangement=is_trading_arrangement,
        is_corporate_action=corporate_action is not None,
        rule_reference=extract_rule_reference(normalised),
        corporate_action_type=corporate_action,
        financial_terms=tuple(extract_terms(normalised)),
        is_faq=bool(_FAQ.search(normalised)),
        is_timetable=is_timetable,
        is_comparison=bool(_COMPARISON.search(normalised)),
    )

    logger.debug(
        "Classified query: type=%s, rule=%s, terms=%s",
        signals.query_type.value,
        signals.rule_reference,
        signals.financial_terms,
    )
    return signals


def extract_rule_reference(query: str) -> str | None:
    """
    Extract the first well-formed rule number cited in the query.

    Candidates are taken in the order they appear. A malformed candidate is
    skipped; if none survive validation the result is None.
    """
    lowered = query.lower()
    candidates: list[tuple[int, int, str]] = []

    for match in _CHAPTER_RULE.finditer(lowered):
        chapter = _clean_rule_token(match.group(1))
        rule = _clean_rule_token(match.group(2))
        if not _CHAPTER_GRAMMAR.match(chapter):
            logger.debug("Discarded malformed chapter token: %r", match.group(1))
            continue
        candidate = rule if "." in rule else f"{chapter}.{rule}"
        candidates.append((match.start(), 0, candidate))

    for match in _RULE.finditer(lowered):
        candidates.append((match.start(), 1, _clean_rule_token(match.group(1))))

    for _, _, candidate in sorted(candidates):
        if _RULE_GRAMMAR.match(candidate):
            return candidate
        logger.debug("Discarded malformed rule reference: %r", candidate)

    return None


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _clean_rule_token(token: str) -> str:
    # "13.36(2)(a)" → "13.36"; "7.19a?" → "7.19A"
    token = token.split("(", 1)[0]
    return token.strip(".,;:?!)'\"").upper()


def _detect_corporate_action(normalised: str) -> CorporateActionType | None:
    """Corporate-action type in priority order; None when no action is named."""
    if "open offer" in normalised:
        return CorporateActionType.OPEN_OFFER
    if "rights issue" in normalised:
        return CorporateActionType.RIGHTS_ISSUE
    if _SHARE_CONSOLIDATION.search(normalised):
        return CorporateActionType.SHARE_CONSOLIDATION
    if _BOARD_LOT.search(normalised) and "change" in normalised:
        return CorporateActionType.BOARD_LOT_CHANGE
    if _NAME_CHANGE.search(normalised) and (
        "change" in normalised or "chinese name" in normalised
    ):
        return CorporateActionType.COMPANY_NAME_CHANGE
    return None
