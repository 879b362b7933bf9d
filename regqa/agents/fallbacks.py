# =============================================================================
# Fallback Injector — Canonical Reference Notes for Thin Scenarios
# =============================================================================
#
# A handful of questions come up constantly but are poorly covered by the
# corpus: whitewash dealing restrictions, the rights issue aggregation
# threshold, and offer / rights issue timetables. When retrieval returns
# nothing that covers one of these, a hand-written reference note is
# appended so the answer is never drafted blind.
#
# Each scenario has:
#   - a gate      (does the query ask about this scenario?)
#   - a predicate (does any retrieved entry already cover it?)
#   - a canonical entry, which itself satisfies the predicate
#
# Because the canonical entry satisfies its own predicate, injecting twice
# is the same as injecting once.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from regqa.agents.classifier import QuerySignals
from regqa.agents.terms import AGGREGATION_RULE_TERM, TIMETABLE_TERM
from regqa.db.models import Category
from regqa.services.knowledge_store import RegulatoryEntry

logger = logging.getLogger(__name__)

# Fixed so that formatted context is reproducible
_CANONICAL_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)

FALLBACK_ID_PREFIX = "fallback-"


# ---------------------------------------------------------------------------
# Scenario Definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FallbackScenario:
    """A recognised high-stakes scenario and its canonical reference note."""

    name: str
    applies: Callable[[QuerySignals], bool]
    required_phrases: tuple[str, ...]
    entry: RegulatoryEntry

    def is_covered(self, entries: list[RegulatoryEntry]) -> bool:
        """True when some entry's content contains every required phrase."""
        return any(
            all(phrase in entry.content.lower() for phrase in self.required_phrases)
            for entry in entries
        )


_WHEN = re.compile(r"\bwhen\b")


def _wants_timetable(signals: QuerySignals) -> bool:
    query = signals.normalized_query
    return (
        signals.is_timetable
        or TIMETABLE_TERM in signals.financial_terms
        or "how long" in query
        or _WHEN.search(query) is not None
        or "process" in query
    )


def _wants_aggregation(signals: QuerySignals) -> bool:
    return signals.mentions_rights_issue and (
        AGGREGATION_RULE_TERM in signals.financial_terms
        or signals.rule_reference == "7.19A"
    )


# ---------------------------------------------------------------------------
# Canonical Entries
# ---------------------------------------------------------------------------

WHITEWASH_DEALING = FallbackScenario(
    name="whitewash_dealing",
    applies=lambda s: s.is_whitewash,
    required_phrases=("dealing", "whitewash"),
    entry=RegulatoryEntry(
        id=f"{FALLBACK_ID_PREFIX}whitewash-dealing",
        title="Whitewash Waiver: Dealing Restrictions",
        content=(
            "A whitewash waiver under Note 1 on dispensations from Rule 26 of "
            "the Takeovers Code releases the subscriber (and parties acting in "
            "concert with it) from the obligation to make a mandatory general "
            "offer when new voting shares are issued to it.\n"
            "- The waiver is conditional on approval by independent "
            "shareholders, voting by poll, at a general meeting.\n"
            "- Disqualifying dealing: the Executive will normally not grant a "
            "whitewash waiver if the subscriber or its concert parties have "
            "acquired voting rights in the six months before the announcement "
            "of the proposal.\n"
            "- Dealing between announcement and completion: acquisitions or "
            "disposals of voting rights by the subscriber group after the "
            "announcement invalidate the whitewash waiver.\n"
            "- The whitewash circular must disclose all dealing in the "
            "company's securities by the subscriber group during the six "
            "months before the announcement."
        ),
        category=Category.TAKEOVER_RULES,
        source="Takeovers Code, Schedule VI (Whitewash Guidance Note)",
        section="Note 1 on dispensations from Rule 26",
        last_updated=_CANONICAL_DATE,
    ),
)

RIGHTS_ISSUE_AGGREGATION = FallbackScenario(
    name="rights_issue_aggregation",
    applies=_wants_aggregation,
    required_phrases=("7.19a", "50%"),
    entry=RegulatoryEntry(
        id=f"{FALLBACK_ID_PREFIX}rights-issue-aggregation",
        title="Rule 7.19A: Aggregation of Rights Issues",
        content=(
            "Rule 7.19A requires a rights issue to be made conditional on "
            "minority shareholders' approval where it would increase the "
            "number of issued shares or the market capitalisation of the "
            "issuer by more than 50%, either on its own or when aggregated "
            "with any other rights issues, open offers and specific mandate "
            "placings announced within the 12-month period immediately "
            "preceding the announcement of the proposed rights issue.\n"
            "- Controlling shareholders and their associates (or, where there "
            "is none, the directors and chief executive and their associates) "
            "must abstain from voting in favour.\n"
            "- The Exchange may aggregate transactions completed within the "
            "12-month period even if each falls below the 50% threshold on "
            "its own."
        ),
        category=Category.PRIMARY_RULES,
        source="Main Board Listing Rules Chapter 7",
        section="7.19A",
        last_updated=_CANONICAL_DATE,
    ),
)

GENERAL_OFFER_TIMETABLE = FallbackScenario(
    name="general_offer_timetable",
    applies=lambda s: s.is_general_offer and _wants_timetable(s),
    required_phrases=("general offer", "timetable"),
    entry=RegulatoryEntry(
        id=f"{FALLBACK_ID_PREFIX}general-offer-timetable",
        title="General Offer Timetable",
        content=(
            "Indicative general offer timetable under the Takeovers Code:\n"
            "- Day 0: announcement of a firm intention to make an offer "
            "(Rule 3.5); the offer period is already running.\n"
            "- Within 21 days of the announcement: offer document despatched "
            "(Rule 8.2).\n"
            "- Within 14 days of the offer document: offeree board circular "
            "with independent financial advice (Rule 8.4), unless combined.\n"
            "- Day 21 after despatch: earliest first closing date (Rule 15.1).\n"
            "- Day 39: last day for the offeree to announce material new "
            "information (Rule 15.2).\n"
            "- Day 46: last day for the offeror to revise the offer "
            "(Rule 16.1).\n"
            "- Day 60: last day for the offer to become or be declared "
            "unconditional as to acceptances (Rule 15.5).\n"
            "- Within 7 business days of the offer becoming unconditional or "
            "receipt of a valid acceptance: settlement of consideration "
            "(Rule 20.1)."
        ),
        category=Category.TAKEOVER_RULES,
        source="Takeovers Code, Rules 8 and 15",
        section="15",
        last_updated=_CANONICAL_DATE,
    ),
)

RIGHTS_ISSUE_TIMETABLE = FallbackScenario(
    name="rights_issue_timetable",
    applies=lambda s: s.mentions_rights_issue and _wants_timetable(s),
    required_phrases=("rights issue", "timetable"),
    entry=RegulatoryEntry(
        id=f"{FALLBACK_ID_PREFIX}rights-issue-timetable",
        title="Rights Issue Timetable",
        content=(
            "Indicative rights issue timetable (business days, T = "
            "announcement):\n"
            "- T: announcement of the rights issue.\n"
            "- T+1 to T+10: circular and general meeting where shareholders' "
            "approval is required.\n"
            "- Last day of dealing in shares cum-rights, followed by the "
            "ex-rights date one business day later.\n"
            "- Register closes for the record date; provisional allotment "
            "letters despatched on the record date plus one business day.\n"
            "- Nil-paid rights trading period: first day of dealings in "
            "nil-paid rights to last day, normally at least 10 business days "
            "with the last trading day 4 business days before the acceptance "
            "deadline.\n"
            "- Latest time for acceptance of and payment for rights shares "
            "(the acceptance deadline).\n"
            "- Announcement of results, refund cheques and despatch of share "
            "certificates; dealings in fully-paid rights shares commence."
        ),
        category=Category.REFERENCE_DOCUMENT,
        source="Guide on Trading Arrangements for Selected Types of Corporate Actions",
        last_updated=_CANONICAL_DATE,
    ),
)

SCENARIOS: tuple[FallbackScenario, ...] = (
    WHITEWASH_DEALING,
    RIGHTS_ISSUE_AGGREGATION,
    GENERAL_OFFER_TIMETABLE,
    RIGHTS_ISSUE_TIMETABLE,
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def inject_fallbacks(
    results: list[RegulatoryEntry],
    query: str,
    signals: QuerySignals,
) -> list[RegulatoryEntry]:
    """
    Append canonical entries for scenarios the results leave uncovered.

    Returns a new list; `results` is not modified. Idempotent:
    inject_fallbacks(inject_fallbacks(r, q, s), q, s) == inject_fallbacks(r, q, s)
    """
    augmented = list(results)
    for scenario in SCENARIOS:
        if not scenario.applies(signals):
            continue
        if scenario.is_covered(augmented):
            logger.debug("Scenario %s already covered by results", scenario.name)
            continue
        logger.info(
            "Injecting canonical entry for %s (query: '%s')",
            scenario.name, query[:80],
        )
        augmented.append(scenario.entry)
    return augmented


def is_fallback(entry: RegulatoryEntry) -> bool:
    return entry.id.startswith(FALLBACK_ID_PREFIX)
