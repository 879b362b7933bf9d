# =============================================================================
# Result Processor — De-duplication and Relevance Ranking
# =============================================================================
#
# Scoring is additive and transparent:
#
#   score = 3 × (terms found in title)
#         + 1 × (terms found in content)
#         + 2   if the entry comes from a primary rule book
#                 (primary-rules or takeover-rules)
#         + 5   if the query is about timetables and the title says so
#         + 2   if the query is about timetables and the content says so
#
# The two timetable bonuses are independent and stack.
#
# DESIGN DECISION: Stable sort.
# Equal scores keep their retrieval order, which itself is deterministic,
# so the ranked list is reproducible for an unchanged store.
# =============================================================================

from __future__ import annotations

import logging

from regqa.db.models import Category
from regqa.services.knowledge_store import RegulatoryEntry

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 3
CONTENT_WEIGHT = 1

CATEGORY_BONUS: dict[Category, int] = {
    Category.PRIMARY_RULES: 2,
    Category.TAKEOVER_RULES: 2,
}

TIMETABLE_TITLE_BONUS = 5
TIMETABLE_CONTENT_BONUS = 2

_TIMETABLE_WORDS = ("timetable", "schedule")


def remove_duplicates(entries: list[RegulatoryEntry]) -> list[RegulatoryEntry]:
    """Keep the first entry per (title, source), preserving order."""
    seen: set[tuple[str, str]] = set()
    unique: list[RegulatoryEntry] = []
    for entry in entries:
        if entry.dedup_key in seen:
            continue
        seen.add(entry.dedup_key)
        unique.append(entry)
    return unique


def score_entry(entry: RegulatoryEntry, terms: list[str]) -> int:
    """Relevance score of one entry for the extracted query terms."""
    title = entry.title.lower()
    content = entry.content.lower()
    lowered_terms = [t.lower() for t in terms if t]

    score = sum(TITLE_WEIGHT for t in lowered_terms if t in title)
    score += sum(CONTENT_WEIGHT for t in lowered_terms if t in content)
    score += CATEGORY_BONUS.get(entry.category, 0)

    if any(word in t for t in lowered_terms for word in _TIMETABLE_WORDS):
        if "timetable" in title:
            score += TIMETABLE_TITLE_BONUS
        if "timetable" in content:
            score += TIMETABLE_CONTENT_BONUS

    return score


def process(
    results: list[RegulatoryEntry], terms: list[str],
) -> list[RegulatoryEntry]:
    """De-duplicate, then sort by descending score (stable)."""
    unique = remove_duplicates(results)
    ranked = sorted(unique, key=lambda e: score_entry(e, terms), reverse=True)

    logger.debug(
        "Ranked %d entries (%d duplicates removed)",
        len(ranked), len(results) - len(unique),
    )
    return ranked
