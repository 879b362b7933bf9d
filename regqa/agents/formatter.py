# =============================================================================
# Context Formatter — Provenance-Tagged Context and Reasoning
# =============================================================================
#
# Renders ranked entries into the context string handed to answer
# generation, and writes a short justification of why this context was
# chosen.
#
# Example output:
#     [Rule 7.19A: Aggregation of Rights Issues | Main Board Listing Rules Chapter 7]:
#     Rule 7.19A requires a rights issue to be made conditional on ...
#
#     ---
#
#     [Rights Issue Timetable | Guide on Trading Arrangements ...]:
#     Indicative rights issue timetable ...
#
# DESIGN DECISION: Reasoning is built only from facts about the entries
# actually returned (counts, categories, titles). It never claims a source
# that is not in the context.
# =============================================================================

from __future__ import annotations

from collections import Counter

from regqa.services.knowledge_store import RegulatoryEntry

ENTRY_SEPARATOR = "\n\n---\n\n"

NO_CONTEXT_FOUND = "No specific regulatory information found in the database."
NO_CONTEXT_REASONING = (
    "No relevant regulatory entries matched this query; the answer cannot be "
    "grounded in the knowledge base."
)

# Documents worth naming explicitly when present
FLAGSHIP_TITLES: tuple[str, ...] = (
    "Trading Arrangements",
    "FAQ",
    "Continuing Obligations",
    "Takeovers Code",
)

_CATEGORY_LABELS = {
    "primary-rules": "Listing Rules",
    "takeover-rules": "Takeovers Code",
    "guidance": "guidance materials",
    "precedents": "precedent decisions",
    "reference-document": "reference documents",
    "other": "other sources",
}


def format_entry(entry: RegulatoryEntry) -> str:
    return f"[{entry.title} | {entry.source}]:\n{entry.content}"


def format_context(
    entries: list[RegulatoryEntry],
    rule_reference: str | None = None,
    authoritative_match: bool = False,
    fallback_count: int = 0,
) -> tuple[str, str]:
    """
    Render entries and explain the selection.

    Args:
        entries: Ranked, de-duplicated entries.
        rule_reference: Rule number cited by the query, if any.
        authoritative_match: Whether the entries came from an exact rule lookup.
        fallback_count: How many canonical reference notes were injected.

    Returns:
        (formatted_context, reasoning). Both are fixed sentinels when
        `entries` is empty.
    """
    if not entries:
        return NO_CONTEXT_FOUND, NO_CONTEXT_REASONING

    formatted = ENTRY_SEPARATOR.join(format_entry(e) for e in entries)
    reasoning = _build_reasoning(
        entries, rule_reference, authoritative_match, fallback_count,
    )
    return formatted, reasoning


def _build_reasoning(
    entries: list[RegulatoryEntry],
    rule_reference: str | None,
    authoritative_match: bool,
    fallback_count: int,
) -> str:
    noun = "entry" if len(entries) == 1 else "entries"
    parts = [f"Selected {len(entries)} regulatory {noun}"]

    # Counter.most_common keeps first-seen order for ties
    counts = Counter(e.category.value for e in entries)
    dominant = [
        _CATEGORY_LABELS.get(category, category)
        for category, _ in counts.most_common(2)
    ]
    parts[0] += f", drawn mainly from {' and '.join(dominant)}."

    if authoritative_match and rule_reference:
        cited = any(
            rule_reference.lower() in (e.section or "").lower()
            or rule_reference.lower() in e.title.lower()
            or rule_reference.lower() in e.content.lower()
            for e in entries
        )
        if cited:
            parts.append(
                f"Includes an exact match for Rule {rule_reference}, "
                "which takes precedence over related guidance."
            )

    flagships = [
        name
        for name in FLAGSHIP_TITLES
        if any(name.lower() in e.title.lower() for e in entries)
    ]
    if flagships:
        parts.append(f"Key documents included: {', '.join(flagships)}.")

    if fallback_count:
        note = "note was" if fallback_count == 1 else "notes were"
        parts.append(
            f"{fallback_count} canonical reference {note} added because "
            "the knowledge base did not cover this scenario directly."
        )

    return " ".join(parts)
