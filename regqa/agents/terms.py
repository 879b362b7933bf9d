# =============================================================================
# Term Extractor — Domain Vocabulary Matching
# =============================================================================
#
# Pulls the regulatory terms a query mentions, in the order the query
# mentions them. The ranked list feeds both the keyword fallback search and
# the result scorer.
#
# Two terms are derived rather than matched:
#   - aggregation + rights issue → "rule 7.19a" (the aggregation rule for
#     rights issues), even when the query never cites it
#   - any calendar date → "timetable", so date-driven questions pick up
#     timetable documents
# =============================================================================

from __future__ import annotations

import re

# (canonical term, pattern) — patterns run on the lowercased query
_VOCABULARY: tuple[tuple[str, str], ...] = (
    ("rights issue", r"rights?\s+issues?"),
    ("open offer", r"open\s+offers?"),
    ("placing", r"placings?"),
    ("share consolidation", r"(?:share\s+)?consolidation"),
    ("sub-division", r"sub-?\s?divisions?"),
    ("board lot", r"board\s+lots?|lot\s+size"),
    ("company name", r"company\s+name|stock\s+short\s+name"),
    ("general offer", r"general\s+offers?"),
    ("mandatory offer", r"mandatory\s+(?:general\s+)?offers?"),
    ("whitewash", r"white-?\s?wash"),
    ("waiver", r"waivers?"),
    ("takeovers code", r"takeovers?\s+code"),
    ("acting in concert", r"(?:acting\s+)?in\s+concert|concert\s+part(?:y|ies)"),
    ("connected transaction", r"connected\s+transactions?"),
    ("aggregation", r"aggregat\w*"),
    ("ex-rights", r"ex-?\s?rights|ex-?\s?entitlement"),
    ("nil-paid", r"nil-?\s?paid"),
    ("record date", r"record\s+date"),
    ("book closure", r"book\s+clos\w*|closure\s+of\s+register"),
    ("acceptance", r"acceptances?"),
    ("payment date", r"payment\s+date|payment\s+for"),
    ("excess application", r"excess\s+applications?"),
    ("underwriting", r"underwrit\w*"),
    ("offer period", r"offer\s+period"),
    ("consideration", r"consideration"),
    ("dealing", r"dealings?"),
    ("disclosure", r"disclos\w*"),
    ("timetable", r"time\s?tables?|schedule|timeline"),
    ("trading arrangement", r"trading\s+arrangements?"),
    ("parallel trading", r"parallel\s+trading"),
    ("odd lot", r"odd\s+lots?"),
    ("independent shareholders", r"independent\s+shareholders?"),
    ("shareholders' approval", r"shareholders?'?\s+approval"),
    ("general meeting", r"general\s+meetings?|\begm\b"),
    ("circular", r"circulars?"),
    ("announcement", r"announcements?"),
    ("prospectus", r"prospectus(?:es)?|listing\s+documents?"),
    ("continuing obligations", r"continuing\s+obligations?"),
    ("threshold", r"thresholds?"),
)

_COMPILED_VOCABULARY = tuple(
    (term, re.compile(rf"(?<![a-z]){pattern}(?![a-z])"))
    for term, pattern in _VOCABULARY
)

# Rule citations are kept verbatim as terms, e.g. "rule 7.19a"
_RULE_TERM = re.compile(r"\brules?\s+(\d{1,2}[a-z]?(?:\.\d{1,3}[a-z]?)?)(?![\w.]*\d)")

MONTH_PATTERN = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|"
    r"july?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|"
    r"dec(?:ember)?)"
)

DATE_TOKEN = re.compile(
    rf"\b\d{{4}}-\d{{2}}-\d{{2}}\b"
    rf"|\b\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTH_PATTERN}\b"
    rf"|\b{MONTH_PATTERN}\s+\d{{1,2}}(?:st|nd|rd|th)?\b",
)

AGGREGATION_RULE_TERM = "rule 7.19a"
TIMETABLE_TERM = "timetable"


def extract_terms(query: str) -> list[str]:
    """
    Extract domain terms from a query, ordered by first occurrence.

    Never returns an empty list: when nothing in the vocabulary matches,
    the stripped query itself is the single term.

    Examples:
        >>> extract_terms("Aggregation of rights issues within 12 months")
        ['aggregation', 'rights issue', 'rule 7.19a']
        >>> extract_terms("Rights issue starting 15 March")
        ['rights issue', 'timetable']
    """
    lowered = query.lower()
    found: list[tuple[int, str]] = []

    for term, pattern in _COMPILED_VOCABULARY:
        match = pattern.search(lowered)
        if match:
            found.append((match.start(), term))

    for match in _RULE_TERM.finditer(lowered):
        found.append((match.start(), f"rule {match.group(1)}"))

    terms: list[str] = []
    for _, term in sorted(found, key=lambda pair: pair[0]):
        if term not in terms:
            terms.append(term)

    if (
        "aggregation" in terms
        and "rights issue" in terms
        and AGGREGATION_RULE_TERM not in terms
    ):
        terms.append(AGGREGATION_RULE_TERM)

    if TIMETABLE_TERM not in terms and DATE_TOKEN.search(lowered):
        terms.append(TIMETABLE_TERM)

    if not terms:
        return [query.strip()]
    return terms
