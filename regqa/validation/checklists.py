# =============================================================================
# Tier B — Domain Checklists by Query Type
# =============================================================================
#
# What a complete answer must (and must not) contain, per query type.
#
# FRAMEWORK CONFLICTS:
# Open offers are Listing Rules corporate actions; takeover offers are
# governed by the Takeovers Code. An open-offer answer that talks about
# mandatory offers or Rule 26 (or a takeover answer that cites Listing Rules
# chapters) has mixed up the two rule books. That is reported as a
# framework conflict at HIGH severity, separate from an omission.
#
# TIMETABLES:
# Corporate-action checklists only demand a delimited table once the answer
# actually presents a timetable. A rights-issue vs. open-offer comparison
# that gives timetables needs enough distinct dates for both of them, and
# must end with a conclusion however short it is.
#
# CHECKLISTS must have an entry for every QueryType (enforced by tests).
# COMMON_RULES apply whatever the query type.
# =============================================================================

from __future__ import annotations

import re

from regqa.agents.classifier import QueryType
from regqa.validation.rules import (
    AnswerView,
    ChecklistTable,
    Confidence,
    FindingKind,
    Rule,
    Tier,
    forbids_pattern,
    requires_any,
    requires_pattern,
)

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

TAKEOVER_VOCABULARY = re.compile(
    r"\btakeovers? code\b|\bmandatory (?:general )?offer\b|\bgeneral offer\b"
    r"|\brule 26\b|\bwhitewash\b|\bofferor\b|\bofferee\b|\bsfc executive\b"
)

LISTING_VOCABULARY = re.compile(
    r"\blisting rules?\b|\bchapter 7\b|\brule 7\.\d|\bstock exchange\b"
    r"|\bthe exchange\b|\bhkex\b"
)

LISTING_CHAPTER_VOCABULARY = re.compile(
    r"\b(?:listing rules?\s+)?chapter\s+\d{1,2}[a-z]?\b"
    r"|\blisting rules?\s+\d{1,2}[a-z]?\.\d"
)

NO_NIL_PAID_TRADING = re.compile(
    r"\bno\s+(?:trading\s+(?:in|of)\s+)?nil[- ]?paid"
    r"|\bnil[- ]?paid\s+(?:rights?\s+)?(?:are|is)\s+not\b"
    r"|\bnon-?renounceable\b|\bnot\s+renounceable\b"
    r"|\bnon-?transferable\b|\bnot\s+(?:transferable|tradable|tradeable)\b"
)

CONCLUSION_MARKERS: tuple[str, ...] = (
    "conclusion",
    "summary",
    "summarise",
    "summarize",
    "key differences",
    "key points",
    "to recap",
    "in short",
)

# A comparison needs an explicit wrap-up, not just a passing "summary"
COMPARISON_CONCLUSION_MARKERS: tuple[str, ...] = (
    "in conclusion",
    "to conclude",
    "key differences",
    "summary of differences",
    "summary of the differences",
)

EX_ENTITLEMENT: tuple[str, ...] = ("ex-entitlement", "ex entitlement")


# ---------------------------------------------------------------------------
# Composite Rules
# ---------------------------------------------------------------------------


def _insufficient_timetable_dates(view: AnswerView) -> bool:
    return view.has_timetable and (
        len(view.dates) < view.thresholds.min_timetable_dates
    )


def _insufficient_comparison_dates(view: AnswerView) -> bool:
    return view.has_timetable and (
        len(view.dates) < view.thresholds.min_comparison_dates
    )


def _timetable_without_table(view: AnswerView) -> bool:
    return view.has_timetable and not view.has_delimited_table


def _missing_conclusion(view: AnswerView) -> bool:
    thresholds = view.thresholds
    if len(view.text) <= thresholds.long_answer_chars:
        return False
    tail = view.lower[-thresholds.conclusion_window_chars:]
    return not any(marker in tail for marker in CONCLUSION_MARKERS)


TIMETABLE_DATES = Rule(
    code="timetable-dates",
    tier=Tier.DOMAIN,
    kind=FindingKind.MISSING_ELEMENT,
    severity=Confidence.MEDIUM,
    message="Timetable has too few distinct dates",
    fails=_insufficient_timetable_dates,
)

COMPARISON_DATES = Rule(
    code="comparison-dates",
    tier=Tier.DOMAIN,
    kind=FindingKind.MISSING_ELEMENT,
    severity=Confidence.MEDIUM,
    message="Too few distinct dates to compare both timetables",
    fails=_insufficient_comparison_dates,
)

TIMETABLE_TABLE = Rule(
    code="timetable-table",
    tier=Tier.DOMAIN,
    kind=FindingKind.MISSING_ELEMENT,
    severity=Confidence.MEDIUM,
    message="Timetable is not presented as a delimited table",
    fails=_timetable_without_table,
)

CONCLUSION = Rule(
    code="conclusion",
    tier=Tier.DOMAIN,
    kind=FindingKind.MISSING_ELEMENT,
    severity=Confidence.MEDIUM,
    message="Missing conclusion or summary",
    fails=_missing_conclusion,
)

REQUIRES_TAKEOVER_VOCABULARY = requires_pattern(
    "takeover-framework",
    "No reference to the Takeovers Code",
    TAKEOVER_VOCABULARY,
)


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------

RIGHTS_ISSUE_RULES: tuple[Rule, ...] = (
    requires_any(
        "ex-rights", "Ex-rights date",
        ("ex-rights", "ex rights", "ex-entitlement"),
    ),
    requires_any(
        "nil-paid-rights", "Nil-paid rights",
        ("nil-paid", "nil paid"),
    ),
    requires_any(
        "trading-period", "Nil-paid rights trading period",
        ("trading period", "dealings in nil-paid", "dealing in nil-paid",
         "trading in nil-paid", "dealings in nil paid"),
    ),
    requires_any("record-date", "Record date", ("record date",)),
    requires_any(
        "acceptance-deadline", "Acceptance deadline",
        ("latest time for acceptance", "acceptance deadline",
         "last day for acceptance", "latest date for acceptance",
         "acceptance date"),
    ),
    requires_any("payment-date", "Payment date", ("payment",)),
    TIMETABLE_DATES,
    TIMETABLE_TABLE,
)

OPEN_OFFER_RULES: tuple[Rule, ...] = (
    requires_pattern(
        "no-nil-paid-trading",
        "Statement that there is no nil-paid rights trading",
        NO_NIL_PAID_TRADING,
    ),
    requires_pattern(
        "listing-framework",
        "No reference to the Listing Rules",
        LISTING_VOCABULARY,
    ),
    forbids_pattern(
        "open-offer-takeover-conflict",
        "Framework conflict: open offer described with Takeovers Code terms",
        TAKEOVER_VOCABULARY,
    ),
    requires_any("ex-entitlement", "Ex-entitlement date", EX_ENTITLEMENT),
    requires_any(
        "application", "Application and excess application arrangements",
        ("application",),
    ),
    requires_any("acceptance", "Acceptance deadline", ("acceptance",)),
    requires_any("payment-date", "Payment date", ("payment",)),
    TIMETABLE_TABLE,
)

TAKEOVER_OFFER_RULES: tuple[Rule, ...] = (
    REQUIRES_TAKEOVER_VOCABULARY,
    forbids_pattern(
        "takeover-listing-conflict",
        "Framework conflict: takeover offer described with Listing Rules chapters",
        LISTING_CHAPTER_VOCABULARY,
    ),
    requires_any("offer-period", "Offer period", ("offer period",)),
    requires_any(
        "consideration", "Offer consideration",
        ("consideration", "offer price"),
    ),
)

WHITEWASH_RULES: tuple[Rule, ...] = (
    REQUIRES_TAKEOVER_VOCABULARY,
    requires_any(
        "independent-approval", "Independent shareholders' approval",
        ("independent shareholder",),
    ),
    requires_any(
        "dealing-restrictions", "Dealing restrictions",
        ("dealing", "disqualifying transaction"),
    ),
)

SHARE_CONSOLIDATION_RULES: tuple[Rule, ...] = (
    requires_any(
        "general-meeting", "Shareholders' general meeting",
        ("general meeting", "egm", "shareholders' approval"),
    ),
    requires_any("effective-date", "Effective date", ("effective date",)),
    requires_any(
        "exchange-period", "Free exchange period for share certificates",
        ("free exchange", "exchange period", "exchange of share certificates",
         "exchange of certificates"),
    ),
    TIMETABLE_TABLE,
)

BOARD_LOT_CHANGE_RULES: tuple[Rule, ...] = (
    requires_any("board-lot", "New board lot size", ("board lot",)),
    requires_any("parallel-trading", "Parallel trading period", ("parallel trading",)),
    TIMETABLE_TABLE,
)

COMPANY_NAME_CHANGE_RULES: tuple[Rule, ...] = (
    requires_any(
        "general-meeting", "Shareholders' general meeting",
        ("general meeting", "egm", "special resolution"),
    ),
    requires_any("stock-short-name", "New stock short name", ("stock short name",)),
    requires_any("effective-date", "Effective date", ("effective date", "effective from")),
    TIMETABLE_TABLE,
)

# Rights issue vs. open offer: both terminologies, enough dates for two
# timetables, and a conclusion whatever the answer's length
RIGHTS_ISSUE_VS_OPEN_OFFER_RULES: tuple[Rule, ...] = (
    requires_any(
        "rights-issue-nil-paid", "Rights issue: nil-paid rights",
        ("nil-paid rights", "nil paid rights"),
    ),
    requires_any(
        "rights-issue-ex-rights", "Rights issue: ex-rights date",
        ("ex-rights", "ex rights"),
    ),
    requires_any(
        "rights-issue-trading-period", "Rights issue: nil-paid rights trading period",
        ("trading period",),
    ),
    requires_pattern(
        "open-offer-no-nil-paid-trading",
        "Open offer: statement that there is no nil-paid rights trading",
        NO_NIL_PAID_TRADING,
    ),
    requires_any(
        "open-offer-ex-entitlement", "Open offer: ex-entitlement date",
        EX_ENTITLEMENT,
    ),
    COMPARISON_DATES,
    requires_any(
        "comparison-conclusion", "Conclusion summarising the differences",
        COMPARISON_CONCLUSION_MARKERS,
    ),
)

CHECKLISTS: ChecklistTable = {
    QueryType.RIGHTS_ISSUE: RIGHTS_ISSUE_RULES,
    QueryType.OPEN_OFFER: OPEN_OFFER_RULES,
    QueryType.TAKEOVER_OFFER: TAKEOVER_OFFER_RULES,
    QueryType.WHITEWASH: WHITEWASH_RULES,
    QueryType.SHARE_CONSOLIDATION: SHARE_CONSOLIDATION_RULES,
    QueryType.BOARD_LOT_CHANGE: BOARD_LOT_CHANGE_RULES,
    QueryType.COMPANY_NAME_CHANGE: COMPANY_NAME_CHANGE_RULES,
    QueryType.RIGHTS_ISSUE_VS_OPEN_OFFER: RIGHTS_ISSUE_VS_OPEN_OFFER_RULES,
    QueryType.GENERAL: (),
}

COMMON_RULES: tuple[Rule, ...] = (CONCLUSION,)
