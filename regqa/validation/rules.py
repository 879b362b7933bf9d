# =============================================================================
# Validation Rule Engine — Shared Types
# =============================================================================
#
# Every completeness check (structural or domain) is a Rule: a code, a tier,
# a kind, a severity, a human-readable message and a predicate over an
# AnswerView. The validator evaluates the rules uniformly; confidence is
# derived from the severities of the rules that fired.
#
#   Tier A (structural) — the text was cut off or left malformed
#   Tier B (domain)     — the text omits what this kind of answer needs
#
# DESIGN DECISION: Analyse the answer once.
# AnswerView precomputes the lowercase text, the final line, table blocks and
# distinct dates, so each predicate is a cheap lookup instead of re-scanning
# the answer.
# =============================================================================

from __future__ import annotations

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass

from regqa.agents.classifier import QueryType
from regqa.agents.terms import MONTH_PATTERN
from regqa.config import settings


class Confidence(str, enum.Enum):
    """How sure the validator is that the answer is deficient."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class Tier(str, enum.Enum):
    STRUCTURAL = "structural"
    DOMAIN = "domain"


class FindingKind(str, enum.Enum):
    TRUNCATION = "truncation"
    MISSING_ELEMENT = "missing-element"
    FRAMEWORK_CONFLICT = "framework-conflict"


# ---------------------------------------------------------------------------
# Answer View
# ---------------------------------------------------------------------------

# Dates as they appear in timetables: ISO, d/m[/y], "15 March [2025]",
# "March 15[, 2025]", and relative markers "Day 21", "T+3"
DATE_PATTERN = re.compile(
    rf"\b\d{{4}}-\d{{2}}-\d{{2}}\b"
    rf"|\b\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTH_PATTERN}\b(?:\s+\d{{4}})?"
    rf"|\b{MONTH_PATTERN}\s+\d{{1,2}}(?:st|nd|rd|th)?\b(?:,?\s+\d{{4}})?"
    rf"|\bday\s+\d{{1,3}}\b"
    rf"|\bt\s?[+-]\s?\d{{1,3}}\b",
)

# Header separator row of a markdown table, e.g. "|---|:---:|"
_TABLE_SEPARATOR = re.compile(r"^\|?\s*:?-{3,}:?\s*(?:\|\s*:?-{3,}:?\s*)+\|?$")


@dataclass(frozen=True)
class Thresholds:
    unterminated_min_chars: int
    long_answer_chars: int
    conclusion_window_chars: int
    min_timetable_dates: int
    min_comparison_dates: int

    @classmethod
    def from_settings(cls) -> Thresholds:
        return cls(
            unterminated_min_chars=settings.validator_unterminated_min_chars,
            long_answer_chars=settings.validator_long_answer_chars,
            conclusion_window_chars=settings.validator_conclusion_window_chars,
            min_timetable_dates=settings.validator_min_timetable_dates,
            min_comparison_dates=settings.validator_min_comparison_dates,
        )


@dataclass(frozen=True)
class AnswerView:
    """Pre-analysed form of an answer that rule predicates read from."""

    text: str
    lower: str
    last_line: str
    table_blocks: tuple[tuple[str, ...], ...]
    dates: frozenset[str]
    thresholds: Thresholds

    @classmethod
    def from_text(
        cls, text: str, thresholds: Thresholds | None = None,
    ) -> AnswerView:
        stripped = text.strip()
        lower = stripped.lower()
        lines = stripped.splitlines()
        return cls(
            text=stripped,
            lower=lower,
            last_line=lines[-1].strip() if lines else "",
            table_blocks=_table_blocks(lines),
            dates=frozenset(
                re.sub(r"\s+", " ", m.group(0)) for m in DATE_PATTERN.finditer(lower)
            ),
            thresholds=thresholds or Thresholds.from_settings(),
        )

    @property
    def has_table(self) -> bool:
        return any(len(block) >= 2 for block in self.table_blocks)

    @property
    def has_delimited_table(self) -> bool:
        return any(
            len(block) >= 3 and _TABLE_SEPARATOR.match(block[1])
            for block in self.table_blocks
        )

    @property
    def has_timetable(self) -> bool:
        return "timetable" in self.lower or self.has_table

    def mentions_any(self, phrases: tuple[str, ...]) -> bool:
        return any(phrase in self.lower for phrase in phrases)


def _table_blocks(lines: list[str]) -> tuple[tuple[str, ...], ...]:
    """Contiguous runs of lines that start with a pipe."""
    blocks: list[tuple[str, ...]] = []
    current: list[str] = []
    for line in lines:
        candidate = line.strip()
        if candidate.startswith("|"):
            current.append(candidate)
            continue
        if current:
            blocks.append(tuple(current))
            current = []
    if current:
        blocks.append(tuple(current))
    return tuple(blocks)


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """
    One completeness check.

    `fails` returns True when the answer is deficient in this respect.
    """

    code: str
    tier: Tier
    kind: FindingKind
    severity: Confidence
    message: str
    fails: Callable[[AnswerView], bool]


def requires_any(
    code: str,
    message: str,
    phrases: tuple[str, ...],
    severity: Confidence = Confidence.MEDIUM,
) -> Rule:
    """Domain rule that fails when none of `phrases` occurs in the answer."""
    return Rule(
        code=code,
        tier=Tier.DOMAIN,
        kind=FindingKind.MISSING_ELEMENT,
        severity=severity,
        message=message,
        fails=lambda view: not view.mentions_any(phrases),
    )


def requires_pattern(
    code: str,
    message: str,
    pattern: re.Pattern[str],
    severity: Confidence = Confidence.MEDIUM,
) -> Rule:
    """Domain rule that fails when `pattern` does not match the answer."""
    return Rule(
        code=code,
        tier=Tier.DOMAIN,
        kind=FindingKind.MISSING_ELEMENT,
        severity=severity,
        message=message,
        fails=lambda view: pattern.search(view.lower) is None,
    )


def forbids_pattern(code: str, message: str, pattern: re.Pattern[str]) -> Rule:
    """Framework-conflict rule: fails when `pattern` matches the answer."""
    return Rule(
        code=code,
        tier=Tier.DOMAIN,
        kind=FindingKind.FRAMEWORK_CONFLICT,
        severity=Confidence.HIGH,
        message=message,
        fails=lambda view: pattern.search(view.lower) is not None,
    )


ChecklistTable = dict[QueryType, tuple[Rule, ...]]
