# =============================================================================
# Completeness Validator — Two-Tier Answer Inspection
# =============================================================================
#
# FLOW:
#   1. Empty answer → incomplete at HIGH confidence, nothing else runs
#   2. Tier A: structural rules (every answer)
#   3. Tier B: the checklist for the query type, plus common rules
#   4. Verdict: every fired rule becomes a finding; confidence is the
#      highest severity among them (LOW when nothing fired)
#
# Only Tier A findings mark an answer as truncated. A Tier B finding means
# the answer is finished but incomplete.
#
# Pure and synchronous: no I/O, no shared state.
# =============================================================================

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from regqa.agents.classifier import QueryType
from regqa.validation.checklists import CHECKLISTS, COMMON_RULES
from regqa.validation.rules import (
    AnswerView,
    Confidence,
    FindingKind,
    Rule,
    Thresholds,
    Tier,
)
from regqa.validation.truncation import STRUCTURAL_RULES

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = "empty response"


# ---------------------------------------------------------------------------
# Verdict Models
# ---------------------------------------------------------------------------


class Finding(BaseModel):
    """A single failed check."""

    code: str
    tier: Tier
    kind: FindingKind
    severity: Confidence
    message: str


class CompletenessVerdict(BaseModel):
    """Outcome of validating one answer."""

    is_complete: bool
    is_truncated: bool
    missing_elements: list[str] = Field(
        default_factory=list,
        description="One entry per failed check, in evaluation order",
    )
    confidence: Confidence = Confidence.LOW
    findings: list[Finding] = Field(default_factory=list)

    @property
    def has_framework_conflict(self) -> bool:
        return any(f.kind == FindingKind.FRAMEWORK_CONFLICT for f in self.findings)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def rules_for(query_type: QueryType | None) -> tuple[Rule, ...]:
    """Every rule evaluated for an answer of this query type, in order."""
    checklist = CHECKLISTS[query_type] if query_type is not None else ()
    return (*STRUCTURAL_RULES, *checklist, *COMMON_RULES)


def validate_answer(
    answer_text: str,
    query_type: QueryType | str | None = None,
    thresholds: Thresholds | None = None,
) -> CompletenessVerdict:
    """
    Check a drafted answer for truncation and missing domain elements.

    Args:
        answer_text: The drafted answer.
        query_type: QueryType, or a label such as "rights_issue". Unknown
            labels get structural and common checks only.
        thresholds: Override the configured length/date thresholds.

    Returns:
        CompletenessVerdict. `is_complete` is True only when no check fired.
    """
    if not answer_text or not answer_text.strip():
        return CompletenessVerdict(
            is_complete=False,
            is_truncated=False,
            missing_elements=[EMPTY_RESPONSE],
            confidence=Confidence.HIGH,
        )

    resolved = _resolve_query_type(query_type)
    view = AnswerView.from_text(answer_text, thresholds)

    findings = [
        Finding(
            code=rule.code,
            tier=rule.tier,
            kind=rule.kind,
            severity=rule.severity,
            message=rule.message,
        )
        for rule in rules_for(resolved)
        if rule.fails(view)
    ]

    for finding in findings:
        if finding.kind == FindingKind.FRAMEWORK_CONFLICT:
            logger.warning(
                "Framework conflict in %s answer: %s",
                resolved.value if resolved else "untyped", finding.message,
            )

    confidence = max(
        (f.severity for f in findings),
        key=lambda c: c.rank,
        default=Confidence.LOW,
    )
    verdict = CompletenessVerdict(
        is_complete=not findings,
        is_truncated=any(f.tier == Tier.STRUCTURAL for f in findings),
        missing_elements=[f.message for f in findings],
        confidence=confidence,
        findings=findings,
    )

    logger.info(
        "Validated answer (%d chars, type=%s): complete=%s, truncated=%s, "
        "confidence=%s, findings=%d",
        len(view.text),
        resolved.value if resolved else "untyped",
        verdict.is_complete,
        verdict.is_truncated,
        verdict.confidence.value,
        len(findings),
    )
    return verdict


def _resolve_query_type(query_type: QueryType | str | None) -> QueryType | None:
    if query_type is None or isinstance(query_type, QueryType):
        return query_type
    resolved = QueryType.parse(query_type)
    if resolved is None:
        logger.info(
            "Unknown query type %r; applying checks common to all answers",
            query_type,
        )
    return resolved
