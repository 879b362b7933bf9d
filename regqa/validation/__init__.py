# =============================================================================
# Response Completeness Validation
# =============================================================================
# Structural truncation heuristics (Tier A) and query-type checklists
# (Tier B) expressed as one rule table.
#
#   validation/
#   ├── rules.py       → Rule, AnswerView, severities
#   ├── truncation.py  → Tier A rules
#   ├── checklists.py  → Tier B rules per QueryType
#   └── validator.py   → validate_answer() → CompletenessVerdict
# =============================================================================

from regqa.validation.validator import CompletenessVerdict, Finding, validate_answer

__all__ = ["CompletenessVerdict", "Finding", "validate_answer"]
