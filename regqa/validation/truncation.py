# =============================================================================
# Tier A — Structural Truncation Checks
# =============================================================================
#
# Heuristics for text that was cut off mid-generation. They apply to every
# answer regardless of query type, and any one of them firing marks the
# answer as truncated.
#
# Severity:
#   HIGH   — an opened construct was never closed (bracket, quote, code
#            fence, markup tag, table row). Almost never intentional.
#   MEDIUM — the ending merely looks unfinished (no terminal punctuation,
#            trailing conjunction, empty list item, trailing ellipsis) or
#            the model announced that the answer goes on elsewhere
#            ("to be continued", "in the next part").
# =============================================================================

from __future__ import annotations

import re
from collections import Counter

from regqa.validation.rules import AnswerView, Confidence, FindingKind, Rule, Tier

_TERMINAL_CHARS = frozenset(".!?:;)]}|\"'*`>”’…")

_BRACKET_PAIRS = (("(", ")"), ("[", "]"), ("{", "}"))

# List enumerators such as "a) ", "iv) ", "2) " at the start of a line
_LIST_ENUMERATOR = re.compile(r"(?m)^\s*(?:[a-z]|[ivx]{1,4}|\d{1,3})\)\s")

_DANGLING_MARKER = re.compile(r"^(?:[-*+•]|\d{1,3}[.)]|\(?[a-z]\))$")

_TRAILING_CONNECTIVE = re.compile(
    r"\b(?:and|or|but|if|as|at|by|for|from|in|of|on|to|with|the|an|that|"
    r"which|including|such as|whereas|because)[\s,;:—-]*$"
    r"|\bfor\s+(?:more|further|additional)\b[\s,;:]*$"
)

_HTML_TAGS = (
    "a|b|blockquote|br|code|div|em|h[1-6]|hr|i|img|li|ol|p|pre|span|strong|"
    "sub|sup|table|tbody|td|th|thead|tr|u|ul"
)
_TAG = re.compile(rf"<(/?)({_HTML_TAGS})\b[^<>]*?(/?)>")
_UNFINISHED_TAG = re.compile(rf"</?(?:{_HTML_TAGS})\b[^<>]*$")
_VOID_TAGS = frozenset({"br", "hr", "img"})

# Ellipses count as terminal punctuation for _is_unterminated, so they are
# caught here instead
_ELLIPSES = ("...", "…")
_CONTINUATION_PHRASES = (
    "i'll continue",
    "i’ll continue",
    "i will continue",
    "in the next part",
    "to be continued",
)


def _is_unterminated(view: AnswerView) -> bool:
    if len(view.text) <= view.thresholds.unterminated_min_chars:
        return False
    return view.text[-1] not in _TERMINAL_CHARS


def _has_continuation_marker(view: AnswerView) -> bool:
    return view.text.endswith(_ELLIPSES) or view.mentions_any(_CONTINUATION_PHRASES)


def _has_unbalanced_brackets(view: AnswerView) -> bool:
    text = _LIST_ENUMERATOR.sub(" ", view.text)
    return any(text.count(o) != text.count(c) for o, c in _BRACKET_PAIRS)


def _has_unbalanced_quotes(view: AnswerView) -> bool:
    text = view.text
    return text.count('"') % 2 == 1 or text.count("“") != text.count("”")


def _has_open_code_fence(view: AnswerView) -> bool:
    return view.text.count("```") % 2 == 1


def _ends_with_list_marker(view: AnswerView) -> bool:
    return bool(_DANGLING_MARKER.match(view.last_line))


def _ends_with_connective(view: AnswerView) -> bool:
    return bool(_TRAILING_CONNECTIVE.search(view.lower))


def _has_uneven_table(view: AnswerView) -> bool:
    for block in view.table_blocks:
        if len(block) < 2:
            continue
        widths = {row.count("|") - row.count("\\|") for row in block}
        if len(widths) > 1:
            return True
    return False


def _has_unclosed_tags(view: AnswerView) -> bool:
    if _UNFINISHED_TAG.search(view.lower):
        return True
    opened: Counter[str] = Counter()
    closed: Counter[str] = Counter()
    for closing, name, self_closing in _TAG.findall(view.lower):
        if name in _VOID_TAGS or self_closing:
            continue
        if closing:
            closed[name] += 1
        else:
            opened[name] += 1
    return any(opened[name] > closed[name] for name in opened)


def _truncation(
    code: str, severity: Confidence, message: str, fails,
) -> Rule:
    return Rule(
        code=code,
        tier=Tier.STRUCTURAL,
        kind=FindingKind.TRUNCATION,
        severity=severity,
        message=message,
        fails=fails,
    )


STRUCTURAL_RULES: tuple[Rule, ...] = (
    _truncation(
        "unterminated-ending", Confidence.MEDIUM,
        "Response ends mid-sentence (no terminal punctuation)",
        _is_unterminated,
    ),
    _truncation(
        "continuation-marker", Confidence.MEDIUM,
        "Response ends with an ellipsis or says it will continue",
        _has_continuation_marker,
    ),
    _truncation(
        "unbalanced-brackets", Confidence.HIGH,
        "Unbalanced brackets",
        _has_unbalanced_brackets,
    ),
    _truncation(
        "unbalanced-quotes", Confidence.HIGH,
        "Unclosed quotation",
        _has_unbalanced_quotes,
    ),
    _truncation(
        "open-code-fence", Confidence.HIGH,
        "Unclosed code block",
        _has_open_code_fence,
    ),
    _truncation(
        "dangling-list-marker", Confidence.MEDIUM,
        "Response ends with an empty list item",
        _ends_with_list_marker,
    ),
    _truncation(
        "trailing-connective", Confidence.MEDIUM,
        "Response ends on a conjunction or preposition",
        _ends_with_connective,
    ),
    _truncation(
        "uneven-table", Confidence.HIGH,
        "Incomplete table (rows have different numbers of cells)",
        _has_uneven_table,
    ),
    _truncation(
        "unclosed-tags", Confidence.HIGH,
        "Unclosed markup tags",
        _has_unclosed_tags,
    ),
)
