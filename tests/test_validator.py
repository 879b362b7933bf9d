# =============================================================================
# Unit Tests — Completeness Validator
# =============================================================================
#
# Tier A (structural truncation) and Tier B (domain checklists) checks,
# confidence aggregation, and the query-type dispatch table.
# =============================================================================

from __future__ import annotations

import pytest

from regqa.agents.classifier import QueryType
from regqa.validation import validate_answer
from regqa.validation.checklists import CHECKLISTS
from regqa.validation.rules import AnswerView, Confidence, FindingKind, Thresholds
from regqa.validation.validator import EMPTY_RESPONSE, rules_for

RIGHTS_ISSUE_COMPLETE = """The expected rights issue timetable is set out below.

| Event | Date |
|---|---|
| Last day of dealing cum-rights | 3 March 2025 |
| Ex-rights date | 4 March 2025 |
| Record date | 6 March 2025 |
| First day of dealing in nil-paid rights | 12 March 2025 |
| Last day of the nil-paid rights trading period | 17 March 2025 |
| Latest time for acceptance of and payment for rights shares | 20 March 2025 |"""

RIGHTS_ISSUE_FEW_DATES = """The expected rights issue timetable is set out below. It covers the
ex-rights date, the nil-paid rights trading period, the record date, the latest
time for acceptance and the payment date.

| Event | Date |
|---|---|
| Ex-rights date | 4 March 2025 |
| Record date | 6 March 2025 |
| Latest time for acceptance and payment | 20 March 2025 |"""

OPEN_OFFER_COMPLETE = (
    "An open offer under Chapter 7 of the Listing Rules is non-renounceable, "
    "so there is no trading in nil-paid rights. Shares trade ex-entitlement "
    "from the day after the last cum-entitlement day. Qualifying shareholders "
    "lodge an application for their assured entitlement, and may make an "
    "excess application, with acceptance and payment due by the latest time "
    "for acceptance."
)

RIGHTS_VS_OPEN_OFFER = (
    "A rights issue gives shareholders nil-paid rights, which trade during the "
    "nil-paid rights trading period after the ex-rights date. An open offer is "
    "non-renounceable: there is no trading in nil-paid rights, and the shares "
    "simply go ex-entitlement. "
)
RIGHTS_VS_OPEN_OFFER_CONCLUSION = (
    "In conclusion, only a rights issue lets shareholders sell their entitlement."
)

OPEN_OFFER_TIMETABLE = """Expected open offer timetable:

| Event | Date |
|---|---|
| Ex-entitlement date | 5 March 2025 |
| Latest time for acceptance and payment | 21 March 2025 |"""

COMPARISON_SENTENCE = (
    "A rights issue lets shareholders sell their nil-paid rights, while an "
    "open offer gives them no such option. "
)


def _messages(verdict):
    return verdict.missing_elements


def _codes(verdict):
    return [f.code for f in verdict.findings]


# ---------------------------------------------------------------------------
# Test: Empty Input
# ---------------------------------------------------------------------------


class TestEmptyAnswer:
    @pytest.mark.parametrize("text", ["", "   ", "\n\n"])
    def test_short_circuits(self, text):
        verdict = validate_answer(text, "rights-issue")
        assert not verdict.is_complete
        assert not verdict.is_truncated
        assert verdict.missing_elements == [EMPTY_RESPONSE]
        assert verdict.confidence == Confidence.HIGH


# ---------------------------------------------------------------------------
# Test: Tier A — Truncation
# ---------------------------------------------------------------------------


class TestTruncation:
    def test_clean_short_answer(self):
        verdict = validate_answer("An open offer is governed by Chapter 7.")
        assert verdict.is_complete
        assert not verdict.is_truncated
        assert verdict.confidence == Confidence.LOW

    def test_long_answer_without_terminal_punctuation(self):
        text = "The offer document must be posted within 21 days. " * 5
        text += "The offeror must then notify shareholders"
        verdict = validate_answer(text)
        assert verdict.is_truncated
        assert _codes(verdict) == ["unterminated-ending"]
        assert verdict.confidence == Confidence.MEDIUM

    def test_short_answer_without_punctuation_allowed(self):
        assert validate_answer("Yes").is_complete

    def test_unbalanced_brackets(self):
        verdict = validate_answer("The rule (see Chapter 7 applies.")
        assert "unbalanced-brackets" in _codes(verdict)
        assert verdict.confidence == Confidence.HIGH

    def test_list_enumerators_are_not_brackets(self):
        verdict = validate_answer("Conditions:\na) approval\nb) listing.")
        assert verdict.is_complete

    def test_unclosed_quote(self):
        verdict = validate_answer('The circular says "no nil-paid trading.')
        assert "unbalanced-quotes" in _codes(verdict)

    def test_open_code_fence(self):
        verdict = validate_answer("Example:\n```\nrule = 7.19")
        assert "open-code-fence" in _codes(verdict)

    def test_dangling_list_marker(self):
        verdict = validate_answer("Steps:\n1. Announce.\n2.")
        assert "dangling-list-marker" in _codes(verdict)

    def test_trailing_connective(self):
        verdict = validate_answer("The offer must be posted within 21 days and")
        assert "trailing-connective" in _codes(verdict)

    def test_uneven_table(self):
        verdict = validate_answer("| Event | Date |\n|---|---|\n| Record date |")
        assert "uneven-table" in _codes(verdict)

    def test_unclosed_tags(self):
        verdict = validate_answer("<table><tr><td>Record date</td>")
        assert "unclosed-tags" in _codes(verdict)

    def test_void_tags_ignored(self):
        assert validate_answer("Line one.<br>Line two.").is_complete

    def test_comparison_operators_not_tags(self):
        assert validate_answer("Approval is needed where x < 50% and y > 30%.").is_complete

    @pytest.mark.parametrize(
        "ending",
        [
            "...covered in the next part, to be continued...",
            "The remaining steps are…",
            "I'll continue with the acceptance deadline in my next reply.",
        ],
    )
    def test_continuation_marker(self, ending):
        text = "The offer document must be posted within 21 days. " * 5 + ending
        verdict = validate_answer(text)
        assert verdict.is_truncated
        assert _codes(verdict) == ["continuation-marker"]
        assert verdict.confidence == Confidence.MEDIUM

    def test_ellipsis_mid_sentence_allowed(self):
        assert validate_answer("The rule... applies to placings too.").is_complete


# ---------------------------------------------------------------------------
# Test: Tier B — Rights Issue
# ---------------------------------------------------------------------------


class TestRightsIssueChecklist:
    def test_complete_timetable(self):
        verdict = validate_answer(RIGHTS_ISSUE_COMPLETE, QueryType.RIGHTS_ISSUE)
        assert verdict.is_complete, verdict.missing_elements

    def test_table_with_too_few_dates(self):
        verdict = validate_answer(RIGHTS_ISSUE_FEW_DATES, "rights-issue")
        assert _messages(verdict) == ["Timetable has too few distinct dates"]
        assert not verdict.is_truncated

    def test_timetable_without_table(self):
        text = (
            "The rights issue timetable: ex-rights date 4 March 2025, record "
            "date 6 March 2025, nil-paid rights trading period 12 March 2025 "
            "to 17 March 2025, latest time for acceptance and payment 20 March "
            "2025, dealings in fully-paid shares 25 March 2025."
        )
        verdict = validate_answer(text, "rights-issue")
        assert _messages(verdict) == ["Timetable is not presented as a delimited table"]

    def test_missing_terms_listed(self):
        verdict = validate_answer("A rights issue needs a prospectus.", "rights_issue")
        assert "Ex-rights date" in verdict.missing_elements
        assert "Record date" in verdict.missing_elements
        assert not verdict.is_truncated
        assert verdict.confidence == Confidence.MEDIUM


# ---------------------------------------------------------------------------
# Test: Tier B — Framework Conflicts
# ---------------------------------------------------------------------------


class TestFrameworkConflicts:
    @pytest.mark.parametrize(
        "phrase", ["a mandatory offer", "Rule 26 of the Takeovers Code"],
    )
    def test_open_offer_with_takeover_terms(self, phrase):
        text = (
            "An open offer under the Listing Rules has no nil-paid rights "
            f"trading. It may also trigger {phrase}."
        )
        verdict = validate_answer(text, "open-offer")
        assert not verdict.is_complete
        assert verdict.has_framework_conflict
        assert any("Framework conflict" in m for m in verdict.missing_elements)
        assert verdict.confidence == Confidence.HIGH

    def test_clean_open_offer(self):
        verdict = validate_answer(OPEN_OFFER_COMPLETE, "open-offer")
        assert verdict.is_complete, verdict.missing_elements

    def test_open_offer_missing_statement(self):
        text = (
            "An open offer is governed by the Listing Rules. Shares trade "
            "ex-entitlement; applications, acceptance and payment close on "
            "the same day."
        )
        verdict = validate_answer(text, "open-offer")
        assert verdict.missing_elements == [
            "Statement that there is no nil-paid rights trading",
        ]
        assert not verdict.has_framework_conflict

    def test_takeover_with_listing_chapter(self):
        text = (
            "Under the Takeovers Code the offer period starts on announcement "
            "and consideration is settled in cash, as Chapter 14 requires."
        )
        verdict = validate_answer(text, "takeover-offer")
        assert verdict.has_framework_conflict
        kinds = {f.kind for f in verdict.findings}
        assert FindingKind.FRAMEWORK_CONFLICT in kinds

    def test_clean_takeover(self):
        text = (
            "Under the Takeovers Code, the offer period begins with the "
            "announcement and the consideration must be settled within 7 "
            "business days."
        )
        assert validate_answer(text, "takeover-offer").is_complete

    def test_whitewash_missing_dealing(self):
        text = (
            "A whitewash waiver under the Takeovers Code requires approval by "
            "independent shareholders."
        )
        verdict = validate_answer(text, "whitewash")
        assert verdict.missing_elements == ["Dealing restrictions"]


# ---------------------------------------------------------------------------
# Test: Tier B — Open Offer and Other Corporate Actions
# ---------------------------------------------------------------------------


class TestOpenOfferChecklist:
    def test_statement_alone_is_not_enough(self):
        text = (
            "An open offer is governed by the Listing Rules. There is no "
            "trading in nil-paid rights."
        )
        verdict = validate_answer(text, "open-offer")
        assert verdict.missing_elements == [
            "Ex-entitlement date",
            "Application and excess application arrangements",
            "Acceptance deadline",
            "Payment date",
        ]
        assert not verdict.is_truncated
        assert verdict.confidence == Confidence.MEDIUM

    def test_timetable_needs_table(self):
        text = OPEN_OFFER_COMPLETE + " The timetable runs from 3 March 2025 to 20 March 2025."
        verdict = validate_answer(text, "open-offer")
        assert verdict.missing_elements == ["Timetable is not presented as a delimited table"]

    def test_timetable_as_table(self):
        text = f"{OPEN_OFFER_COMPLETE}\n\n{OPEN_OFFER_TIMETABLE}"
        assert validate_answer(text, "open-offer").is_complete


class TestOtherCorporateActions:
    def test_name_change_needs_general_meeting(self):
        text = "The new stock short name applies from the effective date in the announcement."
        verdict = validate_answer(text, "company-name-change")
        assert verdict.missing_elements == ["Shareholders' general meeting"]

    def test_share_consolidation_timetable_needs_table(self):
        text = (
            "The share consolidation requires approval at a general meeting. "
            "The timetable sets the effective date and the free exchange "
            "period for share certificates."
        )
        verdict = validate_answer(text, "share-consolidation")
        assert verdict.missing_elements == ["Timetable is not presented as a delimited table"]


# ---------------------------------------------------------------------------
# Test: Tier B — Rights Issue vs. Open Offer
# ---------------------------------------------------------------------------


class TestRightsIssueVsOpenOffer:
    QUERY_TYPE = QueryType.RIGHTS_ISSUE_VS_OPEN_OFFER

    def test_complete_comparison(self):
        text = RIGHTS_VS_OPEN_OFFER + RIGHTS_VS_OPEN_OFFER_CONCLUSION
        verdict = validate_answer(text, self.QUERY_TYPE)
        assert verdict.is_complete, verdict.missing_elements

    def test_conclusion_required_at_any_length(self):
        verdict = validate_answer(RIGHTS_VS_OPEN_OFFER, self.QUERY_TYPE)
        assert verdict.missing_elements == ["Conclusion summarising the differences"]
        assert not verdict.is_truncated

    def test_both_terminologies_required(self):
        text = (
            "A rights issue gives shareholders nil-paid rights, which trade "
            "during the trading period after the ex-rights date. In "
            "conclusion, rights can be sold."
        )
        verdict = validate_answer(text, self.QUERY_TYPE)
        assert verdict.missing_elements == [
            "Open offer: statement that there is no nil-paid rights trading",
            "Open offer: ex-entitlement date",
        ]

    def test_single_timetable_has_too_few_dates(self):
        text = (
            RIGHTS_VS_OPEN_OFFER + RIGHTS_VS_OPEN_OFFER_CONCLUSION
            + "\n\n" + RIGHTS_ISSUE_COMPLETE
        )
        verdict = validate_answer(text, self.QUERY_TYPE)
        assert verdict.missing_elements == ["Too few distinct dates to compare both timetables"]

    def test_both_timetables_have_enough_dates(self):
        text = (
            RIGHTS_VS_OPEN_OFFER + RIGHTS_VS_OPEN_OFFER_CONCLUSION
            + "\n\n" + RIGHTS_ISSUE_COMPLETE + "\n\n" + OPEN_OFFER_TIMETABLE
        )
        assert validate_answer(text, self.QUERY_TYPE).is_complete


# ---------------------------------------------------------------------------
# Test: Conclusion Requirement
# ---------------------------------------------------------------------------


class TestConclusion:
    def _long_comparison(self):
        text = COMPARISON_SENTENCE * 60
        assert len(text) > 6000
        return text

    def test_long_answer_without_conclusion(self):
        verdict = validate_answer(self._long_comparison())
        assert not verdict.is_complete
        assert not verdict.is_truncated
        assert any("conclusion" in m.lower() for m in verdict.missing_elements)

    def test_long_answer_with_conclusion(self):
        text = self._long_comparison() + "In conclusion, only rights issues allow rights trading."
        assert validate_answer(text).is_complete

    def test_marker_outside_final_window_ignored(self):
        text = "Summary first. " + self._long_comparison()
        assert "conclusion" in _codes(validate_answer(text))

    def test_applies_to_every_query_type(self):
        verdict = validate_answer(self._long_comparison(), "board-lot-change")
        assert "conclusion" in _codes(verdict)


# ---------------------------------------------------------------------------
# Test: Dispatch and Configuration
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_every_query_type_has_checklist(self):
        assert set(CHECKLISTS) == set(QueryType)

    def test_unknown_label_gets_common_checks_only(self):
        assert validate_answer("Short answer.", "bond-issue").is_complete
        assert rules_for(None) == rules_for(QueryType.GENERAL)

    def test_enum_and_label_equivalent(self):
        by_enum = validate_answer("Short answer.", QueryType.WHITEWASH)
        by_label = validate_answer("Short answer.", "Whitewash")
        assert by_enum == by_label

    def test_confidence_is_highest_severity(self):
        verdict = validate_answer("Short (answer.", "rights-issue")
        assert verdict.confidence == Confidence.HIGH
        assert verdict.is_truncated

    def test_thresholds_override(self):
        strict = Thresholds(
            unterminated_min_chars=5,
            long_answer_chars=5000,
            conclusion_window_chars=1500,
            min_timetable_dates=6,
            min_comparison_dates=8,
        )
        verdict = validate_answer("Not yet finished", thresholds=strict)
        assert _codes(verdict) == ["unterminated-ending"]


class TestAnswerView:
    def test_distinct_dates(self):
        view = AnswerView.from_text(
            "Day 0 announcement, Day 21 posting, Day 21 again, T+3 settlement, "
            "2025-03-15 and 15 March 2025."
        )
        assert view.dates == frozenset({"day 0", "day 21", "t+3", "2025-03-15", "15 march 2025"})

    def test_table_detection(self):
        view = AnswerView.from_text("| a | b |\n|---|---|\n| 1 | 2 |")
        assert view.has_table
        assert view.has_delimited_table
        assert view.has_timetable
