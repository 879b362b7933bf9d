# =============================================================================
# Unit Tests — Fallback Injector
# =============================================================================

from __future__ import annotations

import pytest

from regqa.agents.classifier import classify
from regqa.agents.fallbacks import (
    GENERAL_OFFER_TIMETABLE,
    RIGHTS_ISSUE_AGGREGATION,
    RIGHTS_ISSUE_TIMETABLE,
    SCENARIOS,
    WHITEWASH_DEALING,
    inject_fallbacks,
    is_fallback,
)
from regqa.db.models import Category
from tests.helpers import make_entry


def _inject(results, query):
    return inject_fallbacks(results, query, classify(query))


class TestScenarioEntries:
    @pytest.mark.parametrize("scenario", SCENARIOS, ids=lambda s: s.name)
    def test_canonical_entry_covers_its_own_scenario(self, scenario):
        assert scenario.is_covered([scenario.entry])

    @pytest.mark.parametrize("scenario", SCENARIOS, ids=lambda s: s.name)
    def test_canonical_entry_marked(self, scenario):
        assert is_fallback(scenario.entry)


class TestInjectFallbacks:
    def test_whitewash_injected_when_uncovered(self):
        augmented = _inject([], "Can we apply for a whitewash waiver?")
        assert WHITEWASH_DEALING.entry in augmented

    def test_whitewash_skipped_when_covered(self):
        covering = make_entry(
            "tc-ww", "Whitewash note",
            "Dealing by the subscriber invalidates the whitewash waiver.",
            category=Category.TAKEOVER_RULES,
        )
        augmented = _inject([covering], "Can we apply for a whitewash waiver?")
        assert augmented == [covering]

    def test_aggregation_injected(self):
        query = "What is the rights issue aggregation threshold under rule 7.19A?"
        augmented = _inject([], query)
        assert augmented == [RIGHTS_ISSUE_AGGREGATION.entry]

    def test_aggregation_needs_rights_issue(self):
        assert _inject([], "aggregation of placings") == []

    def test_general_offer_timetable(self):
        augmented = _inject([], "What is the general offer timetable?")
        assert GENERAL_OFFER_TIMETABLE.entry in augmented

    def test_rights_issue_timetable(self):
        augmented = _inject([], "How long does a rights issue take?")
        assert RIGHTS_ISSUE_TIMETABLE.entry in augmented

    def test_question_ending_in_when(self):
        augmented = _inject([], "Nil-paid rights in a rights issue trade from when?")
        assert RIGHTS_ISSUE_TIMETABLE.entry in augmented

    def test_when_inside_word_ignored(self):
        assert _inject([], "rights issue whenever possible") == []

    def test_unrelated_query_untouched(self):
        results = [make_entry("x", "Connected transactions")]
        assert _inject(results, "connected transaction rules") == results

    def test_input_not_mutated(self):
        results: list = []
        _inject(results, "whitewash waiver")
        assert results == []

    @pytest.mark.parametrize(
        "query",
        [
            "whitewash waiver dealing",
            "What is the rights issue aggregation threshold under rule 7.19A?",
            "general offer timetable",
            "rights issue timetable starting 15 March",
        ],
    )
    def test_idempotent(self, query):
        signals = classify(query)
        once = inject_fallbacks([], query, signals)
        twice = inject_fallbacks(once, query, signals)
        assert twice == once
