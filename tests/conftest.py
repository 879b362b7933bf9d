# =============================================================================
# Shared Test Fixtures — Knowledge Stores
# =============================================================================
#
# Every test builds its own store; nothing is shared across tests.
#   - sample_store: small hand-written corpus, in memory
#   - seed_store:   the bundled JSON seed file
#   - empty_store:  no entries at all
# =============================================================================

from __future__ import annotations

from pathlib import Path

import pytest

from regqa.db.models import Category
from regqa.services.knowledge_store import InMemoryKnowledgeStore
from tests.helpers import make_entry

SEED_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "knowledge" / "hk_regulations.json"
)

SAMPLE_ENTRIES = [
    make_entry(
        "lr-7.19a",
        "Rule 7.19A: Aggregation",
        "Rule 7.19A: a rights issue that, aggregated over 12 months, "
        "increases issued shares by more than 50% needs minority approval.",
        section="7.19A",
    ),
    make_entry(
        "lr-rights",
        "Rights Issue Requirements",
        "A rights issue must state the ex-rights date, record date and "
        "nil-paid rights trading period.",
    ),
    make_entry(
        "tc-26",
        "Takeovers Code Rule 26",
        "Rule 26 requires a mandatory general offer at the 30% threshold.",
        category=Category.TAKEOVER_RULES,
        source="Takeovers Code",
        section="26",
    ),
    make_entry(
        "ref-trading",
        "Guide on Trading Arrangements",
        "Trading arrangements for rights issues and open offers, including "
        "the timetable for nil-paid rights.",
        category=Category.REFERENCE_DOCUMENT,
        source="HKEX Guide",
    ),
    make_entry(
        "faq-10.4",
        "FAQ 10.4 Continuing Obligations",
        "Frequently asked questions on continuing obligations.",
        category=Category.GUIDANCE,
        source="HKEX FAQ",
    ),
]


@pytest.fixture
def sample_entries():
    return list(SAMPLE_ENTRIES)


@pytest.fixture
def sample_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore(SAMPLE_ENTRIES)


@pytest.fixture
def seed_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore.from_json(SEED_PATH)


@pytest.fixture
def empty_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore([])
