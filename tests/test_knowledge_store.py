# =============================================================================
# Unit Tests — Knowledge Store
# =============================================================================
#
# In-memory matching, JSON seed loading, and SQL error wrapping (with a
# fake session; no database required).
# =============================================================================

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from regqa.config import Settings
from regqa.db.models import Category, EntryStatus
from regqa.services.knowledge_store import (
    InMemoryKnowledgeStore,
    KnowledgeStoreError,
    SqlKnowledgeStore,
    contains_pattern,
    get_knowledge_store,
    load_seed_entries,
    query_terms,
)
from tests.conftest import SEED_PATH
from tests.helpers import make_entry


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Test: Query Terms
# ---------------------------------------------------------------------------


class TestQueryTerms:
    def test_stopwords_and_short_tokens_dropped(self):
        assert query_terms("What is the rule on an open offer?") == ["open", "offer"]

    def test_trailing_punctuation_stripped(self):
        assert query_terms("rule 7.19A?") == ["7.19a"]

    def test_duplicates_removed(self):
        assert query_terms("offer offer offer") == ["offer"]


# ---------------------------------------------------------------------------
# Test: In-Memory Store
# ---------------------------------------------------------------------------


class TestInMemoryKnowledgeStore:
    def test_search_by_title_case_insensitive(self, sample_store):
        results = _run(sample_store.search_by_title("trading arrangements"))
        assert [e.id for e in results] == ["ref-trading"]

    def test_blank_title_matches_nothing(self, sample_store):
        assert _run(sample_store.search_by_title("   ")) == []

    def test_search_scoped_to_category(self, sample_store):
        results = _run(sample_store.search("rights issue", category=Category.TAKEOVER_RULES))
        assert results == []

    def test_search_ranks_phrase_hits_first(self, sample_store):
        results = _run(sample_store.search("rights issue"))
        assert results[0].id == "lr-rights"

    def test_search_across_categories(self, sample_store):
        results = _run(sample_store.search_across_categories("mandatory general offer"))
        assert results[0].id == "tc-26"

    def test_results_capped(self):
        entries = [make_entry(f"e{i}", f"Offer note {i}") for i in range(20)]
        store = InMemoryKnowledgeStore(entries, max_results=5)
        assert len(_run(store.search("offer"))) == 5

    def test_ties_keep_corpus_order(self):
        entries = [make_entry(f"e{i}", f"Offer note {i}") for i in range(3)]
        store = InMemoryKnowledgeStore(entries)
        assert [e.id for e in _run(store.search("offer"))] == ["e0", "e1", "e2"]

    def test_inactive_entries_excluded(self):
        archived = replace(make_entry("old", "Open offer (old)"), status=EntryStatus.ARCHIVED)
        store = InMemoryKnowledgeStore([archived, make_entry("new", "Open offer")])
        assert len(store) == 1
        assert [e.id for e in _run(store.search("open offer"))] == ["new"]


# ---------------------------------------------------------------------------
# Test: Seed Loading
# ---------------------------------------------------------------------------


class TestSeedLoading:
    def test_bundled_seed_loads(self, seed_store):
        assert len(seed_store) > 10

    def test_archived_seed_entries_filtered(self):
        everything = load_seed_entries(SEED_PATH)
        store = InMemoryKnowledgeStore.from_json(SEED_PATH)
        archived = [e for e in everything if e.status == EntryStatus.ARCHIVED]
        assert archived
        assert len(store) == len(everything) - len(archived)

    def test_fields_parsed(self):
        entry = next(e for e in load_seed_entries(SEED_PATH) if e.id == "lr-7.19a")
        assert entry.category == Category.PRIMARY_RULES
        assert entry.section == "7.19A"
        assert entry.last_updated.year == 2024

    def test_default_path_independent_of_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = Path(Settings().knowledge_seed_path)
        assert path.is_absolute()
        assert path.samefile(SEED_PATH)

    def test_missing_file(self, tmp_path):
        with pytest.raises(KnowledgeStoreError):
            InMemoryKnowledgeStore.from_json(tmp_path / "missing.json")

    def test_malformed_entry(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"id": "x", "title": "No content"}]))
        with pytest.raises(KnowledgeStoreError):
            InMemoryKnowledgeStore.from_json(path)

    def test_unknown_category(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([
            {"id": "x", "title": "t", "content": "c", "source": "s", "category": "nope"},
        ]))
        with pytest.raises(KnowledgeStoreError):
            InMemoryKnowledgeStore.from_json(path)

    def test_factory_builds_memory_store(self, monkeypatch):
        from regqa.services import knowledge_store

        monkeypatch.setattr(knowledge_store.settings, "knowledge_seed_path", str(SEED_PATH))
        store = get_knowledge_store("memory")
        assert isinstance(store, InMemoryKnowledgeStore)


# ---------------------------------------------------------------------------
# Test: SQL Store
# ---------------------------------------------------------------------------


def _session_factory(session):
    """Callable returning an async context manager yielding `session`."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


def _compiled(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestSqlKnowledgeStore:
    def test_database_error_wrapped(self):
        session = MagicMock()
        session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("server closed")),
        )
        store = SqlKnowledgeStore(session_factory=_session_factory(session))
        with pytest.raises(KnowledgeStoreError):
            _run(store.search("rights issue"))

    def test_rows_converted_to_entries(self):
        row = MagicMock(
            id="lr-7.24",
            title="Rule 7.24: Open Offers",
            content="No trading in nil-paid rights.",
            category=Category.PRIMARY_RULES,
            source="Main Board Listing Rules Chapter 7",
            section="7.24",
            status=EntryStatus.ACTIVE,
        )
        row.last_updated = make_entry("x", "x").last_updated
        result = MagicMock()
        result.scalars.return_value.all.return_value = [row]
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)

        store = SqlKnowledgeStore(session_factory=_session_factory(session))
        entries = _run(store.search("open offer", category=Category.PRIMARY_RULES))

        assert [e.id for e in entries] == ["lr-7.24"]
        assert entries[0].section == "7.24"
        session.execute.assert_awaited_once()

    def test_blank_query_skips_database(self):
        session = MagicMock()
        session.execute = AsyncMock()
        store = SqlKnowledgeStore(session_factory=_session_factory(session))
        assert _run(store.search("   ")) == []
        session.execute.assert_not_awaited()

    def test_ranked_by_relevance_before_title(self):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)
        store = SqlKnowledgeStore(session_factory=_session_factory(session))

        _run(store.search("rights issue aggregation threshold"))

        sql = _compiled(session.execute.call_args.args[0])
        order_by = sql.split("ORDER BY", 1)[1]
        # Relevance first, then the deterministic tie-break, then the cap
        assert order_by.lstrip(" (").startswith("CASE WHEN")
        assert "DESC, regulatory_provisions.title, regulatory_provisions.id" in order_by
        assert "LIMIT" in order_by

    def test_like_wildcards_escaped(self):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)
        store = SqlKnowledgeStore(session_factory=_session_factory(session))

        _run(store.search_by_title("100%_owned"))

        compiled = session.execute.call_args.args[0].compile(dialect=postgresql.dialect())
        assert "%100\\%\\_owned%" in compiled.params.values()
        assert "ESCAPE" in str(compiled)


class TestContainsPattern:
    def test_plain_text(self):
        assert contains_pattern("rights issue") == "%rights issue%"

    def test_wildcards_and_backslash(self):
        assert contains_pattern("50%_a\\b") == "%50\\%\\_a\\\\b%"
