# =============================================================================
# Knowledge Store — Pluggable Regulatory Corpus Backend
# =============================================================================
#
# The retrieval pipeline reads regulatory entries through a three-method
# interface. Nothing in the pipeline knows which backend it is talking to;
# the store is passed in per call.
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Any object with the three async search methods works, including the small
# fakes the tests use to simulate outages and slow backends.
#
# DESIGN DECISION: Keyword matching, not embeddings.
# Regulatory questions cite rule numbers and defined terms ("nil-paid
# rights", "whitewash waiver") verbatim. Substring matching over title and
# content finds those reliably and keeps the corpus fully deterministic.
#
# ARCHITECTURE:
#   KnowledgeStore (Protocol)
#   ├── InMemoryKnowledgeStore — list of entries, loadable from JSON seed
#   ├── SqlKnowledgeStore      — ILIKE queries over regulatory_provisions
#   └── get_knowledge_store()  — factory, reads knowledge_store_type
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import case, or_, select
from sqlalchemy.exc import SQLAlchemyError

from regqa.config import settings
from regqa.db.engine import get_async_session_factory
from regqa.db.models import Category, EntryStatus, RegulatoryProvision

logger = logging.getLogger(__name__)

# Words that carry no retrieval signal in this corpus. "rule" and "rules"
# appear in nearly every provision.
_STOPWORDS = frozenset({
    "the", "and", "for", "are", "was", "what", "which", "when", "where",
    "who", "how", "does", "did", "can", "should", "would", "could", "with",
    "under", "into", "from", "that", "this", "there", "their", "any",
    "about", "must", "will", "has", "have", "rule", "rules", "explain",
    "tell", "please", "between",
})

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9.%/-]*")

# Maximum entries a single store call returns
DEFAULT_MAX_RESULTS = 10

_DEFAULT_LAST_UPDATED = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Relevance weights, shared by the in-memory and SQL backends
_PHRASE_WEIGHT = 5
_TITLE_WEIGHT = 2
_CONTENT_WEIGHT = 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class KnowledgeStoreError(Exception):
    """A single store call failed (connection lost, query error, bad data)."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegulatoryEntry:
    """
    One unit of regulatory text returned by the store.

    Frozen so that the pipeline stages can share entries without copying.
    Two entries with the same (title, source) are the same provision for
    de-duplication purposes, whatever their ids.
    """

    id: str
    title: str
    content: str
    category: Category
    source: str
    section: str | None = None
    last_updated: datetime = _DEFAULT_LAST_UPDATED
    status: EntryStatus = EntryStatus.ACTIVE

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.title, self.source)


def query_terms(query: str) -> list[str]:
    """
    Split a query into lowercase search terms.

    Terms of two characters or fewer and stopwords are dropped. Trailing
    punctuation is stripped so "7.19A?" yields "7.19a".
    """
    terms: list[str] = []
    for raw in _TOKEN_PATTERN.findall(query.lower()):
        term = raw.rstrip(".,;:/-")
        if len(term) > 2 and term not in _STOPWORDS and term not in terms:
            terms.append(term)
    return terms


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class KnowledgeStore(Protocol):
    """
    Protocol defining the knowledge store interface.

    All methods are async, read-only and return ACTIVE entries only. An
    empty list means "nothing matched"; failures raise KnowledgeStoreError
    (or any other exception, which the pipeline treats the same way).
    """

    async def search_by_title(self, title: str) -> list[RegulatoryEntry]:
        """Entries whose title contains `title` (case-insensitive)."""
        ...

    async def search(
        self,
        query: str,
        category: Category | None = None,
    ) -> list[RegulatoryEntry]:
        """Keyword search over title and content, optionally in one category."""
        ...

    async def search_across_categories(
        self, query: str,
    ) -> list[RegulatoryEntry]:
        """Keyword search over every category."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: In-Memory
# ---------------------------------------------------------------------------


class InMemoryKnowledgeStore:
    """
    Knowledge store over an in-process list of entries.

    Matching: an entry matches when the whole query phrase, or any query
    term, occurs in its title or content. Matches are ordered by the number
    of distinct terms they contain (title hits first), ties in corpus order,
    and capped at `max_results`.
    """

    def __init__(
        self,
        entries: Iterable[RegulatoryEntry],
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self._entries = tuple(
            e for e in entries if e.status == EntryStatus.ACTIVE
        )
        self._max_results = max_results

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_json(
        cls,
        path: str | Path,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> InMemoryKnowledgeStore:
        """
        Load entries from a JSON seed file.

        The file holds a list of objects with the RegulatoryEntry fields.
        `last_updated` is an ISO-8601 string; `category` and `status` use
        the enum values ("primary-rules", "active", ...).
        """
        entries = load_seed_entries(path)
        logger.info("Loaded %d regulatory entries from %s", len(entries), path)
        return cls(entries, max_results=max_results)

    async def search_by_title(self, title: str) -> list[RegulatoryEntry]:
        needle = title.lower().strip()
        if not needle:
            return []
        matches = [e for e in self._entries if needle in e.title.lower()]
        return matches[: self._max_results]

    async def search(
        self,
        query: str,
        category: Category | None = None,
    ) -> list[RegulatoryEntry]:
        candidates = (
            self._entries
            if category is None
            else [e for e in self._entries if e.category == category]
        )
        return self._match(query, candidates)

    async def search_across_categories(
        self, query: str,
    ) -> list[RegulatoryEntry]:
        return self._match(query, self._entries)

    def _match(
        self,
        query: str,
        candidates: Iterable[RegulatoryEntry],
    ) -> list[RegulatoryEntry]:
        phrase = query.lower().strip()
        terms = query_terms(query)
        if not phrase:
            return []

        scored: list[tuple[int, RegulatoryEntry]] = []
        for entry in candidates:
            title = entry.title.lower()
            content = entry.content.lower()
            title_hits = sum(1 for t in terms if t in title)
            content_hits = sum(1 for t in terms if t in content)
            phrase_hit = phrase in title or phrase in content
            if not (phrase_hit or title_hits or content_hits):
                continue
            score = (
                _TITLE_WEIGHT * title_hits
                + _CONTENT_WEIGHT * content_hits
                + (_PHRASE_WEIGHT if phrase_hit else 0)
            )
            scored.append((score, entry))

        # sorted() is stable, so ties keep corpus order
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in scored[: self._max_results]]


def load_seed_entries(path: str | Path) -> list[RegulatoryEntry]:
    """
    Parse a JSON seed file into entries, whatever their status.

    Raises:
        KnowledgeStoreError: If the file is missing or malformed.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return [_entry_from_dict(item) for item in raw]
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise KnowledgeStoreError(
            f"Failed to load knowledge seed '{path}': {e}"
        ) from e


def _entry_from_dict(item: dict) -> RegulatoryEntry:
    last_updated = item.get("last_updated")
    return RegulatoryEntry(
        id=str(item["id"]),
        title=item["title"],
        content=item["content"],
        category=Category(item.get("category", Category.OTHER.value)),
        source=item["source"],
        section=item.get("section"),
        last_updated=(
            datetime.fromisoformat(last_updated)
            if last_updated
            else _DEFAULT_LAST_UPDATED
        ),
        status=EntryStatus(item.get("status", EntryStatus.ACTIVE.value)),
    )


# ---------------------------------------------------------------------------
# Implementation 2: SQL (PostgreSQL via SQLAlchemy async)
# ---------------------------------------------------------------------------


class SqlKnowledgeStore:
    """
    Knowledge store over the regulatory_provisions table.

    Matches with ILIKE (case-insensitive substring) and ranks in SQL with
    the in-memory scoring: 5 for a whole-phrase hit, 2 per term found in the
    title, 1 per term found in the content. Ties are broken by title then id,
    so the cap keeps the best matches and repeated queries return the same
    sequence.
    """

    def __init__(
        self,
        session_factory=None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self._session_factory = session_factory or get_async_session_factory()
        self._max_results = max_results

    async def search_by_title(self, title: str) -> list[RegulatoryEntry]:
        needle = title.strip()
        if not needle:
            return []
        stmt = select(RegulatoryProvision).where(
            RegulatoryProvision.title.ilike(contains_pattern(needle), escape="\\"),
        )
        return await self._fetch(stmt)

    async def search(
        self,
        query: str,
        category: Category | None = None,
    ) -> list[RegulatoryEntry]:
        phrase = query.strip()
        if not phrase:
            return []

        title, content = RegulatoryProvision.title, RegulatoryProvision.content
        phrase_pattern = contains_pattern(phrase)
        phrase_hit = or_(
            title.ilike(phrase_pattern, escape="\\"),
            content.ilike(phrase_pattern, escape="\\"),
        )
        clauses = [phrase_hit]
        relevance = case((phrase_hit, _PHRASE_WEIGHT), else_=0)
        for term in query_terms(query):
            pattern = contains_pattern(term)
            in_title = title.ilike(pattern, escape="\\")
            in_content = content.ilike(pattern, escape="\\")
            clauses.extend((in_title, in_content))
            relevance = (
                relevance
                + case((in_title, _TITLE_WEIGHT), else_=0)
                + case((in_content, _CONTENT_WEIGHT), else_=0)
            )

        stmt = select(RegulatoryProvision).where(or_(*clauses))
        if category is not None:
            stmt = stmt.where(RegulatoryProvision.category == category)
        return await self._fetch(stmt, relevance)

    async def search_across_categories(
        self, query: str,
    ) -> list[RegulatoryEntry]:
        return await self.search(query, category=None)

    async def _fetch(self, stmt, relevance=None) -> list[RegulatoryEntry]:
        stmt = stmt.where(RegulatoryProvision.status == EntryStatus.ACTIVE)
        if relevance is not None:
            stmt = stmt.order_by(relevance.desc())
        stmt = stmt.order_by(
            RegulatoryProvision.title, RegulatoryProvision.id,
        ).limit(self._max_results)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise KnowledgeStoreError(f"Knowledge store query failed: {e}") from e

        return [
            RegulatoryEntry(
                id=row.id,
                title=row.title,
                content=row.content,
                category=row.category,
                source=row.source,
                section=row.section,
                last_updated=row.last_updated,
                status=row.status,
            )
            for row in rows
        ]


def contains_pattern(needle: str) -> str:
    """
    ILIKE pattern matching `needle` anywhere, with LIKE wildcards escaped.

    "100% owned" → "%100\\% owned%" (use with escape="\\").
    """
    escaped = (
        needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_knowledge_store(
    override_type: str | None = None,
) -> InMemoryKnowledgeStore | SqlKnowledgeStore:
    """
    Factory that returns the configured knowledge store backend.

    Reads `knowledge_store_type` from settings:
    - "memory" → InMemoryKnowledgeStore loaded from knowledge_seed_path
    - "sql" → SqlKnowledgeStore over regulatory_provisions

    Raises:
        KnowledgeStoreError: If the seed file cannot be loaded.
    """
    store_type = override_type or settings.knowledge_store_type

    if store_type == "sql":
        logger.info("Using SQL knowledge store")
        return SqlKnowledgeStore()

    logger.info("Using in-memory knowledge store")
    return InMemoryKnowledgeStore.from_json(settings.knowledge_seed_path)
