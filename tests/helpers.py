# =============================================================================
# Test Helpers — Entry Builders and Fake Knowledge Stores
# =============================================================================

from __future__ import annotations

import asyncio

from regqa.db.models import Category
from regqa.services.knowledge_store import (
    InMemoryKnowledgeStore,
    KnowledgeStoreError,
    RegulatoryEntry,
)


def make_entry(
    id: str,
    title: str,
    content: str = "",
    category: Category = Category.PRIMARY_RULES,
    source: str = "Main Board Listing Rules",
    section: str | None = None,
) -> RegulatoryEntry:
    return RegulatoryEntry(
        id=id,
        title=title,
        content=content or title,
        category=category,
        source=source,
        section=section,
    )


# ---------------------------------------------------------------------------
# Fake Stores
# ---------------------------------------------------------------------------


class FailingStore:
    """Every call raises, as if the backend were unreachable."""

    def __init__(self) -> None:
        self.calls = 0

    async def search_by_title(self, title):
        self.calls += 1
        raise KnowledgeStoreError("connection refused")

    async def search(self, query, category=None):
        self.calls += 1
        raise KnowledgeStoreError("connection refused")

    async def search_across_categories(self, query):
        self.calls += 1
        raise KnowledgeStoreError("connection refused")


class RecordingStore:
    """
    Delegates to an in-memory store and records the call sequence.

    Also tracks how many calls were in flight at once (`peak_in_flight`).
    """

    def __init__(self, entries, failing_methods=(), delays=None) -> None:
        self._inner = InMemoryKnowledgeStore(entries)
        self._failing = set(failing_methods)
        self._delays = delays or {}
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _call(self, method, arg, *args):
        self.calls.append((method, arg))
        if method in self._failing:
            raise KnowledgeStoreError(f"{method} unavailable")
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delays.get(method, 0))
            return await getattr(self._inner, method)(arg, *args)
        finally:
            self.in_flight -= 1

    async def search_by_title(self, title):
        return await self._call("search_by_title", title)

    async def search(self, query, category=None):
        return await self._call("search", query, category)

    async def search_across_categories(self, query):
        return await self._call("search_across_categories", query)


class HangingStore:
    """Calls block until cancelled; records that cancellation reached them."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = 0

    async def _hang(self):
        self.started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return []

    async def search_by_title(self, title):
        return await self._hang()

    async def search(self, query, category=None):
        return await self._hang()

    async def search_across_categories(self, query):
        return await self._hang()
