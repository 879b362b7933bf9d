#!/usr/bin/env python3
"""
Load the bundled regulatory seed data into PostgreSQL.

Creates the regulatory_provisions table if it does not exist and upserts
every entry from the JSON seed file (archived entries included, so the
SQL store's status filter has something to filter).

Usage:
    uv run python scripts/seed_knowledge_db.py
    uv run python scripts/seed_knowledge_db.py path/to/seed.json

Afterwards set KNOWLEDGE_STORE_TYPE=sql to serve from the database.
"""

import asyncio
import logging
import sys

from regqa.config import settings
from regqa.db.engine import get_async_engine, get_async_session_factory
from regqa.db.models import Base, RegulatoryProvision
from regqa.services.knowledge_store import load_seed_entries

logger = logging.getLogger(__name__)


async def seed(path: str) -> int:
    entries = load_seed_entries(path)

    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = get_async_session_factory()
    async with session_factory() as session:
        for entry in entries:
            await session.merge(
                RegulatoryProvision(
                    id=entry.id,
                    title=entry.title,
                    content=entry.content,
                    category=entry.category,
                    source=entry.source,
                    section=entry.section,
                    status=entry.status,
                    last_updated=entry.last_updated,
                )
            )
        await session.commit()

    await engine.dispose()
    return len(entries)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed_path = sys.argv[1] if len(sys.argv) > 1 else settings.knowledge_seed_path
    count = asyncio.run(seed(seed_path))
    logger.info("Seeded %d regulatory entries from %s", count, seed_path)
