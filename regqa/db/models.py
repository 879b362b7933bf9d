# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# Schema for the SQL-backed knowledge store. The retrieval service only reads
# this table; loading and curating provisions is done by a separate process.
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────────────────────────────┐
# │  regulatory_provisions                   │
# ├──────────────────────────────────────────┤
# │ id (PK, text)                            │
# │ title (text)                             │
# │ content (text)                           │
# │ category (enum)                          │
# │ source (text)  — citation                │
# │ section (text, nullable) — rule number   │
# │ status (enum)                            │
# │ last_updated (timestamptz)               │
# └──────────────────────────────────────────┘
#
# DESIGN DECISIONS:
#
# 1. (title, source) is the de-duplication key used by the pipeline, so it
#    is indexed together. It is deliberately NOT unique: the same provision
#    may be loaded under two ids by independent curators.
#
# 2. `category` is a closed string enum. The pipeline scopes several of its
#    strategies to one category and gives primary rule books a ranking bonus.
# =============================================================================

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class Category(str, enum.Enum):
    """
    Classification of a regulatory entry.

    Values use hyphens to match the category labels in the seed data and
    in API payloads.
    """

    PRIMARY_RULES = "primary-rules"            # Listing Rules chapters
    TAKEOVER_RULES = "takeover-rules"          # Takeovers Code
    GUIDANCE = "guidance"                      # FAQs, guidance letters
    PRECEDENTS = "precedents"                  # Decisions and rulings
    REFERENCE_DOCUMENT = "reference-document"  # Guides, timetables
    OTHER = "other"


class EntryStatus(str, enum.Enum):
    """Lifecycle of a provision. Only ACTIVE entries are served."""

    ACTIVE = "active"
    UNDER_REVIEW = "under-review"
    ARCHIVED = "archived"


class RegulatoryProvision(Base):
    """A single provision, guidance note or reference document."""

    __tablename__ = "regulatory_provisions"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    category: Mapped[Category] = mapped_column(
        Enum(Category, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Category.OTHER,
    )

    # Citation shown next to the title in formatted context,
    # e.g. "Main Board Listing Rules Chapter 7"
    source: Mapped[str] = mapped_column(String(500), nullable=False)

    # Rule number or sub-reference, e.g. "7.19A"
    section: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[EntryStatus] = mapped_column(
        Enum(EntryStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EntryStatus.ACTIVE,
    )

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_regulatory_provisions_title_source", "title", "source"),
        Index("ix_regulatory_provisions_category", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<RegulatoryProvision(id={self.id!r}, title={self.title!r}, "
            f"category={self.category})>"
        )
