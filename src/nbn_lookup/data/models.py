"""
SQLAlchemy ORM models for the suburb cache.

One row per location key; a refetch replaces the whole row.
"""

from typing import Any, Optional

from sqlalchemy import String, Float, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from nbn_lookup.data.database import Base


class CachedSuburb(Base):
    """
    Cached upstream feature collection for one suburb.

    ``fetched_at`` is epoch seconds so freshness and eviction are plain
    arithmetic against the store's clock.
    """
    __tablename__ = "suburb_cache"

    cache_key: Mapped[str] = mapped_column(String(160), primary_key=True)
    state: Mapped[str] = mapped_column(String(8), index=True)
    suburb_slug: Mapped[str] = mapped_column(String(150))
    fetched_at: Mapped[float] = mapped_column(Float, index=True)
    generated_at: Mapped[Optional[str]] = mapped_column(String(64))
    source_url: Mapped[str] = mapped_column(Text)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<CachedSuburb(cache_key='{self.cache_key}', fetched_at={self.fetched_at})>"
