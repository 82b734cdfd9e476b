"""Data layer — database engine, ORM model and the suburb cache store."""

from nbn_lookup.data.database import (
    Base, create_db_engine, create_session_factory, init_db, open_cache_database,
)
from nbn_lookup.data.models import CachedSuburb
from nbn_lookup.data.cache import CacheEntry, CacheEvent, CacheStore, SweepResult

__all__ = [
    "Base", "create_db_engine", "create_session_factory", "init_db", "open_cache_database",
    "CachedSuburb",
    "CacheEntry", "CacheEvent", "CacheStore", "SweepResult",
]
