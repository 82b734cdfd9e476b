"""
Persistent cache of suburb feature collections.

One row per location key, replaced wholesale on every write. An entry is
fresh while its age is below the TTL; a periodic sweep removes entries
past the expiry horizon and then trims the oldest until the store is
within its size bound. Store failures surface as CacheReadError or
CacheWriteError so callers can degrade instead of failing.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Literal, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from nbn_lookup.config import DAY_SECONDS
from nbn_lookup.data.models import CachedSuburb
from nbn_lookup.exceptions import CacheReadError, CacheWriteError
from nbn_lookup.logging_config import get_logger
from nbn_lookup.lookup.resolver import LocationKey

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached feature collection and where/when it was fetched."""

    key: LocationKey
    fetched_at: float
    source_url: str
    payload: dict[str, Any]
    generated_at: Optional[str] = None

    def age(self, now: float) -> float:
        return now - self.fetched_at

    @classmethod
    def from_row(cls, row: CachedSuburb) -> "CacheEntry":
        return cls(
            key=LocationKey(state=row.state, suburb_slug=row.suburb_slug),
            fetched_at=row.fetched_at,
            source_url=row.source_url,
            payload=row.payload,
            generated_at=row.generated_at,
        )

    def to_row(self) -> CachedSuburb:
        return CachedSuburb(
            cache_key=self.key.cache_key,
            state=self.key.state,
            suburb_slug=self.key.suburb_slug,
            fetched_at=self.fetched_at,
            generated_at=self.generated_at,
            source_url=self.source_url,
            payload=self.payload,
        )


@dataclass(frozen=True)
class CacheEvent:
    """Change notification delivered to per-key subscribers."""

    kind: Literal["set", "delete"]
    key: LocationKey
    entry: Optional[CacheEntry] = None


@dataclass(frozen=True)
class SweepResult:
    expired: int
    evicted: int
    remaining: int

    @property
    def removed(self) -> int:
        return self.expired + self.evicted


Subscriber = Callable[[CacheEvent], None]


class CacheStore:
    """
    SQLAlchemy-backed suburb cache.

    Usage:
        store = CacheStore(create_session_factory(engine))
        entry = store.get(key)
        if entry is None or not store.is_fresh(entry):
            ...
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        ttl_seconds: float = 7 * DAY_SECONDS,
        expiry_seconds: float = 28 * DAY_SECONDS,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            session_factory: Bound sessionmaker for the cache database.
            ttl_seconds: Age below which an entry is served without refetching.
            expiry_seconds: Age beyond which the sweep always deletes an entry.
            max_entries: Entry count the sweep trims down to.
            clock: Source of "now" in epoch seconds.
        """
        self._session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self.expiry_seconds = expiry_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._subscribers: dict[LocationKey, list[Subscriber]] = {}

    # ─── Freshness ──────────────────────────────────────────

    def now(self) -> float:
        return self.clock()

    def is_fresh(self, entry: CacheEntry, now: float | None = None) -> bool:
        """Fresh iff now - fetched_at < TTL."""
        current = self.now() if now is None else now
        return entry.age(current) < self.ttl_seconds

    # ─── Reads ──────────────────────────────────────────────

    def get(self, key: LocationKey) -> Optional[CacheEntry]:
        """
        Retrieve the entry for a key, fresh or not.

        Returns:
            The entry, or None on a miss.

        Raises:
            CacheReadError: If the database cannot be read.
        """
        try:
            with self._session_factory() as session:
                row = session.get(CachedSuburb, key.cache_key)
                return CacheEntry.from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise CacheReadError(
                message=f"Cache read failed for {key}: {e}",
                details={"key": key.cache_key},
            ) from e

    def iterate(self) -> Iterator[CacheEntry]:
        """Lazily yield every entry, oldest first. Each call starts a new pass."""
        try:
            with self._session_factory() as session:
                stmt = (
                    select(CachedSuburb)
                    .order_by(CachedSuburb.fetched_at, CachedSuburb.cache_key)
                    .execution_options(yield_per=50)
                )
                for row in session.scalars(stmt):
                    yield CacheEntry.from_row(row)
        except SQLAlchemyError as e:
            raise CacheReadError(message=f"Cache iteration failed: {e}") from e

    def __iter__(self) -> Iterator[CacheEntry]:
        return self.iterate()

    def count(self) -> int:
        try:
            with self._session_factory() as session:
                return session.scalar(select(func.count()).select_from(CachedSuburb)) or 0
        except SQLAlchemyError as e:
            raise CacheReadError(message=f"Cache count failed: {e}") from e

    # ─── Writes ─────────────────────────────────────────────

    def set(self, entry: CacheEntry) -> None:
        """
        Insert or replace the entry for ``entry.key`` in a single transaction.

        Raises:
            CacheWriteError: If the write fails; nothing is partially stored.
        """
        try:
            with self._session_factory.begin() as session:
                session.merge(entry.to_row())
        except SQLAlchemyError as e:
            raise CacheWriteError(
                message=f"Cache write failed for {entry.key}: {e}",
                details={"key": entry.key.cache_key},
            ) from e
        logger.debug("Cached %s from %s", entry.key, entry.source_url)
        self._notify(CacheEvent("set", entry.key, entry))

    def delete(self, key: LocationKey) -> bool:
        """
        Remove the entry for a key.

        Returns:
            True if an entry was removed, False if there was none.
        """
        try:
            with self._session_factory.begin() as session:
                result = session.execute(
                    delete(CachedSuburb).where(CachedSuburb.cache_key == key.cache_key)
                )
                removed = result.rowcount > 0
        except SQLAlchemyError as e:
            raise CacheWriteError(
                message=f"Cache delete failed for {key}: {e}",
                details={"key": key.cache_key},
            ) from e
        if removed:
            logger.debug("Invalidated cache for %s", key)
            self._notify(CacheEvent("delete", key))
        return removed

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        try:
            with self._session_factory.begin() as session:
                keys = list(session.execute(select(CachedSuburb.state, CachedSuburb.suburb_slug)))
                session.execute(delete(CachedSuburb))
        except SQLAlchemyError as e:
            raise CacheWriteError(message=f"Cache clear failed: {e}") from e
        for state, slug in keys:
            self._notify(CacheEvent("delete", LocationKey(state, slug)))
        logger.info("Cleared %d cache entries", len(keys))
        return len(keys)

    def sweep(self, now: float | None = None) -> SweepResult:
        """
        Delete expired entries, then evict the oldest until within max_entries.

        Both steps run in one transaction, so a concurrent write either lands
        before the sweep reads the table or after it commits.
        """
        current = self.now() if now is None else now
        horizon = current - self.expiry_seconds
        removed: list[LocationKey] = []

        try:
            with self._session_factory.begin() as session:
                expired = list(session.execute(
                    select(CachedSuburb.cache_key, CachedSuburb.state, CachedSuburb.suburb_slug)
                    .where(CachedSuburb.fetched_at < horizon)
                ))
                if expired:
                    session.execute(
                        delete(CachedSuburb).where(
                            CachedSuburb.cache_key.in_([row.cache_key for row in expired])
                        )
                    )

                surplus = list(session.execute(
                    select(CachedSuburb.cache_key, CachedSuburb.state, CachedSuburb.suburb_slug)
                    .order_by(CachedSuburb.fetched_at.desc(), CachedSuburb.cache_key.desc())
                    .offset(self.max_entries)
                ))
                if surplus:
                    session.execute(
                        delete(CachedSuburb).where(
                            CachedSuburb.cache_key.in_([row.cache_key for row in surplus])
                        )
                    )

                remaining = session.scalar(select(func.count()).select_from(CachedSuburb)) or 0
                removed = [LocationKey(row.state, row.suburb_slug) for row in expired + surplus]
        except SQLAlchemyError as e:
            raise CacheWriteError(message=f"Cache sweep failed: {e}") from e

        for key in removed:
            self._notify(CacheEvent("delete", key))

        result = SweepResult(expired=len(expired), evicted=len(surplus), remaining=remaining)
        logger.info(
            "Cache sweep — expired=%d, evicted=%d, remaining=%d",
            result.expired, result.evicted, result.remaining,
        )
        return result

    # ─── Subscriptions ──────────────────────────────────────

    def subscribe(self, key: LocationKey, callback: Subscriber) -> Callable[[], None]:
        """
        Register ``callback`` for set/delete events on ``key``.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(key, None)

        return unsubscribe

    def _notify(self, event: CacheEvent) -> None:
        for callback in list(self._subscribers.get(event.key, [])):
            try:
                callback(event)
            except Exception:
                logger.exception("Cache subscriber failed for %s", event.key)
