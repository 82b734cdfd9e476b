"""
Lookup service — the request/response API used by presentation layers.

Flow for one lookup:
    resolve key -> cached entry fresh? return it
                -> otherwise schedule a candidate fetch, store the winner, return it

Cache faults never reach the caller: a read failure is a miss and a write
failure leaves the result uncached. A lookup raises LookupExhaustedError
when no candidate file could be fetched, and InvalidLocationError for a
blank suburb or state, before any cache or network access. Callers that
only need "no data for this location" can catch both as NbnLookupError.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from nbn_lookup.config import Settings, settings as default_settings
from nbn_lookup.data.cache import CacheEntry, CacheEvent, CacheStore, SweepResult
from nbn_lookup.data.database import open_cache_database
from nbn_lookup.exceptions import CacheReadError, CacheWriteError
from nbn_lookup.logging_config import get_logger
from nbn_lookup.lookup.address_index import match_address
from nbn_lookup.lookup.fetcher import SuburbFetcher
from nbn_lookup.lookup.resolver import LocationKey, candidate_paths, resolve_location
from nbn_lookup.lookup.scheduler import FetchScheduler
from nbn_lookup.lookup.summary import Summary, Technology, feature_technology, summarize

logger = get_logger(__name__)


@dataclass(frozen=True)
class LocationReport:
    """Everything a badge or popup needs for one listing."""

    key: LocationKey
    summary: Summary
    matched_feature: Optional[Mapping[str, Any]]
    technology: str
    source_url: Optional[str]
    fetched_at: Optional[float]
    generated_at: Optional[str]

    @property
    def confirmed(self) -> bool:
        """True when the technology comes from an exact address match."""
        return self.matched_feature is not None


class NbnLookupService:
    """
    Orchestrates cache, candidate resolution and scheduled fetches.

    Usage:
        async with NbnLookupService.from_settings() as service:
            collection = await service.lookup("Chermside", "QLD")
            summary = service.summarize(collection)
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: SuburbFetcher,
        scheduler: FetchScheduler | None = None,
        file_extension: str = "geojson",
    ):
        self.store = store
        self.fetcher = fetcher
        self.scheduler = scheduler or FetchScheduler()
        self.file_extension = file_extension

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "NbnLookupService":
        """Build a service wired to the configured database and upstream source."""
        config = config or default_settings
        store = CacheStore(
            open_cache_database(config.database.url),
            ttl_seconds=config.cache.ttl_seconds,
            expiry_seconds=config.cache.expiry_seconds,
            max_entries=config.cache.max_entries,
        )
        fetcher = SuburbFetcher(
            config.source.base_url,
            timeout=config.source.timeout,
            user_agent=config.source.user_agent,
        )
        return cls(
            store,
            fetcher,
            FetchScheduler(config.source.max_concurrency),
            file_extension=config.source.file_extension,
        )

    # ─── Core API ───────────────────────────────────────────

    @staticmethod
    def resolve_location(suburb: str, state: str) -> LocationKey:
        return resolve_location(suburb, state)

    async def lookup(self, suburb: str, state: str, force_refresh: bool = False) -> dict[str, Any]:
        """
        Return the feature collection for a suburb.

        Args:
            suburb: Suburb name as displayed.
            state: State code (QLD, NSW, ...).
            force_refresh: Skip the freshness check and always refetch.

        Raises:
            InvalidLocationError: If the suburb or state is blank. Nothing is
                read or fetched in that case.
            LookupExhaustedError: If no candidate path could be fetched.
        """
        entry = await self._lookup_entry(suburb, state, force_refresh)
        return entry.payload

    @staticmethod
    def summarize(collection: Mapping[str, Any]) -> Summary:
        return summarize(collection)

    @staticmethod
    def match_address(collection: Mapping[str, Any], street: str | None) -> Optional[Mapping[str, Any]]:
        return match_address(collection, street)

    def invalidate(self, suburb: str, state: str) -> bool:
        """Drop the cached entry so the next lookup refetches. Returns False if nothing was cached."""
        key = resolve_location(suburb, state)
        try:
            return self.store.delete(key)
        except CacheWriteError as e:
            logger.error("Could not invalidate %s: %s", key, e)
            return False

    # ─── Extras ─────────────────────────────────────────────

    async def report(
        self,
        suburb: str,
        state: str,
        street: str | None = None,
        force_refresh: bool = False,
    ) -> LocationReport:
        """Look up a suburb and derive the summary plus an optional address match."""
        entry = await self._lookup_entry(suburb, state, force_refresh)
        collection = entry.payload
        summary = summarize(collection)
        matched = match_address(collection, street)

        if matched is not None:
            technology: str = feature_technology(matched).label
        else:
            technology = summary.primary

        return LocationReport(
            key=entry.key,
            summary=summary,
            matched_feature=matched,
            technology=technology,
            source_url=entry.source_url,
            fetched_at=entry.fetched_at,
            generated_at=entry.generated_at,
        )

    def cached_entry(self, suburb: str, state: str) -> Optional[CacheEntry]:
        """The stored entry for a suburb regardless of freshness, if readable."""
        return self._read_cache(resolve_location(suburb, state))

    def sweep_cache(self) -> Optional[SweepResult]:
        """Run the eviction sweep. Returns None if the sweep could not run."""
        try:
            return self.store.sweep()
        except CacheWriteError as e:
            logger.error("Cache sweep failed: %s", e)
            return None

    def subscribe(
        self,
        suburb: str,
        state: str,
        callback: Callable[[CacheEvent], None],
    ) -> Callable[[], None]:
        """Be told when a suburb's cached data is replaced or removed."""
        return self.store.subscribe(resolve_location(suburb, state), callback)

    async def _lookup_entry(self, suburb: str, state: str, force_refresh: bool) -> CacheEntry:
        """
        The entry a lookup serves: the fresh cached one, or the one just fetched.

        A fetched entry is returned even when storing it failed, so callers
        always see the provenance of the payload they got.
        """
        key = resolve_location(suburb, state)

        if not force_refresh:
            cached = self._read_cache(key)
            if cached is not None and self.store.is_fresh(cached):
                logger.debug("Cache hit for %s", key)
                return cached
            logger.debug("Cache %s for %s", "stale" if cached else "miss", key)

        paths = candidate_paths(suburb, state, self.file_extension)

        async def fetch_and_store() -> CacheEntry:
            result = await self.fetcher.fetch_first(paths, location=key.cache_key)
            entry = CacheEntry(
                key=key,
                fetched_at=self.store.now(),
                source_url=result.url,
                payload=result.payload,
                generated_at=result.generated_at,
            )
            self._write_cache(entry)
            return entry

        return await self.scheduler.run(fetch_and_store)

    # ─── Cache fault handling ───────────────────────────────

    def _read_cache(self, key: LocationKey) -> Optional[CacheEntry]:
        try:
            return self.store.get(key)
        except CacheReadError as e:
            logger.warning("Cache read error, treating as miss: %s", e)
            return None

    def _write_cache(self, entry: CacheEntry) -> None:
        try:
            self.store.set(entry)
        except CacheWriteError as e:
            logger.error("Cache write error, result left uncached: %s", e)

    # ─── Lifecycle ──────────────────────────────────────────

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def __aenter__(self) -> "NbnLookupService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False
