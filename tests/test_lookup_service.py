"""
Tests for the lookup service: cache freshness, forced refresh, fallbacks,
error absorption and the end-to-end Chermside scenario.
"""

import asyncio

import pytest

from nbn_lookup.data.cache import CacheStore
from nbn_lookup.exceptions import (
    CacheReadError,
    CacheWriteError,
    InvalidLocationError,
    LookupExhaustedError,
    NbnLookupError,
)
from nbn_lookup.lookup.fetcher import SuburbFetcher
from nbn_lookup.lookup.resolver import LocationKey
from nbn_lookup.lookup.scheduler import FetchScheduler
from nbn_lookup.pipeline.lookup_service import NbnLookupService

from conftest import BASE_URL, CHERMSIDE, DAY, MockUpstream, collection, feature

TTL = 7 * DAY


class FlakyStore(CacheStore):
    """CacheStore whose reads and/or writes fail on demand."""

    def __init__(self, *args, fail_reads=False, fail_writes=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, key):
        if self.fail_reads:
            raise CacheReadError("disk on fire")
        return super().get(key)

    def set(self, entry):
        if self.fail_writes:
            raise CacheWriteError("disk full")
        super().set(entry)

    def delete(self, key):
        if self.fail_writes:
            raise CacheWriteError("disk full")
        return super().delete(key)

    def sweep(self, now=None):
        if self.fail_writes:
            raise CacheWriteError("disk full")
        return super().sweep(now)


class TestLookupScenario:
    """End-to-end lookups against a mock upstream."""

    @pytest.mark.asyncio
    async def test_chermside(self, service):
        """lookup + summarize should produce FTTN:2, FTTP:1, total 3."""
        data = await service.lookup("Chermside", "QLD")
        summary = service.summarize(data)
        assert summary.counts == {"FTTN": 2, "FTTP": 1}
        assert summary.total == 3

    @pytest.mark.asyncio
    async def test_result_is_cached(self, service, store, clock):
        await service.lookup("Chermside", "QLD")
        cached = store.get(LocationKey("QLD", "chermside"))
        assert cached.payload == CHERMSIDE
        assert cached.fetched_at == clock.now
        assert cached.source_url == f"{BASE_URL}/QLD/chermside.geojson"
        assert cached.generated_at == "2024-05-01T00:00:00"

    @pytest.mark.asyncio
    async def test_falls_back_to_later_candidate(self, store):
        """When the slug path is missing, an alternate encoding should be used."""
        upstream = MockUpstream({"QLD/acacia_ridge.geojson": CHERMSIDE})
        service = NbnLookupService(store, SuburbFetcher(BASE_URL, client=upstream.client()))

        data = await service.lookup("Acacia Ridge", "QLD")

        assert data == CHERMSIDE
        assert upstream.requests == [
            "QLD/acacia-ridge.geojson",
            "QLD/Acacia Ridge.geojson",
            "QLD/acacia_ridge.geojson",
        ]
        assert service.cached_entry("acacia ridge", "qld").source_url.endswith("acacia_ridge.geojson")

    @pytest.mark.asyncio
    async def test_exhausted(self, service, upstream):
        """Every candidate failing should raise LookupExhaustedError and cache nothing."""
        with pytest.raises(LookupExhaustedError) as excinfo:
            await service.lookup("Atlantis", "QLD")
        assert excinfo.value.location == "QLD|atlantis"
        assert service.cached_entry("Atlantis", "QLD") is None

    @pytest.mark.asyncio
    async def test_invalid_location(self, service, upstream):
        with pytest.raises(InvalidLocationError):
            await service.lookup("", "QLD")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_invalid_location_is_a_lookup_error(self, service, store, upstream, monkeypatch):
        """Blank input fails before the cache is read, and callers can catch it generically."""
        reads = []
        monkeypatch.setattr(store, "get", lambda key: reads.append(key))

        with pytest.raises(NbnLookupError):
            await service.report("   ", "QLD")
        assert reads == []
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_malformed_feature_properties(self, store):
        """A file with non-object properties is served and summarized, not a crash."""
        odd = collection(
            {"type": "Feature", "properties": ["FTTP"], "geometry": None},
            feature("FTTN", "5 Gympie Rd"),
        )
        upstream = MockUpstream({"QLD/odd.geojson": odd})
        service = NbnLookupService(store, SuburbFetcher(BASE_URL, client=upstream.client()))

        report = await service.report("Odd", "QLD", street="5 Gympie Road")

        assert report.summary.counts == {"Non-NBN": 1, "FTTN": 1}
        assert report.confirmed
        assert report.technology == "FTTN"


class TestFreshness:
    """Tests for TTL-driven refetching."""

    @pytest.mark.asyncio
    async def test_served_from_cache_just_before_ttl(self, service, upstream, clock):
        await service.lookup("Chermside", "QLD")
        clock.advance(TTL - 0.001)
        await service.lookup("Chermside", "QLD")
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_refetched_just_after_ttl(self, service, upstream, clock):
        await service.lookup("Chermside", "QLD")
        clock.advance(TTL + 0.001)
        await service.lookup("Chermside", "QLD")
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_force_refresh_always_fetches(self, service, upstream, store, clock):
        """force_refresh should fetch while fresh and update fetched_at."""
        await service.lookup("Chermside", "QLD")
        clock.advance(60)
        await service.lookup("Chermside", "QLD", force_refresh=True)

        assert len(upstream.requests) == 2
        assert store.get(LocationKey("QLD", "chermside")).fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_refresh_replaces_payload(self, service, upstream, store):
        await service.lookup("Chermside", "QLD")
        upstream.files["QLD/chermside.geojson"] = collection(feature("HFC", "1 New St"))

        data = await service.lookup("Chermside", "QLD", force_refresh=True)

        assert service.summarize(data).counts == {"HFC": 1}
        assert store.get(LocationKey("QLD", "chermside")).payload == data

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, service, upstream):
        await service.lookup("Chermside", "QLD")
        assert service.invalidate("Chermside", "QLD") is True
        assert service.invalidate("Chermside", "QLD") is False
        await service.lookup("Chermside", "QLD")
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_stale_entry_kept_when_refetch_fails(self, service, upstream, store, clock):
        """A failed refetch should raise but leave the old entry in place."""
        await service.lookup("Chermside", "QLD")
        del upstream.files["QLD/chermside.geojson"]
        clock.advance(TTL + 1)

        with pytest.raises(LookupExhaustedError):
            await service.lookup("Chermside", "QLD")
        assert store.get(LocationKey("QLD", "chermside")).payload == CHERMSIDE


class TestCacheFaults:
    """Cache failures should never fail a lookup."""

    def make_service(self, session_factory, clock, upstream, **flags):
        store = FlakyStore(session_factory, clock=clock, **flags)
        return NbnLookupService(store, SuburbFetcher(BASE_URL, client=upstream.client())), store

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, session_factory, clock, upstream):
        service, store = self.make_service(session_factory, clock, upstream)
        await service.lookup("Chermside", "QLD")
        store.fail_reads = True

        data = await service.lookup("Chermside", "QLD")

        assert data == CHERMSIDE
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_write_failure_still_returns_data(self, session_factory, clock, upstream):
        service, store = self.make_service(session_factory, clock, upstream, fail_writes=True)

        data = await service.lookup("Chermside", "QLD")

        assert data == CHERMSIDE
        store.fail_writes = False
        assert store.get(LocationKey("QLD", "chermside")) is None

    @pytest.mark.asyncio
    async def test_report_keeps_provenance_when_write_fails(self, session_factory, clock, upstream):
        """A report built from an uncached fetch still names where the data came from."""
        service, store = self.make_service(session_factory, clock, upstream, fail_writes=True)

        report = await service.report("Chermside", "QLD")

        assert report.summary.total == 3
        assert report.source_url == f"{BASE_URL}/QLD/chermside.geojson"
        assert report.fetched_at == clock.now
        assert report.generated_at == "2024-05-01T00:00:00"
        assert store.count() == 0

    def test_invalidate_and_sweep_absorb_write_failures(self, session_factory, clock, upstream):
        service, _ = self.make_service(session_factory, clock, upstream, fail_writes=True)
        assert service.invalidate("Chermside", "QLD") is False
        assert service.sweep_cache() is None


class SlowFetcher(SuburbFetcher):
    """Fetcher that pauses before each lookup and tracks overlap."""

    def __init__(self, *args, delay=0.01, **kwargs):
        super().__init__(*args, **kwargs)
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def fetch_first(self, paths, location=""):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return await super().fetch_first(paths, location)
        finally:
            self.in_flight -= 1


class TestConcurrentLookups:
    """Tests for scheduling many lookups through the shared scheduler."""

    @pytest.mark.asyncio
    async def test_at_most_limit_in_flight(self, store):
        """Ten lookups with a limit of four never overlap more than four fetches."""
        suburbs = [f"Suburb {i}" for i in range(10)]
        upstream = MockUpstream({f"QLD/suburb-{i}.geojson": CHERMSIDE for i in range(10)})
        fetcher = SlowFetcher(BASE_URL, client=upstream.client())
        service = NbnLookupService(store, fetcher, FetchScheduler(max_concurrency=4))

        results = await asyncio.gather(*(service.lookup(s, "QLD") for s in suburbs))

        assert all(r == CHERMSIDE for r in results)
        assert fetcher.peak == 4
        assert store.count() == 10

    @pytest.mark.asyncio
    async def test_overlapping_same_key_last_write_wins(self, store, upstream):
        """Two overlapping lookups for one suburb both fetch; one entry remains."""
        service = NbnLookupService(store, SlowFetcher(BASE_URL, client=upstream.client()))
        await asyncio.gather(service.lookup("Chermside", "QLD"), service.lookup("chermside", "qld"))
        assert len(upstream.requests) == 2
        assert store.count() == 1

    @pytest.mark.asyncio
    async def test_failures_do_not_block_other_lookups(self, store):
        upstream = MockUpstream({"QLD/good.geojson": CHERMSIDE})
        service = NbnLookupService(
            store,
            SuburbFetcher(BASE_URL, client=upstream.client()),
            FetchScheduler(max_concurrency=1),
        )
        outcomes = await asyncio.gather(
            service.lookup("Bad", "QLD"),
            service.lookup("Good", "QLD"),
            return_exceptions=True,
        )
        assert isinstance(outcomes[0], LookupExhaustedError)
        assert outcomes[1] == CHERMSIDE


class TestReport:
    """Tests for the combined report."""

    @pytest.mark.asyncio
    async def test_report_with_matched_address(self, service):
        report = await service.report("Chermside", "QLD", street="3 Kittyhawk Drive")
        assert report.confirmed
        assert report.technology == "FTTP"
        assert report.summary.total == 3
        assert report.source_url.endswith("QLD/chermside.geojson")

    @pytest.mark.asyncio
    async def test_report_without_match_uses_primary(self, service):
        """An unmatched street should fall back to the suburb's most common technology."""
        report = await service.report("Chermside", "QLD", street="99 Nowhere St")
        assert not report.confirmed
        assert report.matched_feature is None
        assert report.technology == "FTTN"

    @pytest.mark.asyncio
    async def test_report_provenance_matches_served_payload(self, service, upstream, store, clock):
        """After a refresh, the report describes the payload it summarized."""
        await service.report("Chermside", "QLD")
        clock.advance(60)
        upstream.files["QLD/chermside.geojson"] = collection(feature("HFC", "1 New St"), generated="2024-06-01")

        report = await service.report("Chermside", "QLD", force_refresh=True)

        assert report.summary.counts == {"HFC": 1}
        assert report.generated_at == "2024-06-01"
        assert report.fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_subscribe_sees_refresh(self, service):
        events = []
        service.subscribe("Chermside", "QLD", events.append)
        await service.lookup("Chermside", "QLD")
        await service.lookup("Chermside", "QLD", force_refresh=True)
        assert [e.kind for e in events] == ["set", "set"]

    def test_resolve_location(self, service):
        assert service.resolve_location("Chermside", "qld") == LocationKey("QLD", "chermside")

    def test_match_address(self, service):
        assert service.match_address(CHERMSIDE, "5 gympie road")["properties"]["technology"] == "FTTN"


@pytest.mark.live
@pytest.mark.asyncio
async def test_live_lookup(store):
    """Fetch a real suburb file from the configured upstream (run with -m live)."""
    from nbn_lookup.config import SourceSettings

    source = SourceSettings()
    async with NbnLookupService(store, SuburbFetcher(source.base_url, timeout=30)) as service:
        report = await service.report("Chermside", "QLD")
    assert report.summary.total > 0
    assert report.source_url.startswith(source.base_url)
