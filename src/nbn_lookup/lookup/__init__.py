"""Lookup core — normalization, path resolution, fetch scheduling, summaries, address matching."""

from nbn_lookup.lookup.normalize import normalize_slug, normalize_address
from nbn_lookup.lookup.resolver import LocationKey, resolve_location, candidate_paths
from nbn_lookup.lookup.scheduler import FetchScheduler
from nbn_lookup.lookup.fetcher import FetchResult, SuburbFetcher
from nbn_lookup.lookup.summary import (
    Summary, Technology, TechnologyCategory, classify_technology, summarize,
)
from nbn_lookup.lookup.address_index import AddressIndex, match_address

__all__ = [
    "normalize_slug", "normalize_address",
    "LocationKey", "resolve_location", "candidate_paths",
    "FetchScheduler",
    "FetchResult", "SuburbFetcher",
    "Summary", "Technology", "TechnologyCategory", "classify_technology", "summarize",
    "AddressIndex", "match_address",
]
