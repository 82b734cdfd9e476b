"""Lookup orchestration."""

from nbn_lookup.pipeline.lookup_service import LocationReport, NbnLookupService

__all__ = ["LocationReport", "NbnLookupService"]
