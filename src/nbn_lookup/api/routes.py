import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from nbn_lookup.api.schemas import (
    InvalidateResponse, LocationReportResponse, SummaryResponse, SweepResponse, TechnologyCount,
)
from nbn_lookup.exceptions import InvalidLocationError, LookupExhaustedError
from nbn_lookup.lookup.summary import Summary, TechnologyCategory
from nbn_lookup.pipeline.lookup_service import NbnLookupService

logger = logging.getLogger(__name__)

router = APIRouter()


def _service(request: Request) -> NbnLookupService:
    service = request.app.state.service
    if service is None:
        raise HTTPException(status_code=503, detail="Lookup service is not available.")
    return service


def _describe(label: str) -> Optional[str]:
    try:
        return TechnologyCategory(label).description
    except ValueError:
        return None


def _summary_response(summary: Summary) -> SummaryResponse:
    return SummaryResponse(
        counts=summary.counts,
        examples=summary.examples,
        total=summary.total,
        primary=summary.primary,
        ranked=[
            TechnologyCount(label=label, count=count, description=_describe(label))
            for label, count in summary.ranked()
        ],
    )


@router.get("/locations/{state}/{suburb}", response_model=LocationReportResponse)
async def location_report(
    state: str,
    suburb: str,
    request: Request,
    street: Optional[str] = Query(None, description="Street address to match exactly."),
    refresh: bool = Query(False, description="Refetch even if a fresh copy is cached."),
):
    """Summarize a suburb's connection technologies and match an address if given."""
    service = _service(request)
    try:
        report = await service.report(suburb, state, street=street, force_refresh=refresh)
    except InvalidLocationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except LookupExhaustedError as e:
        logger.warning("Lookup failed for %s/%s: %s", state, suburb, e)
        raise HTTPException(status_code=404, detail=e.details)

    return LocationReportResponse(
        state=report.key.state,
        suburb_slug=report.key.suburb_slug,
        technology=report.technology,
        confirmed=report.confirmed,
        summary=_summary_response(report.summary),
        matched_feature=dict(report.matched_feature) if report.matched_feature is not None else None,
        source_url=report.source_url,
        fetched_at=report.fetched_at,
        generated_at=report.generated_at,
    )


@router.get("/locations/{state}/{suburb}/features")
async def location_features(
    state: str,
    suburb: str,
    request: Request,
    refresh: bool = Query(False),
) -> Dict[str, Any]:
    """Return the raw feature collection for a suburb."""
    service = _service(request)
    try:
        return await service.lookup(suburb, state, force_refresh=refresh)
    except InvalidLocationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except LookupExhaustedError as e:
        raise HTTPException(status_code=404, detail=e.details)


@router.delete("/locations/{state}/{suburb}/cache", response_model=InvalidateResponse)
def invalidate_location(state: str, suburb: str, request: Request):
    """Drop a suburb's cached file so the next lookup refetches it."""
    service = _service(request)
    try:
        key = service.resolve_location(suburb, state)
    except InvalidLocationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    removed = service.invalidate(suburb, state)
    return InvalidateResponse(state=key.state, suburb_slug=key.suburb_slug, removed=removed)


@router.post("/cache/sweep", response_model=SweepResponse)
def sweep_cache(request: Request):
    """Evict expired and surplus cache entries."""
    result = _service(request).sweep_cache()
    if result is None:
        raise HTTPException(status_code=500, detail="Cache sweep failed.")
    return SweepResponse(expired=result.expired, evicted=result.evicted, remaining=result.remaining)
