from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Any, Optional, List


class TechnologyCount(BaseModel):
    label: str
    count: int
    description: Optional[str] = None


class SummaryResponse(BaseModel):
    """Per-technology counts for a suburb."""
    counts: Dict[str, int]
    examples: Dict[str, str]
    total: int
    primary: str
    ranked: List[TechnologyCount] = Field(default_factory=list, description="Technologies, most common first.")


class LocationReportResponse(BaseModel):
    """Suburb summary plus an optional exact address match."""
    state: str
    suburb_slug: str
    technology: str = Field(..., description="Matched address technology, else the suburb's most common one.")
    confirmed: bool = Field(..., description="True when the technology comes from an exact address match.")
    summary: SummaryResponse
    matched_feature: Optional[Dict[str, Any]] = None
    source_url: Optional[str] = None
    fetched_at: Optional[float] = None
    generated_at: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "state": "QLD",
                "suburb_slug": "chermside",
                "technology": "FTTN",
                "confirmed": False,
                "summary": {
                    "counts": {"FTTN": 2, "FTTP": 1},
                    "examples": {"FTTN": "1 Hamilton Road", "FTTP": "3 Kittyhawk Drive"},
                    "total": 3,
                    "primary": "FTTN",
                    "ranked": [
                        {"label": "FTTN", "count": 2, "description": "Fibre to the node (copper last mile)"},
                        {"label": "FTTP", "count": 1},
                    ],
                },
                "matched_feature": None,
                "source_url": "https://raw.githubusercontent.com/LukePrior/nbn-upgrade-map/main/results/QLD/chermside.geojson",
            }
        }
    )


class InvalidateResponse(BaseModel):
    state: str
    suburb_slug: str
    removed: bool


class SweepResponse(BaseModel):
    expired: int
    evicted: int
    remaining: int
