"""
Summarize a suburb feature collection into technology counts.

Upstream files are not consistent about property names, so every lookup
walks an ordered list of candidate keys and takes the first non-empty
value. Extending support for a new field name means adding it to one of
the key tuples below, not writing a new branch.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence


class TechnologyCategory(str, Enum):
    """NBN connection technologies, plus Other for unrecognized labels."""

    FTTP = "FTTP"
    FTTN = "FTTN"
    FTTC = "FTTC"
    HFC = "HFC"
    FTTB = "FTTB"
    FIXED_WIRELESS = "Fixed Wireless"
    SATELLITE = "Satellite"
    NON_NBN = "Non-NBN"
    OTHER = "Other"

    @property
    def description(self) -> str:
        return CATEGORY_DESCRIPTIONS[self]


CATEGORY_DESCRIPTIONS = {
    TechnologyCategory.FTTP: "Address already has FTTP technology, or has been upgraded to FTTP",
    TechnologyCategory.FTTN: "Fibre to the node (copper last mile)",
    TechnologyCategory.FTTC: "Fibre to the curb (short copper lead-in)",
    TechnologyCategory.HFC: "Hybrid Fibre Coaxial (cable)",
    TechnologyCategory.FTTB: "Fibre to the building",
    TechnologyCategory.FIXED_WIRELESS: "Fixed wireless service",
    TechnologyCategory.SATELLITE: "Satellite service",
    TechnologyCategory.NON_NBN: "No NBN service or unknown technology",
    TechnologyCategory.OTHER: "Unrecognized technology label",
}

# Checked in order; the first category with a matching substring wins
CATEGORY_KEYWORDS: Sequence[tuple[TechnologyCategory, tuple[str, ...]]] = (
    (TechnologyCategory.FTTP, ("fttp", "fibre to the premises")),
    (TechnologyCategory.FTTN, ("fttn", "fibre to the node")),
    (TechnologyCategory.FTTC, ("fttc", "fibre to the curb")),
    (TechnologyCategory.HFC, ("hfc", "hybrid")),
    (TechnologyCategory.FTTB, ("fttb", "fibre to the building")),
    (TechnologyCategory.FIXED_WIRELESS, ("fixed wireless", "fixedwireless", "fixed-wireless")),
    (TechnologyCategory.SATELLITE, ("satellite", "sat")),
    (TechnologyCategory.NON_NBN, ("non", "unknown", "not", "no nbn")),
)

TECHNOLOGY_KEYS = (
    "nbn_technology",
    "technology",
    "connection_type",
    "type",
    "nbn_type",
    "status",
    "service_type",
    "network",
    "tech",
)
FALLBACK_TECHNOLOGY_KEYS = ("preset", "label")
ADDRESS_KEYS = (
    "full_address",
    "address",
    "premise_address",
    "ADDRESS",
    "addr",
    "street_address",
    "name",
)


@dataclass(frozen=True)
class Technology:
    """A classified technology label. ``raw`` is kept only for OTHER."""

    category: TechnologyCategory
    raw: Optional[str] = None

    @property
    def label(self) -> str:
        if self.category is TechnologyCategory.OTHER and self.raw:
            return self.raw
        return self.category.value


def first_present(properties: Mapping[str, Any], keys: Iterable[str]) -> Optional[Any]:
    """Return the first truthy value among ``keys``."""
    for key in keys:
        value = properties.get(key)
        if value:
            return value
    return None


def _as_label(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def technology_label(properties: Mapping[str, Any]) -> str:
    """Pick the raw technology label for one feature."""
    value = first_present(properties, TECHNOLOGY_KEYS)
    if value is None:
        value = first_present(properties, FALLBACK_TECHNOLOGY_KEYS)
    if value is None:
        return TechnologyCategory.NON_NBN.value
    return _as_label(value)


def classify_technology(label: Optional[str]) -> Technology:
    """Map a raw label onto a category; unknown labels are kept verbatim."""
    if not label:
        return Technology(TechnologyCategory.NON_NBN)
    lowered = label.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return Technology(category)
    return Technology(TechnologyCategory.OTHER, raw=label)


def feature_properties(feature: Mapping[str, Any]) -> Mapping[str, Any]:
    """Property bag of a feature; missing or non-mapping properties read as empty."""
    properties = feature.get("properties")
    return properties if isinstance(properties, Mapping) else {}


def feature_address(feature: Mapping[str, Any]) -> Optional[str]:
    """Address text of a feature, if it carries one."""
    value = first_present(feature_properties(feature), ADDRESS_KEYS)
    return str(value) if value is not None else None


def feature_technology(feature: Mapping[str, Any]) -> Technology:
    return classify_technology(technology_label(feature_properties(feature)))


def geometry_fingerprint(feature: Mapping[str, Any]) -> str:
    geometry = feature.get("geometry")
    if not geometry:
        return ""
    return json.dumps(geometry, separators=(",", ":"))


def iter_features(collection: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    """Features of a collection; anything malformed yields an empty list."""
    if not isinstance(collection, Mapping):
        return []
    features = collection.get("features")
    if not isinstance(features, list):
        return []
    return [f for f in features if isinstance(f, Mapping)]


@dataclass
class Summary:
    """Per-technology counts for a suburb. Labels keep first-seen order."""

    counts: dict[str, int] = field(default_factory=dict)
    examples: dict[str, str] = field(default_factory=dict)
    total: int = 0

    @property
    def primary(self) -> str:
        """Most common label; ties go to the label seen first."""
        if not self.counts:
            return TechnologyCategory.NON_NBN.value
        return self.ranked()[0][0]

    def ranked(self) -> list[tuple[str, int]]:
        """Labels with counts, most common first (stable for ties)."""
        return sorted(self.counts.items(), key=lambda item: item[1], reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {"counts": dict(self.counts), "examples": dict(self.examples), "total": self.total}


def summarize(collection: Mapping[str, Any] | None) -> Summary:
    """
    Count technologies across a feature collection.

    The first feature of each label supplies its example: the address when
    present, else a compact JSON rendering of the geometry.
    """
    counts: Counter[str] = Counter()
    examples: dict[str, str] = {}

    for feature in iter_features(collection):
        label = feature_technology(feature).label
        counts[label] += 1
        if label not in examples:
            examples[label] = feature_address(feature) or geometry_fingerprint(feature)

    # Counter preserves insertion order, so labels stay in first-seen order
    return Summary(counts=dict(counts), examples=examples, total=sum(counts.values()))
