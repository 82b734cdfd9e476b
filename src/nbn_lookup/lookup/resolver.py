"""
Location keys and candidate upstream paths.

The upstream repository stores one file per suburb under an uppercase
state folder, e.g. ``QLD/acacia-ridge.geojson``. The file naming is not
documented, so several cheap encodings of the suburb name are tried in
order and the first one that resolves wins.
"""

import re
from dataclasses import dataclass
from urllib.parse import quote

from nbn_lookup.exceptions import InvalidLocationError
from nbn_lookup.lookup.normalize import normalize_slug

# Characters JavaScript's encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"
_WHITESPACE = re.compile(r"\s+")
_NON_LOOSE_CHARS = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True)
class LocationKey:
    """Cache key for a suburb: uppercase state code + normalized suburb slug."""

    state: str
    suburb_slug: str

    @classmethod
    def from_text(cls, suburb: str | None, state: str | None) -> "LocationKey":
        """Build a key from raw suburb/state text, rejecting blanks."""
        state_code = (state or "").strip().upper()
        slug = normalize_slug(suburb)
        if not state_code or not slug:
            raise InvalidLocationError(suburb, state)
        return cls(state=state_code, suburb_slug=slug)

    @property
    def cache_key(self) -> str:
        return f"{self.state}|{self.suburb_slug}"

    def __str__(self) -> str:
        return self.cache_key


def resolve_location(suburb: str | None, state: str | None) -> LocationKey:
    """Derive the LocationKey for a suburb/state pair."""
    return LocationKey.from_text(suburb, state)


def candidate_paths(suburb: str, state: str, extension: str = "geojson") -> list[str]:
    """
    Ordered, de-duplicated relative paths to try for a suburb.

    Args:
        suburb: Raw suburb text as displayed to the user.
        state: State code, any case.
        extension: File extension without the leading dot.

    Returns:
        Non-empty list of paths such as ``['QLD/acacia-ridge.geojson', ...]``.

    Raises:
        InvalidLocationError: If the suburb or state is blank.
    """
    key = resolve_location(suburb, state)
    raw = suburb or ""
    loose = _NON_LOOSE_CHARS.sub("", _WHITESPACE.sub("-", raw.lower()))

    names = [
        key.suburb_slug,
        quote(raw, safe=_URI_COMPONENT_SAFE),
        key.suburb_slug.replace("-", "_"),
        loose,
    ]

    paths: list[str] = []
    for name in names:
        if not name:
            continue
        path = f"{key.state}/{name}.{extension}"
        if path not in paths:
            paths.append(path)
    return paths
