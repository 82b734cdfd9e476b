"""
Exact-match address lookup over a feature collection.

No fuzzy or ranked matching: a query either normalizes to an indexed key
or it does not, and a miss means "use the suburb summary instead".
"""

from typing import Any, Iterator, Mapping, Optional

from nbn_lookup.lookup.normalize import normalize_address
from nbn_lookup.lookup.summary import feature_address, iter_features


class AddressIndex:
    """Normalized address -> feature. Later duplicates overwrite earlier ones."""

    def __init__(self, entries: Mapping[str, Mapping[str, Any]] | None = None):
        self._index: dict[str, Mapping[str, Any]] = dict(entries or {})

    @classmethod
    def from_collection(cls, collection: Mapping[str, Any] | None) -> "AddressIndex":
        index = cls()
        for feature in iter_features(collection):
            address = feature_address(feature)
            key = normalize_address(address)
            if key:
                index._index[key] = feature
        return index

    def match(self, street: str | None) -> Optional[Mapping[str, Any]]:
        """Return the feature whose normalized address equals the query's, or None."""
        key = normalize_address(street)
        if not key:
            return None
        return self._index.get(key)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, street: object) -> bool:
        return isinstance(street, str) and self.match(street) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)


def match_address(collection: Mapping[str, Any] | None, street: str | None) -> Optional[Mapping[str, Any]]:
    """Build an index for ``collection`` and match a single street address."""
    if not street:
        return None
    return AddressIndex.from_collection(collection).match(street)
