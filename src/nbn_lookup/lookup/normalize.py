"""
Text normalization for suburb slugs and street addresses.

Both functions are pure and deterministic: the slug is used for cache keys
and upstream file names, the address form is the exact-match key of the
address index.
"""

import re
import unicodedata

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHEN_RUNS = re.compile(r"-+")

# Whole-word abbreviation expansions, applied in order
ADDRESS_ABBREVIATIONS = (
    (re.compile(r"\b(st|str)\b"), "street"),
    (re.compile(r"\brd\b"), "road"),
    (re.compile(r"\bave\b"), "avenue"),
    (re.compile(r"\bct\b"), "court"),
    (re.compile(r"\bpl\b"), "place"),
    (re.compile(r"\bln\b"), "lane"),
    (re.compile(r"\bdr\b"), "drive"),
)
_UNIT_SLASH = re.compile(r"(\d+)/(\d+)")
_ADDRESS_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


def strip_diacritics(text: str) -> str:
    """Decompose accented characters and drop the combining marks."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_slug(text: str | None) -> str:
    """
    Normalize free text to a lowercase, hyphen-joined slug.

    'Acacia Ridge' -> 'acacia-ridge', 'Bald Hills & Co' -> 'bald-hills-and-co'.
    Idempotent: normalizing a slug returns it unchanged.
    """
    if not text:
        return ""
    slug = text.strip().lower()
    slug = slug.replace("&", "and")
    slug = strip_diacritics(slug)
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    return _HYPHEN_RUNS.sub("-", slug)


def normalize_address(text: str | None) -> str:
    """
    Normalize a street address for exact matching.

    '1/10 Smith St.' -> 'unit 1 10 smith street'
    """
    if not text:
        return ""
    address = str(text).lower()
    for pattern, replacement in ADDRESS_ABBREVIATIONS:
        address = pattern.sub(replacement, address)
    address = _UNIT_SLASH.sub(r"unit \1 \2", address)
    address = _ADDRESS_PUNCTUATION.sub("", address)
    return _WHITESPACE.sub(" ", address).strip()
