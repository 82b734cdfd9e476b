"""
Custom exception hierarchy for NBN Lookup.

Cache errors are recoverable: the lookup service absorbs them and degrades
to a miss (read) or an uncached result (write). LookupExhaustedError is
the only failure a caller of ``lookup`` has to handle.
"""


class NbnLookupError(Exception):
    """Base exception for all NBN Lookup errors."""

    def __init__(self, message: str = "", details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# --- Cache Exceptions ---


class CacheError(NbnLookupError):
    """Base exception for cache store failures."""
    pass


class CacheReadError(CacheError):
    """Raised when a cache entry cannot be read. Treated as a miss."""
    pass


class CacheWriteError(CacheError):
    """Raised when a cache entry cannot be written, deleted or swept."""
    pass


# --- Fetch Exceptions ---


class FetchError(NbnLookupError):
    """Base exception for upstream fetch errors."""
    pass


class CandidateFetchError(FetchError):
    """Raised when a single candidate path fails (non-2xx, transport or parse error)."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(
            message=f"{reason} for {url}",
            details={"url": url, "status": status},
        )


class LookupExhaustedError(FetchError):
    """Raised when every candidate path for a location has failed."""

    def __init__(
        self,
        location: str,
        tried: list[str] | None = None,
        last_error: Exception | None = None,
    ):
        self.location = location
        self.tried = list(tried or [])
        self.last_error = last_error
        cause = str(last_error) if last_error else "no candidate paths were attempted"
        super().__init__(
            message=f"No dataset found for {location}: {cause}",
            details={"location": location, "tried": self.tried, "last_error": cause},
        )


# --- Database Exceptions ---


class DatabaseError(NbnLookupError):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the database connection fails."""
    pass


# --- Validation Exceptions ---


class ValidationError(NbnLookupError):
    """Base exception for input validation errors."""
    pass


class InvalidLocationError(ValidationError):
    """Raised when a suburb/state pair cannot be turned into a location key."""

    def __init__(self, suburb: str | None, state: str | None):
        super().__init__(
            message=f"Invalid location: suburb={suburb!r}, state={state!r}",
            details={"suburb": suburb, "state": state},
        )
