"""
Upstream fetcher for per-suburb feature collections.

Tries candidate paths in order over a shared httpx.AsyncClient. A failing
candidate is recorded and skipped; only when every candidate has failed
does the lookup fail, with the last underlying error attached.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from nbn_lookup.exceptions import CandidateFetchError, LookupExhaustedError
from nbn_lookup.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """The winning candidate URL and its parsed feature collection."""

    url: str
    payload: dict[str, Any]

    @property
    def generated_at(self) -> Optional[str]:
        """Snapshot timestamp published inside the file, if any."""
        value = self.payload.get("generated") or self.payload.get("generated_at")
        return str(value) if value else None


def parse_feature_collection(url: str, response: httpx.Response) -> dict[str, Any]:
    """Parse a response body, rejecting anything that is not a feature collection."""
    try:
        payload = response.json()
    except ValueError as e:
        raise CandidateFetchError(url, f"Invalid JSON ({e})", status=response.status_code) from e

    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise CandidateFetchError(url, "Body is not a feature collection", status=response.status_code)
    return payload


class SuburbFetcher:
    """
    Fetch suburb files from the snapshot repository.

    The client is created lazily unless one is injected (tests pass a client
    backed by ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        user_agent: str = "nbn-lookup/0.1",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                follow_redirects=True,
            )
        return self._client

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def fetch_candidate(self, path: str) -> FetchResult:
        """
        GET a single candidate path.

        Raises:
            CandidateFetchError: On transport errors, non-2xx status or an
                unparseable body.
        """
        url = self.url_for(path)
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise CandidateFetchError(url, f"Request failed ({e.__class__.__name__}: {e})") from e

        if not response.is_success:
            raise CandidateFetchError(url, f"HTTP {response.status_code}", status=response.status_code)

        return FetchResult(url=url, payload=parse_feature_collection(url, response))

    async def fetch_first(self, paths: list[str], location: str = "") -> FetchResult:
        """
        Try each path in order and return the first success.

        Raises:
            LookupExhaustedError: If every path failed (or none were given).
        """
        tried: list[str] = []
        last_error: Exception | None = None

        for path in paths:
            tried.append(self.url_for(path))
            try:
                result = await self.fetch_candidate(path)
            except CandidateFetchError as e:
                logger.debug("Candidate failed: %s", e)
                last_error = e
                continue
            logger.info(
                "Fetched %s (%d features)", result.url, len(result.payload["features"])
            )
            return result

        raise LookupExhaustedError(location or ", ".join(paths), tried=tried, last_error=last_error)

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SuburbFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False
