"""
Shared fixtures: in-memory cache database, controllable clock, mock upstream.
"""

import json

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nbn_lookup.data.cache import CacheStore
from nbn_lookup.data.database import Base
from nbn_lookup.lookup.fetcher import SuburbFetcher
from nbn_lookup.lookup.scheduler import FetchScheduler
from nbn_lookup.pipeline.lookup_service import NbnLookupService

BASE_URL = "https://data.example.test/results"
DAY = 86400.0
T0 = 1_700_000_000.0


def feature(technology=None, address=None, geometry=None, **extra):
    """Build one GeoJSON feature with the usual upstream property names."""
    properties = dict(extra)
    if technology is not None:
        properties["technology"] = technology
    if address is not None:
        properties["address"] = address
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": geometry or {"type": "Point", "coordinates": [153.03, -27.38]},
    }


def collection(*features, **extra):
    return {"type": "FeatureCollection", "features": list(features), **extra}


CHERMSIDE = collection(
    feature("FTTN", "1 Hamilton Rd"),
    feature("FTTP", "3 Kittyhawk Dr"),
    feature("FTTN", "5 Gympie Rd"),
    generated="2024-05-01T00:00:00",
)


class Clock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockUpstream:
    """Serves fixed paths under BASE_URL and records every requested path."""

    def __init__(self, files: dict | None = None):
        self.files = dict(files or {})
        self.requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/results/", 1)[-1]
        self.requests.append(path)
        if path not in self.files:
            return httpx.Response(404, text="404: Not Found")
        body = self.files[path]
        if isinstance(body, httpx.Response):
            return body
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, content=json.dumps(body).encode())

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with the cache schema."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    return eng


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(session_factory, clock):
    return CacheStore(
        session_factory,
        ttl_seconds=7 * DAY,
        expiry_seconds=28 * DAY,
        max_entries=100,
        clock=clock,
    )


@pytest.fixture
def upstream():
    return MockUpstream({"QLD/chermside.geojson": CHERMSIDE})


@pytest.fixture
def fetcher(upstream):
    return SuburbFetcher(BASE_URL, client=upstream.client())


@pytest.fixture
def service(store, fetcher):
    return NbnLookupService(store, fetcher, FetchScheduler(max_concurrency=4))
