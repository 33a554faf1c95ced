from typing import Callable, Dict, List

import httpx
import pytest

from history_ingest.fetcher import RateLimitedFetcher
from history_ingest.models import EventCandidate, Source
from history_ingest.ratelimit import SlidingWindowLimiter
from history_ingest.wikidata_client import WikidataClient


class Sleeps:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def source() -> Source:
    return Source(
        id="wikidata-source",
        source_name="Wikidata",
        source_url="https://www.wikidata.org/",
        license="CC0",
        attribution_text="Data from Wikidata",
        retrieved_at="2026-01-01T00:00:00Z",
    )


@pytest.fixture
def make_candidate(source) -> Callable[..., EventCandidate]:
    def _make(n: int = 1, **overrides) -> EventCandidate:
        data = dict(
            title=f"Event {n}",
            summary="Something happened.",
            category="history",
            time_start=1000 + n,
            source_url=f"http://www.wikidata.org/entity/Q{n}",
            lat=41.0,
            lng=29.0,
            license=source.license,
            provenance=source.as_provenance(),
        )
        data.update(overrides)
        return EventCandidate(**data)

    return _make


def binding(**cells: str) -> Dict[str, Dict[str, str]]:
    return {k: {"type": "literal", "value": v} for k, v in cells.items()}


def sparql_json(rows: List[dict]) -> dict:
    return {"head": {"vars": []}, "results": {"bindings": rows}}


@pytest.fixture
def sleeps() -> Sleeps:
    return Sleeps()


@pytest.fixture
def make_client(sleeps) -> Callable[..., WikidataClient]:
    def _make(handler, max_attempts: int = 3) -> WikidataClient:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        limiter = SlidingWindowLimiter(1000, 1.0, sleep=sleeps)
        fetcher = RateLimitedFetcher(http, limiter, max_attempts=max_attempts, backoff_base_s=1.0, sleep=sleeps)
        return WikidataClient(fetcher)

    return _make
