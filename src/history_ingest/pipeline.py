from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from .allowlist import LicensePolicy
from .config import IngestSettings
from .enrichment import enrich_wikipedia_images, enrich_youtube
from .errors import QueryFailedError
from .fetcher import FatalFailure, RateLimitedFetcher, RetryableFailure, Success, build_http_client
from .merge import EventAccumulator
from .models import AuditReport, EventCandidate, Source, TopicMatch, utc_now_iso
from .normalizer import normalize_bindings
from .provenance_gate import ProvenanceGate
from .query_pack import BULK_CATALOG, BulkQuery, build_topic_query, select_catalog
from .ratelimit import SlidingWindowLimiter
from .storage import EventStore
from .topic_resolver import TopicResolver
from .wikidata_client import WikidataClient

logger = logging.getLogger(__name__)

# High-yield topics for multi-topic runs
CURATED_TOPICS: Sequence[str] = (
    # wars & battles
    "World War I", "World War II", "Napoleonic Wars", "American Civil War",
    "Hundred Years' War", "Crusades", "Seven Years' War", "Korean War",
    "Vietnam War", "Punic Wars", "Thirty Years' War", "War of 1812",
    # empires & civilizations
    "Roman Empire", "Byzantine Empire", "Ottoman Empire", "Mongol Empire",
    "British Empire", "Han Dynasty", "Tang Dynasty", "Ming Dynasty",
    "Qing Dynasty", "Mughal Empire", "Persian Empire", "Inca Empire",
    "Aztec Empire", "Ancient Egypt", "Ancient Greece",
    # exploration & space
    "Age of Discovery", "Apollo program", "Space Shuttle program",
    "International Space Station",
    # revolutions & politics
    "French Revolution", "Russian Revolution", "American Revolution",
    "Industrial Revolution", "Chinese Revolution",
    # science & technology
    "Manhattan Project", "History of computing", "History of aviation",
    # culture & religion
    "Renaissance", "Protestant Reformation", "Silk Road",
    # natural disasters
    "2011 Tōhoku earthquake", "1906 San Francisco earthquake",
    "2004 Indian Ocean earthquake", "Vesuvius",
)


@dataclass
class QueryReport:
    name: str
    rows: int = 0
    added: int = 0
    status: str = "ok"  # ok | no_data | failed
    error: Optional[str] = None


@dataclass
class BulkRun:
    accumulator: EventAccumulator
    reports: List[QueryReport] = field(default_factory=list)
    preserved: int = 0
    youtube_enriched: int = 0
    images_enriched: int = 0

    @property
    def candidates(self) -> List[EventCandidate]:
        return self.accumulator.values()

    @property
    def failed(self) -> List[QueryReport]:
        return [r for r in self.reports if r.status == "failed"]


@dataclass
class TopicRun:
    topic: str
    match: Optional[TopicMatch]
    candidates: List[EventCandidate] = field(default_factory=list)
    rows: int = 0
    suggestions: List[str] = field(default_factory=list)
    youtube_enriched: int = 0

    @property
    def found(self) -> bool:
        return self.match is not None


@dataclass
class TopicBatchItem:
    topic: str
    status: str  # ok | not_found | error
    events: int = 0
    qid: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PublishResult:
    report: AuditReport
    events: List[EventCandidate]
    output_path: Path
    audit_path: Path
    inserted: Optional[int] = None


def _slugify(s: str) -> str:
    s = s.strip().lower()
    out = []
    for ch in s:
        if ch.isalnum():
            out.append(ch)
        elif ch in (" ", "-", "_", "/"):
            out.append("-")
    slug = "".join(out)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-") or "topic"


def artifact_paths(
    base_dir: Path,
    normalized_file: str = "events.normalized.json",
    audit_file: str = "license-audit.json",
    topic: Optional[str] = None,
) -> tuple[Path, Path]:
    """(normalized output, audit) for a bulk run, or per topic under topics/<slug>/."""
    target = base_dir / "normalized"
    if topic:
        target = base_dir / "topics" / _slugify(topic)
    return target / normalized_file, target / audit_file


def source_from_config(source_cfg: Dict[str, Any], retrieved_at: Optional[str] = None) -> Source:
    return Source(
        id=str(source_cfg["id"]),
        source_name=str(source_cfg["source_name"]),
        source_url=str(source_cfg["source_url"]),
        license=str(source_cfg["license"]),
        attribution_text=str(source_cfg["attribution_text"]),
        retrieved_at=retrieved_at or utc_now_iso(),
    )


def build_client(
    settings: IngestSettings,
    *,
    http_client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> WikidataClient:
    """Fresh limiter + fetcher + client; one per run, nothing shared across runs."""
    limiter = SlidingWindowLimiter(
        settings.rate_max_requests,
        settings.rate_window_s,
        settings.rate_buffer_s,
        sleep=sleep,
    )
    fetcher = RateLimitedFetcher(
        http_client or build_http_client(settings.user_agent, settings.timeout_s),
        limiter,
        max_attempts=settings.max_attempts,
        backoff_base_s=settings.backoff_base_s,
        sleep=sleep,
    )
    return WikidataClient(
        fetcher,
        sparql_endpoint=settings.sparql_endpoint,
        search_endpoint=settings.search_endpoint,
        wikipedia_api=settings.wikipedia_api,
        wikipedia_summary=settings.wikipedia_summary,
    )


def run_query(
    client: WikidataClient,
    bq: BulkQuery,
    accumulator: EventAccumulator,
    source: Source,
    today: Optional[date] = None,
) -> QueryReport:
    """One catalog query, fully parsed and merged before returning."""
    result = client.select(bq.query)

    if isinstance(result, RetryableFailure):
        return QueryReport(name=bq.name, status="failed", error=result.reason)
    if isinstance(result, FatalFailure):
        return QueryReport(name=bq.name, status="no_data", error=result.reason)

    rows = result.value
    added = accumulator.merge(normalize_bindings(rows, source, today))
    return QueryReport(name=bq.name, rows=len(rows), added=added)


def run_bulk_ingest(
    client: WikidataClient,
    source: Source,
    *,
    catalog: Sequence[BulkQuery] = BULK_CATALOG,
    era: Optional[str] = None,
    seed_path: Optional[Path] = None,
    delay_s: float = 1.5,
    enrich: bool = True,
    wikipedia_images: bool = False,
    batch_size: int = 50,
    enrichment_delay_s: float = 1.5,
    wikipedia_delay_s: float = 0.15,
    sleep: Callable[[float], None] = time.sleep,
    today: Optional[date] = None,
) -> BulkRun:
    """
    Run the catalog in declared order. A failed query is logged and the
    sweep moves on; whatever was merged before it stays.
    """
    accumulator = EventAccumulator()
    run = BulkRun(accumulator=accumulator)

    if seed_path is not None:
        run.preserved = accumulator.seed_from_snapshot(seed_path, today)

    queries = select_catalog(catalog, era)
    logger.info("bulk ingest: %d quer%s", len(queries), "y" if len(queries) == 1 else "ies")

    for idx, bq in enumerate(queries):
        if idx > 0 and delay_s > 0:
            sleep(delay_s)
        logger.info("querying: %s", bq.name)

        report = run_query(client, bq, accumulator, source, today)
        run.reports.append(report)

        if report.status == "ok":
            logger.info("  -> %d results, %d new unique events", report.rows, report.added)
        elif report.status == "no_data":
            logger.warning("  -> no data: %s", report.error)
        else:
            logger.error("  -> failed: %s", report.error)

    logger.info("total unique events: %d", len(accumulator))

    if enrich:
        run.youtube_enriched = enrich_youtube(
            accumulator.values(), client, batch_size=batch_size, delay_s=enrichment_delay_s, sleep=sleep
        )
    if wikipedia_images:
        run.images_enriched = enrich_wikipedia_images(
            accumulator.values(), client, delay_s=wikipedia_delay_s, sleep=sleep
        )

    return run


def run_topic_ingest(
    client: WikidataClient,
    topic: str,
    source: Source,
    *,
    limit: int = 500,
    enrich: bool = True,
    batch_size: int = 50,
    enrichment_delay_s: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
    today: Optional[date] = None,
) -> TopicRun:
    """
    Resolve -> topic query -> normalize -> merge -> enrich.
    Not-found is a normal result (with suggestions); a query that exhausts
    its retries raises QueryFailedError.
    """
    resolver = TopicResolver(client)
    match = resolver.resolve(topic)
    if match is None:
        logger.warning("topic not found: %s", topic)
        return TopicRun(topic=topic, match=None, suggestions=resolver.suggest_topics(topic))

    result = client.select(build_topic_query(match.id, limit))
    if isinstance(result, RetryableFailure):
        raise QueryFailedError(f"topic {match.id}", result.reason)

    rows = result.value if isinstance(result, Success) else []
    if isinstance(result, FatalFailure):
        logger.warning("topic query for %s returned no data: %s", match.id, result.reason)

    accumulator = EventAccumulator()
    accumulator.merge(normalize_bindings(rows, source, today))
    run = TopicRun(topic=topic, match=match, candidates=accumulator.values(), rows=len(rows))
    logger.info("fetched %d events for topic %s (%s)", len(run.candidates), match.label, match.id)

    if not run.candidates:
        run.suggestions = resolver.suggest_topics(topic)
        return run

    if enrich:
        run.youtube_enriched = enrich_youtube(
            run.candidates, client, batch_size=batch_size, delay_s=enrichment_delay_s, sleep=sleep
        )
    return run


def run_topic_batch(
    client: WikidataClient,
    source: Source,
    topics: Sequence[str] = CURATED_TOPICS,
    **kwargs: Any,
) -> tuple[List[TopicBatchItem], EventAccumulator]:
    """Topics in order, merged into one accumulator; one bad topic does not stop the batch."""
    accumulator = EventAccumulator()
    items: List[TopicBatchItem] = []

    for topic in topics:
        try:
            run = run_topic_ingest(client, topic, source, **kwargs)
        except QueryFailedError as e:
            logger.error("batch: %s failed: %s", topic, e)
            items.append(TopicBatchItem(topic=topic, status="error", error=str(e)))
            continue

        if not run.found:
            items.append(TopicBatchItem(topic=topic, status="not_found"))
            continue

        added = accumulator.merge(run.candidates)
        items.append(TopicBatchItem(topic=topic, status="ok", events=added, qid=run.match.id))
        logger.info("batch: %d new events for %r", added, topic)

    return items, accumulator


def finalize_candidates(candidates: Sequence[EventCandidate]) -> List[EventCandidate]:
    """Sort by time_start (stable) and assign output ids wd-0, wd-1, ..."""
    ordered = sorted(candidates, key=lambda c: c.time_start)
    return [c.model_copy(update={"id": f"wd-{i}"}) for i, c in enumerate(ordered)]


def publish(
    candidates: Sequence[EventCandidate],
    policy: LicensePolicy,
    output_path: Path,
    audit_path: Path,
    store: Optional[EventStore] = None,
    renumber: bool = True,
) -> PublishResult:
    """
    Gate the whole set, then hand it to storage. Raises LicenseGateError on
    rejection. With renumber=False the given ids and order are kept.
    """
    events = finalize_candidates(candidates) if renumber else list(candidates)
    report = ProvenanceGate(policy).admit(events, output_path, audit_path)

    inserted = store.upsert_events(events) if store is not None else None
    return PublishResult(report=report, events=events, output_path=output_path, audit_path=audit_path, inserted=inserted)


def coverage_stats(candidates: Sequence[EventCandidate], top_centuries: int = 10) -> Dict[str, Any]:
    total = len(candidates)
    with_image = sum(1 for c in candidates if c.image_url)
    with_video = sum(1 for c in candidates if c.youtube_video_id)
    categories = Counter(c.category for c in candidates)
    centuries = Counter((c.time_start // 100) * 100 for c in candidates)

    return {
        "total": total,
        "with_image": with_image,
        "with_image_pct": round(100.0 * with_image / total, 1) if total else 0.0,
        "with_youtube": with_video,
        "categories": dict(categories.most_common()),
        "centuries": centuries.most_common(top_centuries),
    }
