from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .allowlist import LicensePolicy
from .errors import SeedError
from .models import EventCandidate, Source
from .pipeline import PublishResult, publish
from .storage import EventStore

logger = logging.getLogger(__name__)

SOURCE_FIELDS = ("id", "source_name", "source_url", "license", "attribution_text", "retrieved_at")
EVENT_FIELDS = (
    "title",
    "summary",
    "category",
    "precision_level",
    "source_id",
    "source_url",
    "time_start",
    "lat",
    "lng",
)


@dataclass
class SeedPayload:
    sources: List[Source]
    events: List[EventCandidate]


def require_field(record: Mapping[str, Any], name: str, where: str) -> Any:
    value = record.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise SeedError(f"Missing required field: {name} ({where})")
    return value


def _parse_source(record: Mapping[str, Any], idx: int) -> Source:
    where = f"sources[{idx}]"
    for name in SOURCE_FIELDS:
        require_field(record, name, where)
    try:
        return Source(
            id=str(record["id"]),
            source_name=record["source_name"],
            source_url=record["source_url"],
            license=record["license"],
            attribution_text=record["attribution_text"],
            retrieved_at=str(record["retrieved_at"]),
        )
    except ValidationError as e:
        raise SeedError(f"Invalid source {where}: {e}") from e


def _parse_event(record: Mapping[str, Any], idx: int, sources: Dict[str, Source]) -> EventCandidate:
    where = f"events[{idx}]"
    for name in EVENT_FIELDS:
        require_field(record, name, where)

    event_id = record.get("id")
    source_id = str(record["source_id"])
    source = sources.get(source_id)
    if source is None:
        raise SeedError(f"Missing source for event id={event_id} source_id={source_id}")

    try:
        return EventCandidate(
            id=None if event_id is None else str(event_id),
            title=record["title"],
            summary=record["summary"],
            category=str(record["category"]).strip(),
            region_name=record.get("region_name") or "",
            precision_level=record["precision_level"],
            confidence_score=1.0 if record.get("confidence_score") is None else record["confidence_score"],
            time_start=record["time_start"],
            time_end=record.get("time_end"),
            source_url=record["source_url"],
            lat=record["lat"],
            lng=record["lng"],
            image_url=record.get("image_url"),
            wikipedia_url=record.get("wikipedia_url"),
            youtube_video_id=record.get("youtube_video_id"),
            license=source.license,
            provenance=source.as_provenance(),
        )
    except ValidationError as e:
        raise SeedError(f"Invalid event {where}: {e}") from e


def parse_seed(data: Any) -> SeedPayload:
    """
    Hand-curated {sources, events} records with snake_case fields. Every
    event must reference a declared source through `source_id`; licenses
    are left for the gate to judge.
    """
    if not isinstance(data, dict):
        raise SeedError("seed file must be an object with 'sources' and 'events'")
    raw_sources = data.get("sources")
    raw_events = data.get("events")
    if not isinstance(raw_sources, list) or not isinstance(raw_events, list):
        raise SeedError("seed file must contain 'sources' and 'events' lists")

    sources: Dict[str, Source] = {}
    for idx, record in enumerate(raw_sources):
        if not isinstance(record, dict):
            raise SeedError(f"sources[{idx}] is not an object")
        source = _parse_source(record, idx)
        if source.id in sources:
            raise SeedError(f"Duplicate source id={source.id}")
        sources[source.id] = source

    events: List[EventCandidate] = []
    for idx, record in enumerate(raw_events):
        if not isinstance(record, dict):
            raise SeedError(f"events[{idx}] is not an object")
        events.append(_parse_event(record, idx, sources))

    return SeedPayload(sources=list(sources.values()), events=events)


def load_seed(path: Path) -> SeedPayload:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SeedError(f"Cannot read seed file {path}: {e}") from e
    payload = parse_seed(data)
    logger.info("seed %s: %d source(s), %d event(s)", path, len(payload.sources), len(payload.events))
    return payload


def ingest_seed(
    path: Path,
    policy: LicensePolicy,
    output_path: Path,
    audit_path: Path,
    store: Optional[EventStore] = None,
) -> PublishResult:
    """Load, validate and gate a seed file. Seed ids and order are kept."""
    payload = load_seed(path)
    return publish(payload.events, policy, output_path, audit_path, store, renumber=False)
