from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from .categories import categorize
from .models import EventCandidate, Source

logger = logging.getLogger(__name__)

PLACEHOLDER_SUMMARY = "No description available."

_POINT = re.compile(r"Point\(\s*([-+0-9.eE]+)\s+([-+0-9.eE]+)\s*\)")
_LEADING_YEAR = re.compile(r"^\s*([+-]?\d+)")

# Mechanically generated astronomical predictions, not historical events
_NOISE_TITLES = (
    re.compile(r"\bsolar eclipse\b", re.IGNORECASE),
    re.compile(r"\blunar eclipse\b", re.IGNORECASE),
)


def binding_value(row: Dict[str, Any], key: str) -> Optional[str]:
    cell = row.get(key)
    if not isinstance(cell, dict):
        return None
    v = cell.get("value")
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def parse_point(wkt: Optional[str]) -> Optional[Tuple[float, float]]:
    """'Point(lng lat)' -> (lng, lat); None unless both numbers are finite."""
    if not wkt:
        return None
    m = _POINT.search(wkt)
    if not m:
        return None
    try:
        lng = float(m.group(1))
        lat = float(m.group(2))
    except ValueError:
        return None
    if not (math.isfinite(lng) and math.isfinite(lat)):
        return None
    return lng, lat


def parse_year(value: Optional[str]) -> Optional[int]:
    """
    Leading signed integer of an ISO-like date.
    '-0202-01-01T00:00:00Z' -> -202 (BCE), '1066-10-14T00:00:00Z' -> 1066.
    """
    if not value:
        return None
    m = _LEADING_YEAR.match(value)
    if not m:
        return None
    return int(m.group(1))


def is_noise(title: str, year: Optional[int], today: Optional[date] = None) -> bool:
    """Eclipse-style entries dated after the ingestion date."""
    if year is None:
        return False
    current = (today or date.today()).year
    if year <= current:
        return False
    return any(p.search(title or "") for p in _NOISE_TITLES)


def normalize_binding(row: Dict[str, Any], source: Source, today: Optional[date] = None) -> Optional[EventCandidate]:
    """One SPARQL binding row -> EventCandidate, or None when the row is unusable."""
    source_url = binding_value(row, "event")
    if not source_url:
        return None

    point = parse_point(binding_value(row, "coord"))
    if point is None:
        logger.debug("skip %s: bad geometry", source_url)
        return None
    lng, lat = point

    year = parse_year(binding_value(row, "date"))
    if year is None:
        logger.debug("skip %s: unparsable date", source_url)
        return None

    title = binding_value(row, "eventLabel")
    if not title:
        logger.debug("skip %s: no label", source_url)
        return None
    if is_noise(title, year, today):
        logger.debug("skip %s: noise title %r", source_url, title)
        return None

    try:
        return EventCandidate(
            title=title,
            summary=binding_value(row, "eventDescription") or PLACEHOLDER_SUMMARY,
            category=categorize(binding_value(row, "typeLabel") or ""),
            region_name=binding_value(row, "countryLabel") or "",
            precision_level="year",
            confidence_score=1.0,
            time_start=year,
            time_end=parse_year(binding_value(row, "endDate")),
            source_url=source_url,
            lat=lat,
            lng=lng,
            image_url=binding_value(row, "image"),
            wikipedia_url=binding_value(row, "article"),
            youtube_video_id=binding_value(row, "youtube"),
            license=source.license,
            provenance=source.as_provenance(),
        )
    except ValidationError as e:
        logger.debug("skip %s: %s", source_url, e)
        return None


def normalize_bindings(rows: Iterable[Dict[str, Any]], source: Source, today: Optional[date] = None) -> List[EventCandidate]:
    out: List[EventCandidate] = []
    for row in rows:
        candidate = normalize_binding(row, source, today)
        if candidate is not None:
            out.append(candidate)
    return out
