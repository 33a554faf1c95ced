from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from pydantic import ValidationError

from .models import EventCandidate
from .normalizer import is_noise

logger = logging.getLogger(__name__)


def merge(accumulator: Mapping[str, EventCandidate], candidates: Iterable[EventCandidate]) -> Dict[str, EventCandidate]:
    """
    First-write-wins merge keyed by source_url. Existing entries are never
    replaced, so earlier (more specific) queries beat later broad sweeps and
    merge(A, A) == A.
    """
    out: Dict[str, EventCandidate] = dict(accumulator)
    for c in candidates:
        if c.source_url not in out:
            out[c.source_url] = c
    return out


class EventAccumulator:
    """Run-scoped, insertion-ordered set of candidates keyed by source_url."""

    def __init__(self) -> None:
        self._events: Dict[str, EventCandidate] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, source_url: object) -> bool:
        return source_url in self._events

    def __iter__(self) -> Iterator[EventCandidate]:
        return iter(self._events.values())

    def get(self, source_url: str) -> Optional[EventCandidate]:
        return self._events.get(source_url)

    def values(self) -> List[EventCandidate]:
        return list(self._events.values())

    def merge(self, candidates: Iterable[EventCandidate]) -> int:
        """Returns how many new keys were added."""
        before = len(self._events)
        self._events = merge(self._events, candidates)
        return len(self._events) - before

    def seed(self, candidates: Iterable[EventCandidate], today: Optional[date] = None) -> int:
        """Preload prior records that carry an image and are not noise."""
        keep = [c for c in candidates if c.image_url and not is_noise(c.title, c.time_start, today)]
        return self.merge(keep)

    def seed_from_snapshot(self, path: Path, today: Optional[date] = None) -> int:
        """
        Pre-seed from a previous normalized output so re-runs accumulate
        instead of regressing. A missing snapshot means a fresh start.
        """
        if not path.exists():
            logger.info("no snapshot at %s, starting fresh", path)
            return 0

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("unreadable snapshot %s, starting fresh: %s", path, e)
            return 0
        rows = raw.get("events") if isinstance(raw, dict) else None
        if not isinstance(rows, list):
            logger.warning("snapshot %s has no events list, starting fresh", path)
            return 0

        prior: List[EventCandidate] = []
        for row in rows:
            try:
                prior.append(EventCandidate.model_validate(row))
            except ValidationError as e:
                logger.debug("snapshot row skipped: %s", e)

        kept = self.seed(prior, today)
        logger.info("preserved %d image-bearing events from %s", kept, path)
        return kept
