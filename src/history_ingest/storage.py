from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Sequence

from .models import EventCandidate, Source

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sources (
        id TEXT PRIMARY KEY,
        source_name TEXT NOT NULL,
        source_url TEXT NOT NULL,
        license TEXT NOT NULL,
        attribution_text TEXT NOT NULL,
        retrieved_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        source_url TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        summary TEXT NOT NULL,
        category TEXT NOT NULL,
        region_name TEXT NOT NULL DEFAULT '',
        precision_level TEXT NOT NULL,
        confidence_score REAL NOT NULL,
        time_start INTEGER NOT NULL,
        time_end INTEGER,
        lat REAL NOT NULL,
        lng REAL NOT NULL,
        image_url TEXT,
        wikipedia_url TEXT,
        youtube_video_id TEXT,
        license TEXT NOT NULL,
        source_id TEXT NOT NULL REFERENCES sources(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_time_start ON events(time_start)",
)


class EventStore:
    """SQLite hand-off. Events are keyed by source_url; re-runs never overwrite."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.execute("PRAGMA foreign_keys=ON")
        with self._conn:
            for stmt in _SCHEMA:
                self._conn.execute(stmt)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "EventStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def upsert_sources(self, sources: Iterable[Source]) -> None:
        payload = [
            (s.id, s.source_name, s.source_url, s.license, s.attribution_text, s.retrieved_at) for s in sources
        ]
        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO sources (id, source_name, source_url, license, attribution_text, retrieved_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET retrieved_at=excluded.retrieved_at
                """,
                payload,
            )

    def upsert_events(self, events: Sequence[EventCandidate]) -> int:
        """Insert, do nothing on conflict. Returns rows actually inserted."""
        if not events:
            return 0
        sources = {e.provenance.source_id: e.provenance.as_source() for e in events}
        self.upsert_sources(sources.values())

        before = self.count_events()
        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO events (
                    source_url, title, summary, category, region_name,
                    precision_level, confidence_score, time_start, time_end,
                    lat, lng, image_url, wikipedia_url, youtube_video_id,
                    license, source_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(source_url) DO NOTHING
                """,
                [
                    (
                        e.source_url, e.title, e.summary, e.category, e.region_name,
                        e.precision_level, e.confidence_score, e.time_start, e.time_end,
                        e.lat, e.lng, e.image_url, e.wikipedia_url, e.youtube_video_id,
                        e.license, e.provenance.source_id,
                    )
                    for e in events
                ],
            )
        inserted = self.count_events() - before
        logger.info("stored %d new event(s) of %d", inserted, len(events))
        return inserted

    def count_events(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM events").fetchone()[0])
