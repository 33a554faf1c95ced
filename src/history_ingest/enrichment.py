from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Sequence, TypeVar

from .fetcher import Success
from .models import EventCandidate
from .normalizer import binding_value
from .query_pack import build_youtube_batch_query
from .wikidata_client import WikidataClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> Iterable[List[T]]:
    if size < 1:
        raise ValueError("size must be >= 1")
    for i in range(0, len(values), size):
        yield list(values[i : i + size])


def enrich_youtube(
    candidates: Iterable[EventCandidate],
    client: WikidataClient,
    *,
    batch_size: int = 50,
    delay_s: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Batch-join the YouTube video id (P1651) onto candidates that lack one.
    Only `youtube_video_id` is touched. A failed batch is logged and skipped.
    Returns the number of candidates enriched.
    """
    pending = [c for c in candidates if not c.youtube_video_id and c.qid]
    if not pending:
        return 0

    enriched = 0
    for idx, batch in enumerate(chunked(pending, batch_size)):
        if idx > 0 and delay_s > 0:
            sleep(delay_s)

        result = client.select(build_youtube_batch_query([c.qid for c in batch]))
        if not isinstance(result, Success):
            logger.warning("youtube batch %d failed: %s", idx, result.reason)
            continue

        found: Dict[str, str] = {}
        for row in result.value:
            uri = binding_value(row, "event")
            video = binding_value(row, "youtube")
            if uri and video and uri not in found:
                found[uri] = video

        for c in batch:
            video = found.get(c.source_url)
            if video:
                c.youtube_video_id = video
                enriched += 1

    logger.info("youtube enrichment: found %d video ids for %d candidates", enriched, len(pending))
    return enriched


def enrich_wikipedia_images(
    candidates: Iterable[EventCandidate],
    client: WikidataClient,
    *,
    delay_s: float = 0.15,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Fill image_url from the Wikipedia page summary thumbnail for image-less candidates."""
    pending = [c for c in candidates if not c.image_url]
    enriched = 0

    for idx, c in enumerate(pending):
        if idx > 0 and delay_s > 0:
            sleep(delay_s)

        result = client.page_summary(c.title)
        if not isinstance(result, Success) or not isinstance(result.value, dict):
            continue

        data = result.value
        image = (data.get("thumbnail") or {}).get("source") or (data.get("originalimage") or {}).get("source")
        if not image:
            continue

        c.image_url = image
        if not c.wikipedia_url:
            c.wikipedia_url = ((data.get("content_urls") or {}).get("desktop") or {}).get("page")
        enriched += 1

    logger.info("wikipedia image enrichment: %d of %d", enriched, len(pending))
    return enriched
