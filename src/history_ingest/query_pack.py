from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

_QID = re.compile(r"^Q\d+$")

WIKIPEDIA_EN = "<https://en.wikipedia.org/>"
OCCURRENCE_QID = "Q1190554"
LABEL_LANGUAGES = "en,zh,fr,de,es,ja"


@dataclass(frozen=True)
class BulkQuery:
    name: str
    query: str


def _check_qid(qid: str) -> str:
    q = (qid or "").strip().upper()
    if not _QID.match(q):
        raise ValueError(f"Not a Wikidata entity id: {qid!r}")
    return q


def _year_filters(from_year: Optional[int], to_year: Optional[int]) -> List[str]:
    filters: List[str] = []
    if from_year is not None:
        filters.append(f"FILTER(YEAR(?date) >= {int(from_year)})")
    if to_year is not None:
        filters.append(f"FILTER(YEAR(?date) < {int(to_year)})")
    return filters


def build_topic_query(qid: str, limit: int = 500) -> str:
    """
    Events related to a topic entity through any of five relations:
    instance/subclass of, main subject, part of, country, location.
    Candidates must carry both coordinates (P625) and a point in time (P585).
    """
    q = _check_qid(qid)
    return f"""
SELECT DISTINCT ?event ?eventLabel ?eventDescription ?date ?coord ?article ?image ?typeLabel ?countryLabel WHERE {{
  {{ ?event wdt:P31/wdt:P279* wd:{q}. }}
  UNION {{ ?event wdt:P921 wd:{q}. }}
  UNION {{ ?event wdt:P361 wd:{q}. }}
  UNION {{ ?event wdt:P17 wd:{q}. }}
  UNION {{ ?event wdt:P276 wd:{q}. }}

  ?event wdt:P625 ?coord;
         wdt:P585 ?date.

  OPTIONAL {{ ?event wdt:P31 ?type. }}
  OPTIONAL {{ ?article schema:about ?event; schema:isPartOf {WIKIPEDIA_EN}. }}
  OPTIONAL {{ ?event wdt:P18 ?image. }}
  OPTIONAL {{ ?event wdt:P17 ?country. }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "en". }}
}}
LIMIT {int(limit)}
""".strip()


def _image_event_query(type_pattern: str, from_year: Optional[int], to_year: Optional[int], limit: int) -> str:
    filters = "\n  ".join(_year_filters(from_year, to_year))
    return f"""
SELECT DISTINCT ?event ?eventLabel ?eventDescription ?date ?endDate
       ?coord ?article ?image ?typeLabel ?youtube WHERE {{
  ?event {type_pattern}.
  ?event wdt:P625 ?coord.
  ?event wdt:P18 ?image.
  {{ ?event wdt:P585 ?date. }} UNION {{ ?event wdt:P580 ?date. }}
  {filters}
  OPTIONAL {{ ?event wdt:P582 ?endDate. }}
  OPTIONAL {{ ?event wdt:P31 ?type. }}
  OPTIONAL {{ ?article schema:about ?event; schema:isPartOf {WIKIPEDIA_EN}. }}
  OPTIONAL {{ ?event wdt:P1651 ?youtube. }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{LABEL_LANGUAGES}". }}
}}
LIMIT {int(limit)}
""".strip()


def build_type_query(type_qid: str, from_year: Optional[int] = None, to_year: Optional[int] = None, limit: int = 300) -> str:
    """Image-bearing instances of one event type, optionally within [from_year, to_year)."""
    q = _check_qid(type_qid)
    return _image_event_query(f"wdt:P31/wdt:P279* wd:{q}", from_year, to_year, limit)


def build_broad_query(from_year: Optional[int] = None, to_year: Optional[int] = None, limit: int = 400) -> str:
    """Any image-bearing 'occurrence' within [from_year, to_year)."""
    return _image_event_query(f"wdt:P31/wdt:P279* wd:{OCCURRENCE_QID}", from_year, to_year, limit)


def build_youtube_batch_query(qids: Iterable[str]) -> str:
    values = " ".join(f"wd:{_check_qid(q)}" for q in qids)
    if not values:
        raise ValueError("build_youtube_batch_query needs at least one id")
    return f"""
SELECT ?event ?youtube WHERE {{
  VALUES ?event {{ {values} }}
  ?event wdt:P1651 ?youtube.
}}
""".strip()


# Each entry stays small enough for the endpoint's execution-time budget.
# Order matters: earlier entries win on duplicate entities.
BULK_CATALOG: Sequence[BulkQuery] = (
    # wars & battles
    BulkQuery("Battles (ancient-medieval)", build_type_query("Q178561", None, 1500, 400)),
    BulkQuery("Battles (1500-1800)", build_type_query("Q178561", 1500, 1800, 400)),
    BulkQuery("Battles (1800-present)", build_type_query("Q178561", 1800, None, 400)),
    BulkQuery("Wars", build_type_query("Q198", None, None, 300)),
    BulkQuery("Sieges", build_type_query("Q188055", None, None, 200)),
    # politics
    BulkQuery("Treaties", build_type_query("Q131569", None, None, 300)),
    BulkQuery("Revolutions", build_type_query("Q10931", None, None, 200)),
    BulkQuery("Assassinations", build_type_query("Q3882219", None, None, 200)),
    # exploration
    BulkQuery("Expeditions", build_type_query("Q2401485", None, None, 200)),
    BulkQuery("Space missions", build_type_query("Q5916", None, None, 300)),
    # culture & civilization
    BulkQuery("Archaeological sites", build_type_query("Q839954", None, None, 300)),
    BulkQuery("World Heritage Sites", build_type_query("Q9259", None, None, 300)),
    # science & technology
    BulkQuery("Inventions", build_type_query("Q39546", None, None, 200)),
    # disasters
    BulkQuery("Earthquakes", build_type_query("Q7944", None, None, 300)),
    BulkQuery("Volcanic eruptions", build_type_query("Q7692360", None, None, 200)),
    # religion (church buildings)
    BulkQuery("Religious buildings", build_type_query("Q16970", None, None, 200)),
    # broad sweeps by era
    BulkQuery("Events with images (ancient: <500)", build_broad_query(None, 500, 300)),
    BulkQuery("Events with images (medieval: 500-1500)", build_broad_query(500, 1500, 400)),
    BulkQuery("Events with images (early modern: 1500-1800)", build_broad_query(1500, 1800, 400)),
    BulkQuery("Events with images (modern: 1800-1950)", build_broad_query(1800, 1950, 500)),
    BulkQuery("Events with images (contemporary: 1950-present)", build_broad_query(1950, None, 500)),
)


def select_catalog(catalog: Sequence[BulkQuery], era: Optional[str] = None) -> List[BulkQuery]:
    """Keep catalog order; `era` is a case-insensitive substring of the query name."""
    needle = (era or "").strip().lower()
    if not needle:
        return list(catalog)
    return [q for q in catalog if needle in q.name.lower()]
