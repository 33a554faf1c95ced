from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import quote

from .fetcher import FatalFailure, FetchResult, RateLimitedFetcher, Success
from .models import TopicMatch

logger = logging.getLogger(__name__)

SPARQL_ENDPOINT = "https://query.wikidata.org/sparql"
SEARCH_ENDPOINT = "https://www.wikidata.org/w/api.php"
WIKIPEDIA_API = "https://{lang}.wikipedia.org/w/api.php"
WIKIPEDIA_SUMMARY = "https://en.wikipedia.org/api/rest_v1/page/summary/{title}"

# Maintenance categories that make poor topic suggestions
_CATEGORY_NOISE = ("Template", "User", "Wikipedia", "維基百科", "條目", "頁面", "使用", "CS1")


def _json(result: FetchResult) -> FetchResult:
    """Decode a Success(response) into Success(payload); bad JSON is fatal."""
    if not isinstance(result, Success):
        return result
    try:
        return Success(result.value.json())
    except ValueError as e:
        return FatalFailure(reason=f"invalid JSON: {e}", status_code=result.value.status_code)


class WikidataClient:
    """
    Endpoint wrapper. Every call goes through the shared RateLimitedFetcher
    and returns a tagged result; nothing here raises for network trouble.
    """

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        *,
        sparql_endpoint: str = SPARQL_ENDPOINT,
        search_endpoint: str = SEARCH_ENDPOINT,
        wikipedia_api: str = WIKIPEDIA_API,
        wikipedia_summary: str = WIKIPEDIA_SUMMARY,
    ):
        self.fetcher = fetcher
        self.sparql_endpoint = sparql_endpoint
        self.search_endpoint = search_endpoint
        self.wikipedia_api = wikipedia_api
        self.wikipedia_summary = wikipedia_summary

    def select(self, query: str) -> FetchResult:
        """Run a SPARQL SELECT. Success carries the list of binding rows."""
        result = _json(self.fetcher.fetch(self.sparql_endpoint, params={"query": query, "format": "json"}))
        if not isinstance(result, Success):
            return result

        payload = result.value
        bindings = (payload.get("results") or {}).get("bindings") if isinstance(payload, dict) else None
        if not isinstance(bindings, list):
            return FatalFailure(reason="SPARQL response has no results.bindings")
        return Success([b for b in bindings if isinstance(b, dict)])

    def search_entities(self, text: str, language: str, limit: int = 1) -> FetchResult:
        """wbsearchentities; Success carries a ranked list of TopicMatch."""
        params = {
            "action": "wbsearchentities",
            "search": text,
            "language": language,
            "format": "json",
            "limit": limit,
        }
        result = _json(self.fetcher.fetch(self.search_endpoint, params=params))
        if not isinstance(result, Success):
            return result

        hits = result.value.get("search") if isinstance(result.value, dict) else None
        matches: List[TopicMatch] = []
        for h in hits or []:
            if not isinstance(h, dict) or not h.get("id"):
                continue
            matches.append(
                TopicMatch(
                    id=str(h["id"]),
                    label=str(h.get("label") or h["id"]),
                    description=str(h.get("description") or ""),
                )
            )
        return Success(matches)

    def category_members(self, topic: str, lang: str = "en", limit: int = 10) -> FetchResult:
        title = topic if topic.lower().startswith("category:") else f"Category:{topic}"
        params = {
            "action": "query",
            "list": "categorymembers",
            "cmtitle": title,
            "cmlimit": limit,
            "format": "json",
        }
        result = _json(self.fetcher.fetch(self.wikipedia_api.format(lang=lang), params=params))
        if not isinstance(result, Success):
            return result

        members = ((result.value or {}).get("query") or {}).get("categorymembers") or []
        titles = [str(m.get("title", "")).removeprefix("Category:") for m in members if isinstance(m, dict)]
        return Success([t for t in titles if t and not any(n in t for n in ("Template", "User"))])

    def page_categories(self, topic: str, lang: str = "en", limit: int = 10) -> FetchResult:
        params = {
            "action": "query",
            "prop": "categories",
            "titles": topic,
            "cllimit": limit,
            "format": "json",
        }
        result = _json(self.fetcher.fetch(self.wikipedia_api.format(lang=lang), params=params))
        if not isinstance(result, Success):
            return result

        pages: Dict[str, Any] = ((result.value or {}).get("query") or {}).get("pages") or {}
        out: List[str] = []
        for page in pages.values():
            for cat in (page or {}).get("categories") or []:
                t = str(cat.get("title", "")).removeprefix("Category:")
                if t and not any(n in t for n in _CATEGORY_NOISE):
                    out.append(t)
            break  # single title requested
        return Success(out)

    def page_summary(self, title: str) -> FetchResult:
        """REST page summary; Success carries the raw summary dict."""
        encoded = quote(title.replace(" ", "_"), safe="")
        return _json(self.fetcher.fetch(self.wikipedia_summary.format(title=encoded)))
