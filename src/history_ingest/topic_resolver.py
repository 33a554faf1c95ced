from __future__ import annotations

import logging
import re
from typing import List, Optional

from .fetcher import Success
from .models import TopicMatch
from .wikidata_client import WikidataClient

logger = logging.getLogger(__name__)

_CJK = re.compile(r"[\u4e00-\u9fff]")

CJK_LANGUAGES = ["zh", "zh-tw", "zh-cn", "en"]
DEFAULT_LANGUAGES = ["en", "zh"]

MAX_SUGGESTIONS = 5


def contains_cjk(text: str) -> bool:
    return bool(_CJK.search(text or ""))


def search_languages(text: str) -> List[str]:
    return list(CJK_LANGUAGES if contains_cjk(text) else DEFAULT_LANGUAGES)


def _manual_suggestions(topic: str) -> tuple[List[str], str]:
    """Keyword heuristics -> (suggestions, wikipedia language to ask)."""
    t = topic.lower()
    if any(k in t for k in ("chinese", "中華", "中国", "中國")):
        return ["Tang Dynasty", "Ming Dynasty", "Qing Dynasty", "Han Dynasty", "Song Dynasty"], "zh"
    if "culture" in t or "文化" in t:
        return [
            "Try a specific dynasty or time period",
            "Try a specific historical event",
            "Try a specific war or empire",
        ], "en"
    if "europe" in t:
        return ["Roman Empire", "Ancient Rome", "Ancient Greece", "Renaissance", "French Revolution"], "en"
    return [
        "Try a more specific topic",
        "Try a historical event name",
        "Try a dynasty, empire, or time period",
    ], "en"


class TopicResolver:
    def __init__(self, client: WikidataClient):
        self.client = client

    def resolve(self, topic: str) -> Optional[TopicMatch]:
        """
        Map free text to a Wikidata entity, trying languages in priority order.
        Returns None when no language yields a hit; that is a normal outcome.
        """
        text = (topic or "").strip()
        if not text:
            return None

        for lang in search_languages(text):
            result = self.client.search_entities(text, lang)
            if not isinstance(result, Success):
                logger.warning("entity search failed (%s): %s", lang, result.reason)
                continue
            if result.value:
                match = result.value[0]
                logger.info("found topic in %s: %s (%s)", lang, match.label, match.id)
                return match

        return None

    def suggest_topics(self, topic: str) -> List[str]:
        """
        Alternatives for a topic that resolved to nothing useful: Wikipedia
        subcategories first, then the page's own categories, then heuristics.
        """
        manual, lang = _manual_suggestions(topic)

        members = self.client.category_members(topic, lang)
        found = members.value if isinstance(members, Success) else []

        if not found:
            parents = self.client.page_categories(topic, lang)
            found = parents.value if isinstance(parents, Success) else []

        if found:
            return list(found[:MAX_SUGGESTIONS])
        return manual
