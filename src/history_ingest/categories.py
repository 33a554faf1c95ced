from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

DEFAULT_CATEGORY = "history"

# (type label, category) in priority order. Keys are lower-case.
CATEGORY_TABLE: Sequence[Tuple[str, str]] = (
    ("war", "war"),
    ("battle", "war"),
    ("siege", "war"),
    ("military campaign", "war"),
    ("conflict", "war"),
    ("invasion", "war"),
    ("military operation", "war"),
    ("naval battle", "war"),
    ("aerial bombing", "war"),
    ("election", "politics"),
    ("treaty", "politics"),
    ("assassination", "politics"),
    ("coup d'état", "politics"),
    ("protest", "politics"),
    ("revolution", "politics"),
    ("diplomatic mission", "politics"),
    ("peace treaty", "politics"),
    ("painting", "culture"),
    ("sculpture", "culture"),
    ("novel", "culture"),
    ("film", "culture"),
    ("literary work", "culture"),
    ("composition", "culture"),
    ("museum", "culture"),
    ("festival", "culture"),
    ("world heritage site", "culture"),
    ("city", "civilization"),
    ("capital city", "civilization"),
    ("archaeological site", "civilization"),
    ("empire", "civilization"),
    ("civilization", "civilization"),
    ("dynasty", "civilization"),
    ("discovery", "exploration"),
    ("expedition", "exploration"),
    ("first ascent", "exploration"),
    ("space mission", "exploration"),
    ("human spaceflight", "exploration"),
    ("voyage", "exploration"),
    ("scientific discovery", "science"),
    ("invention", "technology"),
    ("technological development", "technology"),
    ("religion", "religion"),
    ("religious movement", "religion"),
    ("earthquake", "history"),
    ("volcanic eruption", "history"),
    ("epidemic", "history"),
    ("famine", "history"),
    ("flood", "history"),
    ("pandemic", "history"),
    ("disaster", "history"),
)


@dataclass(frozen=True)
class CategoryRule:
    description: str
    matches: Callable[[str], bool]
    category: str


def _exact(key: str) -> Callable[[str], bool]:
    return lambda label: label == key


def _contains(key: str) -> Callable[[str], bool]:
    return lambda label: key in label


def build_rules(table: Sequence[Tuple[str, str]] = CATEGORY_TABLE) -> List[CategoryRule]:
    """
    Every exact-match rule precedes every substring rule; within each group
    the table order breaks ties.
    """
    exact = [CategoryRule(f"== {k!r}", _exact(k), c) for k, c in table]
    contains = [CategoryRule(f"contains {k!r}", _contains(k), c) for k, c in table]
    return exact + contains


CATEGORY_RULES: List[CategoryRule] = build_rules()


def categorize(type_label: str, rules: Sequence[CategoryRule] = CATEGORY_RULES) -> str:
    label = (type_label or "").strip().lower()
    if not label:
        return DEFAULT_CATEGORY
    for rule in rules:
        if rule.matches(label):
            return rule.category
    return DEFAULT_CATEGORY
