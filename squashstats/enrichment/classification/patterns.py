"""
Keyword matching helpers shared by the rule-driven classifiers.

Keywords match case-insensitively at the start of a word, so "inn" does
not fire on "winner" while "gym" still matches "gymnasium".
"""

import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from squashstats.configs.config import ConfigurationError
from squashstats.schemas import Confidence, VenueCategory


@lru_cache(maxsize=None)
def keyword_regex(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<!\w)" + re.escape(keyword.lower()))


def find_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    """First keyword (in list order) present in ``text``, or None."""
    if not text:
        return None
    text = text.lower()
    for keyword in keywords:
        if keyword_regex(keyword).search(text):
            return keyword
    return None


def contains_any(text: str, keywords: Sequence[str]) -> bool:
    return find_keyword(text, keywords) is not None


def resolve_category(name: str) -> VenueCategory:
    """Turn a rules-file category reference (member name or id) into a VenueCategory."""
    if isinstance(name, int):
        category = VenueCategory.from_id(name)
        if category is None:
            raise ConfigurationError(f"Unknown category id in rules: {name}")
        return category
    try:
        return VenueCategory[str(name).strip().upper()]
    except KeyError:
        raise ConfigurationError(f"Unknown category in rules: {name!r}") from None


def resolve_confidence(value: str) -> Confidence:
    try:
        return Confidence(str(value).strip().upper())
    except ValueError:
        raise ConfigurationError(f"Unknown confidence in rules: {value!r}") from None
