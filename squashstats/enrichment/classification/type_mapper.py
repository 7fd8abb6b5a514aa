"""
Google Places Type Mapper.

Deterministic mapping from a Place Details snapshot to the internal venue
taxonomy. Resolution order (first match wins):

1. Name / editorial summary keywords (high and medium tiers)
2. Combination rules over the full type set
3. Primary type table lookup
4. Secondary type table lookup, confidence downgraded one tier
5. Name keywords again on an English translation of a non-English name
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from squashstats.configs.config import Config
from squashstats.schemas import (
    CategoryMapping,
    Confidence,
    GooglePlacesSnapshot,
    VenueCategory,
)

from .patterns import find_keyword, resolve_category, resolve_confidence

logger = logging.getLogger(__name__)

TRANSLATED_REASONING_PREFIX = "Translated from original language: "
NO_MATCH_REASONING = "No matching Google Places type found in mapping table"


@dataclass(frozen=True)
class TypeRule:
    category: VenueCategory
    confidence: Confidence


@dataclass(frozen=True)
class NamePatternRule:
    category: VenueCategory
    high: Tuple[str, ...]
    medium: Tuple[str, ...]


@dataclass(frozen=True)
class CombinationRule:
    """All ``requires`` groups must be hit (any type per group) and no ``excludes`` type present."""

    matched_type: str
    requires: Tuple[FrozenSet[str], ...]
    excludes: FrozenSet[str]
    category: VenueCategory
    confidence: Confidence
    reasoning: str

    def matches(self, types: FrozenSet[str]) -> bool:
        if self.excludes & types:
            return False
        return all(group & types for group in self.requires)


class GooglePlacesTypeMapper:
    """
    Maps Google Places data to a venue category using the rule tables.

    The mapper is pure apart from the optional translation call: the same
    snapshot always produces the same mapping.
    """

    def __init__(
        self,
        rules: Optional[Dict[str, Any]] = None,
        translator=None,
    ):
        """
        Initialize the type mapper.

        Args:
            rules: Parsed rules file (defaults to the packaged categorization_rules.yaml)
            translator: Optional client exposing ``appears_non_english`` and
                ``translate_to_english``
        """
        if rules is None:
            rules = Config.load_categorization_rules()

        self.type_mapping: Dict[str, TypeRule] = {
            place_type: TypeRule(
                category=resolve_category(entry["category"]),
                confidence=resolve_confidence(entry["confidence"]),
            )
            for place_type, entry in rules["type_mapping"].items()
        }

        self.name_patterns: List[NamePatternRule] = [
            NamePatternRule(
                category=resolve_category(entry["category"]),
                high=tuple(entry.get("high") or ()),
                medium=tuple(entry.get("medium") or ()),
            )
            for entry in rules["name_patterns"]
        ]

        squash_rule = rules["squash_rule"]
        self.squash_category = resolve_category(squash_rule["category"])
        self.multi_sport_category = resolve_category(squash_rule["reclassify_to"])
        self.multi_sport_indicators: Tuple[str, ...] = tuple(
            squash_rule.get("multi_sport_indicators") or ()
        )

        self.combination_rules: List[CombinationRule] = [
            CombinationRule(
                matched_type=entry["matched_type"],
                requires=tuple(frozenset(group) for group in entry.get("requires", [])),
                excludes=frozenset(entry.get("excludes") or ()),
                category=resolve_category(entry["category"]),
                confidence=resolve_confidence(entry["confidence"]),
                reasoning=entry.get("reasoning") or entry["matched_type"],
            )
            for entry in rules["combination_rules"]
        ]

        self.translator = translator

    # =========================================================================
    # Mapping
    # =========================================================================

    def map_to_category(self, places: GooglePlacesSnapshot) -> CategoryMapping:
        """
        Map a Places snapshot to a category recommendation.

        Args:
            places: Normalized Place Details

        Returns:
            CategoryMapping; ``category_id`` is None when nothing matched
        """
        by_name = self.match_name_patterns(places.text)
        if by_name:
            return by_name

        by_combination = self.match_combination(places.all_types)
        if by_combination:
            return by_combination

        if places.primary_type and places.primary_type in self.type_mapping:
            rule = self.type_mapping[places.primary_type]
            return CategoryMapping(
                category_id=int(rule.category),
                confidence=rule.confidence,
                reasoning=f"Matched primary type: {places.primary_type}",
                matched_type=places.primary_type,
            )

        for place_type in places.types:
            if place_type == places.primary_type or place_type not in self.type_mapping:
                continue
            rule = self.type_mapping[place_type]
            return CategoryMapping(
                category_id=int(rule.category),
                confidence=rule.confidence.downgrade(),
                reasoning=f"Matched secondary type: {place_type}",
                matched_type=place_type,
            )

        translated = self._match_translated_name(places.display_name)
        if translated:
            return translated

        return CategoryMapping(
            category_id=None,
            confidence=Confidence.LOW,
            reasoning=NO_MATCH_REASONING,
        )

    def match_name_patterns(self, text: str) -> Optional[CategoryMapping]:
        """Keyword scan over lower-cased name + summary text."""
        if not text:
            return None

        for rule in self.name_patterns:
            for tier, confidence in (("high", Confidence.HIGH), ("medium", Confidence.MEDIUM)):
                keyword = find_keyword(text, getattr(rule, tier))
                if keyword is None:
                    continue

                if rule.category == self.squash_category:
                    indicator = find_keyword(text, self.multi_sport_indicators)
                    if indicator:
                        return CategoryMapping(
                            category_id=int(self.multi_sport_category),
                            confidence=Confidence.HIGH,
                            reasoning=(
                                f"Venue name contains '{keyword}' alongside multi-sport "
                                f"indicator '{indicator}' - squash courts within a "
                                f"multi-sport facility"
                            ),
                            matched_type="name_multi_sport",
                        )

                strength = "strong" if confidence is Confidence.HIGH else "likely"
                return CategoryMapping(
                    category_id=int(rule.category),
                    confidence=confidence,
                    reasoning=f"Venue name contains '{keyword}' - {strength} category indicator",
                    matched_type=f"name_{tier}_confidence",
                )
        return None

    def match_combination(self, types: List[str]) -> Optional[CategoryMapping]:
        type_set = frozenset(types)
        for rule in self.combination_rules:
            if rule.matches(type_set):
                return CategoryMapping(
                    category_id=int(rule.category),
                    confidence=rule.confidence,
                    reasoning=rule.reasoning,
                    matched_type=rule.matched_type,
                )
        return None

    def _match_translated_name(self, display_name: Optional[str]) -> Optional[CategoryMapping]:
        if self.translator is None or not display_name:
            return None
        if not self.translator.appears_non_english(display_name):
            return None

        translated = self.translator.translate_to_english(display_name)
        if not translated:
            return None

        match = self.match_name_patterns(translated.lower())
        if match is None:
            logger.debug(f"No name pattern in translation '{translated}' of '{display_name}'")
            return None

        logger.info(
            f"Matched translated venue name '{display_name}' -> '{translated}'",
            extra={"payload": {"matched_type": match.matched_type}},
        )
        return CategoryMapping(
            category_id=match.category_id,
            confidence=match.confidence,
            reasoning=TRANSLATED_REASONING_PREFIX + match.reasoning,
            matched_type=f"translated_{match.matched_type}",
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_all_mapped_types(self) -> List[str]:
        return sorted(self.type_mapping)

    def get_category_id_for_type(self, place_type: str) -> Optional[int]:
        rule = self.type_mapping.get(place_type)
        return int(rule.category) if rule else None

    def is_mapped(self, place_type: str) -> bool:
        return place_type in self.type_mapping


def create_type_mapper_from_config(
    config: Optional[Dict[str, Any]] = None, translator=None
) -> GooglePlacesTypeMapper:
    """
    Factory function to create a GooglePlacesTypeMapper.

    Args:
        config: Rules dict; the packaged rules file is used when omitted
        translator: Optional translation client

    Returns:
        Configured GooglePlacesTypeMapper
    """
    return GooglePlacesTypeMapper(rules=config, translator=translator)
