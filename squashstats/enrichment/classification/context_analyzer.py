"""
Venue Context Analyzer.

Detects squash venues that are really part of a larger facility (a
leisure centre or gym), so that a "Dedicated facility" guess from the
Type Mapper can be corrected.

Detection order, first hit wins:
- editorial summary phrases ("part of", "sports complex", ...)
- other approved venues at the same address or within ~100 m
- venue name patterns ("X - Squash Club", squash + multi-sport term)
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from geopy.distance import geodesic

from squashstats.configs.config import Config
from squashstats.schemas import (
    Confidence,
    ContextAdjustment,
    ContextAnalysis,
    GooglePlacesSnapshot,
    ParentFacilityType,
    Venue,
    VenueCategory,
    category_name,
)

from .patterns import contains_any, find_keyword, resolve_category

logger = logging.getLogger(__name__)


class VenueContextAnalyzer:
    """
    Analyzes a venue's surroundings and descriptive text.

    The venue lookup is optional: without a repository only text signals
    are used.
    """

    def __init__(self, repository=None, rules: Optional[Dict[str, Any]] = None):
        """
        Args:
            repository: Object with ``find_colocated_venues`` and ``find_nearby_venues``
            rules: Parsed rules file (defaults to the packaged rules)
        """
        if rules is None:
            rules = Config.load_categorization_rules()
        context = rules["context"]

        self.repository = repository
        self.editorial_phrases: List[Tuple[Confidence, str, ParentFacilityType]] = []
        for tier, confidence in (("high", Confidence.HIGH), ("medium", Confidence.MEDIUM)):
            for entry in context["editorial_phrases"].get(tier) or []:
                self.editorial_phrases.append(
                    (confidence, entry["phrase"], ParentFacilityType(entry["parent"]))
                )

        self.squash_centre_exclusions = tuple(context.get("squash_centre_exclusions") or ())
        self.sub_venue_name_regexes = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in context.get("sub_venue_name_regexes") or ()
        ]
        self.multi_sport_name_terms = tuple(context.get("multi_sport_name_terms") or ())

        colocated = context.get("colocated") or {}
        self.nearby_radius_km = float(colocated.get("nearby_radius_km", 0.1))
        self.nearby_categories = [
            resolve_category(name)
            for name in colocated.get("nearby_categories", ["LEISURE_CENTRE", "GYM"])
        ]
        self.nearby_limit = int(colocated.get("nearby_limit", 5))

        self.parent_categories: Dict[ParentFacilityType, VenueCategory] = {
            ParentFacilityType(parent): resolve_category(category)
            for parent, category in context["parent_facility_categories"].items()
        }

    # =========================================================================
    # Detection
    # =========================================================================

    def analyze_context(
        self, venue: Venue, places: Optional[GooglePlacesSnapshot] = None
    ) -> ContextAnalysis:
        """
        Decide whether the venue is a sub-venue of a larger facility.

        Returns:
            ContextAnalysis; ``is_sub_venue`` is False when no signal fired
        """
        summary = places.editorial_summary if places else None
        name = (places.display_name if places else None) or venue.name
        result = (
            self._check_editorial_summary(summary)
            or self._check_colocated_venues(venue)
            or self._check_name_patterns(name)
        )
        if result is None:
            return ContextAnalysis.standalone()

        logger.info(
            f"Sub-venue detected for '{venue.name}': {result.reasoning}",
            extra={"venue_id": venue.id, "stage": "context", "payload": {"signal": result.signal}},
        )
        return result

    def _check_editorial_summary(self, summary: Optional[str]) -> Optional[ContextAnalysis]:
        if not summary:
            return None
        for confidence, phrase, parent in self.editorial_phrases:
            if find_keyword(summary, (phrase,)):
                return ContextAnalysis(
                    is_sub_venue=True,
                    confidence=confidence,
                    reasoning=f"Editorial summary mentions '{phrase}' - appears to be part of a larger facility",
                    parent_facility_type=parent,
                    signal="editorial_summary",
                )
        return None

    def _check_colocated_venues(self, venue: Venue) -> Optional[ContextAnalysis]:
        if self.repository is None:
            return None

        if venue.physical_address:
            for other in self.repository.find_colocated_venues(venue):
                if other.category_id == VenueCategory.LEISURE_CENTRE:
                    return ContextAnalysis(
                        is_sub_venue=True,
                        confidence=Confidence.HIGH,
                        reasoning=(
                            f"Shares its address with '{other.name}' "
                            f"({category_name(other.category_id)})"
                        ),
                        parent_facility_type=ParentFacilityType.LEISURE_CENTRE,
                        signal="colocated_venue",
                    )

        if not venue.has_coordinates:
            return None

        nearby = self.repository.find_nearby_venues(
            venue,
            radius_km=self.nearby_radius_km,
            category_ids=[int(c) for c in self.nearby_categories],
            limit=self.nearby_limit,
        )
        origin = (venue.latitude, venue.longitude)
        candidates = []
        for other in nearby:
            if not other.has_coordinates:
                continue
            distance_km = geodesic(origin, (other.latitude, other.longitude)).km
            if distance_km <= self.nearby_radius_km:
                candidates.append((distance_km, other))

        if not candidates:
            return None

        distance_km, nearest = min(candidates, key=lambda pair: pair[0])
        parent = (
            ParentFacilityType.GYM
            if nearest.category_id == VenueCategory.GYM
            else ParentFacilityType.LEISURE_CENTRE
        )
        return ContextAnalysis(
            is_sub_venue=True,
            confidence=Confidence.MEDIUM,
            reasoning=(
                f"'{nearest.name}' ({category_name(nearest.category_id)}) is "
                f"{distance_km * 1000:.0f}m away"
            ),
            parent_facility_type=parent,
            signal="nearby_venue",
        )

    def _check_name_patterns(self, name: Optional[str]) -> Optional[ContextAnalysis]:
        if not name:
            return None
        lowered = name.lower()

        if contains_any(lowered, self.squash_centre_exclusions):
            return None

        for regex in self.sub_venue_name_regexes:
            if regex.search(lowered):
                return ContextAnalysis(
                    is_sub_venue=True,
                    confidence=Confidence.MEDIUM,
                    reasoning=f"Venue name '{name}' reads like a section of a larger venue",
                    parent_facility_type=ParentFacilityType.LEISURE_CENTRE,
                    signal="name_pattern",
                )

        if contains_any(lowered, ("squash",)):
            term = find_keyword(lowered, self.multi_sport_name_terms)
            if term:
                return ContextAnalysis(
                    is_sub_venue=True,
                    confidence=Confidence.MEDIUM,
                    reasoning=f"Venue name combines squash with '{term}'",
                    parent_facility_type=ParentFacilityType.LEISURE_CENTRE,
                    signal="name_pattern",
                )
        return None

    # =========================================================================
    # Adjustment
    # =========================================================================

    def adjust_category_for_context(
        self,
        category_id: Optional[int],
        context: ContextAnalysis,
        confidence: Confidence = Confidence.HIGH,
    ) -> ContextAdjustment:
        """
        Apply a sub-venue finding to a category recommendation.

        Args:
            category_id: Recommended category before context
            context: Result of ``analyze_context``
            confidence: Confidence kept when no sub-venue is detected

        Returns:
            ContextAdjustment; ``adjusted`` is True only when the category changed
        """
        if not context.is_sub_venue:
            return ContextAdjustment(
                category_id=category_id,
                confidence=confidence,
                reasoning="No sub-venue context detected",
                adjusted=False,
            )

        parent_category = self.parent_categories.get(context.parent_facility_type)
        if category_id == VenueCategory.DEDICATED_FACILITY and parent_category is not None:
            return ContextAdjustment(
                category_id=int(parent_category),
                confidence=context.confidence,
                reasoning=f"Squash courts within a {parent_category.label.lower()}: {context.reasoning}",
                adjusted=True,
            )

        return ContextAdjustment(
            category_id=category_id,
            confidence=context.confidence.downgrade(),
            reasoning=f"Possible sub-venue, confidence reduced: {context.reasoning}",
            adjusted=False,
        )
