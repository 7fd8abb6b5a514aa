"""
New-Category Detector.

Accumulates venues whose Google types did not map to any category, plus
AI suggestions for new categories, and summarizes them after a batch so
taxonomy gaps can be reviewed.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from squashstats.schemas import GooglePlacesSnapshot, Venue

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 3
SAMPLE_SIZE = 5
REPORT_FILENAME = "suggested-new-categories.json"


@dataclass
class _Group:
    count: int = 0
    venues: List[Dict[str, Any]] = field(default_factory=list)
    types: List[str] = field(default_factory=list)

    def add(self, venue: Venue, types: List[str]) -> None:
        self.count += 1
        self.venues.append(
            {"id": venue.id, "name": venue.name, "address": venue.physical_address}
        )
        for place_type in types:
            if place_type not in self.types:
                self.types.append(place_type)


class NewCategoryDetector:
    """In-memory tracker for one batch run."""

    def __init__(self, min_group_size: int = MIN_GROUP_SIZE):
        self.min_group_size = min_group_size
        self._unmapped: Dict[str, _Group] = {}
        self._suggestions: Dict[str, _Group] = {}

    def track_unmapped_venue(self, venue: Venue, places: Optional[GooglePlacesSnapshot]) -> None:
        primary_type = (places.primary_type if places else None) or "unknown"
        types = list(places.types) if places else []
        self._unmapped.setdefault(primary_type, _Group()).add(venue, types)

    def track_new_category_suggestion(
        self,
        venue: Venue,
        places: Optional[GooglePlacesSnapshot],
        suggested_name: Optional[str],
    ) -> None:
        if not suggested_name:
            return
        primary = [places.primary_type] if places and places.primary_type else []
        self._suggestions.setdefault(suggested_name, _Group()).add(venue, primary)

    def generate_report(self, output_dir: Optional[Path] = None) -> Dict[str, Any]:
        """
        Build the gap report and optionally write it as JSON.

        Args:
            output_dir: Directory for ``suggested-new-categories.json``; nothing is written when None

        Returns:
            The report dict
        """
        unmapped = [
            {
                "primary_type": primary_type,
                "venue_count": group.count,
                "related_types": list(group.types),
                "sample_venues": group.venues[:SAMPLE_SIZE],
            }
            for primary_type, group in self._unmapped.items()
            if group.count >= self.min_group_size
        ]
        suggestions = [
            {
                "suggested_category_name": name,
                "venue_count": group.count,
                "google_types": list(group.types),
                "sample_venues": group.venues[:SAMPLE_SIZE],
            }
            for name, group in self._suggestions.items()
        ]

        report = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "unmapped_types": sorted(unmapped, key=lambda g: g["venue_count"], reverse=True),
            "ai_suggested_categories": sorted(
                suggestions, key=lambda g: g["venue_count"], reverse=True
            ),
        }

        if output_dir is not None:
            path = Path(output_dir) / REPORT_FILENAME
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, ensure_ascii=False)
            logger.info(f"New category report written to {path}")

        return report

    def get_summary(self) -> Dict[str, int]:
        return {
            "unmapped_type_groups": sum(
                1 for group in self._unmapped.values() if group.count >= self.min_group_size
            ),
            "ai_suggested_categories": len(self._suggestions),
            "total_unmapped_venues": sum(group.count for group in self._unmapped.values()),
        }

    def reset(self) -> None:
        self._unmapped.clear()
        self._suggestions.clear()
