"""
Typed results returned by every pipeline component.

Each component returns one of these dataclasses, never a loose dict, so
the orchestrator always receives a complete result shape even on failure.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .taxonomy import (
    CategorizationSource,
    Confidence,
    ParentFacilityType,
    SourceType,
    category_name,
)
from .venue import GooglePlacesSnapshot, Venue


# =============================================================================
# CLASSIFICATION
# =============================================================================


@dataclass(frozen=True)
class CategoryMapping:
    """Outcome of the deterministic Type Mapper."""

    category_id: Optional[int]
    confidence: Confidence
    reasoning: str
    matched_type: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.category_id is not None


@dataclass(frozen=True)
class ContextAnalysis:
    """Whether a venue looks like part of a larger facility."""

    is_sub_venue: bool
    confidence: Confidence
    reasoning: str
    parent_facility_type: Optional[ParentFacilityType] = None
    signal: Optional[str] = None

    @classmethod
    def standalone(cls) -> "ContextAnalysis":
        return cls(
            is_sub_venue=False,
            confidence=Confidence.LOW,
            reasoning="No sub-venue indicators found",
        )


@dataclass(frozen=True)
class ContextAdjustment:
    category_id: Optional[int]
    confidence: Confidence
    reasoning: str
    adjusted: bool = False


@dataclass(frozen=True)
class AICategorization:
    """Parsed answer from the LLM categorizer."""

    category_id: Optional[int]
    confidence: Confidence
    reasoning: str
    suggest_new_category: bool = False
    suggested_category_name: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, reason: str) -> "AICategorization":
        return cls(
            category_id=None,
            confidence=Confidence.LOW,
            reasoning=reason,
            error=reason,
        )


@dataclass(frozen=True)
class CourtCountAnalysis:
    """
    Court count extracted from web-search reasoning.

    ``evidence_found`` is False only when the search found no sign of
    squash courts at all. A failed lookup sets ``error`` instead, and is
    never treated as absence of evidence.
    """

    court_count: Optional[int]
    confidence: Confidence
    reasoning: str
    source_url: Optional[str] = None
    source_type: SourceType = SourceType.OTHER
    evidence_found: bool = True
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        """A count that may be written to the venue (MEDIUM or HIGH only)."""
        return (
            self.error is None
            and self.court_count is not None
            and self.confidence.meets(Confidence.MEDIUM)
        )

    @property
    def confirms_no_courts(self) -> bool:
        return self.error is None and not self.evidence_found

    @classmethod
    def failed(cls, reason: str) -> "CourtCountAnalysis":
        return cls(
            court_count=None,
            confidence=Confidence.LOW,
            reasoning=reason,
            evidence_found=False,
            error=reason,
        )


# =============================================================================
# GATEWAYS
# =============================================================================


@dataclass(frozen=True)
class PlaceDetailsResult:
    success: bool
    snapshot: Optional[GooglePlacesSnapshot] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


@dataclass(frozen=True)
class PlaceSearchResult:
    """Text search answer: a match, no match, or a failed call (``error`` set)."""

    place_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str = ""
    source_type: SourceType = SourceType.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source_type": self.source_type.value,
        }


@dataclass
class SearchOutcome:
    """Aggregated output of the court-count web searcher."""

    success: bool
    results: List[SearchResult] = field(default_factory=list)
    api_used: Optional[str] = None
    website_content: Optional[str] = None
    error: Optional[str] = None

    def summary(self, limit: int = 5) -> List[Dict[str, Any]]:
        return [result.to_dict() for result in self.results[:limit]]


# =============================================================================
# PERSISTENCE
# =============================================================================


@dataclass(frozen=True)
class UpdateResult:
    success: bool
    message: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None


# =============================================================================
# ORCHESTRATOR
# =============================================================================


@dataclass
class CategorizationResult:
    """
    Everything the orchestrator learned about one venue in one run.

    Created fresh per venue; only its effects are persisted.
    """

    venue_id: int
    venue_name: str
    venue_address: str = ""
    current_category_id: Optional[int] = None
    g_place_id: Optional[str] = None

    recommended_category_id: Optional[int] = None
    confidence: Optional[Confidence] = None
    reasoning: Optional[str] = None
    source: Optional[CategorizationSource] = None
    matched_type: Optional[str] = None
    google_places_data: Optional[GooglePlacesSnapshot] = None
    suggest_new_category: bool = False
    suggested_category_name: Optional[str] = None
    error: Optional[str] = None

    place_id_refreshed: bool = False
    place_id_refresh_source: Optional[str] = None
    duplicate_of_venue_id: Optional[int] = None
    venue_flagged_for_deletion: bool = False

    context_analyzed: bool = False
    is_sub_venue: bool = False
    context_adjusted: bool = False

    name_updated: bool = False
    old_name: Optional[str] = None
    new_name: Optional[str] = None

    court_count_searched: bool = False
    court_count_found: Optional[int] = None
    court_count_confidence: Optional[Confidence] = None
    court_count_reasoning: Optional[str] = None
    court_count_source_url: Optional[str] = None
    court_count_updated: bool = False
    court_count_flagged_for_deletion: bool = False

    @classmethod
    def for_venue(cls, venue: Venue) -> "CategorizationResult":
        return cls(
            venue_id=venue.id,
            venue_name=venue.name,
            venue_address=venue.address,
            current_category_id=venue.category_id,
            g_place_id=venue.g_place_id,
        )

    @property
    def has_recommendation(self) -> bool:
        return self.error is None and self.recommended_category_id is not None

    @property
    def is_terminal_failure(self) -> bool:
        return self.error is not None

    def apply_mapping(self, category_id, confidence, reasoning, matched_type=None, source=None):
        self.recommended_category_id = category_id
        self.confidence = confidence
        self.reasoning = reasoning
        if matched_type is not None:
            self.matched_type = matched_type
        if source is not None:
            self.source = source

    def to_dict(self) -> Dict[str, Any]:
        """Flat, JSON-friendly representation used for exports."""
        data = asdict(self)
        data["google_places_data"] = (
            self.google_places_data.to_summary() if self.google_places_data else None
        )
        for key in ("confidence", "court_count_confidence", "source"):
            value = getattr(self, key)
            data[key] = value.value if value is not None else None
        data["current_category_name"] = category_name(self.current_category_id)
        data["recommended_category_name"] = (
            category_name(self.recommended_category_id)
            if self.recommended_category_id is not None
            else None
        )
        return data

    def to_audit_metadata(self) -> Dict[str, Any]:
        """Fields the category updater records alongside a change."""
        snapshot = self.google_places_data
        return {
            "confidence": self.confidence.value if self.confidence else Confidence.LOW.value,
            "reasoning": self.reasoning,
            "source": (self.source or CategorizationSource.GOOGLE_MAPPING).value,
            "google_place_types": {
                "primary_type": snapshot.primary_type if snapshot else None,
                "types": list(snapshot.types) if snapshot else [],
                "matched_type": self.matched_type,
            },
        }
