"""
Shared data models for the venue enrichment pipeline.

This package provides:
- VenueCategory, Confidence, CategorizationSource: fixed enumerations
- Venue, GooglePlacesSnapshot: Pydantic models for stored and fetched data
- Result dataclasses returned by every pipeline component
"""

from .taxonomy import (
    CategorizationSource,
    Confidence,
    DeleteReason,
    ParentFacilityType,
    SourceType,
    VenueCategory,
    VenueStatus,
    category_name,
)
from .venue import GooglePlacesSnapshot, Venue
from .results import (
    AICategorization,
    CategorizationResult,
    CategoryMapping,
    ContextAdjustment,
    ContextAnalysis,
    CourtCountAnalysis,
    PlaceDetailsResult,
    PlaceSearchResult,
    SearchOutcome,
    SearchResult,
    UpdateResult,
)

__all__ = [
    "AICategorization",
    "CategorizationResult",
    "CategorizationSource",
    "CategoryMapping",
    "Confidence",
    "ContextAdjustment",
    "ContextAnalysis",
    "CourtCountAnalysis",
    "DeleteReason",
    "GooglePlacesSnapshot",
    "ParentFacilityType",
    "PlaceDetailsResult",
    "PlaceSearchResult",
    "SearchOutcome",
    "SearchResult",
    "SourceType",
    "UpdateResult",
    "Venue",
    "VenueCategory",
    "VenueStatus",
    "category_name",
]
