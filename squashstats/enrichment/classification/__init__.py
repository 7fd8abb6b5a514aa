"""
Venue classifiers.

This package provides:
- GooglePlacesTypeMapper: rule-table mapping from Places data to categories
- VenueContextAnalyzer: sub-venue detection and category adjustment
- AICategorizer: LLM fallback for low-confidence venues
- CourtCountAnalyzer: court counts from web-search reasoning
- NewCategoryDetector: taxonomy gap tracking
"""

from .ai_categorizer import AICategorizer
from .context_analyzer import VenueContextAnalyzer
from .court_count_analyzer import PLURAL_COURTS_DEFAULT, CourtCountAnalyzer
from .new_category_detector import NewCategoryDetector
from .type_mapper import GooglePlacesTypeMapper, create_type_mapper_from_config

__all__ = [
    "AICategorizer",
    "CourtCountAnalyzer",
    "GooglePlacesTypeMapper",
    "NewCategoryDetector",
    "PLURAL_COURTS_DEFAULT",
    "VenueContextAnalyzer",
    "create_type_mapper_from_config",
]
