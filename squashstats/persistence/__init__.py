"""
Persistence layer: SQLAlchemy Core schema, venue repository and the
transactional updaters that write audit rows.
"""

from .database import create_db_engine, create_schema, metadata
from .category_updater import VenueCategoryUpdater
from .court_count_updater import CourtCountUpdater
from .venue_repository import VenueRepository

__all__ = [
    "CourtCountUpdater",
    "VenueCategoryUpdater",
    "VenueRepository",
    "create_db_engine",
    "create_schema",
    "metadata",
]
