"""
Database schema and engine construction.

Only the tables the enrichment pipeline touches are declared here.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from squashstats.schemas import VenueCategory

logger = logging.getLogger(__name__)

metadata = MetaData()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


countries = Table(
    "countries",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
)

venue_categories = Table(
    "venue_categories",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
)

venues = Table(
    "venues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("physical_address", String(255)),
    Column("suburb", String(255)),
    Column("state", String(255)),
    Column("country_id", Integer, ForeignKey("countries.id")),
    Column("latitude", Float),
    Column("longitude", Float),
    Column("website", String(512)),
    Column("g_place_id", String(255), unique=True),
    Column("status", String(2), nullable=False, default="1"),
    Column("category_id", Integer, ForeignKey("venue_categories.id")),
    Column("no_of_courts", Integer),
    Column("no_of_glass_courts", Integer),
    Column("no_of_non_glass_courts", Integer),
    Column("no_of_outdoor_courts", Integer),
    Column("no_of_singles_courts", Integer),
    Column("no_of_doubles_courts", Integer),
    Column("delete_reason_id", Integer),
    Column("reason_for_deletion", Text),
    Column("more_details", Text),
    Column("deletion_request_by_user_id", Integer),
    Column("date_flagged_for_deletion", DateTime),
    Column("created_at", DateTime, default=utc_now),
    Column("updated_at", DateTime, default=utc_now),
)

venue_category_updates = Table(
    "venue_category_updates",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("venue_id", Integer, ForeignKey("venues.id"), nullable=False, index=True),
    Column("old_category_id", Integer),
    Column("new_category_id", Integer, nullable=False),
    Column("confidence_level", String(10), nullable=False),
    Column("reasoning", Text),
    Column("google_place_types", JSON),
    Column("source", String(20), nullable=False),
    Column("created_by", String(255)),
    Column("created_at", DateTime, default=utc_now),
)

venue_court_count_updates = Table(
    "venue_court_count_updates",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("venue_id", Integer, ForeignKey("venues.id"), nullable=False, index=True),
    Column("old_court_count", Integer),
    Column("new_court_count", Integer, nullable=False),
    Column("confidence_level", String(10), nullable=False),
    Column("reasoning", Text),
    Column("source_url", String(1024)),
    Column("source_type", String(30)),
    Column("search_api_used", String(50)),
    Column("search_results_summary", JSON),
    Column("created_by", String(255)),
    Column("created_at", DateTime, default=utc_now),
)


def create_db_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create an engine from an explicit URL or ``Settings.DATABASE_URL``.
    """
    if database_url is None:
        from squashstats.configs.settings import get_settings

        database_url = get_settings().DATABASE_URL
    return create_engine(database_url, echo=echo, future=True)


def create_schema(engine: Engine, seed_categories: bool = True) -> None:
    """Create missing tables and, optionally, the fixed category rows."""
    metadata.create_all(engine)
    if not seed_categories:
        return
    with engine.begin() as conn:
        existing = set(conn.execute(select(venue_categories.c.id)).scalars())
        rows = [
            {"id": cid, "name": name}
            for cid, name in VenueCategory.choices()
            if cid not in existing
        ]
        if rows:
            conn.execute(insert(venue_categories), rows)
            logger.info(f"Seeded {len(rows)} venue categories")
