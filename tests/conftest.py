"""
Shared pytest fixtures for the squashstats test suite.

Provides factory fixtures for Venue and GooglePlacesSnapshot objects and an
in-memory SQLite database with the pipeline schema.
"""

import itertools
from typing import List, Optional
from unittest.mock import MagicMock

import pytest
import requests
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from squashstats.persistence.database import countries, create_schema, venues
from squashstats.schemas import GooglePlacesSnapshot, Venue, VenueCategory


@pytest.fixture
def make_venue():
    """
    Return a function that creates Venue objects with sensible defaults.

    Example:
        venue = make_venue(name="City Squash Centre", no_of_courts=4)
    """

    def _make_venue(**kwargs) -> Venue:
        defaults = {
            "id": 1,
            "name": "Test Squash Venue",
            "physical_address": "1 Test Street",
            "suburb": "Richmond",
            "state": "VIC",
            "country_id": 1,
            "country_name": "Australia",
            "latitude": -37.8183,
            "longitude": 144.9671,
            "website": "https://testsquash.example.com",
            "g_place_id": "ChIJ-test-place",
            "status": "1",
            "category_id": int(VenueCategory.DONT_KNOW),
            "no_of_courts": 4,
        }
        defaults.update(kwargs)
        return Venue(**defaults)

    return _make_venue


@pytest.fixture
def make_snapshot():
    """Return a function that creates GooglePlacesSnapshot objects."""

    def _make_snapshot(
        primary_type: Optional[str] = None,
        types: Optional[List[str]] = None,
        display_name: Optional[str] = "Test Squash Venue",
        editorial_summary: Optional[str] = None,
        **kwargs,
    ) -> GooglePlacesSnapshot:
        return GooglePlacesSnapshot(
            id=kwargs.pop("id", "ChIJ-test-place"),
            primary_type=primary_type,
            types=list(types or ([primary_type] if primary_type else [])),
            display_name=display_name,
            editorial_summary=editorial_summary,
            **kwargs,
        )

    return _make_snapshot


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the schema, seeded categories and one country."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(engine)
    with engine.begin() as conn:
        conn.execute(insert(countries), [{"id": 1, "name": "Australia"}])
    yield engine
    engine.dispose()


@pytest.fixture
def seed_venue(db_engine):
    """
    Return a function that inserts a venue row and returns its id.

    Example:
        venue_id = seed_venue(name="Gym Squash", category_id=4)
    """
    counter = itertools.count(1)

    def _seed_venue(**kwargs) -> int:
        n = next(counter)
        values = {
            "name": f"Venue {n}",
            "physical_address": f"{n} Court Road",
            "suburb": "Richmond",
            "state": "VIC",
            "country_id": 1,
            "g_place_id": f"place-{n}",
            "status": "1",
            "category_id": int(VenueCategory.DONT_KNOW),
        }
        values.update(kwargs)
        with db_engine.begin() as conn:
            result = conn.execute(insert(venues).values(**values))
        return result.inserted_primary_key[0]

    return _seed_venue


@pytest.fixture
def make_response():
    """
    Return a function that builds a fake ``requests.Response``.

    Example:
        response = make_response(404, {"error": {"message": "Not found"}})
    """

    def _make_response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.ok = status_code < 400
        response.text = text
        response.reason = ""
        if json_data is None:
            response.json.side_effect = ValueError("No JSON")
        else:
            response.json.return_value = json_data
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
        return response

    return _make_response
