"""
Venue Repository.

Read queries used by the pipeline plus the small single-venue writes
(Place ID, name, touch, deletion flag). Each write runs in its own short
transaction.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from squashstats.schemas import (
    DeleteReason,
    UpdateResult,
    Venue,
    VenueCategory,
    VenueStatus,
)

from .database import countries, utc_now, venue_categories, venues

logger = logging.getLogger(__name__)

KM_PER_DEGREE_LATITUDE = 111.0


class VenueRepository:
    """Data access for the ``venues`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _venue_select():
        return select(
            *venues.c,
            countries.c.name.label("country_name"),
        ).select_from(venues.outerjoin(countries, venues.c.country_id == countries.c.id))

    def _fetch(self, stmt) -> List[Venue]:
        with self.engine.connect() as conn:
            return [Venue.model_validate(dict(row._mapping)) for row in conn.execute(stmt)]

    def get_venue(self, venue_id: int) -> Optional[Venue]:
        rows = self._fetch(self._venue_select().where(venues.c.id == venue_id))
        return rows[0] if rows else None

    def get_categories(self) -> List[Tuple[int, str]]:
        """(id, name) pairs from ``venue_categories``, falling back to the built-in table."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(venue_categories.c.id, venue_categories.c.name).order_by(venue_categories.c.id)
            ).all()
        if not rows:
            return VenueCategory.choices()
        return [(row.id, row.name) for row in rows]

    @staticmethod
    def _gap_categories(include_other: bool) -> List[int]:
        categories = [int(VenueCategory.DONT_KNOW)]
        if include_other:
            categories.append(int(VenueCategory.OTHER))
        return categories

    @staticmethod
    def _has_place_id():
        return and_(venues.c.g_place_id.is_not(None), venues.c.g_place_id != "")

    def find_venues_needing_categorization(
        self, limit: int = 10, include_other: bool = False
    ) -> List[Venue]:
        """
        Approved venues in a gap category with a Place ID.

        Venues without a court count come first, then the least recently
        updated, so every visited venue cycles to the back of the queue.
        """
        unknown_courts_first = case(
            (or_(venues.c.no_of_courts.is_(None), venues.c.no_of_courts == 0), 0),
            else_=1,
        )
        stmt = (
            self._venue_select()
            .where(
                venues.c.status == VenueStatus.APPROVED.value,
                self._has_place_id(),
                venues.c.category_id.in_(self._gap_categories(include_other)),
            )
            .order_by(
                unknown_courts_first,
                venues.c.updated_at.asc().nulls_first(),
                venues.c.id.asc(),
            )
            .limit(limit)
        )
        return self._fetch(stmt)

    def find_venues_with_place_ids(self, limit: int = 50, offset: int = 0) -> List[Venue]:
        stmt = (
            self._venue_select()
            .where(venues.c.status == VenueStatus.APPROVED.value, self._has_place_id())
            .order_by(venues.c.id)
            .limit(limit)
            .offset(offset)
        )
        return self._fetch(stmt)

    def get_categorization_stats(self) -> Dict[str, int]:
        approved = venues.c.status == VenueStatus.APPROVED.value
        in_gap = venues.c.category_id.in_(self._gap_categories(include_other=True))

        def count(*conditions) -> int:
            with self.engine.connect() as conn:
                return conn.execute(
                    select(func.count()).select_from(venues).where(*conditions)
                ).scalar_one()

        dont_know = count(approved, venues.c.category_id == int(VenueCategory.DONT_KNOW))
        other = count(approved, venues.c.category_id == int(VenueCategory.OTHER))
        with_place_id = count(approved, in_gap, self._has_place_id())
        total = dont_know + other
        return {
            "total_needing_categorization": total,
            "dont_know_count": dont_know,
            "other_count": other,
            "with_place_id": with_place_id,
            "without_place_id": total - with_place_id,
            "processable": count(
                approved,
                venues.c.category_id == int(VenueCategory.DONT_KNOW),
                self._has_place_id(),
            ),
        }

    def find_colocated_venues(self, venue: Venue) -> List[Venue]:
        """Other approved, categorized venues at exactly the same address."""
        if not venue.physical_address:
            return []
        stmt = self._venue_select().where(
            venues.c.id != venue.id,
            venues.c.physical_address == venue.physical_address,
            venues.c.suburb.is_(None) if venue.suburb is None else venues.c.suburb == venue.suburb,
            venues.c.state.is_(None) if venue.state is None else venues.c.state == venue.state,
            venues.c.status == VenueStatus.APPROVED.value,
            venues.c.category_id.is_not(None),
            venues.c.category_id != int(VenueCategory.DONT_KNOW),
        )
        return self._fetch(stmt)

    def find_nearby_venues(
        self,
        venue: Venue,
        radius_km: float = 0.1,
        category_ids: Optional[Sequence[int]] = None,
        limit: int = 5,
    ) -> List[Venue]:
        """Approved venues inside a lat/lng bounding box around the venue."""
        if not venue.has_coordinates:
            return []
        lat_delta = radius_km / KM_PER_DEGREE_LATITUDE
        cos_lat = math.cos(math.radians(venue.latitude)) or 1e-9
        lng_delta = radius_km / (KM_PER_DEGREE_LATITUDE * abs(cos_lat))

        stmt = self._venue_select().where(
            venues.c.id != venue.id,
            venues.c.status == VenueStatus.APPROVED.value,
            venues.c.latitude.between(venue.latitude - lat_delta, venue.latitude + lat_delta),
            venues.c.longitude.between(venue.longitude - lng_delta, venue.longitude + lng_delta),
        )
        if category_ids:
            stmt = stmt.where(venues.c.category_id.in_(list(category_ids)))
        return self._fetch(stmt.limit(limit))

    def find_venue_by_place_id(
        self, place_id: str, exclude_venue_id: Optional[int] = None
    ) -> Optional[Venue]:
        """A non-deleted venue holding ``place_id``, other than ``exclude_venue_id``."""
        stmt = self._venue_select().where(
            venues.c.g_place_id == place_id,
            venues.c.status != VenueStatus.DELETED.value,
        )
        if exclude_venue_id is not None:
            stmt = stmt.where(venues.c.id != exclude_venue_id)
        rows = self._fetch(stmt.limit(1))
        return rows[0] if rows else None

    # =========================================================================
    # Writes
    # =========================================================================

    def update_place_id(self, venue_id: int, new_place_id: str) -> UpdateResult:
        """
        Store a new Place ID unless another venue already holds it.
        """
        duplicate = self.find_venue_by_place_id(new_place_id, exclude_venue_id=venue_id)
        if duplicate is not None:
            logger.warning(
                f"Place ID {new_place_id} already belongs to venue {duplicate.id}; "
                f"not updating venue {venue_id}",
                extra={"venue_id": venue_id, "stage": "place_id_repair",
                       "payload": {"duplicate_venue_id": duplicate.id}},
            )
            return UpdateResult(
                success=False,
                message=f"Place ID already used by venue {duplicate.id}",
                new_value=duplicate.id,
            )

        try:
            with self.engine.begin() as conn:
                old = conn.execute(
                    select(venues.c.g_place_id).where(venues.c.id == venue_id)
                ).scalar_one_or_none()
                conn.execute(
                    update(venues)
                    .where(venues.c.id == venue_id)
                    .values(g_place_id=new_place_id, updated_at=utc_now())
                )
        except IntegrityError as e:
            logger.warning(
                f"Place ID {new_place_id} collided on write for venue {venue_id}: {e.orig}",
                extra={"venue_id": venue_id, "stage": "place_id_repair"},
            )
            return UpdateResult(success=False, message="Place ID uniqueness conflict")
        except SQLAlchemyError as e:
            logger.error(f"Failed to update Place ID for venue {venue_id}: {e}")
            return UpdateResult(success=False, message=f"Database error: {e}")

        logger.info(
            f"Updated Place ID for venue {venue_id}",
            extra={"venue_id": venue_id, "payload": {"old": old, "new": new_place_id}},
        )
        return UpdateResult(success=True, message="Place ID updated", old_value=old, new_value=new_place_id)

    def update_name(self, venue_id: int, new_name: str) -> UpdateResult:
        try:
            with self.engine.begin() as conn:
                old = conn.execute(
                    select(venues.c.name).where(venues.c.id == venue_id)
                ).scalar_one_or_none()
                if old is None:
                    return UpdateResult(success=False, message="Venue not found")
                conn.execute(
                    update(venues)
                    .where(venues.c.id == venue_id)
                    .values(name=new_name, updated_at=utc_now())
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to rename venue {venue_id}: {e}")
            return UpdateResult(success=False, message=f"Database error: {e}")

        logger.info(
            f"Renamed venue {venue_id}: '{old}' -> '{new_name}'",
            extra={"venue_id": venue_id, "stage": "name_reconciliation"},
        )
        return UpdateResult(success=True, message="Name updated", old_value=old, new_value=new_name)

    def touch(self, venue_ids: Sequence[int]) -> int:
        """Bump ``updated_at`` so visited venues move to the back of the queue."""
        ids = list(venue_ids)
        if not ids:
            return 0
        with self.engine.begin() as conn:
            result = conn.execute(
                update(venues).where(venues.c.id.in_(ids)).values(updated_at=utc_now())
            )
        return result.rowcount

    def flag_for_deletion(
        self,
        venue_id: int,
        reason: DeleteReason,
        reason_for_deletion: str,
        more_details: Optional[str] = None,
        requested_by_user_id: int = 1,
    ) -> UpdateResult:
        """Mark a venue as flagged for deletion with a structured reason."""
        now = utc_now()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(venues)
                    .where(venues.c.id == venue_id)
                    .values(
                        status=VenueStatus.FLAGGED_FOR_DELETION.value,
                        delete_reason_id=int(reason),
                        reason_for_deletion=reason_for_deletion,
                        more_details=more_details,
                        deletion_request_by_user_id=requested_by_user_id,
                        date_flagged_for_deletion=now,
                        updated_at=now,
                    )
                )
                if result.rowcount == 0:
                    return UpdateResult(success=False, message="Venue not found")
        except SQLAlchemyError as e:
            logger.error(f"Failed to flag venue {venue_id} for deletion: {e}")
            return UpdateResult(success=False, message=f"Database error: {e}")

        logger.info(
            f"Flagged venue {venue_id} for deletion",
            extra={"venue_id": venue_id, "payload": {"delete_reason_id": int(reason)}},
        )
        return UpdateResult(success=True, message="Venue flagged for deletion", new_value=int(reason))
