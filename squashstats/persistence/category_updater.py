"""
Venue Category Updater.

Applies category changes inside a single transaction together with an
append-only row in ``venue_category_updates``.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from squashstats.schemas import (
    CategorizationSource,
    Confidence,
    UpdateResult,
    VenueCategory,
    category_name,
)

from .database import utc_now, venue_category_updates, venues

logger = logging.getLogger(__name__)


class VenueNotFoundError(LookupError):
    """Raised inside an updater transaction when the venue row is missing."""


class VenueCategoryUpdater:
    """Writes category changes with an audit trail."""

    CREATED_BY = "Automated: AI Categorization System"

    def __init__(self, engine: Engine, created_by: Optional[str] = None):
        self.engine = engine
        self.created_by = created_by or self.CREATED_BY

    def update_venue(
        self,
        venue_id: int,
        new_category_id: int,
        metadata: Mapping[str, Any],
    ) -> UpdateResult:
        """
        Change a venue's category and record an audit row.

        Args:
            venue_id: Venue to update
            new_category_id: Target category
            metadata: confidence, reasoning, source, google_place_types

        Returns:
            UpdateResult; failures are rolled back and reported, never raised
        """
        if VenueCategory.from_id(new_category_id) is None:
            return UpdateResult(success=False, message=f"Invalid category id: {new_category_id}")

        try:
            with self.engine.begin() as conn:
                old_category_id = self._current_category(conn, venue_id)
                self._insert_audit_row(conn, venue_id, old_category_id, new_category_id, metadata)
                self._apply_category(conn, venue_id, new_category_id)
        except VenueNotFoundError:
            return UpdateResult(success=False, message="Venue not found")
        except Exception as e:
            logger.error(
                f"Failed to update category for venue {venue_id}: {e}",
                extra={"venue_id": venue_id, "stage": "persist"},
            )
            return UpdateResult(success=False, message=f"Database error: {e}")

        logger.info(
            f"Venue {venue_id} category: {category_name(old_category_id)} -> "
            f"{category_name(new_category_id)}",
            extra={
                "venue_id": venue_id,
                "stage": "persist",
                "payload": {
                    "confidence": metadata.get("confidence"),
                    "source": metadata.get("source"),
                },
            },
        )
        return UpdateResult(
            success=True,
            message="Category updated",
            old_value=old_category_id,
            new_value=new_category_id,
        )

    def batch_update(
        self, updates: Iterable[Tuple[int, int, Mapping[str, Any]]]
    ) -> Dict[str, Any]:
        """Apply several updates, each in its own transaction."""
        summary: Dict[str, Any] = {"success": 0, "failed": 0, "errors": []}
        for venue_id, category_id, metadata in updates:
            result = self.update_venue(venue_id, category_id, metadata)
            if result.success:
                summary["success"] += 1
            else:
                summary["failed"] += 1
                summary["errors"].append({"venue_id": venue_id, "message": result.message})
        return summary

    # =========================================================================
    # Transaction steps
    # =========================================================================

    @staticmethod
    def _current_category(conn: Connection, venue_id: int) -> Optional[int]:
        row = conn.execute(
            select(venues.c.id, venues.c.category_id).where(venues.c.id == venue_id)
        ).first()
        if row is None:
            raise VenueNotFoundError(venue_id)
        return row.category_id

    def _insert_audit_row(
        self,
        conn: Connection,
        venue_id: int,
        old_category_id: Optional[int],
        new_category_id: int,
        metadata: Mapping[str, Any],
    ) -> None:
        conn.execute(
            insert(venue_category_updates).values(
                venue_id=venue_id,
                old_category_id=old_category_id,
                new_category_id=int(new_category_id),
                confidence_level=Confidence.parse(metadata.get("confidence")).value,
                reasoning=metadata.get("reasoning"),
                google_place_types=metadata.get("google_place_types"),
                source=metadata.get("source") or CategorizationSource.GOOGLE_MAPPING.value,
                created_by=metadata.get("created_by") or self.created_by,
                created_at=utc_now(),
            )
        )

    @staticmethod
    def _apply_category(conn: Connection, venue_id: int, new_category_id: int) -> None:
        conn.execute(
            update(venues)
            .where(venues.c.id == venue_id)
            .values(category_id=int(new_category_id), updated_at=utc_now())
        )

    # =========================================================================
    # Audit queries
    # =========================================================================

    def get_audit_log(self, venue_id: Optional[int] = None, limit: int = 50) -> List[Dict[str, Any]]:
        stmt = (
            select(venue_category_updates)
            .order_by(venue_category_updates.c.created_at.desc(), venue_category_updates.c.id.desc())
            .limit(limit)
        )
        if venue_id is not None:
            stmt = stmt.where(venue_category_updates.c.venue_id == venue_id)
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def get_update_stats(self) -> Dict[str, Any]:
        table = venue_category_updates
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(table)).scalar_one()
            venues_updated = conn.execute(
                select(func.count(func.distinct(table.c.venue_id)))
            ).scalar_one()
            by_source = dict(
                conn.execute(select(table.c.source, func.count()).group_by(table.c.source)).all()
            )
            by_confidence = dict(
                conn.execute(
                    select(table.c.confidence_level, func.count()).group_by(table.c.confidence_level)
                ).all()
            )
        return {
            "total_updates": total,
            "venues_updated": venues_updated,
            "by_source": by_source,
            "by_confidence": by_confidence,
        }
