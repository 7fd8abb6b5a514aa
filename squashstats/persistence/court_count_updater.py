"""
Court Count Updater.

Writes court counts with an audit row in ``venue_court_count_updates``,
and flags venues for deletion when a search found no squash courts.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from squashstats.schemas import Confidence, DeleteReason, SourceType, UpdateResult

from .category_updater import VenueNotFoundError
from .database import utc_now, venue_court_count_updates, venues
from .venue_repository import VenueRepository

logger = logging.getLogger(__name__)

SEARCH_SUMMARY_LIMIT = 5


class CourtCountUpdater:
    """Applies court-count findings to venues."""

    CREATED_BY = "Automated: AI Court Count System"

    def __init__(
        self,
        engine: Engine,
        repository: Optional[VenueRepository] = None,
        system_user_id: int = 1,
    ):
        self.engine = engine
        self.repository = repository or VenueRepository(engine)
        self.system_user_id = system_user_id

    def update_venue(
        self,
        venue_id: int,
        court_count: int,
        metadata: Mapping[str, Any],
    ) -> UpdateResult:
        """
        Set a venue's court count and record an audit row.

        Args:
            venue_id: Venue to update
            court_count: New total number of courts
            metadata: confidence, reasoning, source_url, source_type,
                search_api_used, search_results

        Returns:
            UpdateResult; failures are rolled back and reported, never raised
        """
        try:
            with self.engine.begin() as conn:
                old_count = self._current_count(conn, venue_id)
                self._insert_audit_row(conn, venue_id, old_count, court_count, metadata)
                self._apply_count(conn, venue_id, court_count)
        except VenueNotFoundError:
            return UpdateResult(success=False, message="Venue not found")
        except Exception as e:
            logger.error(
                f"Failed to update court count for venue {venue_id}: {e}",
                extra={"venue_id": venue_id, "stage": "court_count"},
            )
            return UpdateResult(success=False, message=f"Database error: {e}")

        logger.info(
            f"Venue {venue_id} court count: {old_count} -> {court_count}",
            extra={"venue_id": venue_id, "stage": "court_count"},
        )
        return UpdateResult(
            success=True, message="Court count updated", old_value=old_count, new_value=court_count
        )

    def flag_venue_for_deletion(
        self,
        venue_id: int,
        reasoning: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> UpdateResult:
        """
        Flag a venue whose web search found no evidence of squash courts.

        Args:
            venue_id: Venue to flag
            reasoning: Analyzer reasoning
            details: source_url, search_api_used, search_results, venue_website
        """
        details = details or {}
        venue = self.repository.get_venue(venue_id)
        if venue is None:
            return UpdateResult(success=False, message="Venue not found")

        result = self.repository.flag_for_deletion(
            venue_id,
            DeleteReason.NO_COURT_EVIDENCE,
            reason_for_deletion=self.build_deletion_reason(venue.name, venue.physical_address, reasoning, details),
            more_details=self.build_more_details(reasoning, details),
            requested_by_user_id=self.system_user_id,
        )
        if result.success:
            logger.warning(
                f"Flagged venue {venue_id} for deletion - no evidence of squash courts",
                extra={"venue_id": venue_id, "stage": "court_count", "payload": {"reasoning": reasoning}},
            )
        return result

    # =========================================================================
    # Transaction steps
    # =========================================================================

    @staticmethod
    def _current_count(conn: Connection, venue_id: int) -> Optional[int]:
        row = conn.execute(
            select(venues.c.id, venues.c.no_of_courts).where(venues.c.id == venue_id)
        ).first()
        if row is None:
            raise VenueNotFoundError(venue_id)
        return row.no_of_courts

    def _insert_audit_row(
        self,
        conn: Connection,
        venue_id: int,
        old_count: Optional[int],
        new_count: int,
        metadata: Mapping[str, Any],
    ) -> None:
        source_type = metadata.get("source_type")
        conn.execute(
            insert(venue_court_count_updates).values(
                venue_id=venue_id,
                old_court_count=old_count,
                new_court_count=int(new_count),
                confidence_level=Confidence.parse(metadata.get("confidence")).value,
                reasoning=metadata.get("reasoning"),
                source_url=metadata.get("source_url"),
                source_type=SourceType.parse(source_type).value if source_type else None,
                search_api_used=metadata.get("search_api_used"),
                search_results_summary=list(metadata.get("search_results") or [])[:SEARCH_SUMMARY_LIMIT],
                created_by=self.CREATED_BY,
                created_at=utc_now(),
            )
        )

    @staticmethod
    def _apply_count(conn: Connection, venue_id: int, court_count: int) -> None:
        conn.execute(
            update(venues)
            .where(venues.c.id == venue_id)
            .values(
                no_of_courts=int(court_count),
                no_of_singles_courts=int(court_count),
                updated_at=utc_now(),
            )
        )

    # =========================================================================
    # Deletion text
    # =========================================================================

    @staticmethod
    def build_deletion_reason(
        venue_name: str,
        address: Optional[str],
        reasoning: str,
        details: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> str:
        lines = [f"Reason: {reasoning}", f"Venue: {venue_name}"]
        if address:
            lines.append(f"Address: {address}")
        if details.get("source_url"):
            lines.append(f"Searched URL: {details['source_url']}")
        if details.get("search_api_used"):
            lines.append(f"Search method: {details['search_api_used']}")
        if details.get("search_results"):
            lines.append(f"Search results checked: {len(details['search_results'])}")
        if details.get("venue_website"):
            lines.append(f"Venue website checked: {details['venue_website']}")
        lines.append("Flagged by: Automated AI Court Count System")
        lines.append(f"Date: {(now or utc_now()).strftime('%Y-%m-%d %H:%M:%S')}")
        return "\n".join(lines)

    @staticmethod
    def build_more_details(reasoning: str, details: Mapping[str, Any]) -> str:
        parts = ["Automated web search found no evidence of squash courts at this venue."]
        if details.get("search_api_used"):
            parts.append(f"Search method: {details['search_api_used']}")
        if details.get("venue_website"):
            parts.append(f"Venue website checked: {details['venue_website']}")
        results = details.get("search_results") or []
        if results:
            parts.append(f"Checked {len(results)} search result(s)")
            urls = [r.get("url") for r in results[:3] if r.get("url")]
            if urls:
                parts.append(f"Sources checked: {', '.join(urls)}")
        if reasoning and len(reasoning) < 500:
            parts.append(f"AI analysis: {reasoning}")
        return " ".join(parts)

    # =========================================================================
    # Audit queries
    # =========================================================================

    def get_audit_log(self, venue_id: Optional[int] = None, limit: int = 50) -> List[Dict[str, Any]]:
        table = venue_court_count_updates
        stmt = select(table).order_by(table.c.created_at.desc(), table.c.id.desc()).limit(limit)
        if venue_id is not None:
            stmt = stmt.where(table.c.venue_id == venue_id)
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def get_update_stats(self) -> Dict[str, Any]:
        table = venue_court_count_updates
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(table)).scalar_one()
            by_confidence = dict(
                conn.execute(
                    select(table.c.confidence_level, func.count()).group_by(table.c.confidence_level)
                ).all()
            )
            by_api = dict(
                conn.execute(
                    select(table.c.search_api_used, func.count()).group_by(table.c.search_api_used)
                ).all()
            )
            total_courts = conn.execute(select(func.coalesce(func.sum(table.c.new_court_count), 0))).scalar_one()
        return {
            "total_updates": total,
            "by_confidence": by_confidence,
            "by_search_api": by_api,
            "total_courts_recorded": total_courts,
        }
