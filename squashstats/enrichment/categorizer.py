"""
Venue Categorizer.

Coordinates the per-venue enrichment pipeline and batch runs over the
venues that still need a category. The categorizer never writes the
category itself: callers decide what to persist based on confidence.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from squashstats.enrichment.classification.new_category_detector import NewCategoryDetector
from squashstats.enrichment.gateways.google_places import PlaceIdStatus
from squashstats.enrichment.stages import (
    AIFallbackStage,
    ContextAdjustmentStage,
    CourtCountServices,
    CourtCountStage,
    NameReconciliationStage,
    PlaceDetailsStage,
    PlaceIdGuardStage,
    Stage,
    StageOutcome,
    TypeMappingStage,
    UnmappedTrackingStage,
    VenueRun,
)
from squashstats.monitoring.logging import venue_context
from squashstats.schemas import CategorizationResult, UpdateResult, Venue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceIdCheck:
    venue: Venue
    status: PlaceIdStatus
    current_place_id: Optional[str] = None


class VenueCategorizer:
    """
    Runs venues through the enrichment stages.

    Responsibilities:
    - Build the stage list from whichever collaborators are configured
    - Categorize single venues, isolating unexpected failures per venue
    - Process batches with a delay between venues
    - Expose stats and the manual Place ID / name maintenance operations
    """

    def __init__(
        self,
        repository,
        places_client,
        type_mapper,
        context_analyzer=None,
        detector: Optional[NewCategoryDetector] = None,
        text_search=None,
        ai_categorizer=None,
        court_count: Optional[CourtCountServices] = None,
        batch_delay_seconds: float = 1.0,
        system_user_id: int = 1,
    ):
        self.repository = repository
        self.places_client = places_client
        self.type_mapper = type_mapper
        self.context_analyzer = context_analyzer
        self.detector = detector or NewCategoryDetector()
        self.text_search = text_search
        self.ai_categorizer = ai_categorizer
        self.court_count = court_count
        self.batch_delay_seconds = batch_delay_seconds
        self.system_user_id = system_user_id
        self.categories = None
        self.stages: List[Stage] = self._build_stages()

    def _build_stages(self) -> List[Stage]:
        stages: List[Stage] = [
            PlaceIdGuardStage(),
            PlaceDetailsStage(
                self.places_client,
                self.repository,
                text_search=self.text_search,
                system_user_id=self.system_user_id,
            ),
            NameReconciliationStage(self.repository),
            TypeMappingStage(self.type_mapper),
        ]
        if self.context_analyzer is not None:
            stages.append(ContextAdjustmentStage(self.context_analyzer))
        stages.append(UnmappedTrackingStage(self.detector))
        if self.ai_categorizer is not None:
            stages.append(AIFallbackStage(self.ai_categorizer, self.detector))
        if self.court_count is not None:
            stages.append(CourtCountStage(self.court_count))
        return stages

    @property
    def ai_enabled(self) -> bool:
        return self.ai_categorizer is not None

    @property
    def court_count_enabled(self) -> bool:
        return self.court_count is not None

    # =========================================================================
    # Single venue
    # =========================================================================

    def categorize_venue(
        self, venue: Venue, use_ai_fallback: bool = True, dry_run: bool = False
    ) -> CategorizationResult:
        """
        Categorize one venue.

        Args:
            venue: Venue record; it is copied, never mutated
            use_ai_fallback: Allow the AI stage to run for LOW-confidence results
            dry_run: Record intended changes without writing any of them

        Returns:
            CategorizationResult; ``error`` is set on terminal failures
        """
        run = VenueRun(
            venue=venue.model_copy(),
            result=CategorizationResult.for_venue(venue),
            use_ai_fallback=use_ai_fallback,
            dry_run=dry_run,
        )
        if self.categories:
            run.categories = list(self.categories)

        for stage in self.stages:
            try:
                outcome = stage.run(run)
            except Exception as e:
                logger.exception(
                    f"Stage {stage.name} failed for venue {venue.id}",
                    extra=venue_context(venue.id, stage.name),
                )
                run.result.error = f"Unexpected error in {stage.name}: {e}"
                break
            if outcome is StageOutcome.STOP:
                break

        result = run.result
        if result.error:
            logger.warning(
                f"Venue {venue.id} not categorized: {result.error}",
                extra=venue_context(venue.id),
            )
        else:
            logger.info(
                f"Venue {venue.id} '{result.venue_name}': category={result.recommended_category_id} "
                f"confidence={result.confidence.value if result.confidence else None} "
                f"source={result.source.value if result.source else None}",
                extra=venue_context(venue.id, reasoning=result.reasoning),
            )
        return result

    # =========================================================================
    # Batches
    # =========================================================================

    def process_batch(
        self,
        limit: int = 10,
        include_other: bool = False,
        use_ai_fallback: bool = True,
        dry_run: bool = False,
    ) -> List[CategorizationResult]:
        """
        Categorize the next ``limit`` venues that need a category.

        Categories are loaded once per batch and offered to the AI stage.
        """
        self.categories = self.repository.get_categories()
        venues = self.repository.find_venues_needing_categorization(
            limit=limit, include_other=include_other
        )
        logger.info(f"Processing batch of {len(venues)} venues")

        results: List[CategorizationResult] = []
        for index, venue in enumerate(venues):
            if index > 0 and self.batch_delay_seconds > 0:
                time.sleep(self.batch_delay_seconds)
            results.append(
                self.categorize_venue(venue, use_ai_fallback=use_ai_fallback, dry_run=dry_run)
            )

        failed = sum(1 for result in results if result.error)
        logger.info(f"Batch complete: {len(results) - failed} categorized, {failed} failed")
        return results

    def get_stats(self) -> Dict[str, Any]:
        return self.repository.get_categorization_stats()

    # =========================================================================
    # Maintenance
    # =========================================================================

    def check_place_ids(self, limit: int = 50, offset: int = 0) -> List[PlaceIdCheck]:
        """Validate stored Place IDs with the free refresh; nothing is written."""
        checks: List[PlaceIdCheck] = []
        for venue in self.repository.find_venues_with_place_ids(limit=limit, offset=offset):
            status, current_id = self.places_client.check_place_id(venue.g_place_id)
            checks.append(PlaceIdCheck(venue=venue, status=status, current_place_id=current_id))
        return checks

    def update_venue_place_id(self, venue: Venue, new_place_id: str) -> UpdateResult:
        return self.repository.update_place_id(venue.id, new_place_id)

    def update_venue_name(self, venue: Venue, dry_run: bool = False) -> UpdateResult:
        """
        Replace a venue's name with its Google display name.

        Args:
            venue: Venue to reconcile
            dry_run: Report the change without writing it
        """
        if not venue.has_place_id:
            return UpdateResult(success=False, message="Venue has no Google Place ID")

        details = self.places_client.get_place_details(venue.g_place_id)
        if not details.success:
            return UpdateResult(success=False, message=f"Failed to fetch Google Places data: {details.error}")

        new_name = (details.snapshot.display_name or "").strip()
        if not new_name:
            return UpdateResult(success=False, message="Google returned no display name")
        if new_name == (venue.name or "").strip():
            return UpdateResult(success=True, message="Name already matches Google", old_value=venue.name, new_value=new_name)
        if dry_run:
            return UpdateResult(success=True, message="Dry run: name not updated", old_value=venue.name, new_value=new_name)
        return self.repository.update_name(venue.id, new_name)
