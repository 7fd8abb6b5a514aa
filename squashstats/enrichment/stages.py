"""
Per-venue pipeline stages.

Each stage inspects and updates a shared ``VenueRun`` and either lets the
pipeline continue or stops it with a terminal result. Stage order:

    guard -> place details (+ Place ID repair) -> name reconciliation
    -> type mapping -> context adjustment -> unmapped tracking
    -> AI fallback -> court-count enrichment
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from squashstats.enrichment.gateways.google_places import PlaceIdStatus
from squashstats.monitoring.logging import venue_context
from squashstats.schemas import (
    CategorizationResult,
    CategorizationSource,
    Confidence,
    DeleteReason,
    GooglePlacesSnapshot,
    PlaceDetailsResult,
    Venue,
    VenueCategory,
)

logger = logging.getLogger(__name__)

EXPIRED_PLACE_ID_REASON = "Google Place ID expired, suggesting venue is closed"
REFRESH_SOURCE_GOOGLE = "Google (free)"
REFRESH_SOURCE_TEXT_SEARCH = "Text Search"
AI_REASONING_PREFIX = "AI: "


class StageOutcome(str, Enum):
    CONTINUE = "continue"
    STOP = "stop"


@dataclass
class VenueRun:
    """
    Mutable state shared by the stages while one venue is processed.

    With ``dry_run`` set, stages compute and record what they would change
    but write nothing.
    """

    venue: Venue
    result: CategorizationResult
    use_ai_fallback: bool = True
    dry_run: bool = False
    categories: List[Tuple[int, str]] = field(default_factory=VenueCategory.choices)
    places: Optional[GooglePlacesSnapshot] = None

    def set_places(self, places: GooglePlacesSnapshot) -> None:
        self.places = places
        self.result.google_places_data = places


@dataclass
class CourtCountServices:
    """The three collaborators court-count enrichment needs, present together or not at all."""

    searcher: object
    analyzer: object
    updater: object


class Stage(ABC):
    """One step of the per-venue pipeline."""

    name = "stage"

    @abstractmethod
    def run(self, run: VenueRun) -> StageOutcome:
        pass


# =============================================================================
# GUARD & FETCH
# =============================================================================


class PlaceIdGuardStage(Stage):
    name = "guard"

    def run(self, run: VenueRun) -> StageOutcome:
        if run.venue.has_place_id:
            return StageOutcome.CONTINUE
        run.result.error = "Venue has no Google Place ID"
        return StageOutcome.STOP


class PlaceDetailsStage(Stage):
    """
    Fetches Place Details, repairing a stale Place ID when possible.

    Repair order: free id refresh, then text search by name and address.
    The venue is flagged for deletion only when Google rejected the id,
    neither repair produced a candidate, and neither repair call failed.
    """

    name = "place_details"

    def __init__(self, places_client, repository, text_search=None, system_user_id: int = 1):
        self.places_client = places_client
        self.repository = repository
        self.text_search = text_search
        self.system_user_id = system_user_id

    def run(self, run: VenueRun) -> StageOutcome:
        venue = run.venue
        details = self.places_client.get_place_details(venue.g_place_id)
        if details.success:
            run.set_places(details.snapshot)
            return StageOutcome.CONTINUE

        logger.warning(
            f"Place details failed for venue {venue.id}: {details.error}",
            extra=venue_context(venue.id, self.name),
        )

        candidate_found = False
        repair_errors: List[str] = []

        status, refreshed_id = self.places_client.check_place_id(venue.g_place_id)
        if status is PlaceIdStatus.ERROR:
            repair_errors.append(f"{REFRESH_SOURCE_GOOGLE} refresh failed")
        elif refreshed_id and refreshed_id != venue.g_place_id:
            candidate_found = True
            if self._adopt_place_id(run, refreshed_id, REFRESH_SOURCE_GOOGLE):
                return StageOutcome.CONTINUE

        if self.text_search is not None:
            search = self.text_search.search_place(
                venue.name,
                venue.physical_address,
                venue.suburb,
                venue.state,
                venue.country_name,
                venue.latitude,
                venue.longitude,
            )
            if search.error:
                repair_errors.append(f"{REFRESH_SOURCE_TEXT_SEARCH} failed: {search.error}")
            elif search.place_id:
                candidate_found = True
                if self._adopt_place_id(run, search.place_id, REFRESH_SOURCE_TEXT_SEARCH):
                    return StageOutcome.CONTINUE

        if candidate_found or repair_errors or not self._is_definitive_failure(details):
            error = f"Failed to fetch Google Places data: {details.error}"
            if repair_errors:
                error = f"{error} ({'; '.join(repair_errors)})"
            run.result.error = error
            return StageOutcome.STOP

        if run.dry_run:
            run.result.error = f"{EXPIRED_PLACE_ID_REASON} ({details.error}); not flagged (dry run)"
            return StageOutcome.STOP

        flag = self.repository.flag_for_deletion(
            venue.id,
            DeleteReason.PERMANENTLY_CLOSED,
            EXPIRED_PLACE_ID_REASON,
            more_details=f"Place ID {venue.g_place_id}: {details.error}",
            requested_by_user_id=self.system_user_id,
        )
        run.result.venue_flagged_for_deletion = flag.success
        run.result.error = f"{EXPIRED_PLACE_ID_REASON} ({details.error})"
        return StageOutcome.STOP

    @staticmethod
    def _is_definitive_failure(details: PlaceDetailsResult) -> bool:
        """Google answered and rejected the id (not a transport or server error)."""
        return details.status_code is not None and details.status_code < 500

    def _adopt_place_id(self, run: VenueRun, new_place_id: str, source: str) -> bool:
        """Persist a repaired Place ID (unless it collides) and retry the fetch."""
        venue = run.venue
        if run.dry_run:
            run.result.place_id_refresh_source = source
            run.result.g_place_id = new_place_id
        else:
            self._store_place_id(run, new_place_id, source)

        details = self.places_client.get_place_details(new_place_id)
        if not details.success:
            logger.warning(
                f"Place details still failing after {source} repair: {details.error}",
                extra=venue_context(venue.id, self.name, place_id=new_place_id),
            )
            return False

        run.set_places(details.snapshot)
        return True

    def _store_place_id(self, run: VenueRun, new_place_id: str, source: str) -> None:
        venue = run.venue
        update = self.repository.update_place_id(venue.id, new_place_id)
        if update.success:
            run.result.place_id_refreshed = True
            run.result.place_id_refresh_source = source
            run.result.g_place_id = new_place_id
            venue.g_place_id = new_place_id
        elif isinstance(update.new_value, int):
            run.result.duplicate_of_venue_id = update.new_value


class NameReconciliationStage(Stage):
    """Google's display name is authoritative; store it before classifying."""

    name = "name_reconciliation"

    def __init__(self, repository):
        self.repository = repository

    def run(self, run: VenueRun) -> StageOutcome:
        new_name = (run.places.display_name or "").strip() if run.places else ""
        old_name = run.venue.name
        if not new_name or new_name == (old_name or "").strip():
            return StageOutcome.CONTINUE

        if run.dry_run:
            run.result.old_name = old_name
            run.result.new_name = new_name
            run.venue.name = new_name
            return StageOutcome.CONTINUE

        update = self.repository.update_name(run.venue.id, new_name)
        if not update.success:
            logger.warning(
                f"Could not rename venue {run.venue.id}: {update.message}",
                extra=venue_context(run.venue.id, self.name),
            )
            return StageOutcome.CONTINUE

        run.result.name_updated = True
        run.result.old_name = old_name
        run.result.new_name = new_name
        run.venue.name = new_name
        return StageOutcome.CONTINUE


# =============================================================================
# CLASSIFICATION
# =============================================================================


class TypeMappingStage(Stage):
    name = "type_mapping"

    def __init__(self, type_mapper):
        self.type_mapper = type_mapper

    def run(self, run: VenueRun) -> StageOutcome:
        mapping = self.type_mapper.map_to_category(run.places)
        run.result.apply_mapping(
            mapping.category_id,
            mapping.confidence,
            mapping.reasoning,
            matched_type=mapping.matched_type,
            source=CategorizationSource.GOOGLE_MAPPING,
        )
        return StageOutcome.CONTINUE


class ContextAdjustmentStage(Stage):
    name = "context"

    def __init__(self, context_analyzer):
        self.context_analyzer = context_analyzer

    def run(self, run: VenueRun) -> StageOutcome:
        result = run.result
        if result.recommended_category_id is None:
            return StageOutcome.CONTINUE

        context = self.context_analyzer.analyze_context(run.venue, run.places)
        result.context_analyzed = True
        result.is_sub_venue = context.is_sub_venue
        if not context.is_sub_venue:
            return StageOutcome.CONTINUE

        adjustment = self.context_analyzer.adjust_category_for_context(
            result.recommended_category_id, context, result.confidence or Confidence.LOW
        )
        if adjustment.adjusted:
            result.recommended_category_id = adjustment.category_id
            result.reasoning = adjustment.reasoning
            result.context_adjusted = True
        else:
            result.reasoning = f"{result.reasoning} | {adjustment.reasoning}"
        result.confidence = adjustment.confidence
        return StageOutcome.CONTINUE


class UnmappedTrackingStage(Stage):
    name = "unmapped_tracking"

    def __init__(self, detector):
        self.detector = detector

    def run(self, run: VenueRun) -> StageOutcome:
        result = run.result
        if result.recommended_category_id is None or result.confidence is Confidence.LOW:
            self.detector.track_unmapped_venue(run.venue, run.places)
        return StageOutcome.CONTINUE


class AIFallbackStage(Stage):
    name = "ai_fallback"

    def __init__(self, ai_categorizer, detector=None):
        self.ai_categorizer = ai_categorizer
        self.detector = detector

    def run(self, run: VenueRun) -> StageOutcome:
        result = run.result
        if not run.use_ai_fallback or result.confidence is not Confidence.LOW:
            return StageOutcome.CONTINUE

        ai = self.ai_categorizer.categorize_venue(run.venue, run.places, run.categories)

        if ai.suggest_new_category:
            result.suggest_new_category = True
            result.suggested_category_name = ai.suggested_category_name
            if self.detector is not None:
                self.detector.track_new_category_suggestion(
                    run.venue, run.places, ai.suggested_category_name
                )

        if ai.category_id is not None:
            result.apply_mapping(
                ai.category_id,
                ai.confidence,
                AI_REASONING_PREFIX + ai.reasoning,
                source=CategorizationSource.OPENAI,
            )
        else:
            result.reasoning = f"{result.reasoning} | {AI_REASONING_PREFIX}{ai.reasoning}"
        return StageOutcome.CONTINUE


# =============================================================================
# COURT COUNT
# =============================================================================


class CourtCountStage(Stage):
    """
    Looks up the court count for venues that have none recorded.

    Counts are written only at MEDIUM or HIGH confidence. A venue is
    flagged for deletion only when the analysis positively found no
    squash courts; lookup failures never flag.
    """

    name = "court_count"

    def __init__(self, services: CourtCountServices):
        self.services = services

    def run(self, run: VenueRun) -> StageOutcome:
        venue, result = run.venue, run.result
        if not venue.court_count_unknown:
            return StageOutcome.CONTINUE

        result.court_count_searched = True
        try:
            self._enrich(run)
        except Exception as e:
            logger.error(
                f"Court count enrichment failed for venue {venue.id}: {e}",
                extra=venue_context(venue.id, self.name),
            )
        return StageOutcome.CONTINUE

    def _enrich(self, run: VenueRun) -> None:
        venue, result = run.venue, run.result
        search = self.services.searcher.search_for_court_count(
            venue.name, venue.address or None, venue.website
        )
        analysis = self.services.analyzer.analyze_court_count(
            venue.name,
            venue.address or None,
            venue.website,
            search=search if search.success else None,
        )

        result.court_count_found = analysis.court_count
        result.court_count_confidence = analysis.confidence
        result.court_count_reasoning = analysis.reasoning
        result.court_count_source_url = analysis.source_url

        if analysis.error:
            logger.warning(
                f"Court count lookup failed for venue {venue.id}: {analysis.error}",
                extra=venue_context(venue.id, self.name),
            )
            return

        details = {
            "source_url": analysis.source_url,
            "source_type": analysis.source_type.value,
            "search_api_used": search.api_used,
            "search_results": search.summary(),
            "venue_website": venue.website,
        }

        if run.dry_run:
            logger.info(
                f"Dry run: court count for venue {venue.id} not written "
                f"(count={analysis.court_count}, evidence={analysis.evidence_found})",
                extra=venue_context(venue.id, self.name),
            )
            return

        if analysis.confirms_no_courts:
            flag = self.services.updater.flag_venue_for_deletion(venue.id, analysis.reasoning, details)
            result.court_count_flagged_for_deletion = flag.success
            return

        if analysis.usable:
            update = self.services.updater.update_venue(
                venue.id,
                analysis.court_count,
                {
                    **details,
                    "confidence": analysis.confidence.value,
                    "reasoning": analysis.reasoning,
                },
            )
            result.court_count_updated = update.success
            return

        logger.info(
            f"Court count for venue {venue.id} left unchanged "
            f"(count={analysis.court_count}, confidence={analysis.confidence.value})",
            extra=venue_context(venue.id, self.name),
        )
