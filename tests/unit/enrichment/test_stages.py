"""
Unit tests for the stages module.

Covers the classification stages after type mapping and the court-count
stage, including the rule that only a positive "no courts" finding flags a
venue for deletion.
"""

from unittest.mock import MagicMock, patch

import pytest

from squashstats.enrichment.classification.context_analyzer import VenueContextAnalyzer
from squashstats.enrichment.stages import (
    AIFallbackStage,
    ContextAdjustmentStage,
    CourtCountServices,
    CourtCountStage,
    StageOutcome,
    UnmappedTrackingStage,
    VenueRun,
)
from squashstats.schemas import (
    AICategorization,
    CategorizationResult,
    CategorizationSource,
    Confidence,
    ContextAdjustment,
    ContextAnalysis,
    CourtCountAnalysis,
    ParentFacilityType,
    SearchOutcome,
    SourceType,
    UpdateResult,
    VenueCategory,
)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def make_run(make_venue, make_snapshot):
    """Return a function that builds a VenueRun with a preset mapping."""

    def _make_run(category_id=None, confidence=None, reasoning="mapped", **venue_kwargs):
        venue = make_venue(**venue_kwargs)
        run = VenueRun(venue=venue, result=CategorizationResult.for_venue(venue))
        run.set_places(make_snapshot(primary_type="gym"))
        run.result.apply_mapping(
            category_id, confidence, reasoning, source=CategorizationSource.GOOGLE_MAPPING
        )
        return run

    return _make_run


@pytest.fixture
def court_services():
    searcher = MagicMock()
    searcher.search_for_court_count.return_value = SearchOutcome(
        success=True, api_used="serpapi"
    )
    updater = MagicMock()
    updater.update_venue.return_value = UpdateResult(success=True, message="updated")
    updater.flag_venue_for_deletion.return_value = UpdateResult(success=True, message="flagged")
    return CourtCountServices(searcher=searcher, analyzer=MagicMock(), updater=updater)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestContextAdjustmentStage:
    """Tests for ContextAdjustmentStage."""

    def test_skips_unmapped(self, make_run):
        analyzer = MagicMock()
        ContextAdjustmentStage(analyzer).run(make_run())
        analyzer.analyze_context.assert_not_called()

    def test_applies_adjustment(self, make_run):
        """Should replace the category when the analyzer adjusts it."""
        analyzer = MagicMock()
        analyzer.analyze_context.return_value = ContextAnalysis(
            is_sub_venue=True,
            confidence=Confidence.HIGH,
            reasoning="Inside a leisure centre",
            parent_facility_type=ParentFacilityType.LEISURE_CENTRE,
        )
        analyzer.adjust_category_for_context.return_value = ContextAdjustment(
            category_id=int(VenueCategory.LEISURE_CENTRE),
            confidence=Confidence.HIGH,
            reasoning="Squash courts within a leisure centre",
            adjusted=True,
        )
        run = make_run(int(VenueCategory.GYM), Confidence.MEDIUM)

        assert ContextAdjustmentStage(analyzer).run(run) is StageOutcome.CONTINUE
        assert run.result.recommended_category_id == int(VenueCategory.LEISURE_CENTRE)
        assert run.result.context_adjusted
        assert run.result.is_sub_venue
        assert run.result.reasoning == "Squash courts within a leisure centre"

    def test_downgrade_without_adjustment(self, make_run):
        """Should lower a HIGH mapping to LOW on a MEDIUM sub-venue signal."""
        analyzer = VenueContextAnalyzer(repository=MagicMock())
        context = ContextAnalysis(
            is_sub_venue=True,
            confidence=Confidence.MEDIUM,
            reasoning="Shares an address",
            parent_facility_type=ParentFacilityType.LEISURE_CENTRE,
        )
        run = make_run(int(VenueCategory.SCHOOL), Confidence.HIGH)

        with patch.object(analyzer, "analyze_context", return_value=context):
            ContextAdjustmentStage(analyzer).run(run)

        assert not run.result.context_adjusted
        assert run.result.recommended_category_id == int(VenueCategory.SCHOOL)
        assert run.result.confidence is Confidence.LOW
        assert run.result.reasoning == (
            "mapped | Possible sub-venue, confidence reduced: Shares an address"
        )

    def test_downgrade_sends_venue_to_ai_fallback(self, make_run):
        """Should let the AI stage run after a context downgrade to LOW."""
        analyzer = VenueContextAnalyzer(repository=MagicMock())
        context = ContextAnalysis(
            is_sub_venue=True,
            confidence=Confidence.MEDIUM,
            reasoning="Name suggests a sub-venue",
            parent_facility_type=ParentFacilityType.GYM,
        )
        ai = MagicMock()
        ai.categorize_venue.return_value = AICategorization(
            category_id=int(VenueCategory.GYM),
            confidence=Confidence.MEDIUM,
            reasoning="Squash courts inside a gym",
        )
        run = make_run(int(VenueCategory.SCHOOL), Confidence.HIGH)

        with patch.object(analyzer, "analyze_context", return_value=context):
            ContextAdjustmentStage(analyzer).run(run)
        AIFallbackStage(ai, MagicMock()).run(run)

        ai.categorize_venue.assert_called_once()
        assert run.result.source is CategorizationSource.OPENAI

    def test_standalone(self, make_run):
        analyzer = MagicMock()
        analyzer.analyze_context.return_value = ContextAnalysis.standalone()
        run = make_run(int(VenueCategory.GYM), Confidence.HIGH)

        ContextAdjustmentStage(analyzer).run(run)

        assert run.result.context_analyzed
        assert not run.result.is_sub_venue
        analyzer.adjust_category_for_context.assert_not_called()


class TestUnmappedTrackingStage:
    @pytest.mark.parametrize(
        "category_id,confidence,tracked",
        [
            (None, Confidence.LOW, True),
            (int(VenueCategory.GYM), Confidence.LOW, True),
            (int(VenueCategory.GYM), Confidence.MEDIUM, False),
        ],
    )
    def test_tracking(self, make_run, category_id, confidence, tracked):
        detector = MagicMock()
        UnmappedTrackingStage(detector).run(make_run(category_id, confidence))
        assert detector.track_unmapped_venue.called is tracked


class TestAIFallbackStage:
    """Tests for AIFallbackStage."""

    def test_not_run_for_confident_mapping(self, make_run):
        ai = MagicMock()
        AIFallbackStage(ai).run(make_run(int(VenueCategory.GYM), Confidence.MEDIUM))
        ai.categorize_venue.assert_not_called()

    def test_disabled(self, make_run):
        ai = MagicMock()
        run = make_run(None, Confidence.LOW)
        run.use_ai_fallback = False
        AIFallbackStage(ai).run(run)
        ai.categorize_venue.assert_not_called()

    def test_ai_category_applied(self, make_run):
        """Should replace a LOW mapping with the AI answer."""
        ai = MagicMock()
        ai.categorize_venue.return_value = AICategorization(
            category_id=int(VenueCategory.SCHOOL),
            confidence=Confidence.MEDIUM,
            reasoning="Courts at a grammar school",
        )
        run = make_run(None, Confidence.LOW)

        AIFallbackStage(ai).run(run)

        assert run.result.recommended_category_id == int(VenueCategory.SCHOOL)
        assert run.result.source is CategorizationSource.OPENAI
        assert run.result.reasoning == "AI: Courts at a grammar school"

    def test_new_category_suggestion(self, make_run):
        """Should record and track a suggested category."""
        ai = MagicMock()
        ai.categorize_venue.return_value = AICategorization(
            category_id=None,
            confidence=Confidence.LOW,
            reasoning="No category fits",
            suggest_new_category=True,
            suggested_category_name="Church hall",
        )
        detector = MagicMock()
        run = make_run(None, Confidence.LOW, reasoning="No match")

        AIFallbackStage(ai, detector).run(run)

        assert run.result.suggest_new_category
        assert run.result.suggested_category_name == "Church hall"
        assert run.result.recommended_category_id is None
        assert run.result.reasoning == "No match | AI: No category fits"
        detector.track_new_category_suggestion.assert_called_once()


class TestCourtCountStage:
    """Tests for CourtCountStage."""

    def test_skipped_when_count_known(self, make_run, court_services):
        run = make_run(no_of_courts=4)
        CourtCountStage(court_services).run(run)
        assert not run.result.court_count_searched
        court_services.searcher.search_for_court_count.assert_not_called()

    def test_confident_count_written(self, make_run, court_services):
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=3,
            confidence=Confidence.HIGH,
            reasoning="Website lists 3 courts",
            source_url="https://club.example.com",
            source_type=SourceType.VENUE_WEBSITE,
        )
        run = make_run(no_of_courts=None)

        CourtCountStage(court_services).run(run)

        venue_id, count, details = court_services.updater.update_venue.call_args.args
        assert (venue_id, count) == (1, 3)
        assert details["confidence"] == "HIGH"
        assert details["search_api_used"] == "serpapi"
        assert run.result.court_count_updated
        court_services.updater.flag_venue_for_deletion.assert_not_called()

    def test_evidence_without_count_never_flags(self, make_run, court_services):
        """Should leave the venue alone when squash is evidenced but uncounted."""
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=None, confidence=Confidence.LOW, reasoning="Squash mentioned", evidence_found=True
        )
        run = make_run(no_of_courts=0)

        CourtCountStage(court_services).run(run)

        assert run.result.court_count_searched
        assert not run.result.court_count_updated
        assert not run.result.court_count_flagged_for_deletion
        court_services.updater.flag_venue_for_deletion.assert_not_called()
        court_services.updater.update_venue.assert_not_called()

    def test_no_evidence_flags(self, make_run, court_services):
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=None, confidence=Confidence.HIGH, reasoning="Tennis only", evidence_found=False
        )
        run = make_run(no_of_courts=None)

        CourtCountStage(court_services).run(run)

        assert court_services.updater.flag_venue_for_deletion.call_args.args[:2] == (1, "Tennis only")
        assert run.result.court_count_flagged_for_deletion

    def test_failed_lookup_never_flags(self, make_run, court_services):
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis.failed(
            "OpenAI API error: timeout"
        )
        run = make_run(no_of_courts=None)

        CourtCountStage(court_services).run(run)

        court_services.updater.flag_venue_for_deletion.assert_not_called()
        court_services.updater.update_venue.assert_not_called()

    def test_low_confidence_not_written(self, make_run, court_services):
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=2, confidence=Confidence.LOW, reasoning="Guess"
        )
        run = make_run(no_of_courts=None)

        CourtCountStage(court_services).run(run)

        assert run.result.court_count_found == 2
        court_services.updater.update_venue.assert_not_called()

    def test_dry_run(self, make_run, court_services):
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=None, confidence=Confidence.HIGH, reasoning="Tennis only", evidence_found=False
        )
        run = make_run(no_of_courts=None)
        run.dry_run = True

        CourtCountStage(court_services).run(run)

        court_services.updater.flag_venue_for_deletion.assert_not_called()

    def test_unsuccessful_search_not_passed(self, make_run, court_services):
        """Should let the analyzer search on its own when no evidence was gathered."""
        court_services.searcher.search_for_court_count.return_value = SearchOutcome(
            success=False, error="No search provider returned results"
        )
        court_services.analyzer.analyze_court_count.return_value = CourtCountAnalysis(
            court_count=None, confidence=Confidence.LOW, reasoning="Unknown"
        )

        CourtCountStage(court_services).run(make_run(no_of_courts=None))

        assert court_services.analyzer.analyze_court_count.call_args.kwargs["search"] is None

    def test_exception_contained(self, make_run, court_services):
        court_services.searcher.search_for_court_count.side_effect = RuntimeError("boom")
        run = make_run(no_of_courts=None)

        assert CourtCountStage(court_services).run(run) is StageOutcome.CONTINUE
        assert run.result.error is None
