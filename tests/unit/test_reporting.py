"""
Unit tests for the reporting module.
"""

import csv
import json
from datetime import datetime

import pytest

from squashstats.reporting import CSV_FIELDS, export_results, summarize
from squashstats.schemas import (
    CategorizationResult,
    CategorizationSource,
    Confidence,
    VenueCategory,
)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def results():
    mapped = CategorizationResult(
        venue_id=1,
        venue_name="Riverside Squash Club",
        current_category_id=int(VenueCategory.DONT_KNOW),
        recommended_category_id=int(VenueCategory.DEDICATED_FACILITY),
        confidence=Confidence.HIGH,
        source=CategorizationSource.GOOGLE_MAPPING,
        reasoning="Name contains squash",
        name_updated=True,
    )
    ai = CategorizationResult(
        venue_id=2,
        venue_name="Hillside Grammar",
        recommended_category_id=int(VenueCategory.SCHOOL),
        confidence=Confidence.MEDIUM,
        source=CategorizationSource.OPENAI,
        suggest_new_category=True,
        court_count_updated=True,
    )
    failed = CategorizationResult(
        venue_id=3,
        venue_name="Closed Venue",
        error="Google Place ID expired, suggesting venue is closed",
        venue_flagged_for_deletion=True,
    )
    return [mapped, ai, failed]


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestSummarize:
    def test_counts(self, results):
        summary = summarize(results, updated=1)

        assert summary["processed"] == 3
        assert summary["updated"] == 1
        assert summary["failed"] == 1
        assert summary["skipped"] == 1
        assert summary["ai_categorized"] == 1
        assert summary["names_updated"] == 1
        assert summary["flagged_for_deletion"] == 1
        assert summary["court_counts_updated"] == 1
        assert summary["new_category_suggestions"] == 1

    def test_empty(self):
        assert summarize([])["processed"] == 0


class TestExportResults:
    """Tests for export_results."""

    def test_json(self, results, tmp_path):
        path = export_results(results, "json", tmp_path, timestamp=datetime(2024, 3, 1, 9, 30, 5))

        assert path.name == "venue-categorization-20240301-093005.json"
        rows = json.loads(path.read_text(encoding="utf-8"))
        assert rows[0]["confidence"] == "HIGH"
        assert rows[0]["recommended_category_name"] == "Dedicated facility"
        assert rows[2]["recommended_category_name"] is None

    def test_csv(self, results, tmp_path):
        path = export_results(results, "csv", tmp_path / "reports")

        with path.open(encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        assert tuple(rows[0].keys()) == CSV_FIELDS
        assert rows[1]["source"] == "OPENAI"
        assert rows[2]["error"].startswith("Google Place ID expired")

    def test_unsupported_format(self, results, tmp_path):
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_results(results, "xlsx", tmp_path)
