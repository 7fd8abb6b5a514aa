"""
Unit tests for the command-line interface.

Settings, logging setup and the engine are patched; the categorize command
runs against a mocked categorizer.
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from squashstats import cli
from squashstats.configs.settings import Settings
from squashstats.enrichment.gateways import GatewayError
from squashstats.persistence.database import venue_category_updates, venues
from squashstats.schemas import (
    CategorizationResult,
    Confidence,
    UpdateResult,
    VenueCategory,
)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, DATABASE_URL="sqlite://", REPORTS_DIR=tmp_path)


@pytest.fixture
def cli_env(settings, db_engine):
    """Patch settings, logging and engine creation for main()."""
    with patch.object(cli, "get_settings", return_value=settings), patch.object(
        cli, "setup_logging"
    ), patch.object(cli, "_build_engine", return_value=db_engine):
        yield


def make_result(**kwargs):
    defaults = {
        "venue_id": 1,
        "venue_name": "Riverside Squash Club",
        "current_category_id": int(VenueCategory.DONT_KNOW),
        "recommended_category_id": int(VenueCategory.DEDICATED_FACILITY),
        "confidence": Confidence.HIGH,
        "reasoning": "Name contains squash",
    }
    defaults.update(kwargs)
    return CategorizationResult(**defaults)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestShouldUpdate:
    """Tests for the confidence threshold."""

    @pytest.mark.parametrize(
        "confidence,minimum,expected",
        [
            (Confidence.HIGH, Confidence.HIGH, True),
            (Confidence.MEDIUM, Confidence.HIGH, False),
            (Confidence.MEDIUM, Confidence.MEDIUM, True),
            (Confidence.LOW, Confidence.MEDIUM, False),
            (Confidence.LOW, Confidence.LOW, True),
        ],
    )
    def test_threshold(self, confidence, minimum, expected):
        assert cli.should_update(make_result(confidence=confidence), minimum) is expected

    def test_no_recommendation(self):
        assert not cli.should_update(make_result(recommended_category_id=None), Confidence.LOW)

    def test_error(self):
        assert not cli.should_update(make_result(error="failed"), Confidence.LOW)

    def test_unchanged_category(self):
        result = make_result(recommended_category_id=int(VenueCategory.DONT_KNOW))
        assert not cli.should_update(result, Confidence.LOW)


class TestParseArgs:
    def test_categorize_defaults(self):
        args = cli._parse_args(["categorize"])
        assert args.batch == 10
        assert args.min_confidence == "HIGH"
        assert not args.dry_run

    def test_invalid_confidence(self):
        with pytest.raises(SystemExit):
            cli._parse_args(["categorize", "--min-confidence", "SURE"])


class TestMain:
    """Tests for main() dispatch and error handling."""

    def test_requires_command(self, capsys):
        assert cli.main([]) == 1
        assert "Command required" in capsys.readouterr().err

    def test_version(self, capsys):
        assert cli.main(["--version"]) == 0
        assert "squashstats version" in capsys.readouterr().out

    def test_gateway_error_exit_code(self, cli_env, capsys):
        with patch(
            "squashstats.enrichment.factory.create_venue_categorizer",
            side_effect=GatewayError("google_places: API key is not configured"),
        ):
            assert cli.main(["categorize"]) == 1
        assert "API key is not configured" in capsys.readouterr().err

    def test_stats(self, cli_env, seed_venue, capsys):
        seed_venue()
        assert cli.main(["stats"]) == 0
        assert '"dont_know_count": 1' in capsys.readouterr().out


class TestFixCategory:
    """Tests for the fix-category command."""

    def test_manual_update(self, cli_env, seed_venue, db_engine, capsys):
        venue_id = seed_venue()

        code = cli.main(["fix-category", str(venue_id), "4", "--reason", "Gym with courts"])

        assert code == 0
        assert "Don't know -> Gym or health & fitness centre" in capsys.readouterr().out
        with db_engine.connect() as conn:
            assert conn.execute(
                select(venues.c.category_id).where(venues.c.id == venue_id)
            ).scalar_one() == 4
            audit = conn.execute(select(venue_category_updates)).one()
        assert audit.source == "MANUAL"
        assert audit.created_by == cli.MANUAL_CREATED_BY
        assert audit.reasoning == "Gym with courts"

    def test_unknown_venue(self, cli_env, capsys):
        assert cli.main(["fix-category", "999", "4", "--reason", "x"]) == 1
        assert "Venue not found" in capsys.readouterr().err


class TestCategorize:
    """Tests for the categorize command."""

    @pytest.fixture
    def categorizer(self):
        categorizer = MagicMock()
        categorizer.detector.generate_report.return_value = {
            "unmapped_types": [],
            "ai_suggested_categories": [],
        }
        return categorizer

    def run(self, categorizer, argv):
        with patch(
            "squashstats.enrichment.factory.create_venue_categorizer", return_value=categorizer
        ), patch("squashstats.persistence.VenueCategoryUpdater") as updater_cls:
            updater_cls.return_value.update_venue.return_value = UpdateResult(
                success=True, message="Category updated"
            )
            code = cli.main(argv)
        return code, updater_cls.return_value

    def test_applies_confident_results(self, cli_env, categorizer):
        """Should update confident results and touch the rest."""
        categorizer.process_batch.return_value = [
            make_result(venue_id=1),
            make_result(venue_id=2, confidence=Confidence.MEDIUM),
        ]

        code, updater = self.run(categorizer, ["categorize", "--yes", "--no-ai"])

        assert code == 0
        assert updater.update_venue.call_count == 1
        assert updater.update_venue.call_args.args[:2] == (1, int(VenueCategory.DEDICATED_FACILITY))
        categorizer.repository.touch.assert_called_once_with([2])
        assert categorizer.process_batch.call_args.kwargs["use_ai_fallback"] is False

    def test_dry_run_writes_nothing(self, cli_env, categorizer, capsys):
        categorizer.process_batch.return_value = [make_result()]

        code, updater = self.run(categorizer, ["categorize", "--dry-run", "--min-confidence", "MEDIUM"])

        assert code == 0
        updater.update_venue.assert_not_called()
        categorizer.repository.touch.assert_not_called()
        assert categorizer.process_batch.call_args.kwargs["dry_run"] is True
        assert "1 venue(s) would be updated at >= MEDIUM" in capsys.readouterr().out

    def test_declined_confirmation(self, cli_env, categorizer):
        """Should not apply updates when the user declines."""
        categorizer.process_batch.return_value = [make_result()]

        with patch.object(cli, "_confirm", return_value=False):
            _, updater = self.run(categorizer, ["categorize"])

        updater.update_venue.assert_not_called()
        categorizer.repository.touch.assert_called_once_with([1])

    def test_failed_update_is_touched(self, cli_env, categorizer, capsys):
        """Should move a venue whose update rolled back to the back of the queue."""
        categorizer.process_batch.return_value = [make_result(venue_id=1), make_result(venue_id=2)]

        with patch(
            "squashstats.enrichment.factory.create_venue_categorizer", return_value=categorizer
        ), patch("squashstats.persistence.VenueCategoryUpdater") as updater_cls:
            updater_cls.return_value.update_venue.side_effect = [
                UpdateResult(success=True, message="Category updated"),
                UpdateResult(success=False, message="Database error"),
            ]
            code = cli.main(["categorize", "--yes"])

        assert code == 0
        categorizer.repository.touch.assert_called_once_with([2])
        captured = capsys.readouterr()
        assert "Update failed for venue 2: Database error" in captured.err
        assert "Updated: 1" in captured.out

    def test_export(self, cli_env, categorizer, settings):
        categorizer.process_batch.return_value = [make_result()]
        self.run(categorizer, ["categorize", "--yes", "--export", "json"])
        assert list(settings.REPORTS_DIR.glob("venue-categorization-*.json"))

    def test_all_failed(self, cli_env, categorizer):
        categorizer.process_batch.return_value = [make_result(error="boom")]
        code, _ = self.run(categorizer, ["categorize", "--yes"])
        assert code == 1

    def test_nothing_to_do(self, cli_env, categorizer, capsys):
        categorizer.process_batch.return_value = []
        code, _ = self.run(categorizer, ["categorize"])
        assert code == 0
        assert "No venues need categorization." in capsys.readouterr().out
