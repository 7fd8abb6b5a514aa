"""
Unit tests for the type_mapper module.

Tests for GooglePlacesTypeMapper resolution order, the squash multi-sport
rule, combination rules and translated-name fallback.
"""

from unittest.mock import MagicMock

import pytest

from squashstats.enrichment.classification.type_mapper import (
    NO_MATCH_REASONING,
    TRANSLATED_REASONING_PREFIX,
    GooglePlacesTypeMapper,
    create_type_mapper_from_config,
)
from squashstats.schemas import Confidence, VenueCategory

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def mapper():
    """Type mapper with the packaged rules and no translator."""
    return create_type_mapper_from_config()


@pytest.fixture
def translator():
    """Translator mock that reports non-English text."""
    client = MagicMock()
    client.appears_non_english.return_value = True
    return client


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestNamePatterns:
    """Tests for name keyword matching."""

    def test_squash_club_is_dedicated_facility(self, mapper, make_snapshot):
        """Should map 'Riverside Squash Club' with a gym type to a dedicated facility."""
        result = mapper.map_to_category(
            make_snapshot(primary_type="gym", types=["gym"], display_name="Riverside Squash Club")
        )
        assert result.category_id == int(VenueCategory.DEDICATED_FACILITY)
        assert result.confidence is Confidence.HIGH
        assert result.matched_type == "name_high_confidence"

    def test_squash_with_sports_centre_is_leisure_centre(self, mapper, make_snapshot):
        """Should reclassify a squash name with a multi-sport indicator."""
        result = mapper.map_to_category(
            make_snapshot(display_name="Riverside Squash & Sports Centre")
        )
        assert result.category_id == int(VenueCategory.LEISURE_CENTRE)
        assert result.confidence is Confidence.HIGH
        assert result.matched_type == "name_multi_sport"

    def test_squash_centre_not_downgraded(self, mapper, make_snapshot):
        """Should keep a plain squash centre as a dedicated facility."""
        result = mapper.map_to_category(make_snapshot(display_name="City Squash Centre"))
        assert result.category_id == int(VenueCategory.DEDICATED_FACILITY)
        assert result.confidence is Confidence.HIGH

    def test_editorial_summary_indicator_triggers_multi_sport(self, mapper, make_snapshot):
        """Should treat name and summary as one text."""
        result = mapper.map_to_category(
            make_snapshot(
                display_name="Northside Squash",
                editorial_summary="Tennis and squash courts with a cafe.",
            )
        )
        assert result.category_id == int(VenueCategory.LEISURE_CENTRE)
        assert result.matched_type == "name_multi_sport"

    def test_medium_tier(self, mapper, make_snapshot):
        """Should report medium-tier keywords as MEDIUM confidence."""
        result = mapper.map_to_category(make_snapshot(display_name="Eastside Leisure"))
        assert result.category_id == int(VenueCategory.LEISURE_CENTRE)
        assert result.confidence is Confidence.MEDIUM
        assert result.matched_type == "name_medium_confidence"
        assert "'leisure'" in result.reasoning

    def test_keywords_anchor_at_word_start(self, mapper):
        """Should not match a keyword inside another word."""
        assert mapper.match_name_patterns("the winner's trophy room") is None

    def test_name_wins_over_types(self, mapper, make_snapshot):
        """Should prefer name patterns to type lookups."""
        result = mapper.map_to_category(
            make_snapshot(primary_type="hotel", display_name="Harbour Squash Club")
        )
        assert result.category_id == int(VenueCategory.DEDICATED_FACILITY)


class TestCombinationRules:
    """Tests for type-set combination rules."""

    def test_gym_with_pool_is_leisure_centre(self, mapper, make_snapshot):
        """Should map gym + swimming_pool to a leisure centre."""
        result = mapper.map_to_category(
            make_snapshot(
                primary_type="gym",
                types=["gym", "swimming_pool"],
                display_name="Northside Venue",
            )
        )
        assert result.category_id == int(VenueCategory.LEISURE_CENTRE)
        assert result.confidence is Confidence.HIGH
        assert result.matched_type == "gym+swimming_pool"

    def test_private_club_excludes_golf(self, mapper):
        """Should not treat a private golf club as a private club."""
        result = mapper.match_combination(["private_club", "golf_club"])
        assert result is None or result.category_id != int(VenueCategory.PRIVATE_CLUB)

    def test_golf_club_with_restaurant_is_country_club(self, mapper):
        """Should map golf + dining to a country club."""
        result = mapper.match_combination(["golf_club", "restaurant"])
        assert result.category_id == int(VenueCategory.COUNTRY_CLUB)
        assert result.confidence is Confidence.HIGH


class TestTypeLookup:
    """Tests for primary and secondary type lookups."""

    def test_primary_type(self, mapper, make_snapshot):
        """Should use the primary type's table confidence."""
        result = mapper.map_to_category(
            make_snapshot(primary_type="university", display_name="Northside Venue")
        )
        assert result.category_id == int(VenueCategory.COLLEGE_OR_UNIVERSITY)
        assert result.confidence is Confidence.HIGH
        assert result.reasoning == "Matched primary type: university"

    def test_secondary_type_is_downgraded(self, mapper, make_snapshot):
        """Should never return HIGH for a secondary type match."""
        result = mapper.map_to_category(
            make_snapshot(
                primary_type="point_of_interest",
                types=["point_of_interest", "school"],
                display_name="Northside Venue",
            )
        )
        assert result.category_id == int(VenueCategory.SCHOOL)
        assert result.confidence is Confidence.MEDIUM
        assert result.reasoning == "Matched secondary type: school"

    def test_no_match(self, mapper, make_snapshot):
        """Should return a null category with LOW confidence."""
        result = mapper.map_to_category(
            make_snapshot(primary_type="establishment", display_name="Northside Venue")
        )
        assert result.category_id is None
        assert result.confidence is Confidence.LOW
        assert result.reasoning == NO_MATCH_REASONING

    def test_deterministic(self, mapper, make_snapshot):
        """Should return identical output on repeated calls."""
        snapshot = make_snapshot(primary_type="gym", types=["gym", "spa"], display_name="Body Works")
        assert mapper.map_to_category(snapshot) == mapper.map_to_category(snapshot)

    def test_lookups(self, mapper):
        """Should expose the type table."""
        assert mapper.is_mapped("gym")
        assert mapper.get_category_id_for_type("gym") == int(VenueCategory.GYM)
        assert mapper.get_category_id_for_type("bakery") is None
        assert "shopping_mall" in mapper.get_all_mapped_types()


class TestTranslatedFallback:
    """Tests for the translated-name fallback."""

    def test_translated_match_keeps_confidence(self, translator, make_snapshot):
        """Should annotate the reasoning and keep the underlying confidence."""
        translator.translate_to_english.return_value = "Sports Centre Hamamatsu"
        mapper = GooglePlacesTypeMapper(translator=translator)

        result = mapper.map_to_category(make_snapshot(display_name="浜松スポーツセンター"))

        assert result.category_id == int(VenueCategory.LEISURE_CENTRE)
        assert result.confidence is Confidence.HIGH
        assert result.reasoning.startswith(TRANSLATED_REASONING_PREFIX)
        assert result.matched_type == "translated_name_high_confidence"

    def test_english_names_are_not_translated(self, translator, make_snapshot):
        """Should skip translation for English names."""
        translator.appears_non_english.return_value = False
        mapper = GooglePlacesTypeMapper(translator=translator)

        result = mapper.map_to_category(make_snapshot(display_name="Northside Venue"))

        translator.translate_to_english.assert_not_called()
        assert result.category_id is None

    def test_failed_translation(self, translator, make_snapshot):
        """Should fall through to no match when translation fails."""
        translator.translate_to_english.return_value = None
        mapper = GooglePlacesTypeMapper(translator=translator)

        result = mapper.map_to_category(make_snapshot(display_name="Ñandú"))

        assert result.category_id is None
