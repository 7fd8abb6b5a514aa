"""
Unit tests for the config module.

Tests for Config path resolution and categorization rules loading.
"""

from pathlib import Path

import pytest

from squashstats.configs.config import Config, ConfigurationError


class TestConfigPaths:
    """Tests for Config path attributes."""

    def test_config_dir_exists(self):
        """CONFIG_DIR should exist."""
        assert isinstance(Config.CONFIG_DIR, Path)
        assert Config.CONFIG_DIR.exists()

    def test_rules_file_exists(self):
        """CATEGORIZATION_RULES_PATH should point at the packaged rules."""
        assert Config.CATEGORIZATION_RULES_PATH.exists()
        assert Config.CATEGORIZATION_RULES_PATH.suffix == ".yaml"


class TestLoadCategorizationRules:
    """Tests for load_categorization_rules."""

    def test_has_required_sections(self):
        """Should contain every section the classifiers read."""
        rules = Config.load_categorization_rules()
        for section in Config.REQUIRED_RULE_SECTIONS:
            assert section in rules

    def test_is_cached(self):
        """Should return the same object on repeated calls."""
        assert Config.load_categorization_rules() is Config.load_categorization_rules()

    def test_version(self):
        """Should expose the rules version."""
        assert Config.get_rules_version() != "unversioned"

    def test_squash_rule_targets_dedicated_facility(self):
        """Squash names should map to dedicated facility unless multi-sport."""
        squash_rule = Config.load_categorization_rules()["squash_rule"]
        assert squash_rule["category"] == "DEDICATED_FACILITY"
        assert squash_rule["reclassify_to"] == "LEISURE_CENTRE"
        assert "tennis" in squash_rule["multi_sport_indicators"]


class TestLoadRulesFile:
    """Tests for load_rules_file validation."""

    def test_missing_file(self, tmp_path: Path):
        """Should raise ConfigurationError for a missing file."""
        with pytest.raises(ConfigurationError):
            Config.load_rules_file(tmp_path / "nope.yaml")

    def test_missing_sections(self, tmp_path: Path):
        """Should name the missing sections."""
        path = tmp_path / "rules.yaml"
        path.write_text("type_mapping: {}\nname_patterns: {}\n")
        with pytest.raises(ConfigurationError, match="squash_rule"):
            Config.load_rules_file(path)
