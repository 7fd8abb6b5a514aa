# squashstats/configs/config.py
import yaml
from pathlib import Path
from functools import lru_cache


class ConfigurationError(ValueError):
    """Raised when a rule table is missing or malformed."""


class Config:
    """
    Static configuration for the venue enrichment pipeline.
    """

    # This points to squashstats/configs/
    CONFIG_DIR = Path(__file__).parent.resolve()
    PROJECT_ROOT = CONFIG_DIR.parent.parent

    CATEGORIZATION_RULES_PATH = CONFIG_DIR / "categorization_rules.yaml"

    REQUIRED_RULE_SECTIONS = (
        "type_mapping",
        "name_patterns",
        "squash_rule",
        "combination_rules",
        "context",
    )

    @classmethod
    @lru_cache
    def load_categorization_rules(cls) -> dict:
        """Loads the YAML pattern tables used by the classifiers."""
        return cls.load_rules_file(cls.CATEGORIZATION_RULES_PATH)

    @classmethod
    def load_rules_file(cls, path: Path) -> dict:
        """Load and validate a rules file from an explicit path."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Missing rules file at {path}")

        with open(path, "r", encoding="utf-8") as f:
            rules = yaml.safe_load(f) or {}

        missing = [name for name in cls.REQUIRED_RULE_SECTIONS if name not in rules]
        if missing:
            raise ConfigurationError(
                f"Rules file {path} is missing sections: {', '.join(missing)}"
            )
        return rules

    @classmethod
    def get_rules_version(cls) -> str:
        return str(cls.load_categorization_rules().get("version", "unversioned"))
