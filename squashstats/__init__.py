"""Squash venue categorization and enrichment pipeline."""

__version__ = "0.1.0"
