"""Run summaries and result exports for the categorize command."""

from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from squashstats.schemas import CategorizationResult, CategorizationSource

EXPORT_FORMATS = ("csv", "json")

CSV_FIELDS = (
    "venue_id",
    "venue_name",
    "venue_address",
    "current_category_id",
    "current_category_name",
    "recommended_category_id",
    "recommended_category_name",
    "confidence",
    "source",
    "matched_type",
    "reasoning",
    "is_sub_venue",
    "context_adjusted",
    "name_updated",
    "old_name",
    "new_name",
    "place_id_refreshed",
    "place_id_refresh_source",
    "duplicate_of_venue_id",
    "venue_flagged_for_deletion",
    "suggest_new_category",
    "suggested_category_name",
    "court_count_searched",
    "court_count_found",
    "court_count_confidence",
    "court_count_updated",
    "court_count_flagged_for_deletion",
    "court_count_source_url",
    "error",
)


def export_results(
    results: Sequence[CategorizationResult],
    fmt: str,
    directory: Path,
    timestamp: datetime | None = None,
) -> Path:
    """Write results to ``venue-categorization-<timestamp>.<fmt>`` and return the path."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = (timestamp or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")
    path = directory / f"venue-categorization-{stamp}.{fmt}"

    rows = [result.to_dict() for result in results]
    if fmt == "json":
        with path.open("w", encoding="utf-8") as f:
            json.dump(rows, f, indent=2, ensure_ascii=False, default=str)
    else:
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)
    return path


def summarize(results: Sequence[CategorizationResult], updated: int = 0) -> dict[str, Any]:
    """Counts printed at the end of a categorize run. Skipped excludes failures."""
    failed = sum(1 for r in results if r.error)
    return {
        "processed": len(results),
        "updated": updated,
        "skipped": len(results) - updated - failed,
        "failed": failed,
        "ai_categorized": sum(1 for r in results if r.source is CategorizationSource.OPENAI),
        "context_adjusted": sum(1 for r in results if r.context_adjusted),
        "names_updated": sum(1 for r in results if r.name_updated),
        "place_ids_refreshed": sum(1 for r in results if r.place_id_refreshed),
        "flagged_for_deletion": sum(
            1 for r in results if r.venue_flagged_for_deletion or r.court_count_flagged_for_deletion
        ),
        "court_counts_updated": sum(1 for r in results if r.court_count_updated),
        "new_category_suggestions": sum(1 for r in results if r.suggest_new_category),
    }
