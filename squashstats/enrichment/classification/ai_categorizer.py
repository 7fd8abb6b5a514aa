"""
AI Categorizer.

LLM fallback used when the deterministic mapping is only LOW confidence.
The model answers in a fixed ``KEY: value`` block that is parsed line by
line; anything that goes wrong becomes a null LOW result.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from squashstats.schemas import (
    AICategorization,
    Confidence,
    GooglePlacesSnapshot,
    Venue,
    VenueCategory,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You categorize squash venues. Use the venue details and Google Places data "
    "to choose the single most appropriate category. \"Dedicated facility\" means a "
    "venue devoted only to squash; multi-sport venues and general sports complexes "
    "are \"Leisure centre\". Be precise and give clear reasoning."
)

NEW_CATEGORY_SENTINEL = "SUGGEST_NEW_CATEGORY"
UNPARSED_REASONING = "Unable to parse AI response"
INVALID_ID_NOTE = " (Invalid category ID returned by AI)"

_KEY_LINE_RE = re.compile(
    r"^[\s*#>\-]*(CATEGORY_ID|CONFIDENCE|REASONING|SUGGESTED_CATEGORY)[\s*]*[:=][\s*]*(.*?)[\s*]*$",
    re.IGNORECASE,
)
_EMPTY_VALUES = {"", "n/a", "na", "none", "null", "-"}


class AICategorizer:
    """Asks a chat model to pick a category for an ambiguous venue."""

    def __init__(self, llm_client, categories: Optional[Sequence[Tuple[int, str]]] = None):
        """
        Args:
            llm_client: Client exposing ``invoke_with_context(system, user)``
            categories: (id, name) pairs offered to the model; defaults to VenueCategory
        """
        self.llm_client = llm_client
        self.categories: List[Tuple[int, str]] = list(categories or VenueCategory.choices())

    def categorize_venue(
        self,
        venue: Venue,
        places: Optional[GooglePlacesSnapshot] = None,
        categories: Optional[Sequence[Tuple[int, str]]] = None,
    ) -> AICategorization:
        """
        Ask the model for a category.

        Args:
            venue: Venue being categorized
            places: Place Details snapshot, when available
            categories: Override for the category list loaded for this batch

        Returns:
            AICategorization; never raises
        """
        options = list(categories) if categories else self.categories
        prompt = self.build_prompt(venue, places, options)

        try:
            response = self.llm_client.invoke_with_context(SYSTEM_PROMPT, prompt)
        except Exception as e:
            logger.error(
                f"AI categorization failed for venue {venue.id}: {e}",
                extra={"venue_id": venue.id, "stage": "ai"},
            )
            return AICategorization.failed(f"OpenAI API error: {e}")

        if not isinstance(response, str) or not response.strip():
            return AICategorization.failed("Empty response from AI")

        return self.parse_response(response, (cid for cid, _ in options))

    @staticmethod
    def build_prompt(
        venue: Venue,
        places: Optional[GooglePlacesSnapshot],
        categories: Sequence[Tuple[int, str]],
    ) -> str:
        lines = [
            "Categorize this squash venue.",
            "",
            "VENUE INFORMATION:",
            f"Name: {venue.name}",
            f"Address: {venue.address or 'Unknown'}",
        ]
        if places is not None:
            lines += [
                "",
                "GOOGLE PLACES DATA:",
                f"Display name: {places.display_name or 'N/A'}",
                f"Primary type: {places.primary_type or 'N/A'}",
                f"All types: {', '.join(places.types) if places.types else 'N/A'}",
                f"Business status: {places.business_status or 'N/A'}",
            ]
            if places.editorial_summary:
                lines.append(f"Summary: {places.editorial_summary}")

        lines += ["", "AVAILABLE CATEGORIES:"]
        lines += [f"{cid}. {name}" for cid, name in categories]
        lines += [
            "",
            "INSTRUCTIONS:",
            "1. Choose the category that best describes the venue as a whole.",
            "2. Use HIGH confidence only when the evidence is unambiguous.",
            '3. "Dedicated facility" (ID 5) is only for venues devoted exclusively to squash '
            '(e.g. "squash club", "squash centre"). Sports complexes and recreation centres '
            'are "Leisure centre" (ID 2).',
            f"4. If no category fits, answer {NEW_CATEGORY_SENTINEL} as the category id "
            "and propose a name for the new category.",
            "5. Answer in exactly this format:",
            "",
            "CATEGORY_ID: [number or SUGGEST_NEW_CATEGORY]",
            "CONFIDENCE: [HIGH, MEDIUM, or LOW]",
            "REASONING: [one or two sentences]",
            "SUGGESTED_CATEGORY: [new category name, or N/A]",
        ]
        return "\n".join(lines)

    @staticmethod
    def parse_response(text: str, valid_ids: Iterable[int]) -> AICategorization:
        """
        Parse the ``KEY: value`` block returned by the model.

        Unknown keys and surrounding prose are ignored. Lines following
        ``REASONING`` that carry no key are treated as its continuation.
        """
        valid = {int(cid) for cid in valid_ids}
        category_id: Optional[int] = None
        confidence = Confidence.LOW
        reasoning_parts: List[str] = []
        suggest_new = False
        suggested_name: Optional[str] = None
        invalid_id = False
        current_key: Optional[str] = None

        for raw_line in text.splitlines():
            match = _KEY_LINE_RE.match(raw_line)
            if not match:
                if current_key == "REASONING" and raw_line.strip():
                    reasoning_parts.append(raw_line.strip())
                continue

            key, value = match.group(1).upper(), match.group(2).strip()
            current_key = key

            if key == "CATEGORY_ID":
                if NEW_CATEGORY_SENTINEL in value.upper():
                    suggest_new = True
                    continue
                number = re.search(r"\d+", value)
                if number and int(number.group()) in valid:
                    category_id = int(number.group())
                elif value.lower() not in _EMPTY_VALUES:
                    invalid_id = True
            elif key == "CONFIDENCE":
                confidence = Confidence.parse(value)
            elif key == "REASONING":
                if value:
                    reasoning_parts.append(value)
            elif key == "SUGGESTED_CATEGORY":
                if value.lower() not in _EMPTY_VALUES:
                    suggested_name = value

        reasoning = " ".join(reasoning_parts) or UNPARSED_REASONING
        if invalid_id:
            reasoning += INVALID_ID_NOTE

        return AICategorization(
            category_id=category_id,
            confidence=confidence,
            reasoning=reasoning,
            suggest_new_category=suggest_new,
            suggested_category_name=suggested_name if suggest_new else None,
        )
