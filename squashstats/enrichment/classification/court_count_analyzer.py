"""
Court-Count Analyzer.

Asks a web-search-enabled model how many squash courts a venue has and
turns its free-text answer into a ``CourtCountAnalysis``. The model is
asked for JSON; fenced, partial or plain-text answers are handled by
progressively looser extraction.

``evidence_found=False`` means the search positively found no squash
courts. A response that mentions squash but gives no count keeps
``evidence_found=True`` with a null count.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from squashstats.schemas import Confidence, CourtCountAnalysis, SearchOutcome, SourceType

logger = logging.getLogger(__name__)

# Inference defaults when the text names courts without a number.
SINGULAR_COURT_COUNT = 1
PLURAL_COURTS_DEFAULT = 2

EXCLUDED_DOMAIN = "squash.players.app"
SEARCH_RESULTS_IN_PROMPT = 5
WEBSITE_EXCERPT_CHARS = 2000

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_UNCLOSED_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*)", re.DOTALL | re.IGNORECASE)
_BARE_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_COURT_COUNT_FIELD_RE = re.compile(r"[\"']?court_count[\"']?\s*:\s*(\d+)", re.IGNORECASE)
_NUMBER_OF_COURTS_RE = re.compile(r"(\d+)\s+(?:squash\s+)?court", re.IGNORECASE)
_SINGULAR_RE = re.compile(r"squash\s+court\b(?!s)", re.IGNORECASE)
_PLURAL_RE = re.compile(r"squash\s+courts\b", re.IGNORECASE)

RESPONSE_FORMAT = (
    'Return ONLY valid JSON: {"court_count": <integer or null>, '
    '"confidence": "HIGH|MEDIUM|LOW", "reasoning": "<explanation citing the source>", '
    '"source_url": "<url or null>", '
    '"source_type": "VENUE_WEBSITE|SOCIAL_MEDIA|BOOKING_PAGE|GOOGLE_REVIEWS|OTHER", '
    '"evidence_found": <boolean>}'
)


class CourtCountAnalyzer:
    """Estimates a venue's squash court count from web evidence."""

    def __init__(self, web_search_client, facebook_client=None):
        """
        Args:
            web_search_client: Client exposing ``invoke(prompt) -> str`` with web search enabled
            facebook_client: Optional FacebookPageClient for venues whose website is a page
        """
        self.web_search_client = web_search_client
        self.facebook_client = facebook_client

    def analyze_court_count(
        self,
        venue_name: str,
        venue_address: Optional[str] = None,
        venue_website: Optional[str] = None,
        search: Optional[SearchOutcome] = None,
    ) -> CourtCountAnalysis:
        """
        Estimate the number of squash courts at a venue.

        Args:
            venue_name: Venue display name
            venue_address: Postal address, used to disambiguate
            venue_website: Website on record, if any
            search: Evidence gathered beforehand by the CourtCountSearcher

        Returns:
            CourtCountAnalysis; failures carry ``error`` and never raise
        """
        facebook_info = self._facebook_page_info(venue_website)
        prompt = self.build_query(venue_name, venue_address, venue_website, facebook_info, search)

        try:
            content = self.web_search_client.invoke(prompt)
        except Exception as e:
            logger.error(
                f"Court count analysis failed for '{venue_name}': {e}",
                extra={"stage": "court_count"},
            )
            return CourtCountAnalysis.failed(f"OpenAI API error: {e}")

        if not content or not content.strip():
            return CourtCountAnalysis.failed("Empty response from web search model")

        logger.info(
            f"Court count response received for '{venue_name}'",
            extra={"stage": "court_count", "payload": {"content_preview": content[:200]}},
        )
        return self.parse_response(content)

    def _facebook_page_info(self, venue_website: Optional[str]) -> Optional[Dict[str, Any]]:
        if self.facebook_client is None or not venue_website:
            return None
        if not self.facebook_client.is_facebook_url(venue_website):
            return None
        return self.facebook_client.get_public_page_info(venue_website)

    # =========================================================================
    # Prompt
    # =========================================================================

    @staticmethod
    def build_query(
        venue_name: str,
        venue_address: Optional[str] = None,
        venue_website: Optional[str] = None,
        facebook_info: Optional[Dict[str, Any]] = None,
        search: Optional[SearchOutcome] = None,
    ) -> str:
        is_facebook = bool(venue_website) and "facebook.com" in venue_website.lower()

        question = f"How many squash courts does {venue_name}"
        if venue_address:
            question += f" located at {venue_address}"
        question += " have?"

        lines = [question, "", "Search thoroughly, in this order:"]

        if venue_website and not is_facebook:
            lines += [
                f"1. Verify that {venue_website} is the venue's own website. An estate or "
                "development site without facilities details is the wrong site; if so, "
                f"search for '{venue_name} official website' or '{venue_name} facilities'.",
            ]
        else:
            lines += [
                f"1. Find the venue's official website ('{venue_name} official website', "
                f"'{venue_name} facilities') and confirm the address matches.",
            ]
        lines.append(
            "2. Open its facilities page (/facilities, /sports, /squash, /amenities); "
            "court counts are usually listed there."
        )

        if is_facebook:
            lines.append(f"3. Check the venue's Facebook page: {venue_website}")
            if facebook_info:
                lines.append(f"   - Page name: {facebook_info.get('name') or 'N/A'}")
                if facebook_info.get("about"):
                    lines.append(f"   - About: {facebook_info['about'][:300]}")
                if facebook_info.get("website"):
                    lines.append(f"   - Website listed on the page: {facebook_info['website']} (check it)")
        else:
            lines.append(
                f"3. Check the venue's Facebook page ('{venue_name} Facebook') for posts, "
                "photos and reviews mentioning squash courts."
            )
        lines += [
            "4. Check Google Maps reviews and business listings.",
            "5. Check booking systems and sports facility directories.",
        ]

        if search is not None:
            if search.website_content:
                lines += ["", "Text fetched from the venue website:", search.website_content[:WEBSITE_EXCERPT_CHARS]]
            if search.results:
                lines += ["", "Search results already collected:"]
                for index, result in enumerate(search.results[:SEARCH_RESULTS_IN_PROMPT], start=1):
                    lines.append(
                        f"{index}. [{result.source_type.value}] {result.title} - {result.url}\n   {result.snippet}"
                    )

        lines += [
            "",
            "Rules:",
            "- Look for explicit numbers ('3 courts', 'three glass-back courts') and write them as digits.",
            f"- 'squash court' (singular) with no number means {SINGULAR_COURT_COUNT} court.",
            f"- 'squash courts' (plural) with no number means {PLURAL_COURTS_DEFAULT} courts.",
            "- Set evidence_found to true if ANY source confirms squash courts exist, even without a count.",
            "- Set evidence_found to false only when there is no evidence of squash courts at all.",
            f"- Ignore {EXCLUDED_DOMAIN} entirely; it is our own directory.",
            "",
            RESPONSE_FORMAT,
        ]
        return "\n".join(lines)

    # =========================================================================
    # Parsing
    # =========================================================================

    @classmethod
    def parse_response(cls, content: str) -> CourtCountAnalysis:
        data = cls._extract_json(content)
        if data is not None:
            return cls._from_json(data)

        logger.warning(
            "Court count response is not JSON, falling back to text extraction",
            extra={"payload": {"content_preview": content[:200]}},
        )
        return cls.extract_from_text(content)

    @staticmethod
    def _extract_json(content: str) -> Optional[Dict[str, Any]]:
        candidates = []
        fenced = _FENCED_JSON_RE.search(content)
        if fenced:
            candidates.append(fenced.group(1))
        else:
            unclosed = _UNCLOSED_FENCE_RE.search(content)
            if unclosed:
                candidates.append(re.sub(r"```\s*$", "", unclosed.group(1)).strip())
        candidates.append(content.strip())
        bare = _BARE_OBJECT_RE.search(content)
        if bare:
            candidates.append(bare.group(0))

        for candidate in candidates:
            try:
                data = json.loads(candidate)
            except ValueError:
                continue
            if isinstance(data, dict):
                return data
        return None

    @staticmethod
    def _from_json(data: Dict[str, Any]) -> CourtCountAnalysis:
        court_count = _to_count(data.get("court_count"))
        evidence = data.get("evidence_found", True)
        if isinstance(evidence, str):
            evidence = evidence.strip().lower() not in ("false", "no", "0", "")
        return CourtCountAnalysis(
            court_count=court_count,
            confidence=Confidence.parse(data.get("confidence")),
            reasoning=data.get("reasoning") or "AI analysis completed",
            source_url=data.get("source_url") or None,
            source_type=SourceType.parse(data.get("source_type")),
            evidence_found=bool(evidence) or court_count is not None,
        )

    @staticmethod
    def extract_from_text(content: str) -> CourtCountAnalysis:
        """Regex extraction for answers that are not valid JSON."""
        match = _COURT_COUNT_FIELD_RE.search(content)
        if match:
            return CourtCountAnalysis(
                court_count=int(match.group(1)),
                confidence=Confidence.MEDIUM,
                reasoning="Extracted from AI response text",
            )

        match = _NUMBER_OF_COURTS_RE.search(content)
        if match:
            return CourtCountAnalysis(
                court_count=int(match.group(1)),
                confidence=Confidence.MEDIUM,
                reasoning="Extracted number from text pattern",
            )

        has_singular = bool(_SINGULAR_RE.search(content))
        has_plural = bool(_PLURAL_RE.search(content))

        if has_singular and not has_plural:
            return CourtCountAnalysis(
                court_count=SINGULAR_COURT_COUNT,
                confidence=Confidence.MEDIUM,
                reasoning='Found singular "squash court" reference',
            )
        if has_plural and not has_singular:
            return CourtCountAnalysis(
                court_count=PLURAL_COURTS_DEFAULT,
                confidence=Confidence.MEDIUM,
                reasoning=f'Found plural "squash courts" reference (assuming {PLURAL_COURTS_DEFAULT})',
            )
        if has_singular or "squash" in content.lower():
            return CourtCountAnalysis(
                court_count=None,
                confidence=Confidence.LOW,
                reasoning="Squash facilities mentioned but the court count is unclear",
            )

        return CourtCountAnalysis(
            court_count=None,
            confidence=Confidence.LOW,
            reasoning="Could not extract court count from AI response",
            evidence_found=False,
        )


def _to_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        count = int(float(value))
    except (TypeError, ValueError):
        return None
    return count if count > 0 else None
