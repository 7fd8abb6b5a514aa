"""
Court-count web searcher.

Collects evidence about a venue's squash courts before the AI analysis:
first the venue's own website, then the first configured search provider
(Google Custom Search, SerpAPI, Tavily) that returns results. The public
squash directory is excluded everywhere to avoid circular evidence.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from squashstats.schemas import SearchOutcome, SearchResult, SourceType

from .base_gateway import BaseGateway, GatewayConfig

EXCLUDED_DOMAIN = "squash.players.app"
WEBSITE_CONTENT_LIMIT = 5000

GOOGLE_CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
SERPAPI_URL = "https://serpapi.com/search.json"
TAVILY_URL = "https://api.tavily.com/search"

SOCIAL_MEDIA_DOMAINS = ("facebook.com", "instagram.com", "twitter.com", "x.com", "linkedin.com")
BOOKING_KEYWORDS = ("book", "booking", "reserve", "reservation", "court", "schedule")


def determine_source_type(url: str, venue_website: Optional[str] = None) -> SourceType:
    """Classify where a piece of evidence lives."""
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return SourceType.OTHER

    if venue_website:
        venue_host = (urlparse(venue_website).hostname or "").lower()
        if venue_host and host == venue_host:
            return SourceType.VENUE_WEBSITE

    if any(domain in host for domain in SOCIAL_MEDIA_DOMAINS):
        return SourceType.SOCIAL_MEDIA

    url_lower = url.lower()
    if any(keyword in url_lower for keyword in BOOKING_KEYWORDS):
        return SourceType.BOOKING_PAGE

    if "google.com" in host and "review" in url_lower:
        return SourceType.GOOGLE_REVIEWS

    return SourceType.OTHER


def html_to_text(html: str, limit: int = WEBSITE_CONTENT_LIMIT) -> str:
    """Visible page text with collapsed whitespace, capped at ``limit`` characters."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()
    if len(text) > limit:
        text = text[:limit] + "..."
    return text


class CourtCountSearcher(BaseGateway):
    """
    Web search front-end for the court-count analysis.

    Each provider is optional; the searcher is usable as long as at least
    one provider is configured or the venue has a website.
    """

    requires_api_key = False

    def __init__(
        self,
        google_api_key: Optional[str] = None,
        google_engine_id: Optional[str] = None,
        serpapi_api_key: Optional[str] = None,
        tavily_api_key: Optional[str] = None,
        request_timeout: int = 15,
        max_retries: int = 0,
    ):
        super().__init__(
            GatewayConfig(
                name="court_search",
                request_timeout=request_timeout,
                max_retries=max_retries,
            )
        )
        self.google_api_key = google_api_key
        self.google_engine_id = google_engine_id
        self.serpapi_api_key = serpapi_api_key
        self.tavily_api_key = tavily_api_key

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def providers(self) -> List[Tuple[str, Callable[[str], List[Dict[str, str]]]]]:
        """Configured providers in priority order."""
        providers = []
        if self.google_api_key and self.google_engine_id:
            providers.append(("google_custom_search", self._search_google))
        if self.serpapi_api_key:
            providers.append(("serpapi", self._search_serpapi))
        if self.tavily_api_key:
            providers.append(("tavily", self._search_tavily))
        return providers

    @staticmethod
    def build_query(venue_name: str, address: Optional[str] = None) -> str:
        query = f"{venue_name} squash courts"
        if address:
            query += f" {address}"
        return f"{query} -site:{EXCLUDED_DOMAIN}"

    def search_for_court_count(
        self,
        venue_name: str,
        address: Optional[str] = None,
        venue_website: Optional[str] = None,
    ) -> SearchOutcome:
        """
        Gather evidence about the number of squash courts at a venue.

        Returns:
            SearchOutcome; ``success`` is True when any evidence was collected
        """
        website_content = None
        if venue_website and EXCLUDED_DOMAIN not in venue_website.lower():
            website_content = self.fetch_website_content(venue_website)

        query = self.build_query(venue_name, address)
        errors = []

        for api_name, search in self.providers:
            try:
                raw_results = search(query)
            except (requests.RequestException, ValueError, KeyError) as e:
                self.logger.warning(f"Court count search via {api_name} failed: {e}")
                errors.append(f"{api_name}: {e}")
                continue

            results = self._to_results(raw_results, venue_website)
            if results:
                self.logger.info(
                    f"Court count search found {len(results)} results via {api_name}",
                    extra={"payload": {"venue_name": venue_name, "query": query}},
                )
                return SearchOutcome(
                    success=True,
                    results=results,
                    api_used=api_name,
                    website_content=website_content,
                )

        if website_content:
            return SearchOutcome(
                success=True, api_used="direct_website", website_content=website_content
            )

        return SearchOutcome(
            success=False,
            error="; ".join(errors) if errors else "No search provider returned results",
        )

    def fetch_website_content(self, url: str) -> Optional[str]:
        """Fetch a page and return its visible text, or None on failure."""
        try:
            response = self._send("GET", url, headers={"Accept": "text/html"}, timeout=10)
        except requests.RequestException as e:
            self.logger.warning(f"Failed to fetch website content from {url}: {e}")
            return None
        if not response.ok:
            return None
        text = html_to_text(response.text)
        self.logger.info(
            "Fetched website content",
            extra={"payload": {"url": url, "content_length": len(text)}},
        )
        return text or None

    # =========================================================================
    # Providers
    # =========================================================================

    def _to_results(
        self, raw_results: List[Dict[str, str]], venue_website: Optional[str]
    ) -> List[SearchResult]:
        results = []
        for item in raw_results:
            url = item.get("url") or ""
            if not url or EXCLUDED_DOMAIN in url.lower():
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    url=url,
                    snippet=item.get("snippet") or "",
                    source_type=determine_source_type(url, venue_website),
                )
            )
        return results

    def _get_json(self, method: str, url: str, **kwargs) -> dict:
        response = self._send(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    def _search_google(self, query: str) -> List[Dict[str, str]]:
        data = self._get_json(
            "GET",
            GOOGLE_CUSTOM_SEARCH_URL,
            params={"key": self.google_api_key, "cx": self.google_engine_id, "q": query, "num": 10},
        )
        return [
            {"title": i.get("title"), "url": i.get("link"), "snippet": i.get("snippet")}
            for i in data.get("items", [])
        ]

    def _search_serpapi(self, query: str) -> List[Dict[str, str]]:
        data = self._get_json(
            "GET",
            SERPAPI_URL,
            params={"engine": "google", "q": query, "api_key": self.serpapi_api_key, "num": 10},
        )
        return [
            {"title": i.get("title"), "url": i.get("link"), "snippet": i.get("snippet")}
            for i in data.get("organic_results", [])
        ]

    def _search_tavily(self, query: str) -> List[Dict[str, str]]:
        data = self._get_json(
            "POST",
            TAVILY_URL,
            json={
                "api_key": self.tavily_api_key,
                "query": query,
                "max_results": 10,
                "search_depth": "basic",
            },
        )
        return [
            {"title": i.get("title"), "url": i.get("url"), "snippet": i.get("content")}
            for i in data.get("results", [])
        ]
