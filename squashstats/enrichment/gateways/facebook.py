"""
Facebook Graph API client for public page metadata.

Many small clubs only publish a Facebook page; its "about" text is useful
evidence for the court-count search.
"""

import re
from typing import Any, Dict, List, Optional

import requests

from .base_gateway import BaseGateway, GatewayConfig

GRAPH_API_URL = "https://graph.facebook.com/v21.0"
PAGE_FIELDS = "name,about,website,phone,location,link"

_PAGE_ID_RE = re.compile(r"facebook\.com/(?:pages/[^/]+/)?([^/?#]+)", re.IGNORECASE)


class FacebookPageClient(BaseGateway):
    """Reads public page information. Posts require an access token."""

    requires_api_key = False

    def __init__(
        self,
        access_token: Optional[str] = None,
        request_timeout: int = 10,
        max_retries: int = 0,
    ):
        super().__init__(
            GatewayConfig(
                name="facebook",
                api_key=access_token,
                request_timeout=request_timeout,
                max_retries=max_retries,
            )
        )

    @staticmethod
    def is_facebook_url(url: Optional[str]) -> bool:
        return bool(url) and "facebook.com" in url.lower()

    @staticmethod
    def extract_page_identifier(url: Optional[str]) -> Optional[str]:
        """Page slug or numeric id from a facebook.com URL."""
        if not url:
            return None
        match = _PAGE_ID_RE.search(url)
        if not match:
            return None
        identifier = match.group(1)
        if identifier in ("profile.php", "groups", "events"):
            return None
        return identifier

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.api_key:
            params = {**params, "access_token": self.api_key}
        try:
            response = self._send("GET", f"{GRAPH_API_URL}/{path}", params=params)
        except requests.RequestException as e:
            self.logger.warning(f"Graph API request failed: {e}")
            return None
        if not response.ok:
            self.logger.info(
                f"Graph API error ({response.status_code}): {self._error_message(response)}"
            )
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def get_public_page_info(self, url: str) -> Optional[Dict[str, Any]]:
        """Name, about, website, phone, location and link of a page."""
        identifier = self.extract_page_identifier(url)
        if not identifier:
            return None
        return self._get(identifier, {"fields": PAGE_FIELDS})

    def get_page_posts(self, url: str, limit: int = 10) -> List[Dict[str, Any]]:
        if not self.api_key:
            self.logger.debug("Skipping page posts: no Facebook access token")
            return []
        identifier = self.extract_page_identifier(url)
        if not identifier:
            return []
        data = self._get(
            f"{identifier}/posts",
            {"fields": "message,created_time", "limit": limit},
        )
        return (data or {}).get("data", [])

    @staticmethod
    def format_page_info(info: Dict[str, Any]) -> str:
        """Render page info as prompt-ready text."""
        lines = []
        for key in ("name", "about", "website", "phone", "link"):
            if info.get(key):
                lines.append(f"{key.title()}: {info[key]}")
        location = info.get("location")
        if isinstance(location, dict):
            parts = [str(location[k]) for k in ("street", "city", "country") if location.get(k)]
            if parts:
                lines.append(f"Location: {', '.join(parts)}")
        return "\n".join(lines)
