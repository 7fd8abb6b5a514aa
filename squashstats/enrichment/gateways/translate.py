"""
Google Cloud Translation (v2) client.

Used by the Type Mapper to retry name matching on non-English venue names.
"""

import html
from typing import Dict, Optional, Tuple

import requests

from .base_gateway import BaseGateway, GatewayConfig

TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"
DETECT_URL = f"{TRANSLATE_URL}/detect"


class GoogleTranslateClient(BaseGateway):
    """Translates short texts to English, caching results per process."""

    def __init__(self, api_key: str, request_timeout: int = 10, max_retries: int = 1):
        super().__init__(
            GatewayConfig(
                name="google_translate",
                api_key=api_key,
                request_timeout=request_timeout,
                max_retries=max_retries,
            )
        )
        self._cache: Dict[Tuple[str, Optional[str]], Optional[str]] = {}

    @staticmethod
    def appears_non_english(text: Optional[str]) -> bool:
        """Heuristic: any non-ASCII character suggests a non-English name."""
        if not text:
            return False
        return any(ord(ch) > 127 for ch in text)

    def translate_to_english(
        self, text: str, source_language: Optional[str] = None
    ) -> Optional[str]:
        """
        Translate text to English.

        Returns:
            The translated text, or None when translation fails
        """
        if not text or not text.strip():
            return None

        key = (text, source_language)
        if key in self._cache:
            return self._cache[key]

        data = {"key": self.api_key, "q": text, "target": "en", "format": "text"}
        if source_language:
            data["source"] = source_language

        try:
            response = self._send("POST", TRANSLATE_URL, data=data)
        except requests.RequestException as e:
            self.logger.warning(f"Translation request failed: {e}")
            return None

        if not response.ok:
            self.logger.warning(
                f"Translation API error ({response.status_code}): "
                f"{self._error_message(response)}"
            )
            return None

        try:
            translations = response.json()["data"]["translations"]
            translated = html.unescape(translations[0]["translatedText"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            self.logger.warning(f"Unexpected translation response: {e}")
            return None

        self._cache[key] = translated
        return translated

    def detect_language(self, text: str) -> Optional[str]:
        """Return the detected ISO language code, or None."""
        if not text or not text.strip():
            return None
        try:
            response = self._send("POST", DETECT_URL, data={"key": self.api_key, "q": text})
        except requests.RequestException as e:
            self.logger.warning(f"Language detection failed: {e}")
            return None
        if not response.ok:
            return None
        try:
            return response.json()["data"]["detections"][0][0]["language"]
        except (ValueError, KeyError, IndexError, TypeError):
            return None

    def clear_cache(self) -> None:
        self._cache.clear()
