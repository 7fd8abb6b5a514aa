"""
Google Places Text Search client.

Used to recover a venue's Place ID from its name and address when the
stored id no longer resolves.
"""

from typing import Optional

import requests

from squashstats.schemas import PlaceSearchResult

from .base_gateway import BaseGateway, GatewayConfig

TEXT_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
TEXT_SEARCH_FIELD_MASK = "places.id,places.displayName,places.formattedAddress"
LOCATION_BIAS_RADIUS_METERS = 5000.0


class GooglePlacesTextSearchClient(BaseGateway):
    """Finds the best-matching place for a free-text venue description."""

    def __init__(self, api_key: str, request_timeout: int = 30, max_retries: int = 1):
        super().__init__(
            GatewayConfig(
                name="google_text_search",
                api_key=api_key,
                request_timeout=request_timeout,
                max_retries=max_retries,
            )
        )

    @staticmethod
    def build_query(*parts: Optional[str]) -> str:
        return ", ".join(p.strip() for p in parts if p and p.strip())

    def find_place_by_name_and_address(
        self,
        name: str,
        address: Optional[str] = None,
        suburb: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Optional[str]:
        """
        Search for a venue and return the first matching place id.

        Returns:
            Place id of the best match, or None when nothing matches or the call fails
        """
        return self.search_place(
            name, address, suburb, state, country, latitude, longitude
        ).place_id

    def search_place(
        self,
        name: str,
        address: Optional[str] = None,
        suburb: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> PlaceSearchResult:
        """
        Search for a venue, keeping "no match" apart from a failed call.

        Returns:
            PlaceSearchResult with ``place_id`` on a match, neither field set
            when Google found nothing, and ``error`` set when the call failed
        """
        body = {"textQuery": self.build_query(name, address, suburb, state, country)}
        if latitude is not None and longitude is not None:
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": LOCATION_BIAS_RADIUS_METERS,
                }
            }

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": TEXT_SEARCH_FIELD_MASK,
        }

        try:
            response = self._send("POST", TEXT_SEARCH_URL, json=body, headers=headers)
        except requests.RequestException as e:
            self.logger.warning(f"Text search failed for '{name}': {e}")
            return PlaceSearchResult(error=f"Request failed: {e}")

        if not response.ok:
            message = self._error_message(response)
            self.logger.warning(f"Text search API error ({response.status_code}): {message}")
            return PlaceSearchResult(error=f"API error ({response.status_code}): {message}")

        try:
            places = response.json().get("places") or []
        except ValueError:
            return PlaceSearchResult(error="Malformed text search response")

        if not places:
            self.logger.info(f"Text search found no match for '{body['textQuery']}'")
            return PlaceSearchResult()

        return PlaceSearchResult(place_id=places[0].get("id"))

    def test_connection(self) -> bool:
        try:
            response = self._send(
                "POST",
                TEXT_SEARCH_URL,
                json={"textQuery": "squash court"},
                headers={
                    "Content-Type": "application/json",
                    "X-Goog-Api-Key": self.api_key,
                    "X-Goog-FieldMask": "places.id",
                },
            )
        except requests.RequestException:
            return False
        return response.ok
