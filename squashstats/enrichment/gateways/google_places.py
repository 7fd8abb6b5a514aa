"""
Google Places (New) Place Details client.

Returns typed ``PlaceDetailsResult`` values; transport and API errors
never escape as exceptions.
"""

from enum import Enum
from typing import Optional, Tuple

import requests
from pydantic import ValidationError

from squashstats.schemas import GooglePlacesSnapshot, PlaceDetailsResult

from .base_gateway import BaseGateway, GatewayConfig

PLACES_BASE_URL = "https://places.googleapis.com/v1/places"

DETAILS_FIELD_MASK = (
    "id,types,primaryType,displayName,formattedAddress,"
    "businessStatus,location,editorialSummary"
)
REFRESH_FIELD_MASK = "id"

# Google's documented sample place (Sydney office), used for connectivity checks.
CONNECTION_TEST_PLACE_ID = "ChIJN1t_tDeuEmsRUsoyG83frY4"


class PlaceIdStatus(str, Enum):
    VALID = "valid"
    CHANGED = "changed"
    INVALID = "invalid"
    ERROR = "error"


class GooglePlacesClient(BaseGateway):
    """Fetches place details and performs free Place ID refreshes."""

    def __init__(self, api_key: str, request_timeout: int = 30, max_retries: int = 1):
        super().__init__(
            GatewayConfig(
                name="google_places",
                api_key=api_key,
                request_timeout=request_timeout,
                max_retries=max_retries,
            )
        )

    def _headers(self, field_mask: str, language: Optional[str] = None) -> dict:
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
        }
        if language:
            headers["X-Goog-Language-Code"] = language
        return headers

    def get_place_details(
        self, place_id: str, language: Optional[str] = None
    ) -> PlaceDetailsResult:
        """
        Fetch details for a place.

        Args:
            place_id: Google Place ID
            language: Optional response language code (e.g. "en")

        Returns:
            PlaceDetailsResult with a snapshot on success, or an error string
        """
        try:
            response = self._send(
                "GET",
                f"{PLACES_BASE_URL}/{place_id}",
                headers=self._headers(DETAILS_FIELD_MASK, language),
            )
        except requests.RequestException as e:
            return PlaceDetailsResult(success=False, error=f"Request failed: {e}")

        if not response.ok:
            message = self._error_message(response)
            self.logger.warning(
                f"Place details failed for {place_id}",
                extra={"payload": {"status": response.status_code, "error": message}},
            )
            return PlaceDetailsResult(
                success=False,
                error=f"API error ({response.status_code}): {message}",
                status_code=response.status_code,
            )

        try:
            snapshot = GooglePlacesSnapshot.from_api(response.json())
        except (ValueError, ValidationError) as e:
            return PlaceDetailsResult(
                success=False,
                error=f"Malformed Place Details response: {e}",
                status_code=response.status_code,
            )

        return PlaceDetailsResult(
            success=True, snapshot=snapshot, status_code=response.status_code
        )

    def check_place_id(self, place_id: str) -> Tuple[PlaceIdStatus, Optional[str]]:
        """
        Validate a place id using the free id-only field mask.

        Returns:
            (status, current_id); current_id is set for VALID and CHANGED
        """
        try:
            response = self._send(
                "GET",
                f"{PLACES_BASE_URL}/{place_id}",
                headers=self._headers(REFRESH_FIELD_MASK),
            )
        except requests.RequestException as e:
            self.logger.warning(f"Place ID refresh failed for {place_id}: {e}")
            return PlaceIdStatus.ERROR, None

        if not response.ok:
            self.logger.info(
                f"Place ID refresh returned {response.status_code} for {place_id}"
            )
            if response.status_code in (400, 404):
                return PlaceIdStatus.INVALID, None
            return PlaceIdStatus.ERROR, None

        try:
            current_id = response.json().get("id") or None
        except ValueError:
            return PlaceIdStatus.ERROR, None

        if current_id is None:
            return PlaceIdStatus.ERROR, None
        if current_id != place_id:
            return PlaceIdStatus.CHANGED, current_id
        return PlaceIdStatus.VALID, current_id

    def refresh_place_id(self, place_id: str) -> Optional[str]:
        """
        Ask Google for the current id of a place.

        Returns:
            The (possibly new) place id, or None when the id cannot be refreshed
        """
        _, current_id = self.check_place_id(place_id)
        return current_id

    def test_connection(self) -> bool:
        """Check that the API key can read place details."""
        return self.get_place_details(CONNECTION_TEST_PLACE_ID).success
