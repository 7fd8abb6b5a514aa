"""
Venue records and Google Places snapshots.

``Venue`` mirrors a row of the ``venues`` table (joined with its country
name). ``GooglePlacesSnapshot`` is the normalized Place Details payload
used by the classifiers; it is never persisted beyond audit summaries.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .taxonomy import VenueStatus


# ============================================================================
# VENUE
# ============================================================================


class Venue(BaseModel):
    """A squash venue as stored in the database."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    physical_address: Optional[str] = None
    suburb: Optional[str] = None
    state: Optional[str] = None
    country_id: Optional[int] = None
    country_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    website: Optional[str] = None
    g_place_id: Optional[str] = None
    status: str = VenueStatus.APPROVED.value
    category_id: Optional[int] = None
    no_of_courts: Optional[int] = None
    no_of_glass_courts: Optional[int] = None
    no_of_non_glass_courts: Optional[int] = None
    no_of_outdoor_courts: Optional[int] = None
    no_of_singles_courts: Optional[int] = None
    no_of_doubles_courts: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def address(self) -> str:
        """Street address, suburb and state joined for display and prompts."""
        return ", ".join(
            part for part in (self.physical_address, self.suburb, self.state) if part
        )

    @property
    def has_place_id(self) -> bool:
        return bool(self.g_place_id and self.g_place_id.strip())

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def court_count_unknown(self) -> bool:
        """True when no court count has been recorded yet (null or zero)."""
        return not self.no_of_courts


# ============================================================================
# GOOGLE PLACES
# ============================================================================


class PlaceLocation(BaseModel):
    latitude: float
    longitude: float


class GooglePlacesSnapshot(BaseModel):
    """
    Normalized Google Places (New) Place Details response.

    Field aliases follow the API's camelCase names so that raw payloads
    can be validated directly and dumped back in the same shape.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    primary_type: Optional[str] = Field(default=None, alias="primaryType")
    types: List[str] = Field(default_factory=list)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    formatted_address: Optional[str] = Field(default=None, alias="formattedAddress")
    business_status: Optional[str] = Field(default=None, alias="businessStatus")
    location: Optional[PlaceLocation] = None
    editorial_summary: Optional[str] = Field(default=None, alias="editorialSummary")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GooglePlacesSnapshot":
        """
        Build a snapshot from a raw Places API payload.

        ``displayName`` and ``editorialSummary`` arrive as ``{"text": ...}``
        objects and are flattened to plain strings.
        """
        display_name = data.get("displayName")
        if isinstance(display_name, dict):
            display_name = display_name.get("text")

        summary = data.get("editorialSummary")
        if isinstance(summary, dict):
            summary = summary.get("text")

        return cls(
            id=data.get("id"),
            primary_type=data.get("primaryType"),
            types=list(data.get("types") or []),
            display_name=display_name,
            formatted_address=data.get("formattedAddress"),
            business_status=data.get("businessStatus"),
            location=data.get("location"),
            editorial_summary=summary,
        )

    @property
    def all_types(self) -> List[str]:
        """Primary type followed by the remaining types, without duplicates."""
        ordered: List[str] = []
        if self.primary_type:
            ordered.append(self.primary_type)
        for place_type in self.types:
            if place_type not in ordered:
                ordered.append(place_type)
        return ordered

    @property
    def text(self) -> str:
        """Lower-cased display name and editorial summary, the classifiers' search text."""
        return " ".join(
            part for part in (self.display_name, self.editorial_summary) if part
        ).lower()

    def to_summary(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
