# squashstats/schemas/taxonomy.py
"""
Fixed enumerations shared by every stage of the enrichment pipeline.

The venue category table is reference data: ids match the rows of the
``venue_categories`` table and never change during a run.
"""

from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple


class VenueCategory(IntEnum):
    """Internal venue taxonomy."""

    OTHER = 1
    LEISURE_CENTRE = 2
    SCHOOL = 3
    GYM = 4
    DEDICATED_FACILITY = 5
    DONT_KNOW = 6
    HOTEL_OR_RESORT = 7
    COLLEGE_OR_UNIVERSITY = 8
    MILITARY = 9
    SHOPPING_CENTRE = 10
    COMMUNITY_HALL = 11
    PRIVATE_RESIDENCE = 12
    BUSINESS_COMPLEX = 13
    PRIVATE_CLUB = 14
    COUNTRY_CLUB = 15
    INDUSTRIAL = 16

    @property
    def label(self) -> str:
        """Human-readable category name."""
        return _CATEGORY_LABELS[self]

    @classmethod
    def from_id(cls, category_id: Optional[int]) -> Optional["VenueCategory"]:
        """Return the member for an id, or None for unknown ids."""
        if category_id is None:
            return None
        try:
            return cls(int(category_id))
        except (TypeError, ValueError):
            return None

    @classmethod
    def choices(cls) -> List[Tuple[int, str]]:
        """All (id, name) pairs in id order."""
        return [(member.value, member.label) for member in cls]


_CATEGORY_LABELS: Dict[VenueCategory, str] = {
    VenueCategory.OTHER: "Other",
    VenueCategory.LEISURE_CENTRE: "Leisure centre",
    VenueCategory.SCHOOL: "School",
    VenueCategory.GYM: "Gym or health & fitness centre",
    VenueCategory.DEDICATED_FACILITY: "Dedicated facility",
    VenueCategory.DONT_KNOW: "Don't know",
    VenueCategory.HOTEL_OR_RESORT: "Hotel or resort",
    VenueCategory.COLLEGE_OR_UNIVERSITY: "College or university",
    VenueCategory.MILITARY: "Military",
    VenueCategory.SHOPPING_CENTRE: "Shopping centre",
    VenueCategory.COMMUNITY_HALL: "Community hall",
    VenueCategory.PRIVATE_RESIDENCE: "Private residence",
    VenueCategory.BUSINESS_COMPLEX: "Business complex",
    VenueCategory.PRIVATE_CLUB: "Private club",
    VenueCategory.COUNTRY_CLUB: "Country club",
    VenueCategory.INDUSTRIAL: "Industrial",
}


def category_name(category_id: Optional[int]) -> str:
    """Display name for a category id, tolerating unknown ids."""
    if category_id is None:
        return "None"
    category = VenueCategory.from_id(category_id)
    if category is None:
        return f"Unknown (ID: {category_id})"
    return category.label


class Confidence(str, Enum):
    """Confidence label attached to every recommendation."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANKS[self]

    def downgrade(self) -> "Confidence":
        """One tier weaker: HIGH becomes MEDIUM, anything else becomes LOW."""
        if self is Confidence.HIGH:
            return Confidence.MEDIUM
        return Confidence.LOW

    def meets(self, minimum: "Confidence") -> bool:
        return self.rank >= minimum.rank

    @classmethod
    def parse(cls, value: Optional[str], default: "Confidence" = None) -> "Confidence":
        """Normalize free text ('high', ' Medium ') to a member, else the default (LOW)."""
        if default is None:
            default = cls.LOW
        if value is None:
            return default
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return default


_CONFIDENCE_RANKS = {Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}


class CategorizationSource(str, Enum):
    """Where a category recommendation came from."""

    GOOGLE_MAPPING = "GOOGLE_MAPPING"
    OPENAI = "OPENAI"
    MANUAL = "MANUAL"


class ParentFacilityType(str, Enum):
    """Kind of larger facility a sub-venue belongs to."""

    LEISURE_CENTRE = "leisure_centre"
    GYM = "gym"


class SourceType(str, Enum):
    """Where court-count evidence was found."""

    VENUE_WEBSITE = "VENUE_WEBSITE"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    BOOKING_PAGE = "BOOKING_PAGE"
    GOOGLE_REVIEWS = "GOOGLE_REVIEWS"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourceType":
        if value is None:
            return cls.OTHER
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER


class VenueStatus(str, Enum):
    """Lifecycle status codes stored in ``venues.status``."""

    APPROVED = "1"
    FLAGGED_FOR_DELETION = "3"
    DELETED = "4"


class DeleteReason(IntEnum):
    """Rows of the ``delete_reasons`` lookup used by automated flags."""

    PERMANENTLY_CLOSED = 2
    NO_COURT_EVIDENCE = 3
