import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from . import keys

_LEADING_INT = re.compile(r"\s*(\d[\d,]*)")

MAX_AUTHOR_LENGTH = 100
MAX_TEXT_LENGTH = 2000


class StudySpot(BaseModel):
    """
    Schema for one entry of the static study-spot catalog.

    Field aliases match the catalog file's column names, so records can be
    validated straight from the JSON source. Instances are immutable.
    """
    building: str = Field(..., alias="Building")
    room_number: str = Field(..., alias="Room Number")
    seating_spaces: str = Field(..., alias="Seating Spaces")
    group_individual: str = Field(..., alias="Group/Individual")
    space_type: str = Field(..., alias="Type of space")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("room_number", "seating_spaces", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        """Accept numeric cells in the catalog source as strings."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @computed_field
    @property
    def spot_key(self) -> str:
        return keys.spot_key(self.building, self.room_number)

    @computed_field
    @property
    def capacity(self) -> Optional[int]:
        """
        Integer seating capacity, or None when the field is not numeric.

        Parses the leading run of digits, ignoring thousands separators:
        ``"25"`` and ``"25 seats"`` both give 25, ``"1,200"`` gives 1200.
        Anything that does not start with a digit, including ``"N/A"`` and
        negative values such as ``"-5"``, gives None.
        """
        match = _LEADING_INT.match(self.seating_spaces)
        if match is None:
            return None
        return int(match.group(1).replace(",", ""))


class Amenities(BaseModel):
    """
    Optional amenity sub-ratings attached to a review.

    Each value, when present, is on the same 1–5 scale as the overall rating.
    """
    noise_level: Optional[int] = Field(default=None, ge=1, le=5)
    outlet_availability: Optional[int] = Field(default=None, ge=1, le=5)
    wifi_strength: Optional[int] = Field(default=None, ge=1, le=5)
    lighting: Optional[int] = Field(default=None, ge=1, le=5)


class ReviewInput(BaseModel):
    """
    Schema for submitting a review of a study spot.

    - ``author`` and ``text`` are stripped and must not be empty afterwards.
    - ``rating`` must lie in 1–5 inclusive.
    - ``author`` is at most 100 characters and ``text`` at most 2000.
    - Empty tags are dropped after stripping.
    """
    author: str = Field(..., min_length=1, max_length=MAX_AUTHOR_LENGTH)
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    rating: int = Field(..., ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    amenities: Optional[Amenities] = None

    @field_validator("author", "text")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        """
        Normalize and validate required free-text fields.

        - Strips leading/trailing whitespace.
        - Rejects values that are empty after stripping.
        """
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return [tag.strip() for tag in v if tag and tag.strip()]


class ReviewRecord(BaseModel):
    """
    Schema returned when reading a stored review.

    ``timestamp`` is always timezone-aware UTC when present; a missing
    timestamp is kept as None and sorts as the epoch.
    """
    spot_key: str
    author_key: str
    author: str
    text: str
    rating: int
    timestamp: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    amenities: Optional[Amenities] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # some backends (SQLite) drop tzinfo on the way back
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def none_tags_to_empty(cls, v):
        return [] if v is None else v


class RatingSummary(BaseModel):
    """
    Derived average rating and review count for one spot.

    ``RatingSummary()`` is the zero-review sentinel. ``has_reviews``
    separates it from a real rating so it can be shown as "N/A".
    """
    average: float = 0
    total_reviews: int = 0

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def has_reviews(self) -> bool:
        return self.total_reviews > 0


class SpotWithRating(BaseModel):
    """A catalog spot joined with its current rating summary."""
    spot: StudySpot
    rating: RatingSummary


class SpotDetail(BaseModel):
    """
    Everything the detail view of a single spot needs.

    ``reviews`` is already filtered and ordered; ``breakdown`` maps each
    star value 1–5 to its review count.
    """
    spot: StudySpot
    rating: RatingSummary
    breakdown: Dict[int, int]
    reviews: List[ReviewRecord]
    similar: List[SpotWithRating]
    reviews_available: bool = True
