"""
Listing data and the in-memory listing store.

Listings are scraped elsewhere and arrive as flat JSON arrays, one file per
source. The store loads them once and offers filter/iterate/lookup/summary.
"""

import hashlib
import json
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, Any, Optional, List, Iterator, Literal, get_args

from pydantic import (
    BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator
)

from .config import DataSourceConfig
from .exceptions import DataLoadError

HousingType = Literal["room", "apartment", "house", "studio"]
GenderPreference = Literal["male", "female", "any"]


def _to_number(value: Any) -> Any:
    """Accept scraped strings like "$1,850" or "2BR"."""
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value.replace(",", ""))
        return float(match.group()) if match else None
    return value


class Coordinates(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_number(value)

    @property
    def is_valid(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Listing(BaseModel):
    """A single housing listing (a candidate in search results)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    url: str = ""
    title: str = ""
    price: float = 0
    location: str = ""
    description: str = ""
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    housing_type: Optional[str] = Field(default=None, alias="housingType")
    private_room: bool = Field(default=False, alias="privateRoom")
    private_bath: bool = Field(default=False, alias="privateBath")
    gender_preference: str = Field(default="any", alias="genderPreference")
    coordinates: Coordinates = Field(default_factory=Coordinates)
    available_date: Optional[str] = Field(default=None, alias="availableDate")
    posted_date: Optional[str] = Field(default=None, alias="postedDate")
    source: str = "unknown"

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> Any:
        coerced = _to_number(value)
        return 0 if coerced is None else coerced

    @field_validator("coordinates", mode="before")
    @classmethod
    def _coordinates(cls, value: Any) -> Any:
        return value or {}

    @field_validator("bedrooms", "bathrooms", mode="before")
    @classmethod
    def _rooms(cls, value: Any) -> Any:
        return _to_number(value)

    @field_validator("gender_preference", mode="before")
    @classmethod
    def _gender(cls, value: Any) -> str:
        return str(value or "any").lower()

    @model_validator(mode="after")
    def _derive_id(self) -> "Listing":
        if not self.id:
            self.id = listing_id_from_url(self.url) if self.url else hashlib.sha1(self.title.encode()).hexdigest()[:12]
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def listing_id_from_url(url: str) -> str:
    """Use the numeric item id in a listing URL, or a short hash of the URL."""
    numbers = re.findall(r"\d{6,}", url)
    if numbers:
        return numbers[-1]
    return hashlib.sha1(url.encode()).hexdigest()[:12]


class ListingFilters(BaseModel):
    """Deterministic filters applied before any semantic scoring."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min_price: Optional[float] = Field(default=None, alias="minPrice")
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    min_bedrooms: Optional[float] = Field(default=None, alias="minBedrooms")
    max_bedrooms: Optional[float] = Field(default=None, alias="maxBedrooms")
    private_room: Optional[bool] = Field(default=None, alias="privateRoom")
    private_bath: Optional[bool] = Field(default=None, alias="privateBath")
    location: Optional[str] = None
    housing_type: Optional[HousingType] = Field(default=None, alias="housingType")
    gender_preference: Optional[GenderPreference] = Field(default=None, alias="genderPreference")

    @field_validator("min_price", "max_price", "min_bedrooms", "max_bedrooms", mode="before")
    @classmethod
    def _numbers(cls, value: Any) -> Any:
        return _to_number(value)

    @field_validator("housing_type", "gender_preference", mode="before")
    @classmethod
    def _vocabulary(cls, value: Any, info: ValidationInfo) -> Any:
        # Unknown values are dropped, not rejected
        if value is None:
            return None
        allowed = get_args(HousingType if info.field_name == "housing_type" else GenderPreference)
        normalized = str(value).strip().lower()
        return normalized if normalized in allowed else None

    def matches(self, listing: Listing) -> bool:
        if self.min_price is not None and listing.price < self.min_price:
            return False
        if self.max_price is not None and listing.price > self.max_price:
            return False
        if self.min_bedrooms is not None and (listing.bedrooms or 0) < self.min_bedrooms:
            return False
        if self.max_bedrooms is not None and (listing.bedrooms or 0) > self.max_bedrooms:
            return False
        if self.private_room is not None and listing.private_room != self.private_room:
            return False
        if self.private_bath is not None and listing.private_bath != self.private_bath:
            return False
        if self.location and self.location.lower() not in listing.location.lower():
            return False
        if self.housing_type and (listing.housing_type or "").lower() != self.housing_type:
            return False
        if self.gender_preference and self.gender_preference != "any":
            if listing.gender_preference not in ("any", self.gender_preference):
                return False
        return True


class ListingStore:
    """Read-only collection of listings loaded at startup."""

    def __init__(self, listings: List[Listing], logger: Optional[logging.Logger] = None):
        """Initialize the store from already-parsed listings."""
        self.logger = logger or logging.getLogger(__name__)
        self._listings = list(listings)
        self._by_id = {listing.id: listing for listing in self._listings}

    @classmethod
    def from_sources(cls, sources: List[DataSourceConfig], logger: logging.Logger,
                     base_dir: Optional[Path] = None) -> "ListingStore":
        """Load every configured JSON file. Missing or empty data is fatal."""
        listings: List[Listing] = []
        for source in sources:
            path = Path(source.path)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            listings.extend(cls._load_file(path, source.name, logger))

        if not listings:
            raise DataLoadError("No listings loaded from any configured source", ", ".join(s.path for s in sources), "NO_DATA")
        return cls(listings, logger)

    @staticmethod
    def _load_file(path: Path, source_name: str, logger: logging.Logger) -> List[Listing]:
        if not path.exists():
            raise DataLoadError(f"Listing file not found: {path}", str(path), "FILE_NOT_FOUND")

        try:
            with open(path, "r", encoding="utf-8") as file:
                records = json.load(file)
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Listing file is not valid JSON: {path}", str(path), "INVALID_JSON", {"original_error": str(e)})

        if not isinstance(records, list):
            raise DataLoadError(f"Listing file must contain a JSON array: {path}", str(path), "INVALID_FORMAT")

        listings = []
        skipped = 0
        for record in records:
            try:
                listings.append(Listing.model_validate({**record, "source": source_name}))
            except (ValidationError, TypeError):
                skipped += 1

        logger.info(f"Loaded {len(listings)} {source_name} listings from {path}")
        if skipped:
            logger.warning(f"Skipped {skipped} malformed records in {path}")
        return listings

    def __len__(self) -> int:
        return len(self._listings)

    def iterate(self, source: str = "all") -> Iterator[Listing]:
        for listing in self._listings:
            if source == "all" or listing.source == source:
                yield listing

    def get(self, listing_id: str) -> Optional[Listing]:
        return self._by_id.get(str(listing_id))

    @property
    def sources(self) -> List[str]:
        return sorted({listing.source for listing in self._listings})

    def filter(self, filters: Optional[ListingFilters] = None, limit: Optional[int] = None) -> List[Listing]:
        """Apply deterministic filters, preserving store order."""
        filters = filters or ListingFilters()
        matched = [listing for listing in self._listings if filters.matches(listing)]
        return matched[:limit] if limit else matched

    def summary(self, source: str = "all") -> Dict[str, Any]:
        """Aggregate statistics over one source or all of them."""
        data = list(self.iterate(source))
        if not data:
            return {"error": "No data available"}

        prices = [listing.price for listing in data]
        housing_types = Counter(listing.housing_type or "unknown" for listing in data)
        locations = Counter(listing.location for listing in data if listing.location)

        return {
            "source": source,
            "totalListings": len(data),
            "priceStats": {
                "average": round(sum(prices) / len(prices)),
                "min": min(prices),
                "max": max(prices),
            },
            "housingTypes": dict(housing_types),
            "topLocations": dict(locations.most_common(10)),
            "privateRoomAvailable": sum(1 for listing in data if listing.private_room),
            "privateBathAvailable": sum(1 for listing in data if listing.private_bath),
        }
