"""
Canonical Property Record Models

Pydantic models for the single property schema every appraisal-district
adapter normalizes into.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import settings


class PropertyType(str, Enum):
    """Canonical property classification."""
    LAND = "land"
    COMMERCIAL = "commercial"
    RESIDENTIAL = "residential"
    RESIDENTIAL_LUXURY = "residential-luxury"


class PropertyStatus(str, Enum):
    """Canonical listing status."""
    ACTIVE = "active"
    PENDING = "pending"
    SOLD = "sold"
    OFF_MARKET = "off-market"

    @classmethod
    def coerce(cls, value: Any) -> "PropertyStatus":
        """
        Map a raw status onto the enum.

        Known synonyms are translated; anything else (including non-strings)
        becomes ACTIVE.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.ACTIVE

        cleaned = value.strip().lower()
        for member in cls:
            if member.value == cleaned:
                return member
        return STATUS_SYNONYMS.get(cleaned, cls.ACTIVE)


STATUS_SYNONYMS = {
    "available": PropertyStatus.ACTIVE,
    "listed": PropertyStatus.ACTIVE,
    "under_contract": PropertyStatus.PENDING,
    "closed": PropertyStatus.SOLD,
    "withdrawn": PropertyStatus.OFF_MARKET,
    "expired": PropertyStatus.OFF_MARKET,
}


class OwnerType(str, Enum):
    """Owner classification derived from the owner name."""
    INDIVIDUAL = "individual"
    LLC = "llc"
    CORPORATION = "corporation"
    TRUST = "trust"
    PARTNERSHIP = "partnership"
    GOVERNMENT = "government"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RegionBounds:
    """Inclusive latitude/longitude box for the configured region."""
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    @classmethod
    def from_settings(cls) -> "RegionBounds":
        return cls(
            min_latitude=settings.region_min_latitude,
            max_latitude=settings.region_max_latitude,
            min_longitude=settings.region_min_longitude,
            max_longitude=settings.region_max_longitude,
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        if math.isnan(latitude) or math.isnan(longitude):
            return False
        return (
            self.min_latitude <= latitude <= self.max_latitude
            and self.min_longitude <= longitude <= self.max_longitude
        )


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


class Coordinates(BaseModel):
    """WGS84 point."""
    latitude: float
    longitude: float


class Address(BaseModel):
    """
    Normalized address.

    Coordinates outside the configured region are dropped to None rather
    than clamped.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    street: str = ""
    city: str = ""
    county: str = ""
    state: str = Field(default_factory=lambda: settings.default_state)
    zip_code: str = ""
    coordinates: Optional[Coordinates] = None

    @field_validator("coordinates", mode="before")
    @classmethod
    def drop_out_of_region(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, Coordinates):
            lat, lng = v.latitude, v.longitude
        elif isinstance(v, dict):
            lat, lng = v.get("latitude"), v.get("longitude")
        else:
            return None

        latitude, longitude = _coerce_float(lat), _coerce_float(lng)
        if not RegionBounds.from_settings().contains(latitude, longitude):
            return None
        return {"latitude": latitude, "longitude": longitude}


class Owner(BaseModel):
    """Owner name plus its parsed classification."""
    name: str = ""
    type: OwnerType = OwnerType.UNKNOWN
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    entity_name: Optional[str] = None
    beneficiary_name: Optional[str] = None
    address: str = ""
    mailing_street: str = ""
    mailing_city: str = ""
    mailing_state: str = ""
    mailing_zip_code: str = ""


class Exemption(BaseModel):
    type: str = "Unknown"
    value: float = 0.0
    description: str = ""


class TaxUnit(BaseModel):
    """One taxing entity line (county, ISD, city, ...)."""
    name: str = "Unknown"
    rate: Optional[float] = None
    amount: float = 0.0
    taxable_value: Optional[float] = None


class TaxInfo(BaseModel):
    annual: float = 0.0
    exemptions: List[Exemption] = Field(default_factory=list)
    units: List[TaxUnit] = Field(default_factory=list)


class Improvement(BaseModel):
    """Building or structure on the parcel."""
    type: str
    square_feet: int = 0
    year_built: Optional[int] = None
    condition: str = ""


class DeedRecord(BaseModel):
    date: str = ""
    grantor: str = ""
    grantee: str = ""
    instrument_type: str = ""
    book_page: str = ""


class OwnershipLink(BaseModel):
    owner: str
    acquired_date: str = ""
    instrument_type: str = ""
    book_page: str = ""


class WildlifeManagement(BaseModel):
    has_wildlife_management: bool = False
    acres: float = 0.0
    value: float = 0.0
    description: str = ""


class WaterRights(BaseModel):
    has_water_rights: bool = False
    water_source: str = ""
    well_permit: str = ""
    water_district: str = ""
    description: str = ""


class Utilities(BaseModel):
    water: Optional[str] = None
    sewer: Optional[str] = None
    electric: Optional[str] = None
    gas: Optional[str] = None


class CanonicalPropertyRecord(BaseModel):
    """
    Property record in the common schema shared by all sources.

    Attributes:
        source: Source identifier (e.g. "hayscad")
        source_parcel_id: Parcel identifier as published by the source
        parcel_id: Canonical "{countyCode}-{year}-{cleanedId}" identifier
        price: Market value; None unless strictly positive
        status: Listing status, unknown values coerced to ACTIVE
        price_per_acre: Derived from price and acreage
        price_per_square_foot: Derived from price and total_square_feet,
            falling back to square_feet
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    # Identity
    source: str
    source_parcel_id: str
    parcel_id: str
    source_url: Optional[str] = None

    # Classification
    property_type: PropertyType = PropertyType.LAND
    status: PropertyStatus = PropertyStatus.ACTIVE

    address: Address = Field(default_factory=Address)

    # Valuation
    price: Optional[float] = None
    assessed_value: Optional[float] = None
    taxable_value: Optional[float] = None
    land_value: Optional[float] = None
    improvement_value: Optional[float] = None

    # Physical characteristics
    acreage: Optional[float] = None
    square_feet: Optional[int] = None
    total_square_feet: Optional[int] = None
    year_built: Optional[int] = None
    land_use: str = ""
    zoning: str = ""
    legal_description: str = ""

    owner: Owner = Field(default_factory=Owner)
    taxes: TaxInfo = Field(default_factory=TaxInfo)

    # Source-specific sub-records
    improvements: List[Improvement] = Field(default_factory=list)
    deed_history: List[DeedRecord] = Field(default_factory=list)
    ownership_chain: List[OwnershipLink] = Field(default_factory=list)
    agricultural_exemptions: List[Exemption] = Field(default_factory=list)
    wildlife_management: Optional[WildlifeManagement] = None
    water_rights: Optional[WaterRights] = None
    utilities: Utilities = Field(default_factory=Utilities)

    # Derived
    price_per_acre: Optional[float] = None
    price_per_square_foot: Optional[float] = None

    # Enrichment slots filled by downstream collaborators
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    lot_size: Optional[float] = None
    parking_spaces: Optional[int] = None
    road_access: Optional[str] = None
    amenities: Optional[List[str]] = None
    school_district: Optional[str] = None
    days_on_market: Optional[int] = None
    seo_slug: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[List[str]] = None

    # Timestamps
    listing_date: Optional[datetime] = None
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> PropertyStatus:
        return PropertyStatus.coerce(v)

    @field_validator("price", mode="before")
    @classmethod
    def positive_price_or_none(cls, v: Any) -> Any:
        """Price is only kept when strictly positive."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)) and (math.isnan(v) or v <= 0):
            return None
        return v

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.source, self.source_parcel_id)

    def has_coordinates(self) -> bool:
        """Check if the record carries in-region coordinates."""
        return self.address.coordinates is not None

    def to_dict(self) -> dict:
        """Plain JSON-compatible dictionary."""
        return self.model_dump(mode="json")
