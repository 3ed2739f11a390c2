"""
Property Data Normalization

Pure functions mapping raw scraped values onto canonical types. No I/O and
no exceptions for malformed input: unparseable numbers become 0, invalid
coordinates become None, unknown statuses become "active".
"""
import math
import re
from typing import Any, Dict, Mapping, Optional, Union

from config.settings import settings
from src.cadharvest.models.property_record import (
    Address,
    Coordinates,
    PropertyStatus,
    RegionBounds,
)

# Characters stripped before numeric extraction
_NUMERIC_NOISE = re.compile(r"[$,\s]")
_FIRST_NUMBER = re.compile(r"(\d+\.?\d*)")


def _extract_number(value: Any) -> float:
    """Shared numeric-extraction policy for prices and acreage."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    if not isinstance(value, str):
        return 0.0

    cleaned = _NUMERIC_NOISE.sub("", value)
    match = _FIRST_NUMBER.search(cleaned)
    if match:
        return float(match.group(1))
    return 0.0


def normalize_price(price: Union[str, int, float, None]) -> float:
    """
    Extract a price from a number or a formatted string.

    Args:
        price: e.g. 250000, "$1,250,000.50", "n/a"

    Returns:
        Numeric price, or 0.0 when nothing parses
    """
    return _extract_number(price)


def normalize_acreage(acreage: Union[str, int, float, None]) -> float:
    """
    Extract acreage from a number or a string such as "10.5 acres".

    Returns:
        Acreage, or 0.0 when nothing parses
    """
    return _extract_number(acreage)


def normalize_coordinates(
    lat: Union[str, int, float, None],
    lng: Union[str, int, float, None],
    bounds: Optional[RegionBounds] = None,
) -> Optional[Coordinates]:
    """
    Parse a latitude/longitude pair and check it against the region box.

    Args:
        lat: Latitude as number or string
        lng: Longitude as number or string
        bounds: Region box (defaults to the configured region)

    Returns:
        Coordinates, or None if either value is not numeric or the point
        lies outside the box
    """
    bounds = bounds or RegionBounds.from_settings()

    def parse(value: Any) -> float:
        if isinstance(value, bool) or value is None:
            return math.nan
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return float(str(value).strip())
        except ValueError:
            return math.nan

    latitude, longitude = parse(lat), parse(lng)
    if not bounds.contains(latitude, longitude):
        return None
    return Coordinates(latitude=latitude, longitude=longitude)


def normalize_address(
    raw_address: Union[str, Mapping[str, Any], Address, None],
    default_state: Optional[str] = None,
) -> Address:
    """
    Normalize an address given as a mapping or a comma-delimited string.

    The string form is "Street, City, County, STATE ZIP". Missing parts
    become empty strings and the state falls back to the region default.

    Args:
        raw_address: Mapping with street/city/county/state/zip_code keys
            (camelCase zipCode is accepted), an Address, or a string
        default_state: Override for settings.default_state

    Returns:
        Address model
    """
    state_default = default_state or settings.default_state

    if isinstance(raw_address, Address):
        return raw_address.model_copy()

    if isinstance(raw_address, Mapping):
        return Address(
            street=raw_address.get("street") or "",
            city=raw_address.get("city") or "",
            county=raw_address.get("county") or "",
            state=raw_address.get("state") or state_default,
            zip_code=raw_address.get("zip_code") or raw_address.get("zipCode") or "",
            coordinates=raw_address.get("coordinates"),
        )

    if isinstance(raw_address, str):
        parts = [part.strip() for part in raw_address.split(",")]
        state_zip = parts[3].split() if len(parts) > 3 else []
        return Address(
            street=parts[0] if parts else "",
            city=parts[1] if len(parts) > 1 else "",
            county=parts[2] if len(parts) > 2 else "",
            state=state_zip[0] if state_zip else state_default,
            zip_code=state_zip[1] if len(state_zip) > 1 else "",
        )

    return Address(state=state_default)


def normalize_zoning(zoning: Any) -> str:
    """Uppercase and trim a zoning code; non-strings become ""."""
    if not isinstance(zoning, str):
        return ""
    return zoning.strip().upper()


def normalize_status(status: Any) -> str:
    """
    Normalize a listing status to one of active/pending/sold/off-market.

    Synonyms: available|listed -> active, under_contract -> pending,
    closed -> sold, withdrawn|expired -> off-market. Anything else is active.
    """
    return PropertyStatus.coerce(status).value


def calculate_derived_fields(property_data: Union[Mapping[str, Any], Any]) -> Dict[str, float]:
    """
    Calculate price_per_acre and price_per_square_foot.

    Each field is computed independently and omitted when its denominator is
    missing or zero. price_per_square_foot uses total_square_feet and falls
    back to square_feet only when total_square_feet is absent or zero.

    Args:
        property_data: Mapping or record exposing price, acreage,
            square_feet and total_square_feet

    Returns:
        Dict with whichever derived fields could be computed
    """
    def read(name: str) -> Any:
        if isinstance(property_data, Mapping):
            return property_data.get(name)
        return getattr(property_data, name, None)

    calculated: Dict[str, float] = {}

    price = read("price")
    if not price:
        return calculated

    acreage = read("acreage")
    if acreage and acreage > 0:
        calculated["price_per_acre"] = price / acreage

    square_feet = read("square_feet")
    total_square_feet = read("total_square_feet")
    if total_square_feet and total_square_feet > 0:
        calculated["price_per_square_foot"] = price / total_square_feet
    elif square_feet and square_feet > 0:
        calculated["price_per_square_foot"] = price / square_feet

    return calculated
