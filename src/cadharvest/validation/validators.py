"""
Property Record Validation

Business-rule checks run on canonical records before they are handed to
storage. Every function returns a result; none of them raise.
"""
import math
from dataclasses import asdict, dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from src.cadharvest.models.property_record import PropertyStatus, RegionBounds

REQUIRED_FIELDS = ("source", "price", "status", "address.county")

_VALID_STATUSES = {status.value for status in PropertyStatus}
_MISSING = object()


@dataclass
class RequiredFieldsResult:
    is_valid: bool
    missing_fields: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    """
    Outcome of validate_property_record.

    Each flag is computed independently so all problem categories are
    reported together.
    """
    is_valid: bool
    missing_fields: List[str] = field(default_factory=list)
    invalid_price: bool = False
    invalid_status: bool = False
    invalid_coordinates: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Resolve a dot path ("address.county") against mappings and models.

    Returns:
        The value, or None when any segment is absent
    """
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return None
    return current


def is_missing(value: Any) -> bool:
    """Absent, None and "" count as missing."""
    return value is None or value == ""


def validate_required_fields(record: Any, required_fields: Sequence[str]) -> RequiredFieldsResult:
    """
    Check that every dot-path in required_fields is present.

    Args:
        record: Canonical record or mapping
        required_fields: Dot paths such as "address.county"

    Returns:
        RequiredFieldsResult listing the missing paths in input order
    """
    missing = [path for path in required_fields if is_missing(get_nested_value(record, path))]
    return RequiredFieldsResult(is_valid=not missing, missing_fields=missing)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def validate_coordinates(lat: Any, lng: Any, bounds: Optional[RegionBounds] = None) -> bool:
    """Coordinates must be numeric, not NaN, and inside the region box."""
    if not (_is_number(lat) and _is_number(lng)):
        return False
    return (bounds or RegionBounds.from_settings()).contains(float(lat), float(lng))


def validate_price(price: Any) -> bool:
    """Price must be numeric, not NaN, and strictly positive."""
    return _is_number(price) and price > 0


def validate_status(status: Any) -> bool:
    """Status must be one of active/pending/sold/off-market."""
    if isinstance(status, PropertyStatus):
        return True
    return isinstance(status, str) and status in _VALID_STATUSES


def validate_property_record(
    record: Any,
    required_fields: Sequence[str] = REQUIRED_FIELDS,
    bounds: Optional[RegionBounds] = None,
) -> ValidationResult:
    """
    Run all record checks without short-circuiting.

    Coordinates are optional; when present they must validate.

    Args:
        record: CanonicalPropertyRecord or equivalent mapping
        required_fields: Dot paths that must be present
        bounds: Region box override

    Returns:
        ValidationResult with one flag per category
    """
    if isinstance(record, BaseModel):
        record = record.model_dump()

    fields_result = validate_required_fields(record, required_fields)
    price_valid = validate_price(get_nested_value(record, "price"))
    status_valid = validate_status(get_nested_value(record, "status"))

    coordinates_valid = True
    coordinates = get_nested_value(record, "address.coordinates")
    if coordinates is not None:
        coordinates_valid = validate_coordinates(
            get_nested_value(coordinates, "latitude"),
            get_nested_value(coordinates, "longitude"),
            bounds,
        )

    return ValidationResult(
        is_valid=fields_result.is_valid and price_valid and status_valid and coordinates_valid,
        missing_fields=fields_result.missing_fields,
        invalid_price=not price_valid,
        invalid_status=not status_valid,
        invalid_coordinates=not coordinates_valid,
    )
