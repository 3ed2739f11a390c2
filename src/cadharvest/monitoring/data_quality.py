"""
Data Quality Scoring

Weighted completeness score for canonical property records, quality tiers,
type-aware remediation hints, and batch-level metrics.

Score components (0-100 total):
    required fields for the property type   40
    location completeness (5 fields)        20
    property detail fields for the type     20
    market data (3 fields)                  10
    generated content (3 fields)            10
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel

from src.cadharvest.validation.validators import get_nested_value, is_missing

BASE_REQUIRED_FIELDS = ["source", "price", "status", "address.county"]

LOCATION_FIELDS = [
    "address.street",
    "address.city",
    "address.county",
    "address.coordinates.latitude",
    "address.coordinates.longitude",
]
MARKET_FIELDS = ["listing_date", "days_on_market", "status"]
SEO_FIELDS = ["seo_slug", "description", "keywords"]

HIGH_QUALITY_THRESHOLD = 80
MEDIUM_QUALITY_THRESHOLD = 60


@dataclass
class QualityReport:
    score: int
    tier: str
    missing_fields: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _type_key(property_type: Any) -> str:
    value = getattr(property_type, "value", property_type) or "land"
    # Luxury parcels are scored against the residential field set
    if value == "residential-luxury":
        return "residential"
    return value


def get_required_fields_for_type(property_type: Any = "land") -> List[str]:
    """Required field paths for a property type."""
    key = _type_key(property_type)
    if key == "land":
        return BASE_REQUIRED_FIELDS + ["acreage"]
    if key == "commercial":
        return BASE_REQUIRED_FIELDS + ["property_type", "total_square_feet"]
    if key == "residential":
        return BASE_REQUIRED_FIELDS + ["bedrooms", "bathrooms", "square_feet"]
    return list(BASE_REQUIRED_FIELDS)


def get_detail_fields_for_type(property_type: Any = "land") -> List[str]:
    """Property-detail field paths for a property type."""
    key = _type_key(property_type)
    if key == "land":
        return ["zoning", "water_rights.has_water_rights", "utilities.electric", "road_access"]
    if key == "commercial":
        return ["zoning", "year_built", "parking_spaces", "land_use"]
    if key == "residential":
        return ["year_built", "lot_size", "amenities", "school_district"]
    return []


def _as_data(record: Any) -> Any:
    if isinstance(record, BaseModel):
        return record.model_dump()
    return record


def _fraction_present(data: Any, fields: Sequence[str]) -> float:
    if not fields:
        return 0.0
    present = sum(1 for path in fields if not is_missing(get_nested_value(data, path)))
    return present / len(fields)


def calculate_completeness_score(record: Any, property_type: Any = "land") -> int:
    """
    Calculate the 0-100 completeness score.

    Args:
        record: Canonical record or mapping
        property_type: Type whose required/detail field sets apply

    Returns:
        Score rounded half-up to an integer
    """
    data = _as_data(record)

    score = 0.0
    score += _fraction_present(data, get_required_fields_for_type(property_type)) * 40
    score += _fraction_present(data, LOCATION_FIELDS) * 20
    score += _fraction_present(data, get_detail_fields_for_type(property_type)) * 20
    score += _fraction_present(data, MARKET_FIELDS) * 10
    score += _fraction_present(data, SEO_FIELDS) * 10

    return int(math.floor(score + 0.5))


def get_quality_level(score: float) -> str:
    """Map a score to high (>=80), medium (60-79) or low."""
    if score >= HIGH_QUALITY_THRESHOLD:
        return "high"
    if score >= MEDIUM_QUALITY_THRESHOLD:
        return "medium"
    return "low"


def identify_missing_fields(record: Any, property_type: Any = "land") -> List[str]:
    """
    List every expected field path that is absent, None or "".

    Order: required, detail, location, market, generated content.
    """
    data = _as_data(record)
    candidates = (
        get_required_fields_for_type(property_type)
        + get_detail_fields_for_type(property_type)
        + LOCATION_FIELDS
        + ["listing_date", "days_on_market"]
        + ["seo_slug", "description", "keywords"]
    )

    missing: List[str] = []
    for path in candidates:
        if path not in missing and is_missing(get_nested_value(data, path)):
            missing.append(path)
    return missing


_REQUIRED_HINTS = {
    "price": "Add a market or appraised value (price is required)",
    "status": "Set a listing status",
    "address.county": "Add the county to the address",
    "source": "Record the data source",
    "acreage": "Add acreage (required for land parcels)",
    "total_square_feet": "Add improvement square footage (required for commercial properties)",
    "property_type": "Classify the property type",
    "bedrooms": "Add bedroom count (required for residential listings)",
    "bathrooms": "Add bathroom count (required for residential listings)",
    "square_feet": "Add living area square footage (required for residential listings)",
}


def suggest_improvements(record: Any, property_type: Any = "land") -> List[str]:
    """
    Ranked, human-readable hints for filling the most valuable gaps first.

    Ranking: missing required fields, type-critical details, coordinates,
    market data, then generated content. Advisory only.
    """
    key = _type_key(property_type)
    missing = identify_missing_fields(record, property_type)
    ranked: List[tuple] = []

    for path in get_required_fields_for_type(property_type):
        if path in missing:
            ranked.append((0, _REQUIRED_HINTS.get(path, f"Add {path}")))

    if key == "land" and "water_rights.has_water_rights" in missing:
        ranked.append((1, "Add water rights information (important for land value)"))
    if key == "commercial" and "zoning" in missing:
        ranked.append((1, "Add zoning information (critical for commercial properties)"))
    if key == "residential" and "school_district" in missing:
        ranked.append((1, "Add school district information (important for residential buyers)"))

    if "address.coordinates.latitude" in missing:
        ranked.append((2, "Add coordinates for map display and location-based search"))
    if "address.street" in missing:
        ranked.append((2, "Add the street address"))

    if "listing_date" in missing:
        ranked.append((3, "Record the listing date"))

    if "seo_slug" in missing:
        ranked.append((4, "Generate SEO-friendly URL slug"))
    if "description" in missing:
        ranked.append((4, "Generate property description for SEO"))

    return [text for _, text in sorted(ranked, key=lambda item: item[0])]


def build_quality_report(record: Any, property_type: Any = None) -> QualityReport:
    """
    Score a record and bundle tier, missing fields and suggestions.

    Args:
        record: Canonical record or mapping
        property_type: Override; defaults to the record's own property_type
    """
    if property_type is None:
        property_type = get_nested_value(record, "property_type") or "land"

    score = calculate_completeness_score(record, property_type)
    return QualityReport(
        score=score,
        tier=get_quality_level(score),
        missing_fields=identify_missing_fields(record, property_type),
        suggestions=suggest_improvements(record, property_type),
    )


def compute_batch_metrics(results: Iterable[Any]) -> Dict[str, Any]:
    """
    Summarize batch results: totals, failures by error type, validity and
    quality tiers.

    Args:
        results: BatchItemResult objects (or their to_dict() form)

    Returns:
        Dict with total/successful/failed/valid counts, error_types,
        quality_tiers and mean_quality_score
    """
    rows = []
    for result in results:
        item = result.to_dict() if hasattr(result, "to_dict") else dict(result)
        rows.append({
            "success": bool(item.get("success")),
            "skipped": bool(item.get("skipped")),
            "error_type": item.get("error_type"),
            "is_valid": (item.get("validation") or {}).get("is_valid"),
            "tier": (item.get("quality") or {}).get("tier"),
            "score": (item.get("quality") or {}).get("score"),
        })

    df = pd.DataFrame(rows, columns=["success", "skipped", "error_type", "is_valid", "tier", "score"])
    if df.empty:
        return {
            "total": 0, "successful": 0, "failed": 0, "skipped": 0, "valid": 0,
            "error_types": {}, "quality_tiers": {}, "mean_quality_score": None,
        }

    succeeded = df[df["success"]]
    failed = df[~df["success"] & ~df["skipped"]]
    mean_score: Optional[float] = None
    if succeeded["score"].notna().any():
        mean_score = round(float(succeeded["score"].dropna().mean()), 2)

    return {
        "total": int(len(df)),
        "successful": int(len(succeeded)),
        "failed": int(len(failed)),
        "skipped": int(df["skipped"].sum()),
        "valid": int((succeeded["is_valid"] == True).sum()),  # noqa: E712
        "error_types": {str(k): int(v) for k, v in failed["error_type"].value_counts().items()},
        "quality_tiers": {str(k): int(v) for k, v in succeeded["tier"].value_counts().items()},
        "mean_quality_score": mean_score,
    }
