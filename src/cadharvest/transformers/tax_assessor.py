"""
Tax Assessor Helpers

Shared transformations for appraisal-district data across counties: parcel
ID canonicalization, owner name parsing, tax unit and exemption parsing,
deed/ownership chain building and improvement aggregation.
"""
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from src.cadharvest.models.property_record import (
    DeedRecord,
    Exemption,
    Improvement,
    Owner,
    OwnerType,
    OwnershipLink,
    PropertyType,
    TaxUnit,
)
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

COUNTY_CODES = {
    "travis": "TC",
    "hays": "HC",
    "williamson": "WC",
    "bastrop": "BC",
    "caldwell": "CC",
    "comal": "CO",
    "guadalupe": "GC",
}

SESSION_COOKIE_NAMES = (
    "PHPSESSID",
    "JSESSIONID",
    "ASP.NET_SessionId",
    "session_id",
    "SessionId",
)

# Owner classification patterns, checked in order
_OWNER_PATTERNS: Sequence[Tuple[OwnerType, Sequence[str]]] = (
    (OwnerType.LLC, (r"\bLLC\b", r"\bL\.L\.C\b")),
    (OwnerType.CORPORATION, (r"\bInc\.?(?!\w)", r"\bCorp\.?(?!\w)", r"\bCorporation\b",
                             r"\bLtd\.?(?!\w)", r"\bCo\.?(?!\w)")),
    (OwnerType.TRUST, (r"\bTrust\b", r"\bTrustee\b")),
    (OwnerType.PARTNERSHIP, (r"\bLP\b", r"\bLLP\b", r"\bL\.P\b", r"\bL\.L\.P\b", r"\bPartnership\b")),
    (OwnerType.GOVERNMENT, (r"\bCity of\b", r"\bCounty of\b", r"\bState of\b", r"\bUSA\b",
                            r"\bUnited States\b")),
)

_DEED_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m-%d-%Y", "%m/%d/%y", "%b %d, %Y", "%B %d, %Y")


def normalize_parcel_id(raw_parcel_id: Any, county: str, year: Optional[int] = None) -> str:
    """
    Build the canonical parcel ID "{countyCode}-{year}-{cleanedId}".

    Args:
        raw_parcel_id: Parcel ID as published by the source
        county: County name (travis, hays, williamson, ...)
        year: Tax year (defaults to the current year)

    Returns:
        Canonical parcel ID, or "" if the ID or county is missing
    """
    if raw_parcel_id in (None, "") or not county:
        logger.error(
            "parcel_id_normalization_missing_input",
            raw_parcel_id=raw_parcel_id,
            county=county
        )
        return ""

    cleaned_id = re.sub(r"[^\w-]", "", str(raw_parcel_id).strip())
    tax_year = year or datetime.now().year
    county_code = COUNTY_CODES.get(county.lower(), county[:2].upper())

    return f"{county_code}-{tax_year}-{cleaned_id}"


def parse_owner_name(raw_owner_name: Any) -> Owner:
    """
    Parse an owner name and classify the owner.

    Entities (LLC, corporation, trust, partnership, government) keep the full
    name as entity_name; individuals are split as "LAST, FIRST" or
    "FIRST ... LAST".

    Args:
        raw_owner_name: Owner name as published by the source

    Returns:
        Owner model
    """
    if not raw_owner_name or not isinstance(raw_owner_name, str):
        return Owner(name="", type=OwnerType.UNKNOWN)

    name = raw_owner_name.strip()

    for owner_type, patterns in _OWNER_PATTERNS:
        if any(re.search(pattern, name, re.IGNORECASE) for pattern in patterns):
            owner = Owner(name=name, type=owner_type, entity_name=name)
            if owner_type is OwnerType.TRUST:
                trust_match = re.match(r"^(.+?)\s+(?:Family\s+)?Trust", name, re.IGNORECASE)
                owner.beneficiary_name = trust_match.group(1).strip() if trust_match else None
            return owner

    first_name = None
    last_name = None
    if "," in name:
        parts = [p.strip() for p in name.split(",")]
        last_name = parts[0] or None
        if len(parts) > 1 and parts[1]:
            first_name = parts[1].split()[0]
    else:
        parts = name.split()
        if len(parts) >= 2:
            first_name, last_name = parts[0], parts[-1]
        elif len(parts) == 1:
            last_name = parts[0]

    return Owner(
        name=name,
        type=OwnerType.INDIVIDUAL,
        first_name=first_name,
        last_name=last_name,
    )


def extract_numeric_value(text: Any, value_type: str = "decimal") -> Optional[float]:
    """
    Extract a number from text carrying currency, percent or spacing noise.

    Args:
        text: e.g. "$12,500", "2.15%", " 1,204 "
        value_type: "decimal", "currency", "integer" or "percentage"

    Returns:
        Parsed value (percentages as fractions, integers rounded), or None
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = re.sub(r"[$,%\s]", "", text)
    # Leading number only, so "10.5acres" parses and "n/a" does not
    match = re.match(r"-?(?:\d+(?:\.\d*)?|\.\d+)", cleaned)
    if not match:
        return None
    value = float(match.group(0))

    if value_type == "percentage" and "%" in text:
        return value / 100
    if value_type == "integer":
        return float(round(value))
    return value


def _parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(re.sub(r"[^0-9.-]", "", value) or 0)
        except ValueError:
            return 0.0
    return 0.0


def _first_present(mapping: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return default


def parse_tax_units(raw_tax_units: Any) -> List[TaxUnit]:
    """
    Parse taxing-entity rows (name, rate, amount, taxable value).

    Args:
        raw_tax_units: List of mappings as extracted from a tax table

    Returns:
        List of TaxUnit models
    """
    if not isinstance(raw_tax_units, list):
        return []

    units = []
    for unit in raw_tax_units:
        if not isinstance(unit, Mapping):
            continue
        rate = unit.get("rate")
        taxable_value = unit.get("taxable_value")
        units.append(TaxUnit(
            name=_first_present(unit, ("name", "taxing_entity", "unit"), "Unknown"),
            rate=_parse_amount(rate) if rate not in (None, "") else None,
            amount=_parse_amount(_first_present(unit, ("amount", "tax"), "0")),
            taxable_value=_parse_amount(taxable_value) if taxable_value not in (None, "") else None,
        ))
    return units


def calculate_total_taxes(tax_units: Iterable[Union[TaxUnit, Mapping[str, Any]]]) -> float:
    """
    Sum the tax amount across taxing units, rounded to cents.

    Mappings may name the amount amount/tax/tax_amount/total_tax/value.
    """
    total = 0.0
    for unit in tax_units or []:
        if isinstance(unit, TaxUnit):
            total += unit.amount
        elif isinstance(unit, Mapping):
            total += _parse_amount(
                _first_present(unit, ("amount", "tax", "tax_amount", "total_tax", "value"), 0)
            )
    return round(total, 2)


def parse_exemptions(raw_exemptions: Any) -> List[Exemption]:
    """
    Parse exemption rows into Exemption models.

    Rows with neither a value nor a type are skipped.
    """
    if not isinstance(raw_exemptions, list):
        return []

    exemptions = []
    for exemption in raw_exemptions:
        if isinstance(exemption, Exemption):
            exemptions.append(exemption)
            continue
        if not isinstance(exemption, Mapping):
            continue

        value = _parse_amount(_first_present(exemption, ("value", "amount"), "0"))
        exemption_type = _first_present(exemption, ("type", "name", "exemption_type"))
        if value == 0 and not exemption_type:
            continue

        exemptions.append(Exemption(
            type=exemption_type or "Unknown",
            value=value,
            description=exemption.get("description") or "",
        ))
    return exemptions


def parse_address_components(raw_address: Any) -> Dict[str, str]:
    """
    Split a "STREET, CITY, STATE ZIP" string into its components.

    When the last part is not "ST 12345" it is kept whole as the state.
    """
    result = {"street": "", "city": "", "state": "", "zip_code": ""}
    if not raw_address or not isinstance(raw_address, str):
        return result

    parts = [p.strip() for p in raw_address.strip().split(",")]
    result["street"] = parts[0]
    if len(parts) >= 2:
        result["city"] = parts[1]
    if len(parts) >= 3:
        state_zip = re.match(r"^([A-Z]{2})\s+(\d{5}(?:-\d{4})?)$", parts[2])
        if state_zip:
            result["state"], result["zip_code"] = state_zip.group(1), state_zip.group(2)
        else:
            result["state"] = parts[2]
    return result


def extract_session_cookie(
    cookies: Union[str, Sequence[str], None],
    cookie_names: Sequence[str] = SESSION_COOKIE_NAMES,
) -> Optional[Tuple[str, str]]:
    """
    Find a session token in Set-Cookie header values.

    Args:
        cookies: One Set-Cookie header value or a list of them
        cookie_names: Candidate cookie names, tried in order per header

    Returns:
        (cookie_name, token) as the name was configured, or None
    """
    if not cookies:
        return None

    cookie_values = [cookies] if isinstance(cookies, str) else list(cookies)
    for cookie in cookie_values:
        if not isinstance(cookie, str):
            continue
        for cookie_name in cookie_names:
            match = re.search(rf"(?<![\w.]){re.escape(cookie_name)}=([^;,\s]+)", cookie, re.IGNORECASE)
            if match:
                return cookie_name, match.group(1)
    return None


def parse_deed_date(value: str) -> Optional[datetime]:
    """Parse a deed date in any of the formats the CAD sites publish."""
    value = (value or "").strip()
    for fmt in _DEED_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def build_ownership_chain(deed_history: Iterable[DeedRecord]) -> List[OwnershipLink]:
    """
    Build the ownership chain from deed history, most recent first.

    Deeds are sorted by date descending (undated deeds last, original order
    kept among equal dates); each deed with a grantee becomes one link, so
    the head of the chain is the current owner of record.
    """
    deeds = list(deed_history or [])
    ordered = sorted(
        deeds,
        key=lambda deed: parse_deed_date(deed.date) or datetime.min,
        reverse=True,
    )
    return [
        OwnershipLink(
            owner=deed.grantee,
            acquired_date=deed.date,
            instrument_type=deed.instrument_type,
            book_page=deed.book_page,
        )
        for deed in ordered
        if deed.grantee
    ]


def calculate_total_square_feet(improvements: Iterable[Improvement]) -> int:
    """Sum square footage over all improvements."""
    return sum(improvement.square_feet or 0 for improvement in improvements or [])


def classify_property_type(
    improvements: Sequence[Improvement],
    acreage: Optional[float],
    default: PropertyType = PropertyType.LAND,
) -> PropertyType:
    """
    Refine the property type from improvement descriptions.

    Any commercial improvement makes the parcel commercial. Residential
    improvements make it residential, or residential-luxury on more than
    five acres. Otherwise the parcel is land.
    """
    if not improvements:
        return default

    types = [(improvement.type or "").lower() for improvement in improvements]
    if any("commercial" in t for t in types):
        return PropertyType.COMMERCIAL
    if any("residential" in t for t in types):
        if acreage and acreage > 5:
            return PropertyType.RESIDENTIAL_LUXURY
        return PropertyType.RESIDENTIAL
    return PropertyType.LAND


_STRING_FIELDS = ("parcel_id", "owner_name", "property_address", "city", "zip_code", "legal_description")
_NUMERIC_FIELDS = (
    "land_value", "improvement_value", "market_value", "assessed_value", "taxable_value",
    "total_taxes", "acreage", "square_feet", "year_built",
)
_LIST_FIELDS = ("exemptions", "improvements", "deed_history")


def sanitize_raw_fields(raw_fields: Any) -> Tuple[Dict[str, Any], List[str]]:
    """
    Coerce raw fields into the shapes normalize() expects.

    Non-string identifiers are stringified, unparseable numbers are blanked
    and non-list collections are replaced with empty lists.

    Returns:
        (sanitized copy, list of warnings)
    """
    if not isinstance(raw_fields, Mapping):
        return {}, ["Invalid raw data provided"]

    warnings: List[str] = []
    sanitized = dict(raw_fields)

    for name in _STRING_FIELDS:
        value = sanitized.get(name)
        if value and not isinstance(value, str):
            sanitized[name] = str(value)
            warnings.append(f"Field '{name}' was converted to string")

    for name in _NUMERIC_FIELDS:
        value = sanitized.get(name)
        if value and extract_numeric_value(str(value)) is None:
            warnings.append(f"Field '{name}' could not be parsed as numeric value")
            sanitized[name] = ""

    for name in _LIST_FIELDS:
        value = sanitized.get(name)
        if value and not isinstance(value, list):
            warnings.append(f"Field '{name}' is not an array, converting")
            sanitized[name] = []

    return sanitized, warnings
