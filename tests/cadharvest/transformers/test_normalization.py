"""
Unit tests for property data normalization
"""
import math

import pytest

from src.cadharvest.models.property_record import Address, CanonicalPropertyRecord, RegionBounds
from src.cadharvest.transformers.normalization import (
    calculate_derived_fields,
    normalize_acreage,
    normalize_address,
    normalize_coordinates,
    normalize_price,
    normalize_status,
    normalize_zoning,
)


class TestNormalizePrice:
    """Tests for normalize_price"""

    def test_formatted_string(self):
        assert normalize_price("$1,250,000.50") == 1250000.5

    def test_numbers_pass_through(self):
        assert normalize_price(250000) == 250000.0
        assert normalize_price(99.5) == 99.5

    @pytest.mark.parametrize("value", ["n/a", "", None, True, [], {"price": 1}])
    def test_unparseable_is_zero(self, value):
        assert normalize_price(value) == 0.0

    def test_nan_is_zero(self):
        assert normalize_price(math.nan) == 0.0

    def test_takes_first_number(self):
        assert normalize_price("Market: $450,000 (2024)") == 450000.0


class TestNormalizeAcreage:
    """Tests for normalize_acreage"""

    def test_units_ignored(self):
        assert normalize_acreage("10.5 acres") == 10.5

    def test_missing_is_zero(self):
        assert normalize_acreage(None) == 0.0
        assert normalize_acreage("unknown") == 0.0


class TestNormalizeCoordinates:
    """Tests for normalize_coordinates"""

    def test_inside_region(self):
        coords = normalize_coordinates(30.2672, -97.7431)
        assert coords is not None
        assert coords.latitude == 30.2672
        assert coords.longitude == -97.7431

    def test_string_values(self):
        coords = normalize_coordinates("29.8833", " -97.9414 ")
        assert coords is not None
        assert coords.longitude == -97.9414

    def test_box_edges_inclusive(self):
        assert normalize_coordinates(29.0, -99.0) is not None
        assert normalize_coordinates(31.0, -97.0) is not None

    @pytest.mark.parametrize("lat,lng", [
        (40.7128, -74.0060),
        (30.5, -96.5),
        (28.9, -98.0),
        ("abc", -97.7),
        (None, -97.7),
        (math.nan, -97.7),
    ])
    def test_outside_or_invalid_is_none(self, lat, lng):
        assert normalize_coordinates(lat, lng) is None

    def test_custom_bounds(self):
        bounds = RegionBounds(40.0, 41.0, -75.0, -73.0)
        assert normalize_coordinates(40.7128, -74.0060, bounds) is not None


class TestNormalizeAddress:
    """Tests for normalize_address"""

    def test_mapping(self):
        address = normalize_address({"street": " 100 Congress Ave ", "city": "Austin",
                                     "county": "Travis", "zipCode": "78701"})
        assert address.street == "100 Congress Ave"
        assert address.zip_code == "78701"
        assert address.state == "TX"

    def test_string(self):
        address = normalize_address("100 Main St, Kyle, Hays, TX 78640")
        assert address.street == "100 Main St"
        assert address.city == "Kyle"
        assert address.county == "Hays"
        assert address.state == "TX"
        assert address.zip_code == "78640"

    def test_partial_string(self):
        address = normalize_address("100 Main St, Kyle")
        assert address.county == ""
        assert address.state == "TX"

    def test_none(self):
        assert normalize_address(None) == Address(state="TX")

    def test_out_of_region_coordinates_dropped(self):
        address = normalize_address({"county": "Hays",
                                     "coordinates": {"latitude": 45.0, "longitude": -97.5}})
        assert address.coordinates is None


class TestSimpleNormalizers:
    """Tests for zoning and status normalization"""

    def test_zoning(self):
        assert normalize_zoning("  ag-1 ") == "AG-1"
        assert normalize_zoning(None) == ""
        assert normalize_zoning(42) == ""

    @pytest.mark.parametrize("raw,expected", [
        ("available", "active"),
        ("Listed", "active"),
        ("under_contract", "pending"),
        ("closed", "sold"),
        ("withdrawn", "off-market"),
        ("expired", "off-market"),
        ("sold", "sold"),
        ("something-else", "active"),
        (None, "active"),
    ])
    def test_status(self, raw, expected):
        assert normalize_status(raw) == expected


class TestDerivedFields:
    """Tests for calculate_derived_fields"""

    def test_both_fields(self):
        derived = calculate_derived_fields({"price": 500000, "acreage": 10, "square_feet": 2500})
        assert derived == {"price_per_acre": 50000.0, "price_per_square_foot": 200.0}

    def test_zero_denominators_omitted(self):
        derived = calculate_derived_fields({"price": 500000, "acreage": 0, "square_feet": 0})
        assert derived == {}

    def test_missing_price(self):
        assert calculate_derived_fields({"price": None, "acreage": 10}) == {}

    def test_total_square_feet_takes_precedence(self):
        derived = calculate_derived_fields({"price": 300000, "square_feet": 2000, "total_square_feet": 3000})
        assert derived["price_per_square_foot"] == 100.0

    def test_square_feet_fallback(self):
        derived = calculate_derived_fields({"price": 600000, "square_feet": 3000, "total_square_feet": None})
        assert derived["price_per_square_foot"] == 200.0

    def test_zero_total_square_feet_falls_back(self):
        derived = calculate_derived_fields({"price": 600000, "square_feet": 3000, "total_square_feet": 0})
        assert derived["price_per_square_foot"] == 200.0

    def test_accepts_record(self):
        record = CanonicalPropertyRecord(
            source="hayscad", source_parcel_id="1", parcel_id="HC-2024-1",
            price=100000, acreage=4,
        )
        assert calculate_derived_fields(record) == {"price_per_acre": 25000.0}


class TestCanonicalRecordInvariants:
    """Record-level invariants enforced by the model"""

    @pytest.mark.parametrize("price", [0, -5, math.nan, True])
    def test_non_positive_price_becomes_none(self, price):
        record = CanonicalPropertyRecord(source="s", source_parcel_id="1", parcel_id="X-1", price=price)
        assert record.price is None

    def test_status_coerced(self):
        record = CanonicalPropertyRecord(source="s", source_parcel_id="1", parcel_id="X-1", status="bogus")
        assert record.status.value == "active"

    def test_dedup_key(self):
        record = CanonicalPropertyRecord(source="hayscad", source_parcel_id="R1", parcel_id="HC-2024-R1")
        assert record.dedup_key == ("hayscad", "R1")
