"""
Unit tests for property record validation
"""
import math

import pytest

from src.cadharvest.models.property_record import CanonicalPropertyRecord
from src.cadharvest.validation.validators import (
    get_nested_value,
    validate_coordinates,
    validate_price,
    validate_property_record,
    validate_required_fields,
    validate_status,
)


def make_record(**overrides):
    data = {
        "source": "hayscad",
        "source_parcel_id": "12345",
        "parcel_id": "HC-2024-12345",
        "price": 450000,
        "status": "active",
        "address": {"street": "123 Ranch Rd", "city": "Wimberley", "county": "Hays"},
    }
    data.update(overrides)
    return CanonicalPropertyRecord(**data)


class TestFieldChecks:
    """Tests for individual validators"""

    def test_nested_lookup(self):
        record = {"address": {"coordinates": {"latitude": 30.1}}}
        assert get_nested_value(record, "address.coordinates.latitude") == 30.1
        assert get_nested_value(record, "address.county") is None
        assert get_nested_value(make_record(), "address.county") == "Hays"

    def test_required_fields_in_order(self):
        result = validate_required_fields({"source": "x", "price": None, "address": {"county": ""}},
                                          ["source", "price", "status", "address.county"])
        assert not result.is_valid
        assert result.missing_fields == ["price", "status", "address.county"]

    @pytest.mark.parametrize("price,expected", [
        (100, True), (0.01, True), (0, False), (-1, False), (math.nan, False), ("100", False), (None, False),
        (True, False),
    ])
    def test_price(self, price, expected):
        assert validate_price(price) is expected

    def test_status(self):
        assert validate_status("off-market")
        assert not validate_status("closed")
        assert not validate_status(None)

    def test_coordinates(self):
        assert validate_coordinates(30.0, -98.0)
        assert not validate_coordinates(35.0, -98.0)
        assert not validate_coordinates("30.0", -98.0)
        assert not validate_coordinates(math.nan, -98.0)


class TestValidatePropertyRecord:
    """Tests for the composite validator"""

    def test_valid_record(self):
        result = validate_property_record(make_record())
        assert result.is_valid
        assert result.missing_fields == []

    def test_coordinates_optional(self):
        assert make_record().address.coordinates is None
        assert validate_property_record(make_record()).is_valid

    def test_reports_every_problem(self):
        record = {
            "source": "hayscad",
            "price": -10,
            "status": "closed",
            "address": {"county": "", "coordinates": {"latitude": 45.0, "longitude": -120.0}},
        }
        result = validate_property_record(record)
        assert not result.is_valid
        assert result.missing_fields == ["address.county"]
        assert result.invalid_price
        assert result.invalid_status
        assert result.invalid_coordinates

    def test_missing_price_is_both_missing_and_invalid(self):
        result = validate_property_record(make_record(price=0))
        assert not result.is_valid
        assert "price" in result.missing_fields
        assert result.invalid_price
        assert not result.invalid_status

    def test_to_dict(self):
        data = validate_property_record(make_record()).to_dict()
        assert data["is_valid"] is True
        assert set(data) == {"is_valid", "missing_fields", "invalid_price", "invalid_status",
                             "invalid_coordinates"}
