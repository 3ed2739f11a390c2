"""
Tests for the scraped property repository

Covers key lookups, dialect upserts and quality queries against SQLite.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.cadharvest.db.base import Base
from src.cadharvest.db.repository import ScrapedPropertyRepository


@pytest.fixture(scope="function")
def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


def row_values(**overrides):
    values = {
        "source": "hayscad",
        "source_parcel_id": "12345",
        "parcel_id": "HC-2024-12345",
        "county": "Hays",
        "property_type": "land",
        "status": "active",
        "price": 450000.0,
        "acreage": 10.5,
        "is_valid": True,
        "quality_score": 55,
        "quality_tier": "low",
        "payload": {"source": "hayscad", "source_parcel_id": "12345"},
        "scraped_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return values


class TestScrapedPropertyRepository:
    """Tests for ScrapedPropertyRepository."""

    def test_upsert_insert(self, test_db):
        repo = ScrapedPropertyRepository()

        row = repo.upsert(test_db, row_values())
        test_db.commit()

        assert row is not None
        assert row.parcel_id == "HC-2024-12345"
        assert repo.count(test_db) == 1

    def test_upsert_update(self, test_db):
        repo = ScrapedPropertyRepository()
        repo.upsert(test_db, row_values())
        test_db.commit()

        row = repo.upsert(test_db, row_values(price=500000.0, quality_tier="medium"))
        test_db.commit()

        assert repo.count(test_db) == 1
        assert row.price == 500000.0
        assert row.quality_tier == "medium"

    def test_same_parcel_different_source(self, test_db):
        repo = ScrapedPropertyRepository()
        repo.upsert(test_db, row_values())
        repo.upsert(test_db, row_values(source="traviscad", parcel_id="TC-2024-12345", county="Travis"))
        test_db.commit()

        assert repo.count(test_db) == 2
        assert repo.find_by_key(test_db, "traviscad", "12345").county == "Travis"

    def test_upsert_requires_key(self, test_db):
        repo = ScrapedPropertyRepository()
        with pytest.raises(ValueError):
            repo.upsert(test_db, row_values(source_parcel_id=""))

    def test_quality_queries(self, test_db):
        repo = ScrapedPropertyRepository()
        repo.upsert(test_db, row_values())
        repo.upsert(test_db, row_values(source_parcel_id="2", is_valid=False, quality_tier="high"))
        repo.upsert(test_db, row_values(source="williamsoncad", source_parcel_id="3", is_valid=False))
        test_db.commit()

        assert [r.source_parcel_id for r in repo.get_by_quality_tier(test_db, "high")] == ["2"]
        assert len(repo.get_invalid(test_db)) == 2
        assert [r.source_parcel_id for r in repo.get_invalid(test_db, source="hayscad")] == ["2"]

    def test_get_all_pagination(self, test_db):
        repo = ScrapedPropertyRepository()
        for parcel in ("1", "2", "3"):
            repo.upsert(test_db, row_values(source_parcel_id=parcel))
        test_db.commit()

        assert len(repo.get_all(test_db, limit=2)) == 2
        assert len(repo.get_all(test_db, offset=2)) == 1
