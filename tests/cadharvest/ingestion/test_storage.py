"""
Unit tests for property storage and record merging
"""
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.cadharvest.db.base import Base
from src.cadharvest.db.models import ScrapedProperty
from src.cadharvest.ingestion.storage import (
    InMemoryPropertyStore,
    SqlAlchemyPropertyStore,
    merge_records,
)
from src.cadharvest.models.property_record import CanonicalPropertyRecord


def make_record(**overrides):
    data = {
        "source": "hayscad",
        "source_parcel_id": "12345",
        "parcel_id": "HC-2024-12345",
        "price": 450000,
        "acreage": 10.5,
        "zoning": "AG",
        "address": {"street": "123 Ranch Rd", "city": "Wimberley", "county": "Hays"},
        "listing_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return CanonicalPropertyRecord(**data)


@pytest.fixture(scope="function")
def session_factory():
    """Transactional session scope over an in-memory SQLite database."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def scope():
        session = Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    yield scope

    Base.metadata.drop_all(engine)
    engine.dispose()


class TestMergeRecords:
    """Tests for merge_records"""

    def test_nothing_stored(self):
        record = make_record()
        assert merge_records(None, record) is record

    def test_later_values_win(self):
        merged = merge_records(make_record(), make_record(price=500000, zoning="R1"))
        assert merged.price == 500000
        assert merged.zoning == "R1"

    def test_blank_values_do_not_erase(self):
        merged = merge_records(make_record(), make_record(price=None, zoning="", acreage=None))
        assert merged.price == 450000
        assert merged.zoning == "AG"
        assert merged.acreage == 10.5

    def test_nested_merge(self):
        incoming = make_record(address={"street": "", "city": "Kyle", "county": "Hays"})
        merged = merge_records(make_record(), incoming)
        assert merged.address.street == "123 Ranch Rd"
        assert merged.address.city == "Kyle"

    def test_identity_fields_kept(self):
        incoming = make_record(parcel_id="HC-2025-12345",
                               listing_date=datetime(2025, 6, 1, tzinfo=timezone.utc))
        merged = merge_records(make_record(), incoming)
        assert merged.parcel_id == "HC-2024-12345"
        assert merged.listing_date.year == 2024


class TestInMemoryPropertyStore:
    """Tests for InMemoryPropertyStore"""

    def test_upsert_and_find(self):
        store = InMemoryPropertyStore()
        record = make_record()

        assert store.find_by_key("hayscad", "12345") is None
        store.upsert(record.dedup_key, record)
        assert store.find_by_key("hayscad", "12345").price == 450000

    def test_upsert_merges(self):
        store = InMemoryPropertyStore()
        store.upsert(("hayscad", "12345"), make_record())
        merged = store.upsert(("hayscad", "12345"), make_record(price=None, zoning="R1"))

        assert len(store) == 1
        assert merged.price == 450000
        assert merged.zoning == "R1"


class TestSqlAlchemyPropertyStore:
    """Tests for the database-backed store"""

    def test_round_trip(self, session_factory):
        store = SqlAlchemyPropertyStore(session_factory=session_factory)
        record = make_record()

        store.upsert(record.dedup_key, record)
        found = store.find_by_key("hayscad", "12345")

        assert found.parcel_id == "HC-2024-12345"
        assert found.address.city == "Wimberley"
        assert store.find_by_key("hayscad", "missing") is None

    def test_upsert_updates_single_row(self, session_factory):
        store = SqlAlchemyPropertyStore(session_factory=session_factory)
        store.upsert(("hayscad", "12345"), make_record())
        store.upsert(("hayscad", "12345"), make_record(price=600000, zoning=""))

        with session_factory() as session:
            rows = session.query(ScrapedProperty).all()
            assert len(rows) == 1
            assert rows[0].price == 600000
            assert rows[0].payload["zoning"] == "AG"

    def test_quality_columns(self, session_factory):
        store = SqlAlchemyPropertyStore(session_factory=session_factory)
        store.upsert(("hayscad", "12345"), make_record(price=None))

        with session_factory() as session:
            row = store.repository.find_by_key(session, "hayscad", "12345")
            assert row.is_valid is False
            assert row.quality_tier in ("high", "medium", "low")
            assert row.county == "Hays"
