"""
Property Storage

Storage collaborators used by the ingestion pipeline for dedup and
idempotent re-scrapes. Records sharing (source, source_parcel_id) are
merged: later values win, but a missing incoming value never erases a
stored one, and identity fields keep their first-stored value.
"""
import threading
from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from src.cadharvest.db.repository import ScrapedPropertyRepository
from src.cadharvest.db.session import get_db_session
from src.cadharvest.models.property_record import CanonicalPropertyRecord
from src.cadharvest.monitoring.data_quality import build_quality_report
from src.cadharvest.utils.logger import get_logger
from src.cadharvest.validation.validators import validate_property_record

logger = get_logger(__name__)

RecordKey = Tuple[str, str]

IMMUTABLE_FIELDS = ("source", "source_parcel_id", "parcel_id", "listing_date")


class PropertyStore(Protocol):
    """Storage collaborator consumed by IngestionPipeline."""

    def find_by_key(self, source: str, source_parcel_id: str) -> Optional[CanonicalPropertyRecord]:
        ...

    def upsert(self, key: RecordKey, record: CanonicalPropertyRecord) -> CanonicalPropertyRecord:
        ...


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _merge_values(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(existing)
    for name, value in incoming.items():
        if _is_blank(value):
            continue
        current = merged.get(name)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[name] = _merge_values(current, value)
        else:
            merged[name] = value
    return merged


def merge_records(
    existing: Optional[CanonicalPropertyRecord],
    incoming: CanonicalPropertyRecord,
) -> CanonicalPropertyRecord:
    """
    Merge a re-scraped record into the stored one.

    Args:
        existing: Stored record, or None
        incoming: Freshly scraped record with the same dedup key

    Returns:
        Merged record (incoming unchanged when nothing is stored)
    """
    if existing is None:
        return incoming

    base = existing.model_dump()
    merged = _merge_values(base, incoming.model_dump())
    for name in IMMUTABLE_FIELDS:
        if not _is_blank(base.get(name)):
            merged[name] = base[name]
    return CanonicalPropertyRecord.model_validate(merged)


class InMemoryPropertyStore:
    """Thread-safe dictionary store, for tests and ad-hoc runs."""

    def __init__(self):
        self._records: Dict[RecordKey, CanonicalPropertyRecord] = {}
        self._lock = threading.Lock()

    def find_by_key(self, source: str, source_parcel_id: str) -> Optional[CanonicalPropertyRecord]:
        with self._lock:
            return self._records.get((source, source_parcel_id))

    def upsert(self, key: RecordKey, record: CanonicalPropertyRecord) -> CanonicalPropertyRecord:
        with self._lock:
            merged = merge_records(self._records.get(key), record)
            self._records[key] = merged
        logger.debug("record_stored", source=key[0], source_parcel_id=key[1])
        return merged

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SqlAlchemyPropertyStore:
    """
    Store backed by the scraped_properties table.

    Each call runs in its own transaction from session_factory.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager] = get_db_session,
        repository: Optional[ScrapedPropertyRepository] = None,
    ):
        self._session_factory = session_factory
        self.repository = repository or ScrapedPropertyRepository()

    def find_by_key(self, source: str, source_parcel_id: str) -> Optional[CanonicalPropertyRecord]:
        with self._session_factory() as session:
            row = self.repository.find_by_key(session, source, source_parcel_id)
            if row is None:
                return None
            return CanonicalPropertyRecord.model_validate(row.payload)

    def upsert(self, key: RecordKey, record: CanonicalPropertyRecord) -> CanonicalPropertyRecord:
        with self._session_factory() as session:
            merged = merge_records(self._load(session, key), record)
            self.repository.upsert(session, self._row_values(merged))
        logger.info("record_persisted", source=key[0], source_parcel_id=key[1])
        return merged

    def _load(self, session: Session, key: RecordKey) -> Optional[CanonicalPropertyRecord]:
        row = self.repository.find_by_key(session, *key)
        return CanonicalPropertyRecord.model_validate(row.payload) if row is not None else None

    @staticmethod
    def _row_values(record: CanonicalPropertyRecord) -> Dict[str, Any]:
        validation = validate_property_record(record)
        quality = build_quality_report(record)
        return {
            "source": record.source,
            "source_parcel_id": record.source_parcel_id,
            "parcel_id": record.parcel_id,
            "county": record.address.county or None,
            "property_type": record.property_type.value,
            "status": record.status.value,
            "price": record.price,
            "acreage": record.acreage,
            "is_valid": validation.is_valid,
            "quality_score": quality.score,
            "quality_tier": quality.tier,
            "payload": record.to_dict(),
            "scraped_at": record.last_updated,
        }
