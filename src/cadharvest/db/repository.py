"""
Repository Pattern for Data Access

Queries and upserts for stored property records.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from src.cadharvest.db.models import ScrapedProperty
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

_DIALECT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class BaseRepository:
    """
    Base repository with common read operations.
    """

    def __init__(self, model: Type[T]):
        self.model = model
        logger.debug("repository_initialized", model=model.__name__)

    def get_all(self, session: Session, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        """
        Get all records with optional pagination.

        Args:
            session: Database session
            limit: Maximum number of records
            offset: Number of records to skip

        Returns:
            List of model instances
        """
        query = select(self.model).offset(offset)
        if limit:
            query = query.limit(limit)
        return session.execute(query).scalars().all()

    def count(self, session: Session) -> int:
        count = session.scalar(select(func.count()).select_from(self.model))
        logger.debug("repository_count", model=self.model.__name__, count=count)
        return count


class ScrapedPropertyRepository(BaseRepository):
    """Repository for ScrapedProperty, keyed by (source, source_parcel_id)."""

    def __init__(self):
        super().__init__(ScrapedProperty)

    def find_by_key(self, session: Session, source: str, source_parcel_id: str) -> Optional[ScrapedProperty]:
        query = select(ScrapedProperty).where(
            ScrapedProperty.source == source,
            ScrapedProperty.source_parcel_id == source_parcel_id,
        )
        return session.execute(query).scalar_one_or_none()

    def upsert(self, session: Session, values: Dict[str, Any]) -> ScrapedProperty:
        """
        Insert or update a row by its dedup key.

        Uses INSERT ... ON CONFLICT on PostgreSQL and SQLite, and a
        select-then-write elsewhere.

        Args:
            session: Database session
            values: Column values including source and source_parcel_id

        Returns:
            ScrapedProperty instance
        """
        source = values.get("source")
        source_parcel_id = values.get("source_parcel_id")
        if not source or not source_parcel_id:
            raise ValueError("source and source_parcel_id are required")

        insert = _DIALECT_INSERTS.get(session.get_bind().dialect.name)
        if insert is not None:
            updates = {k: v for k, v in values.items() if k not in ("id", "source", "source_parcel_id")}
            # onupdate defaults are not applied to ON CONFLICT updates
            updates["updated_at"] = func.now()
            stmt = insert(ScrapedProperty).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["source", "source_parcel_id"],
                set_=updates,
            )
            session.execute(stmt)
            session.flush()
            # The ON CONFLICT path bypasses the identity map
            session.expire_all()
        else:
            existing = self.find_by_key(session, source, source_parcel_id)
            if existing is None:
                session.add(ScrapedProperty(**values))
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
            session.flush()

        logger.debug("scraped_property_upserted", source=source, source_parcel_id=source_parcel_id)
        return self.find_by_key(session, source, source_parcel_id)

    def get_by_quality_tier(self, session: Session, tier: str) -> List[ScrapedProperty]:
        query = select(ScrapedProperty).where(ScrapedProperty.quality_tier == tier)
        return session.execute(query).scalars().all()

    def get_invalid(self, session: Session, source: Optional[str] = None) -> List[ScrapedProperty]:
        """Records stored with failed validation, for review."""
        query = select(ScrapedProperty).where(ScrapedProperty.is_valid.is_(False))
        if source:
            query = query.where(ScrapedProperty.source == source)
        return session.execute(query).scalars().all()
