"""
Database Models

Persisted form of canonical property records. The full record is stored as
JSON; identity, classification and quality columns are broken out for
querying.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.cadharvest.db.base import Base, TimestampMixin


class ScrapedProperty(Base, TimestampMixin):
    """One canonical property record per (source, source_parcel_id)."""
    __tablename__ = "scraped_properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Dedup key
    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Source identifier, e.g. hayscad"
    )
    source_parcel_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Parcel ID as published by the source"
    )

    parcel_id: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Canonical {countyCode}-{year}-{cleanedId}"
    )
    county: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    property_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    acreage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Validation and quality at last write
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    quality_tier: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="CanonicalPropertyRecord as JSON"
    )
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="last_updated of the stored record"
    )

    __table_args__ = (
        UniqueConstraint("source", "source_parcel_id", name="uq_scraped_properties_source_parcel"),
        Index("idx_scraped_properties_parcel_id", "parcel_id"),
        Index("idx_scraped_properties_county", "county"),
    )

    def __repr__(self) -> str:
        return f"<ScrapedProperty(source={self.source}, parcel={self.source_parcel_id}, tier={self.quality_tier})>"
