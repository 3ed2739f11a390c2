"""scraped_properties

Revision ID: 000000000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'scraped_properties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False, comment='Source identifier, e.g. hayscad'),
        sa.Column('source_parcel_id', sa.String(length=100), nullable=False, comment='Parcel ID as published by the source'),
        sa.Column('parcel_id', sa.String(length=120), nullable=False, comment='Canonical {countyCode}-{year}-{cleanedId}'),
        sa.Column('county', sa.String(length=50), nullable=True),
        sa.Column('property_type', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('acreage', sa.Float(), nullable=True),
        sa.Column('is_valid', sa.Boolean(), nullable=False),
        sa.Column('quality_score', sa.Integer(), nullable=True),
        sa.Column('quality_tier', sa.String(length=10), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False, comment='CanonicalPropertyRecord as JSON'),
        sa.Column('scraped_at', sa.DateTime(timezone=True), nullable=False, comment='last_updated of the stored record'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False,
                  comment='Timestamp when record was first stored'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False,
                  comment='Timestamp when record was last merged'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source', 'source_parcel_id', name='uq_scraped_properties_source_parcel'),
    )
    op.create_index('idx_scraped_properties_parcel_id', 'scraped_properties', ['parcel_id'], unique=False)
    op.create_index('idx_scraped_properties_county', 'scraped_properties', ['county'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_scraped_properties_county', table_name='scraped_properties')
    op.drop_index('idx_scraped_properties_parcel_id', table_name='scraped_properties')
    op.drop_table('scraped_properties')
