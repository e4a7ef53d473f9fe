"""Inventory cache, merchant cache and sync metadata tables

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'inventory_cache',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('item_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('variation_name', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('cost_price', sa.Float(), nullable=True),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('stock_count', sa.Integer(), nullable=False),
        sa.Column('last_sold_at', sa.String(), nullable=True),
        sa.Column('is_taxable', sa.Boolean(), nullable=False),
        sa.Column('tax_info', sa.JSON(), nullable=False),
        sa.Column('track_inventory', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_inventory_cache_name', 'inventory_cache', ['name'])
    op.create_index('idx_inventory_cache_sku', 'inventory_cache', ['sku'])

    op.create_table(
        'merchant_cache',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('merchant_id', sa.String(), nullable=False),
        sa.Column('country', sa.String(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'sync_metadata',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade() -> None:
    op.drop_table('sync_metadata')
    op.drop_table('merchant_cache')
    op.drop_index('idx_inventory_cache_sku', table_name='inventory_cache')
    op.drop_index('idx_inventory_cache_name', table_name='inventory_cache')
    op.drop_table('inventory_cache')
