"""
Inventory Cache Models - Latest reconciled Square snapshot
"""
from sqlalchemy import Column, String, Float, Integer, Boolean, DateTime, JSON, Index
from datetime import datetime, timezone

from profit_dashboard.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class InventoryCacheItem(Base):
    __tablename__ = "inventory_cache"

    id = Column(String, primary_key=True)  # Square variation id
    item_id = Column(String, nullable=True)
    name = Column(String, nullable=False, default="")
    variation_name = Column(String, nullable=False, default="Regular")
    full_name = Column(String, nullable=False, default="")
    price = Column(Float, nullable=False, default=0.0)
    cost_price = Column(Float, nullable=True)
    sku = Column(String, nullable=False, default="")
    stock_count = Column(Integer, nullable=False, default=0)
    last_sold_at = Column(String, nullable=True)  # ISO timestamp as returned by Square
    is_taxable = Column(Boolean, nullable=False, default=False)
    tax_info = Column(JSON, nullable=False, default=list)
    track_inventory = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_inventory_cache_name", "name"),
        Index("idx_inventory_cache_sku", "sku"),
    )

    def __repr__(self):
        return f"<InventoryCacheItem {self.full_name} ({self.id})>"


class MerchantCache(Base):
    __tablename__ = "merchant_cache"

    id = Column(String, primary_key=True, default="default")
    name = Column(String, nullable=False)
    merchant_id = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<MerchantCache {self.name} ({self.merchant_id})>"


class SyncMetadata(Base):
    __tablename__ = "sync_metadata"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<SyncMetadata {self.key}={self.value}>"
