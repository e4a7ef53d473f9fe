"""
Models package - Import all models so they register on Base.metadata
"""
from profit_dashboard.database import Base

from profit_dashboard.models.inventory_cache import InventoryCacheItem, MerchantCache, SyncMetadata

__all__ = [
    "Base",
    "InventoryCacheItem",
    "MerchantCache",
    "SyncMetadata",
]
