"""
Inventory Cache Schemas
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


class TaxInfo(BaseModel):
    """Tax definition resolved from a catalog item's tax ids"""
    name: str = "Unknown Tax"
    percentage: str = "0"
    enabled: bool = True


class MerchantInfo(BaseModel):
    """Merchant summary from /v2/merchants/me"""
    name: str = "Unknown Business"
    id: str = ""
    country: str = ""


UNKNOWN_MERCHANT = MerchantInfo(name="Unknown Business", id="", country="")


class InventoryRecord(BaseModel):
    """One reconciled, cached row per catalog item variation"""
    id: str
    item_id: Optional[str] = None
    name: str
    variation_name: str = "Regular"
    full_name: str
    price: float = 0.0
    cost_price: Optional[float] = None
    sku: str = ""
    stock_count: int = Field(0, ge=0)
    last_sold_at: Optional[str] = None
    is_taxable: bool = False
    tax_info: List[TaxInfo] = []
    track_inventory: bool = False
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SyncResult(BaseModel):
    """Outcome of one sync attempt"""
    success: bool
    item_count: int = 0
    duration: Optional[float] = None  # seconds, 2 decimals
    error: Optional[str] = None
    skipped: bool = False


class SyncStatus(BaseModel):
    """Cache bookkeeping"""
    last_sync: Optional[datetime] = None
    item_count: int = 0
    has_merchant: bool = False
    is_cached: bool = False


class BackgroundSyncStatus(SyncStatus):
    """Scheduler state plus cache bookkeeping"""
    enabled: bool
    is_running: bool
    interval_seconds: float


class InventoryItemResponse(BaseModel):
    """Cached record merged with cost overrides and profit metrics"""
    id: str
    item_id: Optional[str] = None
    name: Optional[str] = None
    variation_name: Optional[str] = None
    full_name: Optional[str] = None
    price: Optional[float] = None
    cost_price: Optional[float] = None
    has_cost_override: bool = False
    gross_profit: Optional[float] = None
    gp_percent: Optional[float] = None
    sku: Optional[str] = None
    stock_count: Optional[int] = None
    last_sold_at: Optional[str] = None
    is_taxable: Optional[bool] = None
    tax_info: Optional[List[TaxInfo]] = None
    track_inventory: Optional[bool] = None


class InventoryResponse(BaseModel):
    """Inventory table payload"""
    merchant: Optional[MerchantInfo] = None
    items: List[Dict[str, Any]]
    cached: bool = True
    last_sync: Optional[datetime] = None


class ManualSyncResponse(BaseModel):
    """Manual sync result"""
    success: bool
    message: str
    item_count: int
    duration: Optional[float] = None
    last_sync: Optional[datetime] = None
