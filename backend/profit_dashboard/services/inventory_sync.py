"""
Inventory Sync Service
Pulls catalog, taxes, stock counts and last-sold dates from Square, merges
them into one record per variation, and replaces the inventory cache.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from profit_dashboard.config import Settings
from profit_dashboard.schemas.inventory import InventoryRecord, SyncResult, TaxInfo
from profit_dashboard.services.inventory_cache import InventoryCacheStore
from profit_dashboard.services.square_service import SquareService, SquareConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_VARIATION_NAME = "Regular"


@dataclass(frozen=True)
class SquareCredentials:
    access_token: str
    is_production: bool


def sanitize_token(raw: Optional[str]) -> str:
    """Trim whitespace and one pair of surrounding quotes from a pasted token"""
    token = (raw or "").strip()
    if token[:1] in ("'", '"'):
        token = token[1:]
    if token[-1:] in ("'", '"'):
        token = token[:-1]
    return token.strip()


def load_square_credentials() -> SquareCredentials:
    """
    Read Square credentials from the environment

    A fresh Settings() is built on every call so a corrected token is picked
    up by the next sync attempt without a restart.

    Raises:
        SquareConfigurationError: token missing or empty
    """
    current = Settings()
    token = sanitize_token(current.SQUARE_ACCESS_TOKEN)
    if not token:
        raise SquareConfigurationError("Missing SQUARE_ACCESS_TOKEN")

    is_production = "production" in (current.SQUARE_ENVIRONMENT or "sandbox").lower()
    return SquareCredentials(access_token=token, is_production=is_production)


def _money(value: Any) -> Optional[float]:
    """Convert a Square Money object's minor units to currency units"""
    if not isinstance(value, dict):
        return None
    amount = value.get("amount")
    if amount is None:
        return None
    try:
        return int(amount) / 100
    except (TypeError, ValueError):
        return None


def build_tax_lookup(taxes: List[Dict[str, Any]]) -> Dict[str, TaxInfo]:
    lookup = {}
    for tax in taxes:
        tax_data = tax.get("tax_data") or {}
        lookup[tax.get("id")] = TaxInfo(
            name=tax_data.get("name") or "Unknown Tax",
            percentage=str(tax_data.get("percentage") or "0"),
            enabled=tax_data.get("enabled") is not False,
        )
    return lookup


def resolve_cost_price(variation_data: Dict[str, Any]) -> Optional[float]:
    """Declared unit cost, else the first vendor quote, else None"""
    declared = _money(variation_data.get("default_unit_cost"))
    if declared is not None:
        return declared

    vendor_infos = variation_data.get("item_variation_vendor_infos") or []
    if vendor_infos:
        vendor_data = vendor_infos[0].get("item_variation_vendor_info_data") or {}
        return _money(vendor_data.get("price_money"))
    return None


def build_full_name(name: str, variation_name: str) -> str:
    if variation_name == DEFAULT_VARIATION_NAME:
        return name
    return f"{name} - {variation_name}"


def active_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [item for item in items if not (item.get("item_data") or {}).get("is_archived")]


def collect_variation_ids(items: List[Dict[str, Any]]) -> List[str]:
    variation_ids = []
    for item in active_items(items):
        for variation in (item.get("item_data") or {}).get("variations") or []:
            if variation.get("id"):
                variation_ids.append(variation["id"])
    return variation_ids


def reconcile_inventory(
    items: List[Dict[str, Any]],
    taxes: List[Dict[str, Any]],
    inventory_counts: Dict[str, int],
    last_sold: Dict[str, str],
) -> List[InventoryRecord]:
    """
    Merge catalog items with taxes, stock counts and last-sold dates

    Archived items are dropped. Every variation of the remaining items becomes
    one record; missing optional fields fall back to defaults.

    Args:
        items: Raw ITEM catalog objects
        taxes: Raw TAX catalog objects
        inventory_counts: variation id -> on-hand quantity
        last_sold: variation id -> latest sold timestamp

    Returns:
        Flat list of InventoryRecord
    """
    tax_lookup = build_tax_lookup(taxes)
    records: List[InventoryRecord] = []
    seen = set()

    for item in active_items(items):
        item_data = item.get("item_data") or {}
        name = item_data.get("name") or ""
        is_taxable = item_data.get("is_taxable") is True
        tax_info = [tax_lookup[tax_id] for tax_id in item_data.get("tax_ids") or [] if tax_id in tax_lookup]

        for variation in item_data.get("variations") or []:
            variation_id = variation.get("id")
            if not variation_id:
                continue
            if variation_id in seen:
                logger.warning("[SYNC] Dropping duplicate variation %s on item %s", variation_id, item.get("id"))
                continue
            seen.add(variation_id)

            variation_data = variation.get("item_variation_data") or {}
            variation_name = variation_data.get("name") or DEFAULT_VARIATION_NAME

            records.append(InventoryRecord(
                id=variation_id,
                item_id=item.get("id"),
                name=name,
                variation_name=variation_name,
                full_name=build_full_name(name, variation_name),
                price=_money(variation_data.get("price_money")) or 0.0,
                cost_price=resolve_cost_price(variation_data),
                sku=variation_data.get("sku") or "",
                stock_count=max(int(inventory_counts.get(variation_id, 0) or 0), 0),
                last_sold_at=last_sold.get(variation_id),
                is_taxable=is_taxable,
                tax_info=list(tax_info),
                track_inventory=bool(variation_data.get("track_inventory")),
            ))

    return records


class InventorySyncService:
    """Runs Square -> cache syncs, at most one at a time"""

    def __init__(
        self,
        square: SquareService,
        cache: InventoryCacheStore,
        credentials_loader: Callable[[], SquareCredentials] = load_square_credentials,
    ):
        self.square = square
        self.cache = cache
        self.credentials_loader = credentials_loader
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def wait_until_idle(self) -> None:
        """Block until the sync in flight (if any) has finished"""
        async with self._lock:
            pass

    async def run_sync(self) -> SyncResult:
        """
        Sync inventory from Square and replace the cache

        Never raises. A call made while another sync is in flight returns
        immediately with skipped=True.

        Returns:
            SyncResult with item count and duration, or the error message
        """
        if self._lock.locked():
            logger.info("[SYNC] Sync already in progress, skipping")
            return SyncResult(success=False, skipped=True, error="Sync already in progress")

        async with self._lock:
            start = time.monotonic()
            try:
                return await self._sync(start)
            except Exception as e:
                logger.exception("[SYNC] Error: %s", e)
                return SyncResult(success=False, item_count=0, error=str(e))

    async def _sync(self, start: float) -> SyncResult:
        credentials = self.credentials_loader()
        token, is_production = credentials.access_token, credentials.is_production

        logger.info("[SYNC] Starting Square inventory sync (Mode: %s)", "Production" if is_production else "Sandbox")

        merchant = await self.square.get_merchant_info(token, is_production)

        items: List[Dict[str, Any]] = []
        taxes: List[Dict[str, Any]] = []
        async for obj in self.square.list_catalog_objects(token, is_production):
            if obj.get("type") == "ITEM":
                items.append(obj)
            elif obj.get("type") == "TAX":
                taxes.append(obj)

        logger.info("[SYNC] Found %d items and %d taxes", len(items), len(taxes))

        variation_ids = collect_variation_ids(items)
        logger.info("[SYNC] Found %d variations", len(variation_ids))

        location_ids = await self.square.list_locations(token, is_production)
        inventory_counts = await self.square.get_inventory_counts(variation_ids, location_ids, token, is_production)
        last_sold = await self.square.get_last_sold_dates(variation_ids, token, is_production)

        records = reconcile_inventory(items, taxes, inventory_counts, last_sold)

        if not self.cache.update_inventory_cache(records, merchant):
            return SyncResult(success=False, item_count=0, error="Failed to update inventory cache")

        duration = round(time.monotonic() - start, 2)
        logger.info("[SYNC] Synced %d items in %.2fs", len(records), duration)

        return SyncResult(success=True, item_count=len(records), duration=duration)
