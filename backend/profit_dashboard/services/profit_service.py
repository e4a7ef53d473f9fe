"""
Profit Service
Builds the inventory table rows: cached records merged with manual cost
overrides, gross profit and GP%, trimmed to the columns a role may see.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from profit_dashboard.config.permissions import ALL_COLUMNS, REQUIRED_FIELDS
from profit_dashboard.schemas.inventory import InventoryItemResponse, InventoryRecord


def calculate_profit(price: Optional[float], cost: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
    """
    Gross profit and GP% for one unit

    GP% = (sell - cost) / sell * 100. Both are None without a cost or a
    positive sell price.

    Returns:
        (gross_profit, gp_percent)
    """
    if cost is None or price is None or price <= 0:
        return None, None
    gross_profit = round(price - cost, 2)
    gp_percent = round((price - cost) / price * 100, 2)
    return gross_profit, gp_percent


def merge_cost_overrides(
    records: Iterable[InventoryRecord],
    overrides: Dict[str, float],
) -> List[InventoryItemResponse]:
    """An override for a record id wins over the cached cost price"""
    rows = []
    for record in records:
        has_override = record.id in overrides
        cost = overrides[record.id] if has_override else record.cost_price
        gross_profit, gp_percent = calculate_profit(record.price, cost)

        rows.append(InventoryItemResponse(
            id=record.id,
            item_id=record.item_id,
            name=record.name,
            variation_name=record.variation_name,
            full_name=record.full_name,
            price=record.price,
            cost_price=cost,
            has_cost_override=has_override,
            gross_profit=gross_profit,
            gp_percent=gp_percent,
            sku=record.sku,
            stock_count=record.stock_count,
            last_sold_at=record.last_sold_at,
            is_taxable=record.is_taxable,
            tax_info=record.tax_info,
            track_inventory=record.track_inventory,
        ))
    return rows


def filter_columns(rows: List[InventoryItemResponse], columns: Optional[Iterable[str]]) -> List[Dict[str, Any]]:
    """Drop fields the caller may not see; columns=None keeps everything"""
    if columns is None:
        return [row.model_dump() for row in rows]

    visible = (set(columns) & set(ALL_COLUMNS)) | REQUIRED_FIELDS
    return [row.model_dump(include=visible) for row in rows]
