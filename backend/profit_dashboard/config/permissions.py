"""
Column permission registry for the inventory table
Columns, their labels and per-role defaults.
"""

ALL_COLUMNS = {
    # Identity
    "name":            {"label": "Item Name",        "category": "item"},
    "variation_name":  {"label": "Variation",        "category": "item"},
    "full_name":       {"label": "Full Name",        "category": "item"},
    "sku":             {"label": "SKU",              "category": "item"},

    # Pricing
    "price":           {"label": "Sell Price",       "category": "pricing"},
    "cost_price":      {"label": "Cost Price",       "category": "pricing"},
    "gross_profit":    {"label": "Gross Profit",     "category": "pricing"},
    "gp_percent":      {"label": "GP %",             "category": "pricing"},
    "tax_info":        {"label": "Taxes",            "category": "pricing"},
    "is_taxable":      {"label": "Taxable",          "category": "pricing"},

    # Stock
    "stock_count":     {"label": "Stock",            "category": "stock"},
    "track_inventory": {"label": "Tracks Inventory", "category": "stock"},
    "last_sold_at":    {"label": "Last Sold",        "category": "stock"},
}

# Always returned so rows stay addressable by the client
REQUIRED_FIELDS = {"id", "item_id", "has_cost_override"}

CONFIGURABLE_ROLES = ["manager", "staff"]
FULL_ACCESS_ROLES = ["admin"]

# Defaults: role -> list of visible column keys
DEFAULT_COLUMN_PERMISSIONS = {
    "manager": sorted(ALL_COLUMNS.keys()),
    "staff": [
        "name", "variation_name", "full_name", "sku",
        "price", "is_taxable", "tax_info",
        "stock_count", "track_inventory", "last_sold_at",
    ],
}
