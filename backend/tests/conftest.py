import json
import os
from typing import Any, Dict, List, Optional

import httpx
import pytest

# Keep the module-level settings away from a developer's real data and token
os.environ.setdefault("DATA_DIR", "./.pytest-data")
os.environ.setdefault("SQUARE_ACCESS_TOKEN", "")

from profit_dashboard.database import create_db_engine, create_session_factory
from profit_dashboard.services.inventory_cache import InventoryCacheStore
from profit_dashboard.services.inventory_sync import SquareCredentials


def make_variation(
    variation_id: str,
    name: Optional[str] = "Regular",
    price: Optional[int] = 1000,
    cost: Optional[int] = None,
    vendor_cost: Optional[int] = None,
    sku: str = "",
    track_inventory: bool = True,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {"sku": sku, "track_inventory": track_inventory}
    if name is not None:
        data["name"] = name
    if price is not None:
        data["price_money"] = {"amount": price, "currency": "USD"}
    if cost is not None:
        data["default_unit_cost"] = {"amount": cost, "currency": "USD"}
    if vendor_cost is not None:
        data["item_variation_vendor_infos"] = [
            {"item_variation_vendor_info_data": {"price_money": {"amount": vendor_cost, "currency": "USD"}}}
        ]
    return {"type": "ITEM_VARIATION", "id": variation_id, "item_variation_data": data}


def make_item(
    item_id: str,
    name: str,
    variations: List[Dict[str, Any]],
    archived: bool = False,
    tax_ids: Optional[List[str]] = None,
    is_taxable: bool = True,
) -> Dict[str, Any]:
    return {
        "type": "ITEM",
        "id": item_id,
        "item_data": {
            "name": name,
            "is_archived": archived,
            "is_taxable": is_taxable,
            "tax_ids": tax_ids or [],
            "variations": variations,
        },
    }


def make_tax(tax_id: str, name: str, percentage: str, enabled: Optional[bool] = True) -> Dict[str, Any]:
    tax_data: Dict[str, Any] = {"name": name, "percentage": percentage}
    if enabled is not None:
        tax_data["enabled"] = enabled
    return {"type": "TAX", "id": tax_id, "tax_data": tax_data}


class FakeSquare:
    """In-memory stand-in for the Square REST API, served through httpx.MockTransport"""

    def __init__(self):
        self.catalog_pages: List[List[Dict[str, Any]]] = [[]]
        self.locations: List[Dict[str, Any]] = [{"id": "L1", "name": "Main Street"}]
        self.counts: List[Dict[str, Any]] = []
        self.changes: List[Dict[str, Any]] = []
        self.merchant: Dict[str, Any] = {"id": "M123", "business_name": "Corner Shop", "country": "GB"}
        self.failing_paths: set = set()
        self.malformed_paths: Dict[str, str] = {}
        self.failing_count_batches: set = set()
        self.failing_change_batches: set = set()
        self.requests: List[httpx.Request] = []

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failing_paths:
            return httpx.Response(500, text="upstream exploded")

        if path in self.malformed_paths:
            return httpx.Response(200, text=self.malformed_paths[path])

        if path == "/v2/catalog/list":
            cursor = request.url.params.get("cursor")
            index = int(cursor) if cursor else 0
            body: Dict[str, Any] = {"objects": self.catalog_pages[index]}
            if index + 1 < len(self.catalog_pages):
                body["cursor"] = str(index + 1)
            return httpx.Response(200, json=body)

        if path == "/v2/locations":
            return httpx.Response(200, json={"locations": self.locations})

        if path == "/v2/merchants/me":
            return httpx.Response(200, json={"merchant": self.merchant})

        if path == "/v2/inventory/batch-retrieve-counts":
            batch_no = len(self.calls(path)) - 1
            if batch_no in self.failing_count_batches:
                return httpx.Response(503, text="counts unavailable")
            ids = set(json.loads(request.content)["catalog_object_ids"])
            return httpx.Response(200, json={"counts": [c for c in self.counts if c["catalog_object_id"] in ids]})

        if path == "/v2/inventory/changes/batch-retrieve":
            batch_no = len(self.calls(path)) - 1
            if batch_no in self.failing_change_batches:
                return httpx.Response(503, text="changes unavailable")
            ids = set(json.loads(request.content)["catalog_object_ids"])
            matching = [c for c in self.changes if c["adjustment"]["catalog_object_id"] in ids]
            return httpx.Response(200, json={"changes": matching})

        return httpx.Response(404, text=f"no route for {path}")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def count(variation_id: str, quantity: str, location_id: str = "L1") -> Dict[str, Any]:
    return {
        "catalog_object_id": variation_id,
        "catalog_object_type": "ITEM_VARIATION",
        "state": "IN_STOCK",
        "location_id": location_id,
        "quantity": quantity,
    }


def sold(variation_id: str, occurred_at: str) -> Dict[str, Any]:
    return {
        "type": "ADJUSTMENT",
        "adjustment": {
            "catalog_object_id": variation_id,
            "from_state": "IN_STOCK",
            "to_state": "SOLD",
            "occurred_at": occurred_at,
        },
    }


@pytest.fixture
def fake_square():
    square = FakeSquare()
    square.catalog_pages = [[
        make_tax("T1", "VAT", "20.0"),
        make_item("I1", "Widget", [
            make_variation("V1", name="", price=1000, cost=400, sku="WID-1"),
            make_variation("V2", name="Large", price=1500, vendor_cost=450, sku="WID-L"),
        ], tax_ids=["T1", "T-missing"]),
        make_item("I2", "Old Gadget", [make_variation("V3", price=900)], archived=True),
    ]]
    square.counts = [count("V1", "3", "L1"), count("V1", "2", "L2"), count("V2", "7")]
    square.changes = [sold("V1", "2024-01-01T00:00:00Z"), sold("V1", "2024-03-01T00:00:00Z")]
    return square


@pytest.fixture
def credentials():
    return SquareCredentials(access_token="test-token", is_production=False)


@pytest.fixture
def cache_store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'inventory-cache.db'}")
    store = InventoryCacheStore(engine, create_session_factory(engine))
    store.init_schema()
    yield store
    engine.dispose()
