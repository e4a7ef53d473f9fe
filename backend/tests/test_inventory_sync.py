import asyncio

import pytest

from profit_dashboard.schemas.inventory import MerchantInfo
from profit_dashboard.services.inventory_sync import (
    InventorySyncService,
    SquareCredentials,
    build_full_name,
    load_square_credentials,
    reconcile_inventory,
    resolve_cost_price,
    sanitize_token,
)
from profit_dashboard.services.square_service import SquareConfigurationError, SquareService

from conftest import make_item, make_tax, make_variation


def _service(fake, cache, credentials):
    return InventorySyncService(
        SquareService(timeout=5, transport=fake.transport()),
        cache,
        credentials_loader=lambda: credentials,
    )


def _snapshot(cache):
    return [record.model_dump(exclude={"updated_at"}) for record in cache.get_cached_inventory()]


# --- Pure reconciliation ---

def test_reconcile_emits_one_record_per_variation_of_active_items():
    items = [
        make_item("I1", "Widget", [make_variation("V1"), make_variation("V2", name="Large")]),
        make_item("I2", "Gizmo", [make_variation("V3")]),
        make_item("I3", "Retired", [make_variation("V4"), make_variation("V5")], archived=True),
        make_item("I4", "Empty", []),
    ]

    records = reconcile_inventory(items, [], {}, {})

    assert [r.id for r in records] == ["V1", "V2", "V3"]
    assert {r.item_id for r in records} == {"I1", "I2"}


def test_full_name_and_regular_variation_name():
    items = [make_item("I1", "Widget", [
        make_variation("V1", name=""),
        make_variation("V2", name=None),
        make_variation("V3", name="Large"),
    ])]

    records = {r.id: r for r in reconcile_inventory(items, [], {}, {})}

    assert (records["V1"].variation_name, records["V1"].full_name) == ("Regular", "Widget")
    assert (records["V2"].variation_name, records["V2"].full_name) == ("Regular", "Widget")
    assert (records["V3"].variation_name, records["V3"].full_name) == ("Large", "Widget - Large")
    assert build_full_name("Widget", "Regular") == "Widget"


def test_prices_are_converted_from_minor_units():
    items = [make_item("I1", "Widget", [make_variation("V1", price=1299), make_variation("V2", price=None)])]

    records = {r.id: r for r in reconcile_inventory(items, [], {}, {})}

    assert records["V1"].price == pytest.approx(12.99)
    assert records["V2"].price == 0


def test_cost_price_fallback_order():
    declared = make_variation("V1", cost=300, vendor_cost=450)["item_variation_data"]
    vendor_only = make_variation("V2", vendor_cost=450)["item_variation_data"]
    neither = make_variation("V3")["item_variation_data"]

    assert resolve_cost_price(declared) == pytest.approx(3.00)
    assert resolve_cost_price(vendor_only) == pytest.approx(4.50)
    assert resolve_cost_price(neither) is None


def test_stock_and_last_sold_default_when_missing():
    items = [make_item("I1", "Widget", [make_variation("V1"), make_variation("V2")])]

    records = {r.id: r for r in reconcile_inventory(items, [], {"V1": 5}, {"V1": "2024-03-01T00:00:00Z"})}

    assert records["V1"].stock_count == 5
    assert records["V1"].last_sold_at == "2024-03-01T00:00:00Z"
    assert records["V2"].stock_count == 0
    assert records["V2"].last_sold_at is None


def test_tax_ids_resolve_through_lookup_and_unknown_ids_are_dropped():
    taxes = [make_tax("T1", "VAT", "20.0"), make_tax("T2", "Levy", "1.5", enabled=False), make_tax("T3", "City", "2", enabled=None)]
    items = [make_item("I1", "Widget", [make_variation("V1")], tax_ids=["T1", "T2", "T3", "nope"], is_taxable=True)]

    record = reconcile_inventory(items, taxes, {}, {})[0]

    assert record.is_taxable is True
    assert [(t.name, t.percentage, t.enabled) for t in record.tax_info] == [
        ("VAT", "20.0", True),
        ("Levy", "1.5", False),
        ("City", "2", True),
    ]


def test_reconcile_tolerates_sparse_objects():
    items = [{"type": "ITEM", "id": "I1"}, {"type": "ITEM", "id": "I2", "item_data": {"variations": [{"id": "V1"}]}}]

    records = reconcile_inventory(items, [{"type": "TAX", "id": "T1"}], {}, {})

    assert len(records) == 1
    assert records[0].full_name == ""
    assert records[0].price == 0
    assert records[0].cost_price is None
    assert records[0].is_taxable is False


# --- Credentials ---

def test_sanitize_token_strips_whitespace_and_quotes():
    assert sanitize_token('  "EAAAl-abc"  ') == "EAAAl-abc"
    assert sanitize_token("'EAAAl-abc'") == "EAAAl-abc"
    assert sanitize_token(None) == ""


def test_load_credentials_reads_environment_each_time(monkeypatch):
    monkeypatch.setenv("SQUARE_ACCESS_TOKEN", "'tok-1'")
    monkeypatch.setenv("SQUARE_ENVIRONMENT", "Production")
    first = load_square_credentials()

    monkeypatch.setenv("SQUARE_ACCESS_TOKEN", "tok-2")
    monkeypatch.setenv("SQUARE_ENVIRONMENT", "sandbox")
    second = load_square_credentials()

    assert first == SquareCredentials("tok-1", True)
    assert second == SquareCredentials("tok-2", False)


def test_load_credentials_requires_token(monkeypatch):
    monkeypatch.setenv("SQUARE_ACCESS_TOKEN", "  ")
    with pytest.raises(SquareConfigurationError):
        load_square_credentials()


# --- run_sync ---

def test_run_sync_replaces_cache_and_reports_counts(fake_square, cache_store, credentials):
    result = asyncio.run(_service(fake_square, cache_store, credentials).run_sync())

    assert result.success is True
    assert result.item_count == 2
    assert result.duration is not None and result.duration >= 0
    assert round(result.duration, 2) == result.duration

    records = {r.id: r for r in cache_store.get_cached_inventory()}
    assert set(records) == {"V1", "V2"}
    assert records["V1"].stock_count == 5
    assert records["V1"].cost_price == pytest.approx(4.00)
    assert records["V1"].last_sold_at == "2024-03-01T00:00:00Z"
    assert records["V2"].full_name == "Widget - Large"
    assert records["V2"].cost_price == pytest.approx(4.50)
    assert [t.name for t in records["V1"].tax_info] == ["VAT"]
    assert cache_store.get_cached_merchant() == MerchantInfo(name="Corner Shop", id="M123", country="GB")
    assert cache_store.get_sync_status().last_sync is not None


def test_run_sync_only_queries_active_variations(fake_square, cache_store, credentials):
    asyncio.run(_service(fake_square, cache_store, credentials).run_sync())

    import json
    body = json.loads(fake_square.calls("/v2/inventory/batch-retrieve-counts")[0].content)
    assert body["catalog_object_ids"] == ["V1", "V2"]
    assert body["location_ids"] == ["L1"]


def test_run_sync_is_idempotent(fake_square, cache_store, credentials):
    service = _service(fake_square, cache_store, credentials)

    asyncio.run(service.run_sync())
    first = _snapshot(cache_store)
    asyncio.run(service.run_sync())

    assert _snapshot(cache_store) == first


def test_missing_token_fails_without_network_and_keeps_cache(fake_square, cache_store, credentials, monkeypatch):
    asyncio.run(_service(fake_square, cache_store, credentials).run_sync())
    before = cache_store.get_sync_status()
    fake_square.requests.clear()

    monkeypatch.setenv("SQUARE_ACCESS_TOKEN", "")
    service = InventorySyncService(SquareService(transport=fake_square.transport()), cache_store)
    result = asyncio.run(service.run_sync())

    assert result.success is False
    assert "SQUARE_ACCESS_TOKEN" in result.error
    assert fake_square.requests == []
    assert cache_store.get_sync_status() == before


def test_catalog_failure_is_fatal_and_leaves_cache_untouched(fake_square, cache_store, credentials):
    service = _service(fake_square, cache_store, credentials)
    asyncio.run(service.run_sync())
    before_records = _snapshot(cache_store)
    before_status = cache_store.get_sync_status()

    fake_square.failing_paths.add("/v2/catalog/list")
    result = asyncio.run(service.run_sync())

    assert result.success is False
    assert "500" in result.error
    assert _snapshot(cache_store) == before_records
    assert cache_store.get_sync_status().last_sync == before_status.last_sync


def test_secondary_failures_degrade_to_defaults(fake_square, cache_store, credentials):
    fake_square.failing_paths.update({
        "/v2/merchants/me",
        "/v2/locations",
        "/v2/inventory/batch-retrieve-counts",
        "/v2/inventory/changes/batch-retrieve",
    })

    result = asyncio.run(_service(fake_square, cache_store, credentials).run_sync())

    assert result.success is True
    assert result.item_count == 2
    for record in cache_store.get_cached_inventory():
        assert record.stock_count == 0
        assert record.last_sold_at is None
    assert cache_store.get_cached_merchant().name == "Unknown Business"


def test_failed_counts_batch_defaults_affected_stock_to_zero(cache_store, credentials):
    from conftest import FakeSquare, count

    fake = FakeSquare()
    fake.catalog_pages = [[make_item("I1", "Bulk", [make_variation(f"V{i}") for i in range(150)])]]
    fake.counts = [count("V0", "4"), count("V149", "6")]
    fake.failing_count_batches.add(0)

    result = asyncio.run(_service(fake, cache_store, credentials).run_sync())

    assert result.success is True
    assert result.item_count == 150
    records = {r.id: r for r in cache_store.get_cached_inventory()}
    assert records["V0"].stock_count == 0
    assert records["V149"].stock_count == 6


def test_cache_write_failure_is_reported(fake_square, credentials):
    class RejectingCache:
        def update_inventory_cache(self, records, merchant):
            return False

    result = asyncio.run(_service(fake_square, RejectingCache(), credentials).run_sync())

    assert result.success is False
    assert result.error == "Failed to update inventory cache"


def test_overlapping_run_is_skipped(fake_square, cache_store, credentials):
    async def scenario():
        gate = asyncio.Event()

        class SlowSquare(SquareService):
            async def get_merchant_info(self, access_token, is_production):
                await gate.wait()
                return await super().get_merchant_info(access_token, is_production)

        service = InventorySyncService(
            SlowSquare(transport=fake_square.transport()),
            cache_store,
            credentials_loader=lambda: credentials,
        )
        first = asyncio.create_task(service.run_sync())
        await asyncio.sleep(0)
        assert service.is_running

        second = await service.run_sync()
        gate.set()
        return await first, second, service.is_running

    first, second, still_running = asyncio.run(scenario())

    assert first.success is True
    assert second.success is False
    assert second.skipped is True
    assert still_running is False


def test_duplicate_variation_ids_keep_first_occurrence():
    items = [
        make_item("I1", "Widget", [make_variation("V1", name="Small")]),
        make_item("I2", "Gizmo", [make_variation("V1", name="Large"), make_variation("V2")]),
    ]

    records = reconcile_inventory(items, [], {}, {})

    assert [(r.id, r.item_id, r.full_name) for r in records] == [
        ("V1", "I1", "Widget - Small"),
        ("V2", "I2", "Gizmo"),
    ]


def test_duplicate_variation_ids_do_not_break_sync(fake_square, cache_store, credentials):
    fake_square.catalog_pages = [[
        make_item("I1", "Widget", [make_variation("V1")]),
        make_item("I2", "Gizmo", [make_variation("V1"), make_variation("V2")]),
    ]]

    result = asyncio.run(_service(fake_square, cache_store, credentials).run_sync())

    assert result.success is True
    assert result.item_count == 2
    assert sorted(r.id for r in cache_store.get_cached_inventory()) == ["V1", "V2"]


def test_malformed_secondary_bodies_still_sync(fake_square, cache_store, credentials):
    fake_square.malformed_paths.update({
        "/v2/inventory/batch-retrieve-counts": "<html>gateway</html>",
        "/v2/merchants/me": "not json",
    })

    result = asyncio.run(_service(fake_square, cache_store, credentials).run_sync())

    assert result.success is True
    assert result.item_count == 2
    assert all(r.stock_count == 0 for r in cache_store.get_cached_inventory())
    assert cache_store.get_cached_merchant().name == "Unknown Business"


def test_wait_until_idle_blocks_until_in_flight_sync_finishes(fake_square, cache_store, credentials):
    async def scenario():
        gate = asyncio.Event()

        class SlowSquare(SquareService):
            async def get_merchant_info(self, access_token, is_production):
                await gate.wait()
                return await super().get_merchant_info(access_token, is_production)

        service = InventorySyncService(
            SlowSquare(transport=fake_square.transport()),
            cache_store,
            credentials_loader=lambda: credentials,
        )
        in_flight = asyncio.create_task(service.run_sync())
        await asyncio.sleep(0)

        waiter = asyncio.create_task(service.wait_until_idle())
        await asyncio.sleep(0)
        waited_while_running = not waiter.done()

        gate.set()
        await waiter
        cached_after_wait = cache_store.get_sync_status().is_cached
        await in_flight
        return waited_while_running, cached_after_wait

    waited_while_running, cached_after_wait = asyncio.run(scenario())

    assert waited_while_running is True
    assert cached_after_wait is True


def test_wait_until_idle_returns_immediately_when_idle(fake_square, cache_store, credentials):
    asyncio.run(_service(fake_square, cache_store, credentials).wait_until_idle())
