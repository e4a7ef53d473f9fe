"""
Inventory API Endpoints
Serves the cached Square inventory; the cache is refreshed in the background
and on demand by admins.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from profit_dashboard.config import settings
from profit_dashboard.dependencies import get_current_user, get_current_admin_user, get_runtime
from profit_dashboard.rate_limit import limiter
from profit_dashboard.runtime import InventoryRuntime
from profit_dashboard.schemas.auth import CurrentUser
from profit_dashboard.schemas.inventory import (
    BackgroundSyncStatus,
    InventoryResponse,
    ManualSyncResponse,
    SyncStatus,
)
from profit_dashboard.services.profit_service import filter_columns, merge_cost_overrides

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=InventoryResponse)
async def get_inventory(
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Get the inventory table from cache

    Runs an initial sync if the cache has never been filled, or waits for the
    one already in flight. cached is false if the cache is still unfilled.
    """
    sync_status = runtime.cache.get_sync_status()

    if not sync_status.is_cached:
        logger.info("[INVENTORY] Cache empty, performing initial sync...")
        result = await runtime.sync_service.run_sync()

        if result.skipped:
            logger.info("[INVENTORY] Waiting for in-flight sync...")
            await runtime.sync_service.wait_until_idle()
        elif not result.success:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=result.error or "Failed to sync inventory",
            )
        sync_status = runtime.cache.get_sync_status()

    records = runtime.cache.get_cached_inventory()
    merchant = runtime.cache.get_cached_merchant()
    last_sync = runtime.cache.get_last_sync_time()

    rows = merge_cost_overrides(records, runtime.cost_overrides.read())

    if current_user.is_admin:
        items = filter_columns(rows, None)
    else:
        columns = runtime.settings_store.read().columns_for_role(current_user.role)
        items = filter_columns(rows, columns)

    logger.info("[INVENTORY] Serving %d cached items (last sync: %s)", len(items), last_sync)

    cached = sync_status.is_cached or sync_status.last_sync is not None
    return InventoryResponse(merchant=merchant, items=items, cached=cached, last_sync=last_sync)


@router.post("/sync", response_model=ManualSyncResponse)
@limiter.limit(settings.RATE_LIMIT_MANUAL_SYNC)
async def trigger_manual_sync(
    request: Request,
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """
    Trigger an immediate refresh from Square
    Admin only
    """
    logger.info("[SYNC] Manual sync triggered by %s", current_user.email or current_user.id)

    result = await runtime.sync_service.run_sync()

    if result.skipped:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sync already in progress",
        )

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": result.error or "Sync failed"},
        )

    return ManualSyncResponse(
        success=True,
        message=f"Successfully synced {result.item_count} items",
        item_count=result.item_count,
        duration=result.duration,
        last_sync=runtime.cache.get_last_sync_time(),
    )


@router.get("/sync-status", response_model=BackgroundSyncStatus)
async def get_sync_status(
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """
    Background sync and cache status
    Admin only
    """
    return runtime.scheduler.status()


@router.delete("/cache", response_model=SyncStatus)
async def clear_inventory_cache(
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """
    Wipe the inventory cache (operational reset)
    Admin only
    """
    if not runtime.cache.clear_cache():
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear cache",
        )

    logger.info("[INVENTORY] Cache cleared by %s", current_user.email or current_user.id)
    return runtime.cache.get_sync_status()
