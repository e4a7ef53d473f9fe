"""
Dashboard Settings API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from profit_dashboard.dependencies import get_current_user, get_current_admin_user, get_runtime
from profit_dashboard.runtime import InventoryRuntime
from profit_dashboard.schemas.auth import CurrentUser
from profit_dashboard.schemas.settings import DashboardSettings, DashboardSettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=DashboardSettings)
async def get_settings(
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Get GP% thresholds and column permissions"""
    return runtime.settings_store.read()


@router.post("", response_model=DashboardSettings)
async def update_settings(
    data: DashboardSettingsUpdate,
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_admin_user),
):
    """
    Merge and save settings
    Admin only
    """
    try:
        return runtime.settings_store.update(data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )
    except OSError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save settings",
        )
