"""
Cost Override API Endpoints
"""
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status

from profit_dashboard.dependencies import get_current_user, get_runtime, require_role
from profit_dashboard.runtime import InventoryRuntime
from profit_dashboard.schemas.auth import CurrentUser
from profit_dashboard.schemas.cost_override import CostOverrideRequest, CostOverrideResponse

router = APIRouter(prefix="/cost-overrides", tags=["cost-overrides"])

can_edit_costs = require_role(["admin", "manager"])


@router.get("", response_model=Dict[str, float])
async def list_cost_overrides(
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Get all manual cost prices"""
    return runtime.cost_overrides.read()


@router.post("", response_model=CostOverrideResponse)
async def set_cost_override(
    data: CostOverrideRequest,
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(can_edit_costs),
):
    """Set a manual cost price; a null cost removes the override"""
    overrides = runtime.cost_overrides.set_override(data.id, data.cost)

    if overrides is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save cost override",
        )

    return CostOverrideResponse(success=True, overrides=overrides)


@router.delete("/{record_id}", response_model=CostOverrideResponse)
async def delete_cost_override(
    record_id: str,
    runtime: InventoryRuntime = Depends(get_runtime),
    current_user: CurrentUser = Depends(can_edit_costs),
):
    """Remove a manual cost price"""
    overrides = runtime.cost_overrides.remove_override(record_id)

    if overrides is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete cost override",
        )

    return CostOverrideResponse(success=True, overrides=overrides)
