"""
Cost Override Schemas
"""
from typing import Dict, Optional
from pydantic import BaseModel, Field


class CostOverrideRequest(BaseModel):
    """Set or clear (cost=None) a manual cost price"""
    id: str = Field(..., min_length=1)
    cost: Optional[float] = Field(None, ge=0)


class CostOverrideResponse(BaseModel):
    success: bool
    overrides: Dict[str, float]
