"""
Dashboard Settings Schemas
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from profit_dashboard.config.permissions import ALL_COLUMNS, CONFIGURABLE_ROLES, DEFAULT_COLUMN_PERMISSIONS


class GpThresholds(BaseModel):
    """GP% colour bands: excellent >= excellent, good >= good, low >= low, else negative"""
    excellent: float = 50
    good: float = 30
    low: float = 0

    @model_validator(mode="after")
    def check_descending(self):
        if not (self.excellent >= self.good >= self.low):
            raise ValueError("gp_thresholds must satisfy excellent >= good >= low")
        return self


class DashboardSettings(BaseModel):
    """Persisted dashboard settings"""
    gp_thresholds: GpThresholds = Field(default_factory=GpThresholds)
    column_permissions: Dict[str, List[str]] = Field(
        default_factory=lambda: {role: list(cols) for role, cols in DEFAULT_COLUMN_PERMISSIONS.items()}
    )

    @field_validator("column_permissions")
    @classmethod
    def check_columns(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for role, columns in value.items():
            if role not in CONFIGURABLE_ROLES:
                raise ValueError(f"Column permissions can't be set for role '{role}'")
            unknown = [c for c in columns if c not in ALL_COLUMNS]
            if unknown:
                raise ValueError(f"Unknown columns for role '{role}': {', '.join(unknown)}")
        return value

    def columns_for_role(self, role: str) -> List[str]:
        return self.column_permissions.get(role, [])

    def gp_band(self, gp_percent: Optional[float]) -> Optional[str]:
        """Classify a GP% against the configured thresholds"""
        if gp_percent is None:
            return None
        if gp_percent >= self.gp_thresholds.excellent:
            return "excellent"
        if gp_percent >= self.gp_thresholds.good:
            return "good"
        if gp_percent >= self.gp_thresholds.low:
            return "low"
        return "negative"


class DashboardSettingsUpdate(BaseModel):
    """Partial settings update, merged over the current settings"""
    gp_thresholds: Optional[GpThresholds] = None
    column_permissions: Optional[Dict[str, List[str]]] = None
