"""
Auth Schemas
"""
from typing import Optional
from pydantic import BaseModel

from profit_dashboard.config.permissions import FULL_ACCESS_ROLES


class CurrentUser(BaseModel):
    """Claims of a verified access token"""
    id: str
    email: Optional[str] = None
    role: str = "staff"

    @property
    def is_admin(self) -> bool:
        return self.role in FULL_ACCESS_ROLES
