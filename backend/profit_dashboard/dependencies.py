"""
Common Dependencies for FastAPI Routes
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import List, Callable

from profit_dashboard.runtime import InventoryRuntime
from profit_dashboard.schemas.auth import CurrentUser
from profit_dashboard.utils.security import decode_access_token

security = HTTPBearer()


def get_runtime(request: Request) -> InventoryRuntime:
    """Services built by the application lifespan"""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return runtime


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Dependency to get the current authenticated user
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    return CurrentUser(id=str(user_id), email=payload.get("email"), role=payload.get("role") or "staff")


def require_role(allowed_roles: List[str]) -> Callable:
    """
    Dependency factory to require specific roles

    Usage:
        current_user: CurrentUser = Depends(require_role(["admin"]))
    """
    async def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(allowed_roles)}",
            )
        return current_user

    return role_checker


get_current_admin_user = require_role(["admin"])
