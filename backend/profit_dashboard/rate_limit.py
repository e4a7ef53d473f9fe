"""
Rate limiter instance shared by the app and route-level decorators
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from profit_dashboard.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"])
