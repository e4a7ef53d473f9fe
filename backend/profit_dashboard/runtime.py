"""
Process-wide service wiring, built once by the application lifespan
"""
import os
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from sqlalchemy.engine import Engine

from profit_dashboard.config import Settings
from profit_dashboard.database import create_db_engine, create_session_factory
from profit_dashboard.services.cost_override_store import CostOverrideStore
from profit_dashboard.services.inventory_cache import InventoryCacheStore
from profit_dashboard.services.inventory_sync import InventorySyncService, SquareCredentials, load_square_credentials
from profit_dashboard.services.settings_store import SettingsStore
from profit_dashboard.services.square_service import SquareService
from profit_dashboard.tasks.background_sync import BackgroundSyncScheduler


@dataclass
class InventoryRuntime:
    engine: Engine
    cache: InventoryCacheStore
    square: SquareService
    sync_service: InventorySyncService
    scheduler: BackgroundSyncScheduler
    cost_overrides: CostOverrideStore
    settings_store: SettingsStore

    def dispose(self) -> None:
        self.engine.dispose()


def build_runtime(
    config: Settings,
    square_transport: Optional[httpx.AsyncBaseTransport] = None,
    credentials_loader: Callable[[], SquareCredentials] = load_square_credentials,
) -> InventoryRuntime:
    """
    Construct every long-lived service from settings

    Args:
        config: Application settings
        square_transport: Optional httpx transport for the Square client (tests)
        credentials_loader: Source of the Square token and environment

    Returns:
        InventoryRuntime with an initialised cache schema
    """
    os.makedirs(config.DATA_DIR, exist_ok=True)

    engine = create_db_engine(config.database_url, echo=config.DEBUG)
    cache = InventoryCacheStore(engine, create_session_factory(engine))
    cache.init_schema()

    square = SquareService(
        api_version=config.SQUARE_API_VERSION,
        timeout=config.SQUARE_TIMEOUT_SECONDS,
        transport=square_transport,
    )
    sync_service = InventorySyncService(square, cache, credentials_loader=credentials_loader)
    scheduler = BackgroundSyncScheduler(
        sync_service,
        cache,
        interval_seconds=config.SYNC_INTERVAL_MINUTES * 60,
        startup_delay_seconds=config.SYNC_STARTUP_DELAY_SECONDS,
        sync_if_empty=config.SYNC_ON_STARTUP,
    )

    return InventoryRuntime(
        engine=engine,
        cache=cache,
        square=square,
        sync_service=sync_service,
        scheduler=scheduler,
        cost_overrides=CostOverrideStore(os.path.join(config.DATA_DIR, "cost-overrides.json")),
        settings_store=SettingsStore(os.path.join(config.DATA_DIR, "settings.json")),
    )
