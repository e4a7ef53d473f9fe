"""
Dashboard Settings Store
"""
import json
import logging
import os

from pydantic import ValidationError

from profit_dashboard.schemas.settings import DashboardSettings, DashboardSettingsUpdate
from profit_dashboard.services.cost_override_store import write_json_atomic

logger = logging.getLogger(__name__)


class SettingsStore:
    """Validated DashboardSettings persisted as JSON"""

    def __init__(self, path: str):
        self.path = path

    def read(self) -> DashboardSettings:
        """Load settings, falling back to defaults if the file is missing or invalid"""
        if not os.path.exists(self.path):
            return DashboardSettings()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                return DashboardSettings.model_validate(json.load(fh))
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Error reading settings, using defaults: %s", e)
            return DashboardSettings()

    def write(self, settings: DashboardSettings) -> bool:
        try:
            write_json_atomic(self.path, settings.model_dump())
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing settings: %s", e)
            return False
        return True

    def update(self, changes: DashboardSettingsUpdate) -> DashboardSettings:
        """
        Merge a partial update over the current settings and save

        Raises:
            ValidationError: merged settings are invalid
            OSError: settings could not be written
        """
        merged = self.read().model_dump()
        merged.update(changes.model_dump(exclude_none=True))
        new_settings = DashboardSettings.model_validate(merged)

        if not self.write(new_settings):
            raise OSError(f"Failed to save settings to {self.path}")
        return new_settings
