"""
Cost Override Store
Manual cost prices kept in a JSON file on the server. Never written to Square.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def write_json_atomic(path: str, data) -> None:
    """Write JSON to a temp file in the same directory, then rename over `path`"""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, sort_keys=True)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class CostOverrideStore:
    """Map of cached record id -> manual cost price"""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()

    def read(self) -> Dict[str, float]:
        """Read all overrides; a missing or unreadable file reads as empty"""
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error("Error reading cost overrides: %s", e)
            return {}

        if not isinstance(data, dict):
            logger.error("Ignoring cost overrides file with unexpected shape: %s", type(data).__name__)
            return {}

        overrides = {}
        for key, value in data.items():
            try:
                overrides[str(key)] = float(value)
            except (TypeError, ValueError):
                logger.warning("Skipping non-numeric cost override for %s: %r", key, value)
        return overrides

    def write(self, overrides: Dict[str, float]) -> bool:
        """Replace all overrides"""
        with self._lock:
            try:
                write_json_atomic(self.path, {str(k): float(v) for k, v in overrides.items()})
            except (OSError, TypeError, ValueError) as e:
                logger.error("Error writing cost overrides: %s", e)
                return False
        return True

    def set_override(self, record_id: str, cost: Optional[float]) -> Optional[Dict[str, float]]:
        """
        Set one override, or remove it when cost is None

        Returns:
            The updated map, or None if it could not be saved
        """
        with self._lock:
            overrides = self.read()
            if cost is None:
                overrides.pop(record_id, None)
            else:
                overrides[record_id] = float(cost)

            return overrides if self.write(overrides) else None

    def remove_override(self, record_id: str) -> Optional[Dict[str, float]]:
        return self.set_override(record_id, None)
