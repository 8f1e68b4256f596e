"""
Local device preferences.

A small JSON file of boolean UI preferences (e.g. whether the comps map is
shown for a comp type). Not part of the synchronization state.
"""

import json
from pathlib import Path
from typing import Dict, Union

from .logging_config import get_logger

logger = get_logger(__name__)


class DevicePreferences:
    """JSON-file backed boolean preferences."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._values: Dict[str, bool] = {}
        self._loaded = False

    def _load(self) -> None:
        self._loaded = True
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, e)
            return
        if isinstance(data, dict):
            self._values = {k: v for k, v in data.items() if isinstance(v, bool)}

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Read a boolean preference."""
        if not self._loaded:
            self._load()
        return self._values.get(key, default)

    def set_bool(self, key: str, value: bool) -> None:
        """Write a boolean preference and persist the file."""
        if not self._loaded:
            self._load()
        self._values[key] = bool(value)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
