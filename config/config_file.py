"""Flat key-value JSON config file holding listening port/path settings."""

import json
import logging
from pathlib import Path
from typing import Any, Dict


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS: Dict[str, Any] = {
    "Listening Port": 3005,
    "Listening Path": "messages",
    "Cors Server Port": 3006,
}


class ConfigFile:
    """JSON settings file that is auto-created with defaults when absent or corrupt."""

    def __init__(self, filename: str):
        """
        Initialize config file wrapper.

        Args:
            filename: Path to the JSON settings file

        Raises:
            ValueError: If filename is not a string
        """
        if not isinstance(filename, str):
            raise ValueError("Invalid filename type")
        self.filename = filename
        if not Path(self.filename).exists():
            self._write_defaults()

    def read(self) -> Dict[str, Any]:
        """
        Read settings from disk.

        An empty, corrupt or non-object file is replaced with the defaults.

        Returns:
            Settings dictionary
        """
        path = Path(self.filename)
        if not path.exists():
            return self._write_defaults()

        raw = path.read_text(encoding="utf-8").strip()
        if not raw or raw == "{}":
            return self._write_defaults()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Incorrect data format in {self.filename}, restoring defaults: {e}")
            return self._write_defaults()

        if not isinstance(data, dict):
            logger.warning(f"Settings in {self.filename} are not an object, restoring defaults")
            return self._write_defaults()

        return data

    def write(self, data: Dict[str, Any]) -> None:
        """
        Replace the settings file content.

        Args:
            data: Flat settings dictionary

        Raises:
            ValueError: If data is not a dictionary
        """
        if not isinstance(data, dict):
            raise ValueError("Invalid data type")
        Path(self.filename).write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8"
        )

    def update(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge changes into the stored settings.

        Args:
            changes: Keys to add or replace

        Returns:
            The merged settings
        """
        data = self.read()
        data.update(changes)
        self.write(data)
        logger.info(f"Settings updated: {', '.join(changes.keys())}")
        return data

    def _write_defaults(self) -> Dict[str, Any]:
        path = Path(self.filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = dict(DEFAULT_SETTINGS)
        self.write(data)
        logger.info(f"Default settings written to {self.filename}")
        return data
