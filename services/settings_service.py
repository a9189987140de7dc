"""
Per-chat manual mode flags and the flat JSON settings file.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from config.config_file import ConfigFile
from database.store import MessageStore, StoreUnavailableError


logger = logging.getLogger(__name__)


class ManualModeService:
    """Stores a manual-mode flag per chat in the config table."""

    # Configuration key prefix
    KEY_PREFIX = "manual_mode:"

    def __init__(self, store: Optional[MessageStore]):
        self.store = store

    def _require_store(self) -> MessageStore:
        if self.store is None or not self.store.is_available:
            raise StoreUnavailableError("Message store is unavailable")
        return self.store

    async def get(self, chat_id: int) -> bool:
        """
        Get manual mode for a chat.

        Args:
            chat_id: Chat id

        Returns:
            True if manual mode is enabled (default False)
        """
        value = await self._require_store().config.get(f"{self.KEY_PREFIX}{chat_id}")
        return value == "1"

    async def set(self, chat_id: int, enabled: bool) -> None:
        """
        Set manual mode for a chat.

        Args:
            chat_id: Chat id
            enabled: New state
        """
        await self._require_store().config.set(f"{self.KEY_PREFIX}{chat_id}", "1" if enabled else "0")
        logger.info(f"Manual mode {'enabled' if enabled else 'disabled'} for chat {chat_id}")

    async def get_all(self) -> Dict[str, bool]:
        """All chats with a stored flag, keyed by chat id string."""
        values = await self._require_store().config.get_by_prefix(self.KEY_PREFIX)
        return {key[len(self.KEY_PREFIX):]: value == "1" for key, value in values.items()}


class SettingsService:
    """Reads and merge-writes the JSON settings file."""

    def __init__(self, config_file: ConfigFile):
        self.config_file = config_file

    async def get_settings(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self.config_file.read)

    async def update_settings(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge changes into the settings file.

        Raises:
            ValueError: If changes is not a flat dictionary
        """
        if not isinstance(changes, dict):
            raise ValueError("Settings must be an object")
        nested = [key for key, value in changes.items() if isinstance(value, (dict, list))]
        if nested:
            raise ValueError(f"Settings must be flat, nested values for: {', '.join(nested)}")
        return await asyncio.to_thread(self.config_file.update, changes)
