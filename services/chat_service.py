"""
Chat list service combining the chat directory with stored avatars.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from database.store import MessageStore
from services.chats_scanner import ChatsScanner


logger = logging.getLogger(__name__)


class ChatListService:
    """Service producing the sidebar chat list."""

    def __init__(
        self,
        scanner: ChatsScanner,
        store: Optional[MessageStore] = None,
        archive_after_days: int = 30
    ):
        self.scanner = scanner
        self.store = store
        self.archive_after_days = archive_after_days

    async def get_all_chats(
        self,
        include_archive: bool = False,
        force: bool = False,
        now: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """
        List chats, newest activity first.

        Args:
            include_archive: Include chats without activity in the archive window
            force: Rescan the corpus instead of serving the cache
            now: Reference Unix time, defaults to the current time

        Returns:
            List of ``{id, name, type, photo, lastDate, lastMessage}``
        """
        entries = await self.scanner.get_sorted_chats(force=force)
        if not include_archive:
            cutoff = (now or time.time()) - self.archive_after_days * 86400
            entries = [e for e in entries if ((e.get("lastMessage") or {}).get("time") or 0) >= cutoff]

        photos = await self._photos([e["id"] for e in entries if e.get("id", 0) > 0])
        return [
            {
                "id": entry["id"],
                "name": entry.get("name") or str(entry["id"]),
                "type": entry.get("type"),
                "photo": photos.get(entry["id"]),
                "lastDate": entry.get("lastDate"),
                "lastMessage": entry.get("lastMessage"),
            }
            for entry in entries
        ]

    async def _photos(self, user_ids: List[int]) -> Dict[int, str]:
        if self.store is None or not self.store.is_available or not user_ids:
            return {}
        try:
            return await self.store.users.get_photo_urls(user_ids)
        except Exception as e:
            logger.warning(f"Could not load chat photos: {e}")
            return {}
