"""
Chat directory derived from the corpus, persisted to a JSON cache file.
"""
import asyncio
import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from corpus.layout import chat_dir_name, iter_message_files, list_date_folders
from corpus.storage import MessageCorpus, read_message_file
from utils.message_parser import display_name, parse_timestamp, preview_text


logger = logging.getLogger(__name__)


ChatEntry = Dict[str, Any]


class ChatsScanner:
    """
    Builds ``{chat_id: {id, name, type, lastDate, lastMessage}}`` without the store.

    The first sighting of a chat during a newest-first walk records its
    metadata; later sightings only improve a placeholder name or move the last
    message forward in time.
    """

    def __init__(self, corpus: MessageCorpus, cache_path: str, batch_size: int = 50):
        self.corpus = corpus
        self.cache_path = Path(cache_path)
        self.batch_size = batch_size
        self._entries: Optional[Dict[str, ChatEntry]] = None
        self._lock = asyncio.Lock()

    async def get_chats(self, force: bool = False) -> Dict[str, ChatEntry]:
        """
        Get the chat directory.

        Args:
            force: Ignore the cache and rescan every date folder

        Returns:
            Mapping of chat id (as string) to chat entry
        """
        async with self._lock:
            entries = None if force else await asyncio.to_thread(self._load_cache)
            if entries is None:
                entries = {}
                await self._scan(entries, list_date_folders(self.corpus.root, newest_first=True))
                await asyncio.to_thread(self._save_cache, entries)
            else:
                today = self.corpus.today()
                recent = [
                    self.corpus.folder_for(today),
                    self.corpus.folder_for(today - timedelta(days=1)),
                ]
                if await self._scan(entries, [f for f in recent if f.is_dir()]):
                    await asyncio.to_thread(self._save_cache, entries)
            self._entries = entries
            return entries

    async def get_sorted_chats(self, force: bool = False) -> List[ChatEntry]:
        """Chat entries ordered by last message time, newest first."""
        entries = await self.get_chats(force=force)
        return sorted(
            entries.values(),
            key=lambda entry: (entry.get("lastMessage") or {}).get("time") or 0,
            reverse=True
        )

    def chat_type(self, chat_id: int) -> Optional[str]:
        """
        Known Telegram type of a chat, from memory or the cache file.

        Never triggers a scan.
        """
        entries = self._entries
        if entries is None:
            entries = self._load_cache() or {}
            self._entries = entries
        entry = entries.get(str(chat_id))
        return entry.get("type") if entry else None

    async def _scan(self, entries: Dict[str, ChatEntry], folders: List[Path]) -> bool:
        changed = False
        seen = 0
        for folder in folders:
            files = await asyncio.to_thread(lambda f=folder: list(iter_message_files(f)))
            for path in files:
                payload = await asyncio.to_thread(read_message_file, path)
                if payload is not None and self._observe(entries, payload, path, folder.name):
                    changed = True
                seen += 1
                if seen % self.batch_size == 0:
                    await asyncio.sleep(0)
        logger.debug(f"Scanned {seen} files in {len(folders)} folders", extra={"changed": changed})
        return changed

    @staticmethod
    def _observe(entries: Dict[str, ChatEntry], payload: Dict[str, Any], path: Path, folder_name: str) -> bool:
        chat = payload.get("chat") if isinstance(payload.get("chat"), dict) else {}
        chat_id = chat.get("id") or payload.get("chat_id") or chat_dir_name(path)
        if not chat_id:
            return False
        key = str(chat_id)
        timestamp = parse_timestamp(payload)
        name = display_name({**chat, "id": chat_id})
        last_message = {"time": timestamp, "text": preview_text(payload)}

        entry = entries.get(key)
        if entry is None:
            entries[key] = {
                "id": int(chat_id),
                "name": name,
                "type": chat.get("type"),
                "lastDate": folder_name,
                "lastMessage": last_message,
            }
            return True

        changed = False
        if entry.get("name") in (None, "", key) and name != key:
            entry["name"] = name
            changed = True
        if not entry.get("type") and chat.get("type"):
            entry["type"] = chat["type"]
            changed = True
        if timestamp > ((entry.get("lastMessage") or {}).get("time") or 0):
            entry["lastDate"] = folder_name
            entry["lastMessage"] = last_message
            changed = True
        return changed

    def _load_cache(self) -> Optional[Dict[str, ChatEntry]]:
        if not self.cache_path.exists():
            return None
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Chats cache {self.cache_path} unreadable, rescanning: {e}")
            return None
        if not isinstance(data, dict) or not data:
            return None
        return data

    def _save_cache(self, entries: Dict[str, ChatEntry]) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(json.dumps(entries, ensure_ascii=False, indent=2), encoding="utf-8")
            logger.debug(f"Chats cache saved with {len(entries)} chats")
        except OSError as e:
            logger.error(f"Failed to save chats cache: {e}")
