"""
Message service answering timeline queries from the corpus and the archive.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from corpus.layout import chat_dir_name, iter_message_files, list_date_folders, parse_date_folder
from corpus.storage import MessageCorpus, read_message_file
from database.models import MessageModel
from database.store import MessageStore
from services.chats_scanner import ChatsScanner
from utils.message_parser import is_group_chat, parse_message, sender_name
from utils.timezone_helper import local_day_bounds, local_isoformat


logger = logging.getLogger(__name__)


ALL_PRIVATE = "allPrivate"

MessageKey = Tuple[str, str]


def message_key(record: Dict[str, Any]) -> MessageKey:
    """Composite identity of a record as strings."""
    return str(record.get("chat_id")), str(record.get("message_id"))


class MessageService:
    """Service for reading message timelines."""

    def __init__(
        self,
        corpus: MessageCorpus,
        scanner: ChatsScanner,
        store: Optional[MessageStore] = None,
        max_lookback_days: int = 31
    ):
        """
        Initialize message service.

        Args:
            corpus: Filesystem corpus, the source of the live tail
            scanner: Chat directory used to resolve a chat's kind
            store: Optional message store for archive rows and avatars
            max_lookback_days: Folder limit when collecting the newest messages
        """
        self.corpus = corpus
        self.scanner = scanner
        self.store = store
        self.max_lookback_days = max_lookback_days

    @property
    def store_available(self) -> bool:
        return self.store is not None and self.store.is_available

    async def get_messages(
        self,
        since: Optional[int] = None,
        date: Optional[str] = None,
        group: Optional[str] = None,
        limit: Optional[int] = None,
        include_archive: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Read messages for a day or the most recent ones.

        Args:
            since: Drop messages with ``message_id <= since``
            date: Date folder name ``DD.MM.YYYY``; empty means today, or the
                newest folders when a limit is given
            group: Chat id, or empty / ``allPrivate`` for every chat
            limit: Maximum number of records
            include_archive: Merge archived rows from the store

        Returns:
            Records sorted by timestamp, newest first

        Raises:
            ValueError: If the date or group parameter is malformed
        """
        chat_id = self._parse_group(group)
        is_group = None
        if chat_id is not None:
            is_group = is_group_chat(chat_id, self.scanner.chat_type(chat_id))

        if date:
            if parse_date_folder(date) is None:
                raise ValueError(f"Invalid date '{date}', expected DD.MM.YYYY")
            folders = [self.corpus.root / date]
        elif limit is None:
            folders = [self.corpus.folder_for(self.corpus.today())]
        else:
            folders = list_date_folders(self.corpus.root, newest_first=True)[:self.max_lookback_days]

        records: Dict[MessageKey, Dict[str, Any]] = {}
        for folder in folders:
            payloads = await asyncio.to_thread(self._read_folder, folder, chat_id, is_group)
            for payload in payloads:
                record = self._to_record(payload)
                if record is None or (since is not None and record["message_id"] <= since):
                    continue
                records.setdefault(message_key(record), record)
            if not date and limit is not None and len(records) >= limit:
                break

        if include_archive:
            await self._merge_archive(records, folders, chat_id, since)

        result = sorted(
            records.values(),
            key=lambda r: (r.get("date") or 0, r.get("message_id") or 0),
            reverse=True
        )
        if limit is not None:
            result = result[:limit]

        await self._attach_avatars(result)

        logger.debug(
            "Messages retrieved",
            extra={
                "date": date,
                "group": group,
                "folders": len(folders),
                "message_count": len(result)
            }
        )
        return result

    @staticmethod
    def _parse_group(group: Optional[str]) -> Optional[int]:
        if group in (None, "", ALL_PRIVATE):
            return None
        try:
            return int(group)
        except ValueError:
            raise ValueError(f"Invalid group '{group}'")

    @staticmethod
    def _read_folder(folder: Path, chat_id: Optional[int], is_group: Optional[bool]) -> List[Dict[str, Any]]:
        if not folder.is_dir():
            return []

        if chat_id is None:
            paths = iter_message_files(folder)
        elif is_group:
            # Flat files are included for chats stored before they had a subdirectory
            paths = iter_message_files(folder, chat_id=chat_id)
        else:
            paths = (p for p in iter_message_files(folder, chat_id=chat_id) if p.parent == folder)

        payloads = []
        for path in paths:
            payload = read_message_file(path)
            if payload is None:
                continue
            chat = payload.get("chat") if isinstance(payload.get("chat"), dict) else {}
            payload_chat_id = chat.get("id") or payload.get("chat_id") or chat_dir_name(path)
            if chat_id is not None and str(payload_chat_id) != str(chat_id):
                continue
            if payload_chat_id and "chat_id" not in payload:
                payload["chat_id"] = int(payload_chat_id)
            payloads.append(payload)
        return payloads

    def _to_record(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        parsed = parse_message(payload)
        if parsed is None:
            return None
        return self._build_record(payload, parsed.message)

    def _build_record(self, payload: Dict[str, Any], message: MessageModel) -> Dict[str, Any]:
        record = dict(payload)
        record["message_id"] = message.message_id
        record["chat_id"] = message.chat_id
        record["date"] = message.timestamp
        record["time"] = local_isoformat(message.timestamp, self.corpus.timezone)
        record["user"] = sender_name(payload.get("from"))
        record["type"] = message.type
        record["reactions"] = [r.to_dict() for r in (message.reactions or [])]
        record["media_url"] = message.media_url
        if message.media_file_id:
            record["media_file_id"] = message.media_file_id
        return record

    async def _merge_archive(
        self,
        records: Dict[MessageKey, Dict[str, Any]],
        folders: List[Path],
        chat_id: Optional[int],
        since: Optional[int]
    ) -> None:
        if not self.store_available:
            return
        try:
            for folder in folders:
                day = parse_date_folder(folder.name)
                if day is None:
                    continue
                start_ts, end_ts = local_day_bounds(day, self.corpus.timezone)
                archived = await self.store.messages.get_by_period(
                    start_ts, end_ts, chat_id=chat_id, archived=True
                )
                for message in archived:
                    if since is not None and message.message_id <= since:
                        continue
                    payload = dict(message.raw_data) or {
                        "message_id": message.message_id,
                        "chat": {"id": message.chat_id},
                        "date": message.timestamp,
                        "text": message.text,
                        "caption": message.caption,
                    }
                    record = self._build_record(payload, message)
                    record["archived"] = True
                    records.setdefault(message_key(record), record)
        except Exception as e:
            logger.warning(f"Archive unavailable, serving corpus only: {e}")

    async def _attach_avatars(self, records: List[Dict[str, Any]]) -> None:
        if not self.store_available or not records:
            return
        user_ids = {
            r["from"]["id"] for r in records
            if isinstance(r.get("from"), dict) and isinstance(r["from"].get("id"), int)
        }
        try:
            photos = await self.store.users.get_photo_urls(user_ids)
        except Exception as e:
            logger.warning(f"Could not load avatars: {e}")
            return
        for record in records:
            sender = record.get("from")
            if isinstance(sender, dict) and sender.get("id") in photos:
                record["user_avatar_url"] = photos[sender["id"]]
