"""
Reading and writing message files of the corpus.
"""
import json
import logging
import os
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from corpus.layout import (
    PathLike,
    date_folder_for_timestamp,
    format_date_folder,
    message_file_path,
)
from utils.message_parser import is_group_chat, parse_timestamp
from utils.timezone_helper import local_today


logger = logging.getLogger(__name__)


def read_message_file(path: PathLike) -> Optional[Dict[str, Any]]:
    """
    Read one message file.

    Args:
        path: File path

    Returns:
        Parsed payload, or None for a missing, empty, non-object or malformed file
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read {file_path}: {e}")
        return None

    if not content.strip():
        logger.debug(f"Skipping empty file {file_path}")
        return None

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug(f"Skipping malformed JSON in {file_path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.debug(f"Skipping non-object payload in {file_path}")
        return None
    return data


def write_message_file(path: PathLike, payload: Dict[str, Any]) -> Path:
    """
    Atomically write a message file.

    The payload is written to a temporary file in the same directory and moved
    into place, so readers never observe a partial file.

    Args:
        path: Destination path
        payload: Message payload

    Returns:
        Destination path
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(file_path.parent), prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, file_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return file_path


class MessageCorpus:
    """Filesystem corpus rooted at one directory."""

    def __init__(self, root: PathLike, timezone: Optional[str] = None):
        """
        Initialize corpus.

        Args:
            root: Corpus root directory
            timezone: IANA timezone used for date folder names (None for UTC)
        """
        self.root = Path(root)
        self.timezone = timezone

    def today(self) -> date:
        return local_today(self.timezone)

    def folder_for(self, day: date) -> Path:
        return self.root / format_date_folder(day)

    def path_for_payload(self, payload: Dict[str, Any]) -> Path:
        """
        Canonical path for a payload.

        Args:
            payload: Raw message payload with ``message_id`` and ``chat``

        Returns:
            Path under the date folder of the payload's timestamp
        """
        chat = payload.get("chat") or {}
        chat_id = int(chat.get("id", payload.get("chat_id", 0)))
        timestamp = parse_timestamp(payload)
        folder = date_folder_for_timestamp(timestamp, self.timezone)
        return message_file_path(
            self.root,
            folder,
            chat_id,
            int(payload["message_id"]),
            is_group_chat(chat_id, chat.get("type"))
        )

    def save_payload(self, payload: Dict[str, Any]) -> Path:
        """Write a payload to its canonical path."""
        path = self.path_for_payload(payload)
        write_message_file(path, payload)
        logger.debug(f"Message file written: {path}")
        return path

    def candidate_paths(self, chat_id: int, message_id: int, lookback_days: int) -> List[Path]:
        """Possible locations of a message, newest date folder first."""
        today = self.today()
        candidates = []
        for offset in range(lookback_days):
            folder = self.folder_for(today - timedelta(days=offset))
            candidates.append(folder / str(chat_id) / f"{message_id}.json")
            candidates.append(folder / f"{message_id}.json")
        return candidates

    def find_message_file(self, chat_id: int, message_id: int, lookback_days: int = 31) -> Optional[Path]:
        """
        Locate a message file by probing recent date folders.

        A flat file only matches if its payload belongs to the requested chat,
        since message ids are scoped per chat.

        Args:
            chat_id: Chat id
            message_id: Message id
            lookback_days: Number of date folders to search

        Returns:
            Path of the file, or None if not found
        """
        for path in self.candidate_paths(chat_id, message_id, lookback_days):
            if not path.is_file():
                continue
            if path.parent.name == str(chat_id):
                return path
            payload = read_message_file(path)
            if payload is not None and int((payload.get("chat") or {}).get("id", 0)) == chat_id:
                return path
        return None
