"""
Aggregate statistics over the message store.
"""
import logging
import re
import time
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from database.store import MessageStore
from utils.timezone_helper import utc_offset_seconds


logger = logging.getLogger(__name__)


STAT_TYPES = ("text", "photo", "sticker", "voice", "video")
WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)


def normalize_command(text: str) -> Optional[str]:
    """``/cmd@bot args`` -> ``/cmd``."""
    if not text or not text.startswith("/"):
        return None
    command = text.split()[0].split("@")[0].lower()
    return command if len(command) > 1 else None


def empty_stats() -> Dict[str, Any]:
    return {
        "totalMessages": 0,
        "messagesByDay": [],
        "msgTypes": {name: 0 for name in STAT_TYPES + ("other",)},
        "topUsers": [],
        "topCommands": [],
        "wordCloud": [],
    }


class StatsService:
    """Service computing dashboard statistics."""

    def __init__(self, store: Optional[MessageStore], timezone: Optional[str] = None):
        self.store = store
        self.timezone = timezone

    async def get_stats(self, days: int = 7, now: Optional[float] = None) -> Dict[str, Any]:
        """
        Compute statistics for the last ``days`` days.

        Args:
            days: Period length in days
            now: Reference Unix time, defaults to the current time

        Returns:
            Stats dictionary; empty stats when the store cannot be used

        Raises:
            ValueError: If days is not positive
        """
        if days <= 0:
            raise ValueError("days must be positive")
        if self.store is None or not self.store.is_available:
            logger.warning("Stats requested while the message store is unavailable")
            return empty_stats()

        since_ts = int((now or time.time()) - days * 86400)
        try:
            repo = self.store.messages
            total = await repo.count(since_ts)
            by_day = await repo.count_by_day(since_ts, utc_offset_seconds(self.timezone))
            by_type = await repo.count_by_type(since_ts)
            senders = await repo.top_senders(since_ts, limit=10)
            commands = await repo.get_command_texts(since_ts)
            texts = await repo.sample_texts(since_ts, limit=1000)
        except Exception as e:
            logger.error(f"Failed to compute stats: {e}", exc_info=True)
            return empty_stats()

        return {
            "totalMessages": total,
            "messagesByDay": [
                {"date": datetime.strptime(row["day"], "%Y-%m-%d").strftime("%d.%m.%Y"), "count": row["count"]}
                for row in by_day
            ],
            "msgTypes": self._bucket_types(by_type),
            "topUsers": [self._user_entry(row) for row in senders],
            "topCommands": self._top_commands(commands),
            "wordCloud": self._word_cloud(texts),
        }

    @staticmethod
    def _bucket_types(by_type: Dict[str, int]) -> Dict[str, int]:
        buckets = {name: 0 for name in STAT_TYPES + ("other",)}
        for message_type, count in by_type.items():
            buckets[message_type if message_type in STAT_TYPES else "other"] += count
        return buckets

    @staticmethod
    def _user_entry(row: Dict[str, Any]) -> Dict[str, Any]:
        name = " ".join(part for part in (row.get("first_name"), row.get("last_name")) if part)
        return {
            "id": row["from_id"],
            "name": name or row.get("username") or str(row["from_id"]),
            "username": row.get("username"),
            "count": row["count"],
        }

    @staticmethod
    def _top_commands(texts: List[str], limit: int = 5) -> List[Dict[str, Any]]:
        counter = Counter(c for c in (normalize_command(t) for t in texts) if c)
        return [{"command": command, "count": count} for command, count in counter.most_common(limit)]

    @staticmethod
    def _word_cloud(texts: List[str], limit: int = 20) -> List[Dict[str, Any]]:
        counter: Counter = Counter()
        for text in texts:
            if text.startswith("/"):
                continue
            counter.update(w for w in WORD_RE.findall(text.lower()) if len(w) > 3)
        return [{"word": word, "count": count} for word, count in counter.most_common(limit)]
