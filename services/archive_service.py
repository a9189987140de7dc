"""
Archive service moving old messages into cold storage.
"""
import logging
import time
from typing import Optional

from database.store import MessageStore
from utils.debounce_manager import DebounceManager


logger = logging.getLogger(__name__)


class ArchiveService:
    """Service for archiving old messages."""

    # Archive operation name for debounce
    ARCHIVE_OPERATION = "archive_old_messages"
    ARCHIVE_INTERVAL_SECONDS = 3600

    def __init__(
        self,
        store: MessageStore,
        debounce_manager: DebounceManager,
        archive_after_days: int
    ):
        """
        Initialize archive service.

        Args:
            store: Message store
            debounce_manager: Throttles scheduled archive passes
            archive_after_days: Age in days after which messages are archived
        """
        self.store = store
        self.debounce_manager = debounce_manager
        self.archive_after_days = archive_after_days

    def cutoff_timestamp(self, now: Optional[float] = None) -> int:
        return int((now or time.time()) - self.archive_after_days * 86400)

    async def archive_older_than(self, cutoff_ts: int) -> int:
        """
        Move messages older than the cutoff into the archive.

        Args:
            cutoff_ts: Cutoff, Unix seconds

        Returns:
            Number of messages moved
        """
        try:
            moved = await self.store.messages.archive_older_than(cutoff_ts)
            logger.info(
                "Old messages archived",
                extra={"moved_count": moved, "cutoff_ts": cutoff_ts}
            )
            return moved

        except Exception as e:
            logger.error(
                f"Failed to archive old messages: {e}",
                extra={"cutoff_ts": cutoff_ts},
                exc_info=True
            )
            raise

    async def archive_if_due(self, now: Optional[float] = None) -> int:
        """
        Archive old messages at most once per interval.

        Returns:
            Number of messages moved, or 0 if the pass was skipped
        """
        if not self.store.is_available:
            return 0
        can_run, remaining = await self.debounce_manager.can_execute(
            self.ARCHIVE_OPERATION,
            self.ARCHIVE_INTERVAL_SECONDS
        )
        if not can_run:
            logger.debug(f"Archive skipped due to debounce, {remaining:.0f}s remaining")
            return 0

        moved = await self.archive_older_than(self.cutoff_timestamp(now))
        await self.debounce_manager.mark_executed(self.ARCHIVE_OPERATION)
        return moved
