"""
Ingestion of the filesystem corpus into the message store.
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from corpus.layout import PathLike, chat_dir_name, iter_message_files, list_date_folders
from corpus.storage import MessageCorpus, read_message_file
from database.store import MessageStore
from utils.message_parser import ParsedMessage, parse_message


logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync run."""
    files_seen: int = 0
    processed: int = 0
    skipped: int = 0
    # Files whose message, chat or user row was inserted or changed
    changed: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    already_running: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class SyncService:
    """Walks the corpus and upserts every message, chat, user and file path."""

    def __init__(
        self,
        store: Optional[MessageStore],
        corpus: MessageCorpus,
        batch_size: int = 50,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize sync service.

        Args:
            store: Message store (None or unavailable disables writes)
            corpus: Filesystem corpus
            batch_size: Files processed between yields to the event loop
            retry_attempts: Attempts per message before it counts as failed
            retry_delay_seconds: Base delay of the linear retry backoff
            sleep: Awaitable sleep, replaceable in tests
        """
        self.store = store
        self.corpus = corpus
        self.batch_size = batch_size
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def store_available(self) -> bool:
        return self.store is not None and self.store.is_available

    async def sync(self, root_path: Optional[PathLike] = None) -> SyncReport:
        """
        Ingest every message file under the corpus root.

        Args:
            root_path: Corpus root, defaults to the configured corpus

        Returns:
            Sync report; ``already_running`` is set if another run is active
        """
        root = Path(root_path) if root_path else self.corpus.root
        return await self._run(lambda: self._collect_all(root), "full")

    async def sync_recent(self, window_hours: int) -> SyncReport:
        """
        Ingest files of today's and yesterday's folders modified within a window.

        Args:
            window_hours: Only files modified within this many hours are read

        Returns:
            Sync report
        """
        cutoff = time.time() - window_hours * 3600
        today = self.corpus.today()
        folders = [self.corpus.folder_for(today), self.corpus.folder_for(today - timedelta(days=1))]
        return await self._run(lambda: self._collect_recent(folders, cutoff), "recent")

    async def _run(self, collect: Callable[[], List[Path]], label: str) -> SyncReport:
        if self._running:
            logger.info(f"Sync ({label}) requested while another sync is running, skipping")
            return SyncReport(already_running=True)

        self._running = True
        report = SyncReport()
        started = time.monotonic()
        try:
            files = await asyncio.to_thread(collect)
            report.files_seen = len(files)
            logger.info(f"Sync ({label}) started", extra={"files": len(files)})

            for index, path in enumerate(files, start=1):
                await self._sync_file(path, report)
                if index % self.batch_size == 0:
                    await self._sleep(0)

            report.duration_seconds = round(time.monotonic() - started, 3)
            logger.info(
                f"Sync ({label}) finished",
                extra=report.to_dict()
            )
            return report
        finally:
            self._running = False

    @staticmethod
    def _collect_all(root: Path) -> List[Path]:
        files = []
        for folder in list_date_folders(root, newest_first=False):
            files.extend(iter_message_files(folder))
        return files

    @staticmethod
    def _collect_recent(folders: List[Path], cutoff: float) -> List[Path]:
        files = []
        for folder in folders:
            for path in iter_message_files(folder):
                try:
                    if path.stat().st_mtime >= cutoff:
                        files.append(path)
                except OSError:
                    continue
        return files

    async def _sync_file(self, path: Path, report: SyncReport) -> None:
        payload = await asyncio.to_thread(read_message_file, path)
        if payload is None:
            report.skipped += 1
            return

        parsed = self._parse(payload, path)
        if parsed is None:
            logger.debug(f"Skipping {path}: no message_id")
            report.skipped += 1
            return

        try:
            changed = await self._store_with_retry(parsed, path)
        except Exception as e:
            logger.error(
                f"Failed to store message from {path}: {e}",
                extra={"chat_id": parsed.message.chat_id, "message_id": parsed.message.message_id}
            )
            report.failed += 1
            return

        report.processed += 1
        if changed:
            report.changed += 1

    @staticmethod
    def _parse(payload: Dict[str, Any], path: Optional[Path]) -> Optional[ParsedMessage]:
        parsed = parse_message(payload)
        if parsed is not None and not parsed.message.chat_id and path is not None:
            dir_chat_id = chat_dir_name(path)
            if dir_chat_id is not None:
                parsed.message.chat_id = dir_chat_id
        return parsed

    async def _store_with_retry(self, parsed: ParsedMessage, path: Optional[Path]) -> bool:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self._store(parsed, path)
            except Exception as e:
                if attempt >= self.retry_attempts:
                    raise
                logger.warning(
                    f"Store write failed (attempt {attempt}/{self.retry_attempts}), retrying: {e}"
                )
                await self._sleep(self.retry_delay_seconds * attempt)
        return False

    async def _store(self, parsed: ParsedMessage, path: Optional[Path]) -> bool:
        if not self.store_available:
            return False
        changed = False
        if parsed.chat is not None:
            changed |= await self.store.chats.upsert(parsed.chat)
        if parsed.user is not None:
            changed |= await self.store.users.upsert(parsed.user)
        changed |= await self.store.messages.upsert(parsed.message)
        if path is not None:
            await self.store.paths.set(parsed.message.chat_id, parsed.message.message_id, str(path))
        return changed

    async def ingest_payload(self, payload: Dict[str, Any], path: Optional[Path] = None) -> bool:
        """
        Mirror a single payload into the store, best effort.

        Args:
            payload: Raw message payload
            path: File the payload was written to, if any

        Returns:
            True if the store changed
        """
        parsed = self._parse(payload, path)
        if parsed is None:
            return False
        try:
            return await self._store_with_retry(parsed, path)
        except Exception as e:
            logger.warning(
                f"Could not mirror message into store: {e}",
                extra={"chat_id": parsed.message.chat_id, "message_id": parsed.message.message_id}
            )
            return False

    async def run_scheduler(
        self,
        interval_seconds: float,
        window_hours: int,
        after_sync: Optional[Callable[[], Awaitable[Any]]] = None
    ) -> None:
        """
        Run ``sync_recent`` periodically until cancelled.

        Args:
            interval_seconds: Pause between runs
            window_hours: Window passed to ``sync_recent``
            after_sync: Optional coroutine function run after each sync
        """
        while True:
            await self._sleep(interval_seconds)
            try:
                await self.sync_recent(window_hours)
                if after_sync is not None:
                    await after_sync()
            except Exception as e:
                logger.error(f"Scheduled sync failed: {e}", exc_info=True)
