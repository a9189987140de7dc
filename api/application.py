"""
Application container wiring configuration, storage and services together.
"""
import asyncio
import logging
from typing import List, Optional

from bot.telegram_client import TelegramClient
from config.config_file import ConfigFile
from config.settings import Config
from corpus.storage import MessageCorpus
from database.connection import DatabaseConnection
from database.store import MessageStore
from services.archive_service import ArchiveService
from services.avatar_service import AvatarService
from services.chat_service import ChatListService
from services.chats_scanner import ChatsScanner
from services.media_service import MediaConverter, UploadService
from services.message_service import MessageService
from services.reaction_service import ReactionService
from services.send_service import SendService
from services.settings_service import ManualModeService, SettingsService
from services.stats_service import StatsService
from services.sync_service import SyncService
from utils.debounce_manager import DebounceManager


logger = logging.getLogger(__name__)


class ViewerApplication:
    """Holds every service of the viewer and its background tasks."""

    def __init__(self, config: Config, telegram: Optional[TelegramClient] = None):
        """
        Build all components.

        Args:
            config: Viewer configuration
            telegram: Optional Bot API client; created from the bot token when omitted
        """
        self.config = config
        if telegram is None and config.bot_token:
            telegram = TelegramClient(config.bot_token, uploads_dir=config.uploads_dir)
        self.telegram = telegram

        self.store = MessageStore(DatabaseConnection(config.db_path))
        self.corpus = MessageCorpus(config.messages_path, config.timezone)
        self.scanner = ChatsScanner(self.corpus, config.chats_cache_path, batch_size=config.sync_batch_size)

        self.sync_service = SyncService(self.store, self.corpus, batch_size=config.sync_batch_size)
        self.message_service = MessageService(
            self.corpus, self.scanner, self.store, max_lookback_days=config.max_lookback_days
        )
        self.chat_service = ChatListService(self.scanner, self.store, config.archive_after_days)
        self.reaction_service = ReactionService(
            self.telegram, self.corpus, self.store, lookback_days=config.max_lookback_days
        )
        self.send_service = SendService(self.telegram, self.corpus, self.sync_service)
        self.stats_service = StatsService(self.store, config.timezone)
        self.archive_service = ArchiveService(
            self.store, DebounceManager(self.store.debounce), config.archive_after_days
        )
        self.upload_service = UploadService(config.uploads_dir, MediaConverter())
        self.manual_mode_service = ManualModeService(self.store)
        self.settings_service = SettingsService(ConfigFile(config.config_file_path))

        self._tasks: List[asyncio.Task] = []

    async def start(self, run_background: bool = True) -> None:
        """
        Open the store and start background work.

        Args:
            run_background: Start startup sync, periodic sync and avatar loops
        """
        await self.store.initialize()
        if not run_background:
            return

        if self.config.sync_on_startup:
            self._tasks.append(asyncio.create_task(self._startup_sync()))
        self._tasks.append(asyncio.create_task(
            self.sync_service.run_scheduler(
                self.config.sync_recent_interval_minutes * 60,
                self.config.sync_recent_window_hours,
                after_sync=self.archive_service.archive_if_due
            )
        ))
        if self.config.avatar_service_enabled and self.telegram is not None:
            avatar_service = AvatarService(self.store, self.telegram, self.config.avatars_dir)
            self._tasks.append(asyncio.create_task(avatar_service.run()))
        logger.info(f"Started {len(self._tasks)} background tasks")

    async def _startup_sync(self) -> None:
        try:
            report = await self.sync_service.sync()
            logger.info("Startup sync complete", extra=report.to_dict())
        except Exception as e:
            logger.error(f"Startup sync failed: {e}", exc_info=True)

    async def stop(self) -> None:
        """Cancel background tasks and release resources."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        if self.telegram is not None:
            await self.telegram.close()
        await self.store.close()
        logger.info("Application stopped")
