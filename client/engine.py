"""
Client reconciliation engine: polls the API and keeps the view in sync.
"""
import asyncio
import logging
import time
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional

import httpx

from client.api_client import ViewerApiClient
from client.avatar_cache import AvatarCache
from client.reconciler import safe_parse_timestamp
from client.renderer import RenderSurface, Viewport
from client.state import AppState
from corpus.layout import format_date_folder, parse_date_folder
from utils.timezone_helper import local_date, local_today


logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Drives poll cycles, history backfill and rendering over one ``AppState``."""

    CHAT_LIST_REFRESH_SECONDS = 15.0
    HISTORY_DEBOUNCE_SECONDS = 1.0
    ACTIVE_CHAT_LIMIT = 50

    def __init__(
        self,
        api: ViewerApiClient,
        state: Optional[AppState] = None,
        surface: Optional[RenderSurface] = None,
        avatar_cache: Optional[AvatarCache] = None,
        clock: Callable[[], float] = time.monotonic,
        recent_limit: Optional[int] = 200,
        timezone: Optional[str] = None,
        poll_interval_seconds: float = 3.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize engine.

        Args:
            api: Viewer API client
            state: Client state (a fresh one if omitted)
            surface: Render surface (a silent one if omitted)
            avatar_cache: Shared avatar cache (backed by the API if omitted)
            clock: Monotonic clock in seconds, replaceable in tests
            recent_limit: Number of newest messages polled when no date is selected
            timezone: Timezone used for day boundaries
            poll_interval_seconds: Pause between poll cycles
            sleep: Awaitable sleep, replaceable in tests
        """
        self.api = api
        self.state = state or AppState()
        self.surface = surface or RenderSurface()
        self.viewport = Viewport(self.surface)
        self.avatar_cache = avatar_cache or AvatarCache(api.avatar_url)
        if self.surface.avatar_cache is None:
            self.surface.avatar_cache = self.avatar_cache
        self.clock = clock
        self.recent_limit = recent_limit
        self.timezone = timezone
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep

    async def _guarded(self, step: Callable[[], Awaitable[object]], name: str) -> None:
        try:
            await step()
        except httpx.TransportError as e:
            logger.debug(f"{name} skipped, server unreachable: {e}")
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)

    async def poll_cycle(self) -> None:
        """One refresh of the chat list, the feed and the selected chat, then render."""
        await self._guarded(self.refresh_chat_list, "Chat list refresh")
        await self._guarded(self.fetch_updates, "Message poll")
        if self.state.selected_chat_id is not None:
            await self._guarded(self.fetch_active_chat_update, "Active chat update")
        self.render()
        await self._guarded(self.resolve_avatars, "Avatar lookup")

    async def refresh_chat_list(self, force: bool = False) -> bool:
        """
        Fetch the chat list unless it was refreshed recently.

        Returns:
            True if the list changed and was redrawn
        """
        now = self.clock()
        last = self.state.last_chat_list_refresh
        if (
            not force
            and self.state.chat_list
            and last is not None
            and now - last < self.CHAT_LIST_REFRESH_SECONDS
        ):
            return False

        entries = await self.api.get_all_chats()
        self.state.last_chat_list_refresh = now
        for entry in entries:
            if entry.get("photo"):
                self.avatar_cache.prime(entry["id"], entry["photo"])
        if not self.state.set_chat_list(entries):
            return False
        return self.surface.render_chat_list(self.state.chat_list_view(), self.state.chat_list_hash)

    async def fetch_updates(self) -> int:
        """
        Fetch messages newer than the highest seen id.

        Returns:
            Number of new messages
        """
        since = self.state.last_message_id or None
        if self.state.selected_date:
            messages = await self.api.get_messages(since=since, date=self.state.selected_date)
        else:
            messages = await self.api.get_messages(since=since, limit=self.recent_limit)
        # Responses are newest first
        messages = list(reversed(messages))
        self._prime_avatars(messages)
        return self.state.apply_messages(messages, corrective=True)

    async def fetch_active_chat_update(self) -> bool:
        """
        Re-fetch the newest messages of the selected chat and merge them correctively.

        Returns:
            False if the response was discarded because the selection changed
        """
        chat_id = self.state.selected_chat_id
        messages = await self.api.get_messages(group=chat_id, limit=self.ACTIVE_CHAT_LIMIT)
        if self.state.selected_chat_id != chat_id:
            logger.debug(f"Discarding update for chat {chat_id}, selection changed")
            return False
        messages = list(reversed(messages))
        self._prime_avatars(messages)
        self.state.apply_messages(messages, corrective=True)
        return True

    def _history_basis(self) -> date:
        if self.state.current_date_pointer is not None:
            return self.state.current_date_pointer
        if self.state.selected_date:
            selected = parse_date_folder(self.state.selected_date)
            if selected is not None:
                return selected
        if self.state.messages:
            timestamp = safe_parse_timestamp(self.state.messages[0])
            if timestamp:
                return local_date(int(timestamp), self.timezone)
        return local_today(self.timezone)

    async def load_previous_day(self) -> bool:
        """
        Backfill the day before the current history pointer.

        At most one load runs at a time and loads are at least one second apart.

        Returns:
            True if a day was fetched
        """
        now = self.clock()
        last = self.state.last_history_load
        if self.state.is_loading_history or (last is not None and now - last < self.HISTORY_DEBOUNCE_SECONDS):
            return False

        self.state.is_loading_history = True
        self.state.last_history_load = now
        try:
            target = self._history_basis() - timedelta(days=1)
            folder = format_date_folder(target)
            if folder in self.state.loaded_days:
                self.state.current_date_pointer = target
                return False

            try:
                messages = await self.api.get_messages(date=folder)
            except httpx.HTTPStatusError as e:
                logger.warning(f"History for {folder} unavailable: {e.response.status_code}")
                self.state.loaded_days.add(folder)
                return False

            if messages:
                restore = self.viewport.preserve_position()
                messages = list(reversed(messages))
                self._prime_avatars(messages)
                self.state.apply_messages(messages, corrective=False)
                self.render()
                restore()
                await self._guarded(self.resolve_avatars, "Avatar lookup")
            else:
                logger.debug(f"No messages for {folder}")

            self.state.loaded_days.add(folder)
            self.state.current_date_pointer = target
            return True
        finally:
            self.state.is_loading_history = False

    def select_chat(self, chat_id) -> None:
        """Switch the selected chat and redraw its messages."""
        self.state.select_chat(chat_id)
        self.surface.clear()
        self.render()

    def render(self) -> None:
        self.surface.render_messages(self.state.messages_for(self.state.selected_chat_id))

    async def resolve_avatars(self) -> int:
        """
        Look up avatars for senders drawn before their URL was known.

        Each sender is fetched once; nodes repaint through their cache
        subscription. Failed lookups stay queued for the next cycle.

        Returns:
            Number of senders whose lookup completed
        """
        pending = sorted(self.surface.pending_avatars)
        if not pending:
            return 0
        self.surface.pending_avatars.clear()
        await asyncio.gather(*(self.avatar_cache.get(user_id) for user_id in pending))
        failed = {user_id for user_id in pending if not self.avatar_cache.is_known(user_id)}
        self.surface.pending_avatars.update(failed)
        return len(pending) - len(failed)

    def _prime_avatars(self, messages) -> None:
        for message in messages:
            sender = message.get("from")
            if isinstance(sender, dict) and message.get("user_avatar_url"):
                self.avatar_cache.prime(sender.get("id"), message["user_avatar_url"])

    async def run(self, cycles: Optional[int] = None) -> None:
        """
        Poll until cancelled, or for a fixed number of cycles.

        Args:
            cycles: Stop after this many cycles (runs forever if None)
        """
        completed = 0
        await self._guarded(lambda: self.refresh_chat_list(force=True), "Initial chat list")
        while cycles is None or completed < cycles:
            await self.poll_cycle()
            completed += 1
            await self._sleep(self.poll_interval_seconds)
        logger.info(f"Engine stopped after {completed} cycles at {datetime.now().isoformat()}")
