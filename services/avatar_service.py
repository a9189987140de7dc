"""
Background resolution of user profile photos.
"""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramNotFound,
)

from bot.telegram_client import TelegramClient
from database.models import NO_PHOTO, UserModel
from database.store import MessageStore


logger = logging.getLogger(__name__)


class AvatarService:
    """Resolves photos of users that were never checked, a few at a time."""

    def __init__(
        self,
        store: MessageStore,
        telegram: TelegramClient,
        avatars_dir: str,
        batch_size: int = 10,
        user_delay_seconds: float = 0.5,
        round_delay_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.store = store
        self.telegram = telegram
        self.avatars_dir = Path(avatars_dir)
        self.batch_size = batch_size
        self.user_delay_seconds = user_delay_seconds
        self.round_delay_seconds = round_delay_seconds
        self._sleep = sleep

    @staticmethod
    def avatar_url(user_id: int) -> str:
        return f"/avatars/{user_id}.jpg"

    async def resolve_user(self, user: UserModel) -> str:
        """
        Resolve and store one user's photo.

        Args:
            user: User without a checked photo

        Returns:
            Stored photo URL or the no-photo sentinel

        Raises:
            TelegramAPIError: If the Bot API call fails
        """
        local = self.avatars_dir / f"{user.id}.jpg"
        if local.is_file():
            photo_url = self.avatar_url(user.id)
        else:
            file_id = await self.telegram.get_profile_photo_file_id(user.id)
            if file_id is None:
                photo_url = NO_PHOTO
            else:
                local.parent.mkdir(parents=True, exist_ok=True)
                await self.telegram.download_file(file_id, local)
                photo_url = self.avatar_url(user.id)

        await self.store.users.set_photo(user.id, photo_url)
        logger.debug(f"Avatar resolved for user {user.id}: {photo_url}")
        return photo_url

    async def run_round(self) -> int:
        """
        Process one batch of users.

        Users the Bot API refuses are stored with the no-photo sentinel;
        network, flood-wait and server errors leave them queued for a retry.

        Returns:
            Number of users resolved
        """
        users = await self.store.users.get_without_photo(limit=self.batch_size)
        resolved = 0
        for index, user in enumerate(users):
            if index:
                await self._sleep(self.user_delay_seconds)
            try:
                await self.resolve_user(user)
                resolved += 1
            except (TelegramBadRequest, TelegramForbiddenError, TelegramNotFound) as e:
                # Permanent refusal, e.g. unknown user or blocked bot
                logger.info(f"No avatar available for user {user.id}: {e}")
                await self.store.users.set_photo(user.id, NO_PHOTO)
                resolved += 1
            except TelegramAPIError as e:
                logger.warning(f"Could not fetch avatar for user {user.id}, will retry: {e}")
        if users:
            logger.info(f"Avatar round finished: {resolved}/{len(users)} users resolved")
        return resolved

    async def run(self) -> None:
        """Process rounds until cancelled."""
        while True:
            try:
                if self.store.is_available:
                    await self.run_round()
            except Exception as e:
                logger.error(f"Avatar round failed: {e}", exc_info=True)
            await self._sleep(self.round_delay_seconds)
