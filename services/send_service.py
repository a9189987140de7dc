"""
Send service: relays outgoing messages and records them in the corpus.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from bot.telegram_client import SEND_METHODS, BotNotConfiguredError, TelegramClient
from corpus.storage import MessageCorpus
from services.sync_service import SyncService


logger = logging.getLogger(__name__)


class SendService:
    """Service for sending messages on behalf of the operator."""

    def __init__(
        self,
        telegram: Optional[TelegramClient],
        corpus: MessageCorpus,
        sync_service: SyncService
    ):
        """
        Initialize send service.

        Args:
            telegram: Bot API client (None when no token is configured)
            corpus: Corpus the sent messages are written to
            sync_service: Used to mirror sent messages into the store
        """
        self.telegram = telegram
        self.corpus = corpus
        self.sync_service = sync_service

    def _require_bot(self) -> TelegramClient:
        if self.telegram is None:
            raise BotNotConfiguredError("Bot token is not configured")
        return self.telegram

    async def send_message(
        self,
        chat_id: Optional[int],
        text: Optional[str],
        reply_to_message_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Send a text message.

        Raises:
            ValueError: If chat_id or text is missing
            BotNotConfiguredError: If no bot token is configured
            TelegramAPIError: If the Bot API rejects the call
        """
        if not chat_id or not text:
            raise ValueError("chat_id and text are required")
        telegram = self._require_bot()
        payload = await telegram.send_message(chat_id, text, reply_to_message_id=reply_to_message_id)
        return await self._record(payload)

    async def send_media(
        self,
        kind: str,
        chat_id: Optional[int],
        media: Optional[str],
        caption: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a photo, video, audio, voice, video note, sticker or document.

        Args:
            kind: Media kind
            chat_id: Target chat
            media: File id, URL or uploaded file URL
            caption: Optional caption

        Raises:
            ValueError: If the kind is unknown or a required field is missing
            BotNotConfiguredError: If no bot token is configured
            TelegramAPIError: If the Bot API rejects the call
        """
        if kind not in SEND_METHODS:
            raise ValueError(f"Unsupported media kind: {kind}")
        if not chat_id or not media:
            raise ValueError(f"chat_id and {kind} are required")
        telegram = self._require_bot()
        payload = await telegram.send_media(kind, chat_id, media, caption=caption)
        return await self._record(payload)

    async def _record(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            path = await asyncio.to_thread(self.corpus.save_payload, payload)
        except OSError as e:
            logger.error(f"Sent message could not be written to the corpus: {e}", exc_info=True)
            return {"success": True, "result": payload}
        await self.sync_service.ingest_payload(payload, path)
        return {"success": True, "result": payload}
