"""
Thin wrapper over aiogram's Bot for the operations the viewer relays.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.types import FSInputFile, Message, ReactionTypeEmoji, ReplyParameters


logger = logging.getLogger(__name__)


FILE_URL_TEMPLATE = "https://api.telegram.org/file/bot{token}/{path}"

# Media kind -> Bot method name and its media argument
SEND_METHODS = {
    "photo": ("send_photo", "photo"),
    "video": ("send_video", "video"),
    "audio": ("send_audio", "audio"),
    "voice": ("send_voice", "voice"),
    "video_note": ("send_video_note", "video_note"),
    "sticker": ("send_sticker", "sticker"),
    "document": ("send_document", "document"),
}

# Kinds whose Bot method accepts no caption
_NO_CAPTION = frozenset({"video_note", "sticker"})


class BotNotConfiguredError(RuntimeError):
    """Raised when a Bot API operation is requested without a bot token."""


def message_to_payload(message: Message) -> Dict[str, Any]:
    """
    Convert a Bot API message into the on-disk payload shape.

    Args:
        message: Message returned by the Bot API

    Returns:
        JSON-serializable dict with Telegram field names and a Unix ``date``
    """
    payload = message.model_dump(mode="json", exclude_none=True, by_alias=True)
    payload["date"] = int(message.date.timestamp())
    return payload


class TelegramClient:
    """Relays send, reaction and file calls to the Telegram Bot API."""

    def __init__(self, token: str, uploads_dir: Optional[str] = None, bot: Optional[Bot] = None):
        """
        Initialize Telegram client.

        Args:
            token: Bot token
            uploads_dir: Directory of uploaded files; ``/uploads/<name>`` media
                references are sent from there
            bot: Optional pre-built Bot instance
        """
        self.token = token
        self.uploads_dir = Path(uploads_dir) if uploads_dir else None
        self.bot = bot or Bot(token=token)

    def _input_file(self, media: str) -> Union[str, FSInputFile]:
        """A file id or URL is passed through; a local upload is streamed from disk."""
        if self.uploads_dir and media.startswith("/uploads/"):
            local = self.uploads_dir / media[len("/uploads/"):]
            if local.is_file():
                return FSInputFile(str(local))
        return media

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Send an HTML-formatted text message.

        Args:
            chat_id: Target chat
            text: Message text
            reply_to_message_id: Optional message to reply to

        Returns:
            Sent message payload

        Raises:
            TelegramAPIError: If the Bot API rejects the call
        """
        reply_parameters = None
        if reply_to_message_id:
            reply_parameters = ReplyParameters(
                message_id=reply_to_message_id,
                allow_sending_without_reply=True
            )
        message = await self.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            reply_parameters=reply_parameters
        )
        logger.info(f"Message sent to chat {chat_id}", extra={"message_id": message.message_id})
        return message_to_payload(message)

    async def send_media(
        self,
        kind: str,
        chat_id: int,
        media: str,
        caption: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a media message.

        Args:
            kind: One of ``SEND_METHODS``
            chat_id: Target chat
            media: File id, URL, or ``/uploads/<name>`` of a local upload
            caption: Optional caption (ignored for kinds without captions)

        Returns:
            Sent message payload

        Raises:
            ValueError: If the kind is unknown
            TelegramAPIError: If the Bot API rejects the call
        """
        if kind not in SEND_METHODS:
            raise ValueError(f"Unsupported media kind: {kind}")
        method_name, argument = SEND_METHODS[kind]
        kwargs: Dict[str, Any] = {"chat_id": chat_id, argument: self._input_file(media)}
        if caption and kind not in _NO_CAPTION:
            kwargs["caption"] = caption

        message = await getattr(self.bot, method_name)(**kwargs)
        logger.info(f"{kind} sent to chat {chat_id}", extra={"message_id": message.message_id})
        return message_to_payload(message)

    async def set_reaction(self, chat_id: int, message_id: int, emoji: Optional[str]) -> bool:
        """
        Set or clear the bot's reaction on a message.

        Args:
            chat_id: Chat id
            message_id: Message id
            emoji: Emoji to set, or None to clear

        Returns:
            Bot API result
        """
        reaction = [ReactionTypeEmoji(emoji=emoji)] if emoji else []
        return await self.bot.set_message_reaction(
            chat_id=chat_id,
            message_id=message_id,
            reaction=reaction
        )

    async def resolve_file_url(self, file_id: str) -> Optional[str]:
        """
        Resolve a file id into a short-lived download URL.

        Returns:
            URL, or None if Telegram returned no file path
        """
        file = await self.bot.get_file(file_id)
        if not file.file_path:
            return None
        return FILE_URL_TEMPLATE.format(token=self.token, path=file.file_path)

    async def get_profile_photo_file_id(self, user_id: int) -> Optional[str]:
        """File id of the largest size of a user's current profile photo, if any."""
        photos = await self.bot.get_user_profile_photos(user_id=user_id, limit=1)
        if not photos.total_count or not photos.photos:
            return None
        return photos.photos[0][-1].file_id

    async def download_file(self, file_id: str, destination: Union[str, Path]) -> None:
        """Download a file by id to a local path."""
        await self.bot.download(file_id, destination=destination)

    async def close(self) -> None:
        await self.bot.session.close()
