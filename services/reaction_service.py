"""
Reaction service: sets reactions through the Bot API and persists them locally.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from bot.telegram_client import BotNotConfiguredError, TelegramClient
from corpus.storage import MessageCorpus, read_message_file, write_message_file
from database.models import Reaction
from database.store import MessageStore
from utils.message_parser import normalize_reactions


logger = logging.getLogger(__name__)


ACTIONS = ("add", "remove")


def apply_own_reaction(reactions: List[Reaction], emoji: str, action: str) -> List[Reaction]:
    """
    Apply the bot's own reaction change to a reaction list.

    A bot holds at most one reaction per message, so adding one replaces any
    previous own reaction.

    Args:
        reactions: Current reactions
        emoji: Emoji being added or removed
        action: ``add`` or ``remove``

    Returns:
        New reaction list; entries whose count drops to zero are removed
    """
    result = []
    for reaction in reactions:
        updated = Reaction(reaction.emoji, reaction.count, reaction.is_own)
        if updated.is_own and (action == "add" or updated.emoji == emoji):
            if action == "add" and updated.emoji == emoji:
                result.append(updated)
                continue
            updated.count -= 1
            updated.is_own = False
        if updated.count > 0:
            result.append(updated)

    if action == "add" and not any(r.emoji == emoji and r.is_own for r in result):
        for reaction in result:
            if reaction.emoji == emoji:
                reaction.count += 1
                reaction.is_own = True
                break
        else:
            result.append(Reaction(emoji=emoji, count=1, is_own=True))
    return result


class ReactionService:
    """Service for reacting to messages."""

    def __init__(
        self,
        telegram: Optional[TelegramClient],
        corpus: MessageCorpus,
        store: Optional[MessageStore] = None,
        lookback_days: int = 31
    ):
        self.telegram = telegram
        self.corpus = corpus
        self.store = store
        self.lookback_days = lookback_days

    @property
    def store_available(self) -> bool:
        return self.store is not None and self.store.is_available

    async def set_reaction(self, chat_id: int, message_id: int, emoji: str, action: str = "add") -> Dict[str, Any]:
        """
        Add or remove the bot's reaction on a message.

        Args:
            chat_id: Chat id
            message_id: Message id
            emoji: Reaction emoji
            action: ``add`` or ``remove``

        Returns:
            ``{"success": True, "result": <Bot API result>, "reactions": [...]}``

        Raises:
            ValueError: If the action or emoji is invalid
            BotNotConfiguredError: If no bot token is configured
            TelegramAPIError: If the Bot API rejects the call
        """
        if action not in ACTIONS:
            raise ValueError(f"Invalid action '{action}', expected one of {', '.join(ACTIONS)}")
        if not emoji:
            raise ValueError("emoji is required")
        if self.telegram is None:
            raise BotNotConfiguredError("Bot token is not configured")

        result = await self.telegram.set_reaction(chat_id, message_id, emoji if action == "add" else None)
        logger.info(
            "Reaction set",
            extra={"chat_id": chat_id, "message_id": message_id, "emoji": emoji, "action": action}
        )

        reactions = await self._persist(chat_id, message_id, emoji, action)
        return {
            "success": True,
            "result": result,
            "reactions": [r.to_dict() for r in reactions] if reactions is not None else None,
        }

    async def _persist(self, chat_id: int, message_id: int, emoji: str, action: str) -> Optional[List[Reaction]]:
        path = await self.locate_message_file(chat_id, message_id)
        if path is None:
            logger.warning(f"Message file for {chat_id}_{message_id} not found, reaction not persisted")
            return None

        payload = await asyncio.to_thread(read_message_file, path)
        if payload is None:
            return None
        reactions = apply_own_reaction(normalize_reactions(payload.get("reactions")) or [], emoji, action)
        payload["reactions"] = [r.to_dict() for r in reactions]
        await asyncio.to_thread(write_message_file, path, payload)

        if self.store_available:
            try:
                await self.store.messages.update_reactions(chat_id, message_id, reactions)
            except Exception as e:
                logger.warning(f"Reaction not mirrored into store: {e}")
        return reactions

    async def locate_message_file(self, chat_id: int, message_id: int) -> Optional[Path]:
        """
        Find a message file through the path index, probing recent folders on a miss.

        Args:
            chat_id: Chat id
            message_id: Message id

        Returns:
            File path or None
        """
        if self.store_available:
            try:
                indexed = await self.store.paths.get(chat_id, message_id)
            except Exception as e:
                logger.warning(f"Path index unavailable: {e}")
                indexed = None
            if indexed and Path(indexed).is_file():
                return Path(indexed)

        path = await asyncio.to_thread(self.corpus.find_message_file, chat_id, message_id, self.lookback_days)
        if path is not None and self.store_available:
            try:
                await self.store.paths.set(chat_id, message_id, str(path))
            except Exception as e:
                logger.warning(f"Could not record message path: {e}")
        return path
