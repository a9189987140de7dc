"""
Data models for the Telegram log viewer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
import json


class MessageType(str, Enum):
    """Authoritative message type, one per message."""
    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    VOICE = "voice"
    AUDIO = "audio"
    STICKER = "sticker"
    ANIMATION = "animation"
    VIDEO_NOTE = "video_note"
    DOCUMENT = "document"
    POLL = "poll"
    CONTACT = "contact"
    DICE = "dice"
    VENUE = "venue"
    LOCATION = "location"


# First payload field present wins; TEXT is the default.
TYPE_PRIORITY = (
    MessageType.PHOTO,
    MessageType.VIDEO,
    MessageType.VOICE,
    MessageType.AUDIO,
    MessageType.STICKER,
    MessageType.ANIMATION,
    MessageType.VIDEO_NOTE,
    MessageType.DOCUMENT,
    MessageType.POLL,
    MessageType.CONTACT,
    MessageType.DICE,
    MessageType.VENUE,
    MessageType.LOCATION,
)

GROUP_CHAT_TYPES = ("group", "supergroup", "channel")

NO_PHOTO = "none"


@dataclass
class Reaction:
    """One reaction entry on a message."""
    emoji: str
    count: int = 1
    is_own: bool = False

    def to_dict(self) -> dict:
        return {"emoji": self.emoji, "count": self.count, "is_own": self.is_own}


@dataclass
class MessageModel:
    """Model for storing Telegram messages."""
    message_id: int
    chat_id: int
    timestamp: int
    type: str = MessageType.TEXT.value
    from_id: Optional[int] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    media_url: Optional[str] = None
    media_file_id: Optional[str] = None
    # None means the payload carried no reactions field at all
    reactions: Optional[List[Reaction]] = None
    reply_to_message_id: Optional[int] = None
    raw_data: dict = field(default_factory=dict)
    id: Optional[int] = None

    def reactions_to_json(self) -> Optional[str]:
        """Serialize reactions to a JSON string, keeping None for absent reactions."""
        if self.reactions is None:
            return None
        return json.dumps([r.to_dict() for r in self.reactions], ensure_ascii=False)

    @staticmethod
    def reactions_from_json(json_str: Optional[str]) -> Optional[List[Reaction]]:
        """Deserialize reactions from JSON string."""
        if not json_str:
            return None
        try:
            items = json.loads(json_str)
        except (json.JSONDecodeError, TypeError):
            return None
        if not isinstance(items, list):
            return None
        return [
            Reaction(
                emoji=item.get("emoji", ""),
                count=int(item.get("count", 1)),
                is_own=bool(item.get("is_own", False))
            )
            for item in items
            if isinstance(item, dict)
        ]

    def raw_to_json(self) -> str:
        """Serialize raw payload with stable key order."""
        return json.dumps(self.raw_data, ensure_ascii=False, sort_keys=True)

    @staticmethod
    def raw_from_json(json_str: Optional[str]) -> dict:
        """Deserialize raw payload."""
        if not json_str:
            return {}
        try:
            data = json.loads(json_str)
        except (json.JSONDecodeError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}


@dataclass
class ChatModel:
    """Model for a conversation."""
    id: int
    title: str
    type: Optional[str] = None
    username: Optional[str] = None
    last_activity: Optional[int] = None
    last_message_preview: Optional[str] = None


@dataclass
class UserModel:
    """Model for a sender identity."""
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    is_bot: bool = False
    language_code: Optional[str] = None
    photo_url: Optional[str] = None
    # Timestamp of the newest message this profile was read from
    last_seen: Optional[int] = None
    updated_at: Optional[datetime] = None
