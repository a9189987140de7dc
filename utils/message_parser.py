"""
Normalization of raw Telegram message payloads.

Every payload shape accepted from disk or from the Bot API is converted here into
one canonical representation, so the rest of the code never inspects raw shapes:

- the message type is classified by a fixed priority order,
- the media reference is taken by a per-type extractor,
- reactions become an ordered list of ``Reaction`` objects,
- media URLs become plain strings.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from database.models import (
    ChatModel,
    GROUP_CHAT_TYPES,
    MessageModel,
    MessageType,
    Reaction,
    TYPE_PRIORITY,
    UserModel,
)


logger = logging.getLogger(__name__)


# Keys that never hold this message's own media.
_NON_MEDIA_KEYS = frozenset({
    "chat", "from", "sender_chat", "forward_from", "forward_from_chat",
    "reply_to_message", "pinned_message", "reactions", "entities",
    "caption_entities", "reply_markup", "external_reply", "quote",
})

_NO_MEDIA_TYPES = frozenset({
    MessageType.TEXT, MessageType.POLL, MessageType.CONTACT,
    MessageType.DICE, MessageType.VENUE, MessageType.LOCATION,
})


@dataclass
class MediaReference:
    """Opaque pointer to message media."""
    file_id: Optional[str] = None
    url: Optional[str] = None
    needs_review: bool = False


@dataclass
class ParsedMessage:
    """Canonical result of parsing one raw payload."""
    message: MessageModel
    chat: Optional[ChatModel]
    user: Optional[UserModel]
    media: Optional[MediaReference] = None

    @property
    def needs_review(self) -> bool:
        return bool(self.media and self.media.needs_review)


def classify_type(raw: Dict[str, Any]) -> MessageType:
    """
    Pick the authoritative type of a payload.

    Args:
        raw: Raw message payload

    Returns:
        First type in priority order whose payload field is present, else TEXT
    """
    for message_type in TYPE_PRIORITY:
        if raw.get(message_type.value):
            return message_type
    return MessageType.TEXT


def normalize_url(value: Any) -> Optional[str]:
    """Accept a URL as a string or as an object with a ``url`` field."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        url = value.get("url")
        if isinstance(url, str) and url:
            return url
    return None


def _file_id_of(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        file_id = value.get("file_id")
        return file_id if isinstance(file_id, str) and file_id else None
    if isinstance(value, str) and value and not value.startswith(("http://", "https://", "/")):
        return value
    return None


def _extract_photo(raw: Dict[str, Any]) -> Optional[str]:
    photo = raw.get("photo")
    if isinstance(photo, list):
        # PhotoSize entries are ordered smallest to largest
        for size in reversed(photo):
            file_id = _file_id_of(size)
            if file_id:
                return file_id
        return None
    return _file_id_of(photo)


def _field_extractor(field_name: str) -> Callable[[Dict[str, Any]], Optional[str]]:
    def extract(raw: Dict[str, Any]) -> Optional[str]:
        return _file_id_of(raw.get(field_name))
    return extract


_MEDIA_EXTRACTORS: Dict[MessageType, Callable[[Dict[str, Any]], Optional[str]]] = {
    MessageType.PHOTO: _extract_photo,
    MessageType.VIDEO: _field_extractor("video"),
    MessageType.VOICE: _field_extractor("voice"),
    MessageType.AUDIO: _field_extractor("audio"),
    MessageType.STICKER: _field_extractor("sticker"),
    MessageType.ANIMATION: _field_extractor("animation"),
    MessageType.VIDEO_NOTE: _field_extractor("video_note"),
    MessageType.DOCUMENT: _field_extractor("document"),
}


def _find_any_file_id(value: Any, depth: int = 0) -> Optional[str]:
    """Depth-first search for the first file_id in an unknown structure."""
    if depth > 4:
        return None
    if isinstance(value, dict):
        file_id = value.get("file_id")
        if isinstance(file_id, str) and file_id:
            return file_id
        for key, nested in value.items():
            if depth == 0 and key in _NON_MEDIA_KEYS:
                continue
            found = _find_any_file_id(nested, depth + 1)
            if found:
                return found
    elif isinstance(value, list):
        for item in value:
            found = _find_any_file_id(item, depth + 1)
            if found:
                return found
    return None


def extract_media(raw: Dict[str, Any], message_type: MessageType) -> Optional[MediaReference]:
    """
    Extract the media reference of a payload for its classified type.

    Unknown shapes that still carry a ``file_id`` somewhere are resolved by a
    generic traversal and flagged for review.

    Args:
        raw: Raw message payload
        message_type: Classified type

    Returns:
        Media reference or None for media-less messages
    """
    url = normalize_url(raw.get(f"url_{message_type.value}"))
    if message_type == MessageType.STICKER and not url:
        url = normalize_url(raw.get("url_animated_sticker"))

    extractor = _MEDIA_EXTRACTORS.get(message_type)
    if extractor is not None:
        file_id = extractor(raw)
        if file_id or url:
            return MediaReference(file_id=file_id, url=url)
        return None

    if message_type in _NO_MEDIA_TYPES:
        file_id = _find_any_file_id(raw)
        if file_id:
            logger.warning(
                "Unrecognized media shape, flagged for review",
                extra={
                    "message_id": raw.get("message_id"),
                    "keys": sorted(k for k in raw.keys() if k not in _NON_MEDIA_KEYS)
                }
            )
            return MediaReference(file_id=file_id, needs_review=True)
    return None


def _reaction_from_item(item: Any) -> Optional[Reaction]:
    if not isinstance(item, dict):
        return None
    emoji = item.get("emoji")
    if not emoji and isinstance(item.get("type"), dict):
        emoji = item["type"].get("emoji") or item["type"].get("custom_emoji_id")
    if not isinstance(emoji, str) or not emoji:
        return None
    count = item.get("count", item.get("total_count", 1))
    try:
        count = int(count)
    except (TypeError, ValueError):
        count = 1
    is_own = bool(item.get("is_own", item.get("chosen", False)))
    return Reaction(emoji=emoji, count=count, is_own=is_own)


def normalize_reactions(value: Any) -> Optional[List[Reaction]]:
    """
    Convert any accepted reactions shape into an ordered list.

    Accepted shapes: a list of ``{emoji, count, is_own}``, a list of Telegram
    ``{type: {emoji}, total_count}`` objects, ``{"results": [...]}``, or a dict
    keyed by emoji whose values are counts or ``{count, is_own}`` objects.

    Args:
        value: Raw reactions value

    Returns:
        List of reactions, or None when the value is absent
    """
    if value is None:
        return None

    if isinstance(value, dict):
        if isinstance(value.get("results"), list):
            return normalize_reactions(value["results"])
        reactions = []
        for emoji, entry in value.items():
            if isinstance(entry, dict):
                reaction = _reaction_from_item({"emoji": emoji, **entry})
            else:
                reaction = _reaction_from_item({"emoji": emoji, "count": entry})
            if reaction:
                reactions.append(reaction)
        return reactions

    if isinstance(value, list):
        return [r for r in (_reaction_from_item(item) for item in value) if r is not None]

    return []


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_timestamp(raw: Dict[str, Any]) -> int:
    """
    Authoritative Unix timestamp of a payload.

    The numeric ``date`` field wins. An ISO ``time`` string is used only when
    ``date`` is missing; locale-formatted strings are never parsed.
    """
    timestamp = _to_int(raw.get("date"))
    if timestamp is not None:
        return timestamp
    time_value = raw.get("time")
    if isinstance(time_value, str):
        try:
            return int(datetime.fromisoformat(time_value.replace("Z", "+00:00")).timestamp())
        except ValueError:
            pass
    return 0


def display_name(chat: Dict[str, Any]) -> str:
    """Group title, else the person's full name, else the raw id."""
    title = chat.get("title")
    if title:
        return str(title)
    first_name = chat.get("first_name")
    if first_name:
        return f"{first_name} {chat.get('last_name') or ''}".strip()
    if chat.get("username"):
        return f"@{chat['username']}"
    return str(chat.get("id", ""))


def sender_name(user: Optional[Dict[str, Any]]) -> str:
    """Display name of a message sender."""
    if not user:
        return ""
    first_name = user.get("first_name")
    if first_name:
        return f"{first_name} {user.get('last_name') or ''}".strip()
    return user.get("username") or str(user.get("id", ""))


def is_group_chat(chat_id: int, chat_type: Optional[str] = None) -> bool:
    """
    Whether a chat is stored with the group layout.

    The chat type is authoritative when known; the negative-id convention is
    the fallback.
    """
    if chat_type:
        return chat_type in GROUP_CHAT_TYPES
    return chat_id < 0


_PREVIEW_LABELS = {
    MessageType.PHOTO: "📷 Photo",
    MessageType.VIDEO: "🎥 Video",
    MessageType.VOICE: "🎤 Voice",
    MessageType.AUDIO: "🎵 Audio",
    MessageType.STICKER: "Sticker",
    MessageType.ANIMATION: "GIF",
    MessageType.VIDEO_NOTE: "⭕ Video note",
    MessageType.DOCUMENT: "📎 Document",
    MessageType.POLL: "📊 Poll",
    MessageType.CONTACT: "👤 Contact",
    MessageType.DICE: "🎲 Dice",
    MessageType.VENUE: "📍 Venue",
    MessageType.LOCATION: "📍 Location",
}


def preview_text(raw: Dict[str, Any], max_length: int = 50) -> str:
    """Short preview used in chat lists."""
    text = raw.get("text")
    if isinstance(text, str) and text:
        preview = text
    else:
        message_type = classify_type(raw)
        caption = raw.get("caption")
        label = _PREVIEW_LABELS.get(message_type, "[Message]")
        preview = f"{label}: {caption}" if isinstance(caption, str) and caption else label
    if len(preview) > max_length:
        return preview[:max_length] + "..."
    return preview


def parse_message(raw: Dict[str, Any]) -> Optional[ParsedMessage]:
    """
    Parse a raw payload into canonical models.

    Args:
        raw: Raw message payload as stored on disk or returned by the Bot API

    Returns:
        ParsedMessage, or None if the payload has no usable message_id
    """
    if not isinstance(raw, dict):
        return None
    message_id = _to_int(raw.get("message_id"))
    if message_id is None:
        return None

    chat_raw = raw.get("chat") if isinstance(raw.get("chat"), dict) else None
    chat_id = _to_int(chat_raw.get("id")) if chat_raw else None
    if chat_id is None:
        chat_id = _to_int(raw.get("chat_id")) or 0

    user_raw = raw.get("from") if isinstance(raw.get("from"), dict) else None
    from_id = _to_int(user_raw.get("id")) if user_raw else None

    message_type = classify_type(raw)
    media = extract_media(raw, message_type)
    timestamp = parse_timestamp(raw)

    reply_to = raw.get("reply_to_message")
    reply_to_message_id = _to_int(reply_to.get("message_id")) if isinstance(reply_to, dict) else None

    text = raw.get("text") if isinstance(raw.get("text"), str) else None
    caption = raw.get("caption") if isinstance(raw.get("caption"), str) else None

    message = MessageModel(
        message_id=message_id,
        chat_id=chat_id,
        timestamp=timestamp,
        type=message_type.value,
        from_id=from_id,
        text=text,
        caption=caption,
        media_url=media.url if media else None,
        media_file_id=media.file_id if media else None,
        reactions=normalize_reactions(raw.get("reactions")),
        reply_to_message_id=reply_to_message_id,
        raw_data=raw,
    )

    chat = None
    if chat_raw and chat_id:
        chat = ChatModel(
            id=chat_id,
            title=display_name(chat_raw),
            type=chat_raw.get("type"),
            username=chat_raw.get("username"),
            last_activity=timestamp,
            last_message_preview=preview_text(raw),
        )

    user = None
    if user_raw and from_id is not None:
        user = UserModel(
            id=from_id,
            first_name=user_raw.get("first_name"),
            last_name=user_raw.get("last_name"),
            username=user_raw.get("username"),
            is_bot=bool(user_raw.get("is_bot", False)),
            language_code=user_raw.get("language_code"),
            last_seen=timestamp,
        )

    return ParsedMessage(message=message, chat=chat, user=user, media=media)
