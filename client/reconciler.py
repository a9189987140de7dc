"""
Pure functions that merge polled messages and partition them into conversations.

Nothing here mutates its inputs; ``AppState`` applies the results.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from utils.message_parser import display_name


logger = logging.getLogger(__name__)


UNKNOWN_CONVERSATION = "unknown"

Message = Dict[str, Any]
MessageKey = Tuple[str, str]


@dataclass
class ChatGroup:
    """Messages of one conversation in chronological order."""
    id: str
    name: str
    messages: List[Message] = field(default_factory=list)

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None


def safe_parse_timestamp(message: Message) -> float:
    """
    Sort key of a message in Unix seconds.

    The numeric ``date`` field is authoritative; an ISO ``time`` string is the
    fallback; anything unparseable sorts first.
    """
    value = message.get("date")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.isdigit():
        return float(value)
    time_value = message.get("time")
    if isinstance(time_value, str):
        try:
            return datetime.fromisoformat(time_value.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    return 0.0


def _chat_id_of(message: Message) -> Optional[Any]:
    if message.get("chat_id") not in (None, ""):
        return message["chat_id"]
    chat = message.get("chat")
    if isinstance(chat, dict) and chat.get("id") not in (None, ""):
        return chat["id"]
    return None


def message_key(message: Message) -> MessageKey:
    """Composite identity with both parts normalized to strings."""
    chat_id = _chat_id_of(message)
    return ("" if chat_id is None else str(chat_id), str(message.get("message_id", "")))


def resolve_conversation_id(message: Message) -> str:
    """
    Conversation a message belongs to.

    Order: explicit ``chat_id``, nested ``chat.id``, sender id for
    bot-authored messages, then ``"unknown"``.
    """
    chat_id = _chat_id_of(message)
    if chat_id is not None:
        return str(chat_id)
    sender = message.get("from")
    if isinstance(sender, dict) and sender.get("is_bot") and sender.get("id") is not None:
        return str(sender["id"])
    return UNKNOWN_CONVERSATION


def sort_messages(messages: Iterable[Message]) -> List[Message]:
    """Stable chronological sort."""
    return sorted(messages, key=safe_parse_timestamp)


def merge_messages(
    existing: List[Message],
    incoming: Iterable[Message],
    overwrite: bool = True
) -> List[Message]:
    """
    Merge incoming messages into an existing sequence.

    Args:
        existing: Current chronological sequence
        incoming: Newly fetched messages, any order
        overwrite: Replace known messages in place (corrective merge); when
            False known messages are kept and only new ones are appended

    Returns:
        New chronologically sorted sequence with unique keys
    """
    result = list(existing)
    index: Dict[MessageKey, int] = {message_key(m): i for i, m in enumerate(result)}
    for message in incoming:
        key = message_key(message)
        position = index.get(key)
        if position is None:
            index[key] = len(result)
            result.append(message)
        elif overwrite:
            result[position] = message
    return sort_messages(result)


def _fallback_name(message: Message, conversation_id: str) -> str:
    chat = message.get("chat")
    if isinstance(chat, dict):
        name = display_name(chat)
        if name:
            return name
    return conversation_id


def partition_messages(
    messages: Iterable[Message],
    directory: Optional[Dict[str, Dict[str, Any]]] = None
) -> Dict[str, ChatGroup]:
    """
    Group a chronological sequence by conversation.

    Every input message lands in exactly one group and keeps its relative order.

    Args:
        messages: Chronologically sorted messages
        directory: Chat directory by id, used for group names

    Returns:
        Mapping of conversation id to group
    """
    directory = directory or {}
    groups: Dict[str, ChatGroup] = {}
    for message in messages:
        conversation_id = resolve_conversation_id(message)
        group = groups.get(conversation_id)
        if group is None:
            entry = directory.get(conversation_id) or {}
            name = entry.get("name") or _fallback_name(message, conversation_id)
            group = groups[conversation_id] = ChatGroup(id=conversation_id, name=name)
        group.messages.append(message)
    return groups


def flatten_groups(groups: Dict[str, ChatGroup]) -> List[Message]:
    """All messages of all groups, chronologically sorted."""
    return sort_messages(m for group in groups.values() for m in group.messages)


def chat_list_hash(entries: Iterable[Dict[str, Any]]) -> str:
    """Content hash over (id, last message time) pairs."""
    pairs = [
        f"{entry.get('id')}:{(entry.get('lastMessage') or {}).get('time')}"
        for entry in entries
    ]
    return hashlib.sha1("|".join(pairs).encode("utf-8")).hexdigest()


_RENDERED_FIELDS = ("text", "caption", "type", "reactions", "media_url", "user", "user_avatar_url", "edit_date")


def message_hash(message: Message) -> str:
    """Content hash of the fields that affect how a message is drawn."""
    content = {name: message.get(name) for name in _RENDERED_FIELDS}
    return hashlib.sha1(
        json.dumps(content, sort_keys=True, ensure_ascii=False, default=str).encode("utf-8")
    ).hexdigest()
