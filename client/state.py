"""
Client state container.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set

from client.reconciler import (
    ChatGroup,
    Message,
    chat_list_hash,
    merge_messages,
    partition_messages,
)


logger = logging.getLogger(__name__)


class AppState:
    """
    All client-side state.

    ``messages`` is the single source of truth; ``chat_groups`` is always
    derived from it through ``apply_messages``.
    """

    def __init__(self):
        self.messages: List[Message] = []
        self.chat_groups: Dict[str, ChatGroup] = {}
        self.chat_directory: Dict[str, Dict[str, Any]] = {}
        self.chat_list: List[Dict[str, Any]] = []
        self.chat_list_hash: Optional[str] = None

        self.selected_chat_id: Optional[str] = None
        self.selected_date: Optional[str] = None
        self.current_date_pointer: Optional[date] = None
        self.loaded_days: Set[str] = set()

        self.last_message_id = 0
        self.is_loading_history = False
        self.last_history_load: Optional[float] = None
        self.last_chat_list_refresh: Optional[float] = None

    def apply_messages(self, incoming: Iterable[Message], corrective: bool = True) -> int:
        """
        Merge messages, re-sort and re-partition.

        Args:
            incoming: Fetched messages
            corrective: Replace known messages (poll and active chat updates);
                False only adds unknown ones (history backfill)

        Returns:
            Number of messages added
        """
        incoming = list(incoming)
        before = len(self.messages)
        self.messages = merge_messages(self.messages, incoming, overwrite=corrective)
        self.chat_groups = partition_messages(self.messages, self.chat_directory)

        for message in incoming:
            message_id = message.get("message_id")
            if isinstance(message_id, int) and message_id > self.last_message_id:
                self.last_message_id = message_id

        added = len(self.messages) - before
        if added:
            logger.debug(f"Applied {len(incoming)} messages, {added} new")
        return added

    def set_chat_list(self, entries: List[Dict[str, Any]]) -> bool:
        """
        Store server chat summaries.

        Returns:
            True if the list content changed
        """
        new_hash = chat_list_hash(entries)
        self.chat_directory = {str(entry.get("id")): entry for entry in entries}
        if new_hash == self.chat_list_hash:
            return False
        self.chat_list = entries
        self.chat_list_hash = new_hash
        self.chat_groups = partition_messages(self.messages, self.chat_directory)
        return True

    def select_chat(self, chat_id: Optional[Any]) -> None:
        self.selected_chat_id = None if chat_id is None else str(chat_id)

    def messages_for(self, chat_id: Optional[str]) -> List[Message]:
        """Messages of the selected chat, or the whole timeline."""
        if chat_id is None:
            return list(self.messages)
        group = self.chat_groups.get(str(chat_id))
        return list(group.messages) if group else []

    def chat_list_view(self) -> List[Dict[str, Any]]:
        """
        Server summaries combined with conversations only seen in messages.

        Newest activity first.
        """
        view = []
        seen = set()
        for entry in self.chat_list:
            key = str(entry.get("id"))
            seen.add(key)
            group = self.chat_groups.get(key)
            last = group.last_message if group else None
            view.append({**entry, "loadedMessages": len(group.messages) if group else 0, "last": last})
        for key, group in self.chat_groups.items():
            if key in seen:
                continue
            view.append({
                "id": key,
                "name": group.name,
                "lastMessage": None,
                "loadedMessages": len(group.messages),
                "last": group.last_message,
            })

        def activity(item: Dict[str, Any]) -> float:
            last_message = item.get("lastMessage") or {}
            last = item.get("last") or {}
            return max(float(last_message.get("time") or 0), float(last.get("date") or 0))

        return sorted(view, key=activity, reverse=True)
