"""
In-memory render surface: the set of drawn message nodes and the chat list.

Nodes are keyed by message identity and only repainted when their content
hash changes. A node whose media is playing is never replaced or removed.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from client.avatar_cache import AvatarCache
from client.reconciler import Message, MessageKey, message_hash, message_key


logger = logging.getLogger(__name__)


@dataclass
class RenderedNode:
    key: MessageKey
    content_hash: str
    message: Message
    is_playing: bool = False
    version: int = 1
    avatar_url: Optional[str] = None

    @property
    def height(self) -> int:
        """Drawn height in lines."""
        text = self.message.get("text") or self.message.get("caption") or ""
        return 1 + max(1, text.count("\n") + 1)


@dataclass
class RenderStats:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    kept_playing: int = 0
    removed: int = 0


class Viewport:
    """Scroll position over the rendered content."""

    def __init__(self, surface: "RenderSurface"):
        self.surface = surface
        self.scroll_top = 0

    def preserve_position(self) -> Callable[[], None]:
        """
        Capture the content height before prepending history.

        Returns:
            Callback that restores the scroll offset by the height delta
        """
        height_before = self.surface.content_height

        def restore() -> None:
            delta = self.surface.content_height - height_before
            self.scroll_top = max(0, self.scroll_top + delta)

        return restore


class RenderSurface:
    """Tracks what is on screen and emits lines for new or changed messages."""

    def __init__(
        self,
        output: Optional[Callable[[str], None]] = None,
        avatar_cache: Optional[AvatarCache] = None,
    ):
        self.nodes: Dict[MessageKey, RenderedNode] = {}
        self.order: List[MessageKey] = []
        self.chat_list: List[dict] = []
        self.chat_list_hash: Optional[str] = None
        self.chat_list_renders = 0
        self._output = output
        self.avatar_cache = avatar_cache
        # Sender ids drawn before their avatar lookup finished
        self.pending_avatars: Set[str] = set()

    @property
    def content_height(self) -> int:
        return sum(self.nodes[key].height for key in self.order if key in self.nodes)

    def mark_playing(self, key: MessageKey, playing: bool = True) -> None:
        node = self.nodes.get(key)
        if node is not None:
            node.is_playing = playing

    def render_messages(self, messages: List[Message]) -> RenderStats:
        """
        Bring the surface in line with a chronological message list.

        Args:
            messages: Messages that should be visible, oldest first

        Returns:
            Counts of what changed
        """
        stats = RenderStats()
        wanted = []
        for message in messages:
            key = message_key(message)
            wanted.append(key)
            content_hash = message_hash(message)
            node = self.nodes.get(key)
            if node is None:
                self.nodes[key] = RenderedNode(key=key, content_hash=content_hash, message=message)
                stats.created += 1
                self._emit("+", message)
                self._watch_avatar(key)
            elif node.content_hash == content_hash:
                stats.unchanged += 1
            elif node.is_playing:
                stats.kept_playing += 1
            else:
                sender_changed = _sender_id(node.message) != _sender_id(message)
                node.content_hash = content_hash
                node.message = message
                node.version += 1
                stats.updated += 1
                self._emit("~", message)
                if sender_changed:
                    self._watch_avatar(key)

        wanted_set = set(wanted)
        for key in list(self.nodes):
            if key in wanted_set:
                continue
            if self.nodes[key].is_playing:
                stats.kept_playing += 1
                continue
            del self.nodes[key]
            stats.removed += 1

        playing_outside = [k for k in self.order if k in self.nodes and k not in wanted_set]
        self.order = playing_outside + wanted
        return stats

    def render_chat_list(self, entries: List[dict], list_hash: str) -> bool:
        """
        Redraw the chat list if its hash changed.

        Returns:
            True if the list was redrawn
        """
        if list_hash == self.chat_list_hash:
            return False
        self.chat_list = entries
        self.chat_list_hash = list_hash
        self.chat_list_renders += 1
        return True

    def clear(self) -> None:
        """Drop every node except playing ones."""
        self.nodes = {k: n for k, n in self.nodes.items() if n.is_playing}
        self.order = [k for k in self.order if k in self.nodes]

    def _watch_avatar(self, key: MessageKey) -> None:
        sender_id = _sender_id(self.nodes[key].message)
        if self.avatar_cache is None or sender_id is None:
            return
        if not self.avatar_cache.subscribe(sender_id, lambda url: self._on_avatar(key, sender_id, url)):
            self.pending_avatars.add(sender_id)

    def _on_avatar(self, key: MessageKey, sender_id: str, url: Optional[str]) -> None:
        """Repaint a node once its sender's avatar is known."""
        node = self.nodes.get(key)
        if node is None or _sender_id(node.message) != sender_id or not url or node.avatar_url == url:
            return
        node.avatar_url = url
        node.version += 1
        self._emit("@", node.message)

    def _emit(self, marker: str, message: Message) -> None:
        if self._output is None:
            return
        body = message.get("text") or message.get("caption") or f"[{message.get('type', 'message')}]"
        self._output(f"{marker} {message.get('time', '')} {message.get('user') or ''}: {body}")


def _sender_id(message: Message) -> Optional[str]:
    sender = message.get("from")
    if isinstance(sender, dict) and sender.get("id") is not None:
        return str(sender["id"])
    return None
