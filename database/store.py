"""
MessageStore: the relational mirror and its repositories behind one object.
"""
import logging

from database.connection import DatabaseConnection
from database.repository import (
    ChatRepository,
    ConfigRepository,
    DebounceRepository,
    MessagePathRepository,
    MessageRepository,
    UserRepository,
)


logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """Raised when an operation needs the message store and it is not available."""


class MessageStore:
    """Groups the repositories that share one database connection."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection
        self.messages = MessageRepository(db_connection)
        self.chats = ChatRepository(db_connection)
        self.users = UserRepository(db_connection)
        self.paths = MessagePathRepository(db_connection)
        self.config = ConfigRepository(db_connection)
        self.debounce = DebounceRepository(db_connection)

    @property
    def is_available(self) -> bool:
        return self.db_connection.is_available

    async def initialize(self) -> bool:
        """
        Create the schema.

        A failure is logged and leaves the store unavailable, so callers fall
        back to the filesystem alone.

        Returns:
            True if the store is usable
        """
        try:
            await self.db_connection.init_db()
        except Exception as e:
            logger.error(
                f"Message store unavailable, running in filesystem-only mode: {e}",
                exc_info=True
            )
        return self.is_available

    @classmethod
    async def open(cls, db_path: str) -> "MessageStore":
        """
        Open the store at a path and create the schema.

        Args:
            db_path: SQLite database path

        Returns:
            MessageStore instance, possibly unavailable
        """
        store = cls(DatabaseConnection(db_path))
        await store.initialize()
        return store

    async def close(self) -> None:
        await self.db_connection.close()
