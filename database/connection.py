"""
Database connection management for SQLite.
"""
import asyncio
import aiosqlite
import logging
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


_MESSAGE_COLUMNS = """
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id INTEGER NOT NULL,
    chat_id INTEGER NOT NULL,
    from_id INTEGER,
    timestamp INTEGER NOT NULL,
    type TEXT NOT NULL DEFAULT 'text',
    text TEXT,
    caption TEXT,
    media_url TEXT,
    media_file_id TEXT,
    reactions TEXT,
    reply_to_message_id INTEGER,
    raw_data TEXT,
    UNIQUE(chat_id, message_id)
"""

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
)

SCHEMA = (
    f"CREATE TABLE IF NOT EXISTS messages ({_MESSAGE_COLUMNS})",
    f"CREATE TABLE IF NOT EXISTS messages_archive ({_MESSAGE_COLUMNS})",
    "CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_messages_chat_ts ON messages(chat_id, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_archive_chat_ts ON messages_archive(chat_id, timestamp)",
    """
    CREATE TABLE IF NOT EXISTS chats (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        type TEXT,
        username TEXT,
        last_activity INTEGER,
        last_message_preview TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY,
        first_name TEXT,
        last_name TEXT,
        username TEXT,
        is_bot INTEGER NOT NULL DEFAULT 0,
        language_code TEXT,
        photo_url TEXT,
        last_seen INTEGER,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS message_paths (
        chat_id INTEGER NOT NULL,
        message_id INTEGER NOT NULL,
        path TEXT NOT NULL,
        PRIMARY KEY (chat_id, message_id)
    )
    """,
    "CREATE TABLE IF NOT EXISTS config (key TEXT PRIMARY KEY, value TEXT NOT NULL)",
    # last_execution is an ISO-8601 string
    "CREATE TABLE IF NOT EXISTS debounce (operation TEXT PRIMARY KEY, last_execution TEXT NOT NULL)",
)


class DatabaseConnection:
    """Single shared aiosqlite connection for the message store, in WAL mode."""

    def __init__(self, db_path: str, busy_timeout: float = 30.0):
        """
        Args:
            db_path: Path to the SQLite file, or ``:memory:``
            busy_timeout: Seconds to wait on a locked database
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._is_initialized = False

    @property
    def is_available(self) -> bool:
        """Whether the schema was created and the store can be used."""
        return self._is_initialized

    async def init_db(self) -> None:
        """
        Create the message store schema if it is missing.

        Raises:
            Exception: Any aiosqlite or filesystem error; the store then stays unavailable
        """
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = await self.get_connection()
        try:
            for pragma in _PRAGMAS:
                await conn.execute(pragma)
            for statement in SCHEMA:
                await conn.execute(statement)
            await conn.commit()
        except Exception as e:
            logger.error(f"Failed to initialize message store at {self.db_path}: {e}")
            raise

        self._is_initialized = True
        logger.info(f"Message store ready at {self.db_path} ({len(SCHEMA)} schema statements applied)")

    async def get_connection(self) -> aiosqlite.Connection:
        """
        Return the shared connection, reopening it if it was lost.

        Returns:
            Active database connection
        """
        async with self._lock:
            if self._connection is not None:
                try:
                    await self._connection.execute("SELECT 1")
                except Exception as e:
                    logger.warning(f"Message store connection lost, reopening: {e}")
                    self._connection = None

            if self._connection is None:
                self._connection = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout)
                self._connection.row_factory = aiosqlite.Row
                logger.debug(f"Opened message store connection to {self.db_path}")

        return self._connection

    async def close(self) -> None:
        async with self._lock:
            if self._connection:
                await self._connection.close()
                self._connection = None
                logger.info("Message store connection closed")
