"""
Repository layer for database operations.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import aiosqlite

from database.connection import DatabaseConnection
from database.models import ChatModel, MessageModel, Reaction, UserModel


logger = logging.getLogger(__name__)


_MESSAGE_SELECT = """
    SELECT id, message_id, chat_id, from_id, timestamp, type, text, caption,
           media_url, media_file_id, reactions, reply_to_message_id, raw_data
"""

# A profile read from a message no older than the stored one may overwrite fields;
# older ones only fill gaps. Rows without a last_seen count as fresh.
_USER_FRESH = "COALESCE(excluded.last_seen, users.last_seen, 0) >= COALESCE(users.last_seen, 0)"

_UPSERT_USER = """
    INSERT INTO users (id, first_name, last_name, username, is_bot, language_code, last_seen, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        first_name = CASE WHEN {fresh}
            THEN COALESCE(excluded.first_name, users.first_name)
            ELSE COALESCE(users.first_name, excluded.first_name) END,
        last_name = CASE WHEN {fresh}
            THEN COALESCE(excluded.last_name, users.last_name)
            ELSE COALESCE(users.last_name, excluded.last_name) END,
        username = CASE WHEN {fresh}
            THEN COALESCE(excluded.username, users.username)
            ELSE COALESCE(users.username, excluded.username) END,
        is_bot = CASE WHEN {fresh} THEN excluded.is_bot ELSE users.is_bot END,
        language_code = CASE WHEN {fresh}
            THEN COALESCE(excluded.language_code, users.language_code)
            ELSE COALESCE(users.language_code, excluded.language_code) END,
        last_seen = MAX(
            COALESCE(excluded.last_seen, users.last_seen),
            COALESCE(users.last_seen, excluded.last_seen)
        ),
        updated_at = excluded.updated_at
    WHERE COALESCE(excluded.last_seen, 0) > COALESCE(users.last_seen, 0)
       OR ({fresh} AND (
            users.first_name IS NOT COALESCE(excluded.first_name, users.first_name)
            OR users.last_name IS NOT COALESCE(excluded.last_name, users.last_name)
            OR users.username IS NOT COALESCE(excluded.username, users.username)
            OR users.is_bot IS NOT excluded.is_bot
            OR users.language_code IS NOT COALESCE(excluded.language_code, users.language_code)))
       OR (users.first_name IS NULL AND excluded.first_name IS NOT NULL)
       OR (users.last_name IS NULL AND excluded.last_name IS NOT NULL)
       OR (users.username IS NULL AND excluded.username IS NOT NULL)
       OR (users.language_code IS NULL AND excluded.language_code IS NOT NULL)
""".format(fresh=_USER_FRESH)


def _row_to_message(row: aiosqlite.Row) -> MessageModel:
    return MessageModel(
        id=row['id'],
        message_id=row['message_id'],
        chat_id=row['chat_id'],
        from_id=row['from_id'],
        timestamp=row['timestamp'],
        type=row['type'],
        text=row['text'],
        caption=row['caption'],
        media_url=row['media_url'],
        media_file_id=row['media_file_id'],
        reactions=MessageModel.reactions_from_json(row['reactions']),
        reply_to_message_id=row['reply_to_message_id'],
        raw_data=MessageModel.raw_from_json(row['raw_data'])
    )


def _row_to_chat(row: aiosqlite.Row) -> ChatModel:
    return ChatModel(
        id=row['id'],
        title=row['title'],
        type=row['type'],
        username=row['username'],
        last_activity=row['last_activity'],
        last_message_preview=row['last_message_preview']
    )


def _row_to_user(row: aiosqlite.Row) -> UserModel:
    return UserModel(
        id=row['id'],
        first_name=row['first_name'],
        last_name=row['last_name'],
        username=row['username'],
        is_bot=bool(row['is_bot']),
        language_code=row['language_code'],
        photo_url=row['photo_url'],
        last_seen=row['last_seen'],
        updated_at=datetime.fromisoformat(row['updated_at']) if row['updated_at'] else None
    )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessageRepository:
    """Repository for message-related database operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """
        Initialize message repository.

        Args:
            db_connection: Database connection manager
        """
        self.db_connection = db_connection

    async def upsert(self, message: MessageModel) -> bool:
        """
        Insert a message or merge it into the stored row.

        Mutable fields are overwritten only by non-null values, and the update
        only fires when a value actually differs, so re-ingesting an unchanged
        message writes nothing.

        Args:
            message: Message model to store

        Returns:
            True if a row was inserted or changed
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                INSERT INTO messages
                (message_id, chat_id, from_id, timestamp, type, text, caption,
                 media_url, media_file_id, reactions, reply_to_message_id, raw_data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(chat_id, message_id) DO UPDATE SET
                    from_id = COALESCE(excluded.from_id, messages.from_id),
                    text = COALESCE(excluded.text, messages.text),
                    caption = COALESCE(excluded.caption, messages.caption),
                    media_url = COALESCE(excluded.media_url, messages.media_url),
                    media_file_id = COALESCE(excluded.media_file_id, messages.media_file_id),
                    reactions = COALESCE(excluded.reactions, messages.reactions),
                    reply_to_message_id = COALESCE(excluded.reply_to_message_id, messages.reply_to_message_id),
                    raw_data = COALESCE(excluded.raw_data, messages.raw_data)
                WHERE messages.from_id IS NOT COALESCE(excluded.from_id, messages.from_id)
                   OR messages.text IS NOT COALESCE(excluded.text, messages.text)
                   OR messages.caption IS NOT COALESCE(excluded.caption, messages.caption)
                   OR messages.media_url IS NOT COALESCE(excluded.media_url, messages.media_url)
                   OR messages.media_file_id IS NOT COALESCE(excluded.media_file_id, messages.media_file_id)
                   OR messages.reactions IS NOT COALESCE(excluded.reactions, messages.reactions)
                   OR messages.reply_to_message_id IS NOT COALESCE(excluded.reply_to_message_id, messages.reply_to_message_id)
                   OR messages.raw_data IS NOT COALESCE(excluded.raw_data, messages.raw_data)
                """,
                (
                    message.message_id,
                    message.chat_id,
                    message.from_id,
                    message.timestamp,
                    message.type,
                    message.text,
                    message.caption,
                    message.media_url,
                    message.media_file_id,
                    message.reactions_to_json(),
                    message.reply_to_message_id,
                    message.raw_to_json() if message.raw_data else None
                )
            )
            await conn.commit()
            changed = cursor.rowcount > 0
            logger.debug(
                "Message upserted",
                extra={
                    "message_id": message.message_id,
                    "chat_id": message.chat_id,
                    "changed": changed
                }
            )
            return changed

        except Exception as e:
            logger.error(
                f"Failed to upsert message: {e}",
                extra={
                    "message_id": message.message_id,
                    "chat_id": message.chat_id
                },
                exc_info=True
            )
            await conn.rollback()
            raise

    async def get(self, chat_id: int, message_id: int) -> Optional[MessageModel]:
        """
        Get one message by composite identity.

        Args:
            chat_id: Telegram chat ID
            message_id: Telegram message ID

        Returns:
            Message model or None
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                _MESSAGE_SELECT + " FROM messages WHERE chat_id = ? AND message_id = ?",
                (chat_id, message_id)
            )
            row = await cursor.fetchone()
            return _row_to_message(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get message: {e}", exc_info=True)
            raise

    async def update_reactions(self, chat_id: int, message_id: int, reactions: List[Reaction]) -> bool:
        """
        Update reactions for a specific message.

        Args:
            chat_id: Telegram chat ID
            message_id: Telegram message ID
            reactions: Canonical reaction list

        Returns:
            True if a stored message was updated
        """
        conn = await self.db_connection.get_connection()

        try:
            temp_model = MessageModel(
                message_id=message_id,
                chat_id=chat_id,
                timestamp=0,
                reactions=reactions
            )
            cursor = await conn.execute(
                """
                UPDATE messages
                SET reactions = ?
                WHERE chat_id = ? AND message_id = ?
                """,
                (temp_model.reactions_to_json(), chat_id, message_id)
            )
            await conn.commit()
            logger.debug(f"Reactions updated for message {chat_id}_{message_id}")
            return cursor.rowcount > 0

        except Exception as e:
            logger.error(
                f"Failed to update reactions: {e}",
                extra={
                    "message_id": message_id,
                    "chat_id": chat_id
                },
                exc_info=True
            )
            await conn.rollback()
            raise

    async def get_by_period(
        self,
        start_ts: int,
        end_ts: Optional[int] = None,
        chat_id: Optional[int] = None,
        archived: bool = False
    ) -> List[MessageModel]:
        """
        Get messages from a specific time period.

        Args:
            start_ts: Inclusive start, Unix seconds
            end_ts: Exclusive end, Unix seconds (open-ended if None)
            chat_id: Optional chat ID to filter by
            archived: Read the archive table instead of live messages

        Returns:
            List of message models ordered by timestamp
        """
        table = "messages_archive" if archived else "messages"
        conditions = ["timestamp >= ?"]
        params: list = [start_ts]
        if end_ts is not None:
            conditions.append("timestamp < ?")
            params.append(end_ts)
        if chat_id is not None:
            conditions.append("chat_id = ?")
            params.append(chat_id)

        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                _MESSAGE_SELECT
                + f" FROM {table} WHERE {' AND '.join(conditions)} ORDER BY timestamp ASC, message_id ASC",
                params
            )
            rows = await cursor.fetchall()
            messages = [_row_to_message(row) for row in rows]
            logger.debug(f"Retrieved {len(messages)} messages from {table}")
            return messages

        except Exception as e:
            logger.error(
                f"Failed to get messages by period: {e}",
                extra={
                    "start_ts": start_ts,
                    "chat_id": chat_id
                },
                exc_info=True
            )
            raise

    async def archive_older_than(self, cutoff_ts: int) -> int:
        """
        Move messages older than the cutoff into the archive table.

        Rows already archived are kept as they are. Chat last activity is
        recomputed from the remaining live messages.

        Args:
            cutoff_ts: Cutoff, Unix seconds

        Returns:
            Number of messages moved
        """
        conn = await self.db_connection.get_connection()

        try:
            await conn.execute(
                """
                INSERT OR IGNORE INTO messages_archive
                (message_id, chat_id, from_id, timestamp, type, text, caption,
                 media_url, media_file_id, reactions, reply_to_message_id, raw_data)
                SELECT message_id, chat_id, from_id, timestamp, type, text, caption,
                       media_url, media_file_id, reactions, reply_to_message_id, raw_data
                FROM messages WHERE timestamp < ?
                """,
                (cutoff_ts,)
            )
            cursor = await conn.execute(
                "DELETE FROM messages WHERE timestamp < ?",
                (cutoff_ts,)
            )
            moved = cursor.rowcount
            await conn.execute(
                """
                UPDATE chats SET last_activity = (
                    SELECT MAX(timestamp) FROM messages WHERE messages.chat_id = chats.id
                )
                WHERE EXISTS (SELECT 1 FROM messages WHERE messages.chat_id = chats.id)
                """
            )
            await conn.commit()
            logger.info(f"Archived {moved} old messages")
            return moved

        except Exception as e:
            logger.error(
                f"Failed to archive old messages: {e}",
                extra={"cutoff_ts": cutoff_ts},
                exc_info=True
            )
            await conn.rollback()
            raise

    async def count(self, since_ts: Optional[int] = None) -> int:
        """
        Get total count of messages.

        Args:
            since_ts: Only count messages at or after this Unix timestamp

        Returns:
            Number of messages
        """
        conn = await self.db_connection.get_connection()

        try:
            if since_ts is None:
                cursor = await conn.execute("SELECT COUNT(*) as count FROM messages")
            else:
                cursor = await conn.execute(
                    "SELECT COUNT(*) as count FROM messages WHERE timestamp >= ?",
                    (since_ts,)
                )
            row = await cursor.fetchone()
            return row['count'] if row else 0

        except Exception as e:
            logger.error(f"Failed to count messages: {e}", exc_info=True)
            raise

    async def count_by_day(self, since_ts: int, utc_offset_seconds: int = 0) -> List[dict]:
        """
        Message counts per local calendar day.

        Args:
            since_ts: Start, Unix seconds
            utc_offset_seconds: Offset of the local timezone

        Returns:
            List of ``{"day": "YYYY-MM-DD", "count": n}`` ascending by day
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                SELECT date(timestamp + ?, 'unixepoch') as day, COUNT(*) as count
                FROM messages
                WHERE timestamp >= ?
                GROUP BY day
                ORDER BY day ASC
                """,
                (utc_offset_seconds, since_ts)
            )
            rows = await cursor.fetchall()
            return [{"day": row['day'], "count": row['count']} for row in rows]

        except Exception as e:
            logger.error(f"Failed to count messages by day: {e}", exc_info=True)
            raise

    async def count_by_type(self, since_ts: int) -> Dict[str, int]:
        """Message counts per type since a Unix timestamp."""
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                SELECT type, COUNT(*) as count
                FROM messages
                WHERE timestamp >= ?
                GROUP BY type
                """,
                (since_ts,)
            )
            rows = await cursor.fetchall()
            return {row['type']: row['count'] for row in rows}

        except Exception as e:
            logger.error(f"Failed to count messages by type: {e}", exc_info=True)
            raise

    async def top_senders(self, since_ts: int, limit: int = 10) -> List[dict]:
        """
        Most active senders since a Unix timestamp.

        Returns:
            List of dicts with from_id, first_name, last_name, username and count
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                SELECT m.from_id, u.first_name, u.last_name, u.username, COUNT(*) as count
                FROM messages m
                LEFT JOIN users u ON u.id = m.from_id
                WHERE m.timestamp >= ? AND m.from_id IS NOT NULL
                GROUP BY m.from_id
                ORDER BY count DESC
                LIMIT ?
                """,
                (since_ts, limit)
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get top senders: {e}", exc_info=True)
            raise

    async def get_command_texts(self, since_ts: int) -> List[str]:
        """Texts of messages that start with a slash command."""
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                "SELECT text FROM messages WHERE timestamp >= ? AND text LIKE '/%'",
                (since_ts,)
            )
            rows = await cursor.fetchall()
            return [row['text'] for row in rows]

        except Exception as e:
            logger.error(f"Failed to get command texts: {e}", exc_info=True)
            raise

    async def sample_texts(self, since_ts: int, limit: int = 1000) -> List[str]:
        """Random sample of message texts."""
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                SELECT text FROM messages
                WHERE timestamp >= ? AND text IS NOT NULL AND text != ''
                ORDER BY RANDOM()
                LIMIT ?
                """,
                (since_ts, limit)
            )
            rows = await cursor.fetchall()
            return [row['text'] for row in rows]

        except Exception as e:
            logger.error(f"Failed to sample message texts: {e}", exc_info=True)
            raise


class ChatRepository:
    """Repository for chat-related database operations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    async def upsert(self, chat: ChatModel) -> bool:
        """
        Insert a chat or refresh its name and latest activity.

        Title, type, username and preview are replaced only by a strictly newer
        message; older ones can only fill empty fields or a placeholder title,
        so replaying messages in any order converges without further writes.

        Args:
            chat: Chat model

        Returns:
            True if a row was inserted or changed
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                INSERT INTO chats (id, title, type, username, last_activity, last_message_preview)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = CASE
                        WHEN excluded.title != CAST(excluded.id AS TEXT)
                            AND (COALESCE(excluded.last_activity, 0) > COALESCE(chats.last_activity, 0)
                                 OR chats.title = CAST(chats.id AS TEXT))
                        THEN excluded.title ELSE chats.title END,
                    type = CASE
                        WHEN COALESCE(excluded.last_activity, 0) > COALESCE(chats.last_activity, 0)
                        THEN COALESCE(excluded.type, chats.type)
                        ELSE COALESCE(chats.type, excluded.type) END,
                    username = CASE
                        WHEN COALESCE(excluded.last_activity, 0) > COALESCE(chats.last_activity, 0)
                        THEN COALESCE(excluded.username, chats.username)
                        ELSE COALESCE(chats.username, excluded.username) END,
                    last_message_preview = CASE
                        WHEN COALESCE(excluded.last_activity, 0) > COALESCE(chats.last_activity, 0)
                        THEN COALESCE(excluded.last_message_preview, chats.last_message_preview)
                        ELSE COALESCE(chats.last_message_preview, excluded.last_message_preview) END,
                    last_activity = MAX(COALESCE(excluded.last_activity, 0), COALESCE(chats.last_activity, 0))
                WHERE COALESCE(excluded.last_activity, 0) > COALESCE(chats.last_activity, 0)
                   OR (excluded.title != CAST(excluded.id AS TEXT) AND chats.title = CAST(chats.id AS TEXT))
                   OR (chats.type IS NULL AND excluded.type IS NOT NULL)
                   OR (chats.username IS NULL AND excluded.username IS NOT NULL)
                   OR (chats.last_message_preview IS NULL AND excluded.last_message_preview IS NOT NULL)
                """,
                (
                    chat.id,
                    chat.title,
                    chat.type,
                    chat.username,
                    chat.last_activity,
                    chat.last_message_preview
                )
            )
            await conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            logger.error(
                f"Failed to upsert chat: {e}",
                extra={"chat_id": chat.id},
                exc_info=True
            )
            await conn.rollback()
            raise

    async def get(self, chat_id: int) -> Optional[ChatModel]:
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
            row = await cursor.fetchone()
            return _row_to_chat(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get chat: {e}", exc_info=True)
            raise

    async def get_all(self, min_activity: Optional[int] = None) -> List[ChatModel]:
        """
        Get chats, newest activity first.

        Args:
            min_activity: Omit chats whose last activity is older than this

        Returns:
            List of chat models
        """
        conn = await self.db_connection.get_connection()

        try:
            if min_activity is None:
                cursor = await conn.execute(
                    "SELECT * FROM chats ORDER BY last_activity DESC"
                )
            else:
                cursor = await conn.execute(
                    "SELECT * FROM chats WHERE last_activity >= ? ORDER BY last_activity DESC",
                    (min_activity,)
                )
            rows = await cursor.fetchall()
            return [_row_to_chat(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get chats: {e}", exc_info=True)
            raise


class UserRepository:
    """Repository for sender identities and their profile photos."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    async def upsert(self, user: UserModel) -> bool:
        """
        Insert a user or refresh their profile fields.

        The photo URL is never touched here, and ``updated_at`` only moves when
        the row changed. Profiles from messages older than ``last_seen`` only
        fill empty fields, so a resync does not flip a renamed user back.

        Args:
            user: User model

        Returns:
            True if a row was inserted or changed
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                _UPSERT_USER,
                (
                    user.id,
                    user.first_name,
                    user.last_name,
                    user.username,
                    1 if user.is_bot else 0,
                    user.language_code,
                    user.last_seen,
                    _utc_now_iso()
                )
            )
            await conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            logger.error(
                f"Failed to upsert user: {e}",
                extra={"user_id": user.id},
                exc_info=True
            )
            await conn.rollback()
            raise

    async def get(self, user_id: int) -> Optional[UserModel]:
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            return _row_to_user(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get user: {e}", exc_info=True)
            raise

    async def get_photo_urls(self, user_ids: Iterable[int]) -> Dict[int, str]:
        """
        Resolved photo URLs for a set of users.

        Users without a photo (unchecked or the no-photo sentinel) are omitted.
        """
        ids = sorted(set(user_ids))
        if not ids:
            return {}

        conn = await self.db_connection.get_connection()

        try:
            placeholders = ", ".join("?" for _ in ids)
            cursor = await conn.execute(
                f"""
                SELECT id, photo_url FROM users
                WHERE id IN ({placeholders}) AND photo_url IS NOT NULL AND photo_url != 'none'
                """,
                ids
            )
            rows = await cursor.fetchall()
            return {row['id']: row['photo_url'] for row in rows}

        except Exception as e:
            logger.error(f"Failed to get photo urls: {e}", exc_info=True)
            raise

    async def get_without_photo(self, limit: int = 10) -> List[UserModel]:
        """Non-bot users whose photo was never checked, most recently seen first."""
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                """
                SELECT * FROM users
                WHERE photo_url IS NULL AND is_bot = 0
                ORDER BY last_seen DESC, updated_at DESC
                LIMIT ?
                """,
                (limit,)
            )
            rows = await cursor.fetchall()
            return [_row_to_user(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get users without photo: {e}", exc_info=True)
            raise

    async def set_photo(self, user_id: int, photo_url: str) -> None:
        """
        Store a resolved photo URL or the no-photo sentinel.

        Args:
            user_id: Telegram user ID
            photo_url: Local URL of the avatar, or ``'none'``
        """
        conn = await self.db_connection.get_connection()

        try:
            await conn.execute(
                "UPDATE users SET photo_url = ? WHERE id = ?",
                (photo_url, user_id)
            )
            await conn.commit()
            logger.debug(f"Photo set for user {user_id}: {photo_url}")

        except Exception as e:
            logger.error(f"Failed to set user photo: {e}", exc_info=True)
            await conn.rollback()
            raise


class MessagePathRepository:
    """Index of message file locations keyed by composite identity."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    async def set(self, chat_id: int, message_id: int, path: str) -> None:
        conn = await self.db_connection.get_connection()

        try:
            await conn.execute(
                """
                INSERT INTO message_paths (chat_id, message_id, path)
                VALUES (?, ?, ?)
                ON CONFLICT(chat_id, message_id) DO UPDATE SET path = excluded.path
                WHERE message_paths.path IS NOT excluded.path
                """,
                (chat_id, message_id, path)
            )
            await conn.commit()

        except Exception as e:
            logger.error(f"Failed to set message path: {e}", exc_info=True)
            await conn.rollback()
            raise

    async def get(self, chat_id: int, message_id: int) -> Optional[str]:
        """
        Indexed file path of a message.

        Returns:
            Path string or None if the message was never indexed
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                "SELECT path FROM message_paths WHERE chat_id = ? AND message_id = ?",
                (chat_id, message_id)
            )
            row = await cursor.fetchone()
            return row['path'] if row else None

        except Exception as e:
            logger.error(f"Failed to get message path: {e}", exc_info=True)
            raise


class ConfigRepository:
    """Repository for configuration-related database operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """
        Initialize config repository.

        Args:
            db_connection: Database connection manager
        """
        self.db_connection = db_connection

    async def get(self, key: str) -> Optional[str]:
        """
        Get configuration value by key.

        Args:
            key: Configuration key

        Returns:
            Configuration value or None if not found
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                "SELECT value FROM config WHERE key = ?",
                (key,)
            )
            row = await cursor.fetchone()

            if row:
                logger.debug(f"Config retrieved: {key}")
                return row['value']
            return None

        except Exception as e:
            logger.error(f"Failed to get config: {e}", exc_info=True)
            raise

    async def get_by_prefix(self, prefix: str) -> Dict[str, str]:
        """
        Get all configuration values whose key starts with a prefix.

        Args:
            prefix: Key prefix

        Returns:
            Mapping of full key to value
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                "SELECT key, value FROM config WHERE substr(key, 1, ?) = ?",
                (len(prefix), prefix)
            )
            rows = await cursor.fetchall()
            return {row['key']: row['value'] for row in rows}

        except Exception as e:
            logger.error(f"Failed to get config by prefix: {e}", exc_info=True)
            raise

    async def set(self, key: str, value: str) -> None:
        """
        Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        conn = await self.db_connection.get_connection()

        try:
            await conn.execute(
                """
                INSERT INTO config (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value)
            )
            await conn.commit()
            logger.debug(f"Config set: {key}")

        except Exception as e:
            logger.error(f"Failed to set config: {e}", exc_info=True)
            await conn.rollback()
            raise


class DebounceRepository:
    """Repository for debounce-related database operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """
        Initialize debounce repository.

        Args:
            db_connection: Database connection manager
        """
        self.db_connection = db_connection

    async def get_last_execution(self, operation: str) -> Optional[datetime]:
        """
        Get last execution time for an operation.

        Args:
            operation: Operation name

        Returns:
            Last execution datetime (UTC-aware) or None if not found
        """
        conn = await self.db_connection.get_connection()

        try:
            cursor = await conn.execute(
                "SELECT last_execution FROM debounce WHERE operation = ?",
                (operation,)
            )
            row = await cursor.fetchone()

            if row:
                return datetime.fromisoformat(row['last_execution'])
            return None

        except Exception as e:
            logger.error(f"Failed to get last execution: {e}", exc_info=True)
            raise

    async def update_execution(self, operation: str) -> None:
        """
        Update execution time for an operation.

        Args:
            operation: Operation name
        """
        conn = await self.db_connection.get_connection()

        try:
            await conn.execute(
                """
                INSERT INTO debounce (operation, last_execution)
                VALUES (?, ?)
                ON CONFLICT(operation) DO UPDATE SET last_execution = excluded.last_execution
                """,
                (operation, _utc_now_iso())
            )
            await conn.commit()
            logger.debug(f"Debounce updated for operation: {operation}")

        except Exception as e:
            logger.error(f"Failed to update execution: {e}", exc_info=True)
            await conn.rollback()
            raise
