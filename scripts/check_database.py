"""Script for checking message store state."""
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

# Add root directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import Config


def check_database():
    """Print table counts and the newest stored messages."""
    try:
        config = Config.from_env()
        db_path = config.db_path
    except Exception as e:
        print(f"Failed to load configuration: {e}")
        print("Using default path: data/viewer.db")
        db_path = "data/viewer.db"

    if not Path(db_path).exists():
        print(f"❌ Database not found: {db_path}")
        print("\nCreate it by starting the API or running a sync:")
        print("  python scripts/sync_now.py")
        return

    print(f"✅ Database found: {db_path}\n")

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute('SELECT name FROM sqlite_master WHERE type="table"')
    tables = [row[0] for row in cursor.fetchall()]
    print(f"📋 Tables: {', '.join(tables)}\n")

    print("📊 Row counts:")
    for table in ("messages", "messages_archive", "chats", "users", "message_paths", "config", "debounce"):
        if table not in tables:
            print(f"  {table}: missing")
            continue
        cursor.execute(f'SELECT COUNT(*) FROM {table}')
        print(f"  {table}: {cursor.fetchone()[0]}")
    print()

    cursor.execute('SELECT COUNT(*) FROM users WHERE photo_url IS NULL AND is_bot = 0')
    print(f"🖼  Users waiting for an avatar: {cursor.fetchone()[0]}\n")

    cursor.execute('''
        SELECT m.chat_id, COALESCE(c.title, m.chat_id), m.type,
               substr(COALESCE(m.text, m.caption, ''), 1, 40), m.timestamp
        FROM messages m
        LEFT JOIN chats c ON c.id = m.chat_id
        ORDER BY m.timestamp DESC
        LIMIT 5
    ''')
    rows = cursor.fetchall()
    if rows:
        print("📝 Newest messages:")
        for row in rows:
            when = datetime.fromtimestamp(row[4]).strftime("%d.%m.%Y %H:%M")
            print(f"  [{when}] {row[1]} ({row[2]}): {row[3]}")
        print()
    else:
        print("ℹ️  No messages stored yet")
        print("\nCheck that MESSAGES_PATH points at the message folders and run a sync.")
        print()

    cursor.execute('SELECT key, value FROM config')
    settings = cursor.fetchall()
    if settings:
        print("⚙️  Settings:")
        for row in settings:
            print(f"  {row[0]}: {row[1]}")
        print()

    conn.close()


if __name__ == "__main__":
    check_database()
