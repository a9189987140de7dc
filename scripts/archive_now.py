"""Script for archiving old messages immediately, bypassing the hourly debounce."""
import asyncio
import sys
from pathlib import Path

# Add root directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.app import setup_logging
from config.settings import Config
from database.store import MessageStore
from services.archive_service import ArchiveService
from utils.debounce_manager import DebounceManager


async def archive_now():
    """Move messages older than ARCHIVE_AFTER_DAYS into the archive table."""
    config = Config.from_env()
    setup_logging(config.debug_mode)

    store = await MessageStore.open(config.db_path)
    if not store.is_available:
        print(f"❌ Database {config.db_path} is unavailable")
        return 1

    service = ArchiveService(store, DebounceManager(store.debounce), config.archive_after_days)
    try:
        moved = await service.archive_older_than(service.cutoff_timestamp())
        await service.debounce_manager.mark_executed(service.ARCHIVE_OPERATION)
    finally:
        await store.close()

    print(f"✅ Archived {moved} messages older than {config.archive_after_days} days")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(archive_now()))
