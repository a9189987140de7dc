"""Script for running a sync of the message folders into the store."""
import asyncio
import sys
from pathlib import Path

# Add root directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.app import setup_logging
from config.settings import Config
from corpus.storage import MessageCorpus
from database.store import MessageStore
from services.sync_service import SyncService


async def sync_now(recent_hours: int = 0):
    """
    Run a full sync, or a recent one when ``recent_hours`` is set.

    Usage:
        python scripts/sync_now.py          # full
        python scripts/sync_now.py 10       # files modified in the last 10 hours
    """
    config = Config.from_env()
    setup_logging(config.debug_mode)

    store = await MessageStore.open(config.db_path)
    if not store.is_available:
        print(f"❌ Database {config.db_path} is unavailable")
        return 1

    service = SyncService(store, MessageCorpus(config.messages_path, config.timezone),
                          batch_size=config.sync_batch_size)
    try:
        if recent_hours:
            report = await service.sync_recent(recent_hours)
        else:
            report = await service.sync()
    finally:
        await store.close()

    print("\n📊 Sync report:")
    for key, value in report.to_dict().items():
        print(f"  {key}: {value}")
    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    hours = int(sys.argv[1]) if len(sys.argv) > 1 else 0
    sys.exit(asyncio.run(sync_now(hours)))
