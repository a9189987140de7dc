"""
Integration tests for corpus ingestion into the message store.
"""
import os
import time
from datetime import date
from unittest.mock import AsyncMock

import pytest

from corpus.storage import MessageCorpus
from database.models import Reaction
from services.chats_scanner import ChatsScanner
from services.message_service import MessageService
from services.sync_service import SyncService
from tests.helpers import make_payload, ts, write_payload


@pytest.fixture
def corpus(corpus_root):
    return MessageCorpus(corpus_root)


@pytest.fixture
def sync_service(temp_store, corpus):
    return SyncService(temp_store, corpus, batch_size=2, sleep=AsyncMock())


@pytest.mark.integration
class TestFullSync:
    """Integration tests for SyncService.sync."""

    @pytest.mark.asyncio
    async def test_private_message_ingested(self, sync_service, temp_store, corpus_root):
        # Arrange
        payload = make_payload(100, 4242, ts(2026, 1, 19), text="Hello", chat_type="private", from_id=4242)
        path = write_payload(corpus_root, "19.01.2026", payload)

        # Act
        report = await sync_service.sync()

        # Assert
        assert report.files_seen == 1
        assert report.processed == 1
        assert report.changed == 1
        stored = await temp_store.messages.get(4242, 100)
        assert stored.text == "Hello"
        assert stored.timestamp == ts(2026, 1, 19)
        assert (await temp_store.chats.get(4242)).title == "User4242"
        assert (await temp_store.users.get(4242)).first_name == "Sender4242"
        assert await temp_store.paths.get(4242, 100) == str(path)

    @pytest.mark.asyncio
    async def test_second_sync_picks_up_reactions(self, sync_service, temp_store, corpus_root):
        # Arrange
        payload = make_payload(100, 4242, ts(2026, 1, 19), text="Hello")
        write_payload(corpus_root, "19.01.2026", payload)
        await sync_service.sync()

        payload["reactions"] = [{"type": {"type": "emoji", "emoji": "👍"}, "total_count": 2}]
        write_payload(corpus_root, "19.01.2026", payload)

        # Act
        report = await sync_service.sync()

        # Assert
        assert report.changed == 1
        stored = await temp_store.messages.get(4242, 100)
        assert stored.reactions == [Reaction("👍", 2, False)]
        assert stored.text == "Hello"

    @pytest.mark.asyncio
    async def test_rerun_without_changes_writes_nothing(self, sync_service, corpus_root):
        write_payload(corpus_root, "19.01.2026", make_payload(1, 4242, ts(2026, 1, 19), text="a"))
        write_payload(corpus_root, "19.01.2026", make_payload(2, -100, ts(2026, 1, 19), text="b"), subdir=-100)
        await sync_service.sync()

        report = await sync_service.sync()

        assert report.processed == 2
        assert report.changed == 0

    @pytest.mark.asyncio
    async def test_renamed_chat_not_rewritten_on_rerun(self, sync_service, temp_store, corpus_root):
        """Test an older name seen first on a resync does not flip chat or user back."""
        # Arrange
        for folder, day, name in (("18.01.2026", 18, "OldName"), ("19.01.2026", 19, "NewName")):
            write_payload(corpus_root, folder, make_payload(
                day, 4242, ts(2026, 1, day), text=name,
                chat={"id": 4242, "type": "private", "first_name": name},
                **{"from": {"id": 4242, "is_bot": False, "first_name": name}}
            ))
        first = await sync_service.sync()
        spy = AsyncMock(wraps=temp_store.chats.upsert)
        temp_store.chats.upsert = spy

        # Act
        second = await sync_service.sync()

        # Assert
        assert first.changed == 2
        assert second.changed == 0
        assert spy.await_count == 2
        assert (await temp_store.chats.get(4242)).title == "NewName"
        user = await temp_store.users.get(4242)
        assert user.first_name == "NewName"
        assert user.last_seen == ts(2026, 1, 19)

    @pytest.mark.asyncio
    async def test_yields_once_per_batch(self, sync_service, corpus_root):
        for message_id in range(1, 6):
            write_payload(corpus_root, "19.01.2026", make_payload(message_id, 4242, ts(2026, 1, 19), text="x"))

        await sync_service.sync()

        # batch_size=2 over 5 files
        assert [c.args for c in sync_service._sleep.await_args_list] == [(0,), (0,)]

    @pytest.mark.asyncio
    async def test_flat_and_subdirectory_copy_stored_once(self, sync_service, temp_store, corpus, corpus_root):
        # Arrange
        payload = make_payload(100, -1009999, ts(2026, 1, 19), text="Group", chat_type="supergroup")
        write_payload(corpus_root, "19.01.2026", payload)
        write_payload(corpus_root, "19.01.2026", payload, subdir=-1009999)

        # Act
        report = await sync_service.sync()
        records = await MessageService(corpus, ChatsScanner(corpus, str(corpus.root.parent / "c.json"))).get_messages(
            date="19.01.2026", group="-1009999"
        )

        # Assert
        assert report.processed == 2
        assert report.changed == 1
        assert await temp_store.messages.count() == 1
        assert [(r["chat_id"], r["message_id"]) for r in records] == [(-1009999, 100)]

    @pytest.mark.asyncio
    async def test_unusable_files_skipped(self, sync_service, temp_store, corpus_root):
        # Arrange
        write_payload(corpus_root, "19.01.2026", make_payload(1, 4242, ts(2026, 1, 19), text="ok"))
        write_payload(corpus_root, "19.01.2026", None, raw="{not json")
        write_payload(corpus_root, "19.01.2026", {"message_id": 2}, raw="")
        write_payload(corpus_root, "19.01.2026", {"message_id": 3}, raw='{"chat": {"id": 1}, "text": "no id"}')

        # Act
        report = await sync_service.sync()

        # Assert
        assert report.files_seen == 4
        assert report.processed == 1
        assert report.skipped == 3
        assert await temp_store.messages.get(4242, 1) is not None

    @pytest.mark.asyncio
    async def test_group_subdirectory_gives_chat_id(self, sync_service, temp_store, corpus_root):
        """Test a payload without chat info is attributed to its chat subdirectory."""
        write_payload(corpus_root, "19.01.2026", {"message_id": 9, "date": ts(2026, 1, 19)}, subdir=-1009999)

        await sync_service.sync()

        assert await temp_store.messages.get(-1009999, 9) is not None

    @pytest.mark.asyncio
    async def test_non_date_folders_ignored(self, sync_service, corpus_root):
        write_payload(corpus_root, "backup", make_payload(1, 4242, 1))

        report = await sync_service.sync()

        assert report.files_seen == 0

    @pytest.mark.asyncio
    async def test_store_failure_retried_then_counted(self, sync_service, temp_store, corpus_root):
        # Arrange
        write_payload(corpus_root, "19.01.2026", make_payload(1, 4242, ts(2026, 1, 19), text="x"))
        temp_store.messages.upsert = AsyncMock(side_effect=RuntimeError("database is locked"))

        # Act
        report = await sync_service.sync()

        # Assert
        assert report.failed == 1
        assert temp_store.messages.upsert.await_count == 3
        assert sync_service._sleep.await_args_list[0].args == (0.5,)
        assert sync_service._sleep.await_args_list[1].args == (1.0,)

    @pytest.mark.asyncio
    async def test_concurrent_sync_refused(self, sync_service):
        sync_service._running = True

        report = await sync_service.sync()

        assert report.already_running is True

    @pytest.mark.asyncio
    async def test_unavailable_store_reads_without_writing(self, corpus, corpus_root):
        write_payload(corpus_root, "19.01.2026", make_payload(1, 4242, ts(2026, 1, 19), text="x"))

        report = await SyncService(None, corpus).sync()

        assert report.processed == 1
        assert report.changed == 0


@pytest.mark.integration
class TestRecentSync:
    """Integration tests for SyncService.sync_recent."""

    @pytest.mark.asyncio
    async def test_only_recent_files_of_today_and_yesterday(self, sync_service, temp_store, corpus, corpus_root, monkeypatch):
        # Arrange
        monkeypatch.setattr(corpus, "today", lambda: date(2026, 1, 20))
        fresh = write_payload(corpus_root, "20.01.2026", make_payload(1, 4242, ts(2026, 1, 20), text="new"))
        stale = write_payload(corpus_root, "19.01.2026", make_payload(2, 4242, ts(2026, 1, 19), text="old"))
        write_payload(corpus_root, "10.01.2026", make_payload(3, 4242, ts(2026, 1, 10), text="older"))
        day_ago = time.time() - 24 * 3600
        os.utime(stale, (day_ago, day_ago))

        # Act
        report = await sync_service.sync_recent(window_hours=10)

        # Assert
        assert fresh.exists()
        assert report.files_seen == 1
        assert await temp_store.messages.get(4242, 1) is not None
        assert await temp_store.messages.get(4242, 2) is None
        assert await temp_store.messages.get(4242, 3) is None


@pytest.mark.integration
class TestIngestPayload:
    """Integration tests for single payload mirroring."""

    @pytest.mark.asyncio
    async def test_ingest_payload(self, sync_service, temp_store):
        payload = make_payload(5, -100, ts(2026, 1, 19), text="sent", from_id=1)

        assert await sync_service.ingest_payload(payload) is True
        assert (await temp_store.messages.get(-100, 5)).text == "sent"

    @pytest.mark.asyncio
    async def test_ingest_failure_is_not_raised(self, sync_service, temp_store):
        temp_store.messages.upsert = AsyncMock(side_effect=RuntimeError("disk I/O error"))

        assert await sync_service.ingest_payload(make_payload(5, -100, 1)) is False
