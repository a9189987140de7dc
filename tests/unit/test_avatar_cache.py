"""
Unit tests for the client avatar cache.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from client.avatar_cache import AvatarCache


@pytest.mark.unit
class TestAvatarCache:
    """Test cases for AvatarCache."""

    @pytest.mark.asyncio
    async def test_concurrent_lookups_share_one_fetch(self):
        # Arrange
        release = asyncio.Event()

        async def fetch(user_id):
            await release.wait()
            return f"/avatars/{user_id}.jpg"

        fetch_mock = AsyncMock(side_effect=fetch)
        cache = AvatarCache(fetch_mock)

        # Act
        tasks = [asyncio.create_task(cache.get(42)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        # Assert
        assert results == ["/avatars/42.jpg"] * 5
        fetch_mock.assert_awaited_once_with("42")

    @pytest.mark.asyncio
    async def test_cached_value_skips_fetch(self):
        fetch_mock = AsyncMock(return_value="/avatars/1.jpg")
        cache = AvatarCache(fetch_mock)

        await cache.get(1)
        await cache.get("1")

        assert fetch_mock.await_count == 1
        assert cache.is_known(1)

    @pytest.mark.asyncio
    async def test_missing_avatar_is_cached(self):
        fetch_mock = AsyncMock(return_value=None)
        cache = AvatarCache(fetch_mock)

        assert await cache.get(7) is None
        assert await cache.get(7) is None
        assert fetch_mock.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_lookup_is_retried(self):
        # Arrange
        fetch_mock = AsyncMock(side_effect=[RuntimeError("network"), "/avatars/3.jpg"])
        cache = AvatarCache(fetch_mock)

        # Act
        first = await cache.get(3)
        second = await cache.get(3)

        # Assert
        assert first is None
        assert second == "/avatars/3.jpg"

    @pytest.mark.asyncio
    async def test_subscribers_notified_once(self):
        # Arrange
        cache = AvatarCache(AsyncMock(return_value="/avatars/9.jpg"))
        received = []
        cache.subscribe(9, received.append)
        cache.subscribe(9, received.append)

        # Act
        await cache.get(9)
        await cache.get(9)

        # Assert
        assert received == ["/avatars/9.jpg", "/avatars/9.jpg"]

    def test_subscribe_after_resolution_called_immediately(self):
        cache = AvatarCache(AsyncMock())
        cache.prime(5, "/avatars/5.jpg")
        received = []

        delivered = cache.subscribe(5, received.append)

        assert delivered is True
        assert received == ["/avatars/5.jpg"]

    def test_prime_notifies_waiting_subscribers(self):
        cache = AvatarCache(AsyncMock())
        received = []
        assert cache.subscribe(5, received.append) is False

        cache.prime(5, "/avatars/5.jpg")
        cache.prime(5, "/avatars/5.jpg")

        assert received == ["/avatars/5.jpg"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_others(self):
        cache = AvatarCache(AsyncMock(return_value="/a.jpg"))
        received = []

        def broken(url):
            raise ValueError("boom")

        cache.subscribe(1, broken)
        cache.subscribe(1, received.append)

        await cache.get(1)

        assert received == ["/a.jpg"]
