"""
Avatar URL cache shared by everything that draws a user.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


AvatarCallback = Callable[[Optional[str]], None]


class AvatarCache:
    """
    Memory cache, then pending-request dedup, then one notification per subscriber.

    Concurrent lookups of the same user share one fetch.
    """

    def __init__(self, fetch: Callable[[str], Awaitable[Optional[str]]]):
        """
        Args:
            fetch: Coroutine function resolving a user id into an avatar URL
        """
        self._fetch = fetch
        self._cache: Dict[str, Optional[str]] = {}
        self._pending: Dict[str, "asyncio.Future[Optional[str]]"] = {}
        self._subscribers: Dict[str, List[AvatarCallback]] = {}

    def is_known(self, user_id) -> bool:
        """Whether a lookup for the user has completed, even if it found no avatar."""
        return str(user_id) in self._cache

    def prime(self, user_id, url: Optional[str]) -> None:
        """Record a URL already known from a server response."""
        key = str(user_id)
        if url and self._cache.get(key) != url:
            self._cache[key] = url
            self._notify(key, url)

    def subscribe(self, user_id, callback: AvatarCallback) -> bool:
        """
        Call back once when the avatar is known.

        Returns:
            True if the callback ran immediately from the cache
        """
        key = str(user_id)
        if key in self._cache:
            callback(self._cache[key])
            return True
        self._subscribers.setdefault(key, []).append(callback)
        return False

    async def get(self, user_id) -> Optional[str]:
        key = str(user_id)
        if key in self._cache:
            return self._cache[key]
        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: "asyncio.Future[Optional[str]]" = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            url = await self._fetch(key)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            logger.debug(f"Avatar lookup failed for {key}: {e}")
            url = None
            # Failed lookups are not cached, a later call retries
            future.set_result(None)
            return None
        finally:
            self._pending.pop(key, None)

        self._cache[key] = url
        future.set_result(url)
        self._notify(key, url)
        return url

    def _notify(self, key: str, url: Optional[str]) -> None:
        for callback in self._subscribers.pop(key, []):
            try:
                callback(url)
            except Exception as e:
                logger.error(f"Avatar subscriber failed: {e}", exc_info=True)
