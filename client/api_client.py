"""
HTTP client for the viewer API.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger(__name__)


class ViewerApiClient:
    """Async wrapper over the viewer endpoints the client polls."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize API client.

        Args:
            base_url: Server URL, e.g. ``http://localhost:3005``
            timeout: Request timeout in seconds
            client: Optional pre-built httpx client
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def get_messages(
        self,
        since: Optional[int] = None,
        date: Optional[str] = None,
        group: Optional[str] = None,
        limit: Optional[int] = None,
        include_archive: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Fetch messages.

        Raises:
            httpx.TransportError: On connectivity problems
            httpx.HTTPStatusError: On a non-success response
        """
        params: Dict[str, Any] = {}
        if since:
            params["since"] = since
        if date:
            params["date"] = date
        if group:
            params["group"] = group
        if limit:
            params["limit"] = limit
        if include_archive:
            params["include_archive"] = "true"
        response = await self._client.get("/messages", params=params)
        response.raise_for_status()
        return response.json()

    async def get_all_chats(self, include_archive: bool = False) -> List[Dict[str, Any]]:
        params = {"include_archive": "true"} if include_archive else {}
        response = await self._client.get("/api/get-all-chats", params=params)
        response.raise_for_status()
        return response.json()

    async def avatar_url(self, user_id: str) -> Optional[str]:
        """URL of a user's avatar if the server has one."""
        path = f"/avatars/{user_id}.jpg"
        response = await self._client.head(path)
        if response.status_code == 200:
            return path
        return None

    async def close(self) -> None:
        await self._client.aclose()
