"""Timeline and chat list routes."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException

from api.application import ViewerApplication
from api.errors import to_http_exception


def create_messages_router(app: ViewerApplication) -> APIRouter:
    """Create router serving messages and the chat list."""
    router = APIRouter(tags=["messages"])

    @router.get("/messages")
    async def get_messages(
        since: Optional[int] = None,
        date: Optional[str] = None,
        group: Optional[str] = None,
        limit: Optional[int] = None,
        include_archive: bool = False
    ) -> List[dict]:
        """Messages of one day, or the newest ones when only a limit is given."""
        if limit is not None and limit <= 0:
            raise HTTPException(status_code=400, detail="limit must be positive")
        try:
            return await app.message_service.get_messages(
                since=since,
                date=date,
                group=group,
                limit=limit,
                include_archive=include_archive
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/api/get-all-chats")
    async def get_all_chats(include_archive: bool = False, force: bool = False) -> List[dict]:
        """Chat list, newest activity first."""
        try:
            return await app.chat_service.get_all_chats(include_archive=include_archive, force=force)
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/api/get-file-url")
    async def get_file_url(file_id: str) -> dict:
        """Resolve a media file id into a fresh download URL."""
        if app.telegram is None:
            raise HTTPException(status_code=503, detail="Bot token is not configured")
        try:
            url = await app.telegram.resolve_file_url(file_id)
        except Exception as e:
            raise to_http_exception(e)
        if url is None:
            raise HTTPException(status_code=404, detail="File not found")
        return {"url": url}

    return router
