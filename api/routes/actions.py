"""Reaction and send routes relayed to the Bot API."""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from api.application import ViewerApplication
from api.errors import to_http_exception


class ReactionRequest(BaseModel):
    """Request model for setting a reaction."""

    chat_id: int
    message_id: int
    emoji: str
    action: str = "add"


class SendMessageRequest(BaseModel):
    """Request model for sending a text message."""

    chat_id: Optional[int] = None
    text: Optional[str] = None
    reply_to_message_id: Optional[int] = None


class SendMediaRequest(BaseModel):
    """Request model for sending media; the field named after the kind holds it."""

    chat_id: Optional[int] = None
    caption: Optional[str] = None
    photo: Optional[str] = None
    video: Optional[str] = None
    audio: Optional[str] = None
    voice: Optional[str] = None
    video_note: Optional[str] = None
    sticker: Optional[str] = None
    document: Optional[str] = None


MEDIA_ROUTES = {
    "send-photo": "photo",
    "send-video": "video",
    "send-audio": "audio",
    "send-voice": "voice",
    "send-video-note": "video_note",
    "send-sticker": "sticker",
    "send-document": "document",
}


def create_actions_router(app: ViewerApplication) -> APIRouter:
    """Create router for reactions and outgoing messages."""
    router = APIRouter(prefix="/api", tags=["actions"])

    @router.post("/set-reaction")
    async def set_reaction(request: ReactionRequest) -> dict:
        """Add or remove the bot's reaction and persist it locally."""
        try:
            return await app.reaction_service.set_reaction(
                chat_id=request.chat_id,
                message_id=request.message_id,
                emoji=request.emoji,
                action=request.action
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/send-message")
    async def send_message(request: SendMessageRequest) -> dict:
        """Send an HTML text message."""
        try:
            return await app.send_service.send_message(
                chat_id=request.chat_id,
                text=request.text,
                reply_to_message_id=request.reply_to_message_id
            )
        except Exception as e:
            raise to_http_exception(e)

    def add_media_route(path: str, kind: str) -> None:
        async def send_media(request: SendMediaRequest) -> dict:
            try:
                return await app.send_service.send_media(
                    kind,
                    chat_id=request.chat_id,
                    media=getattr(request, kind),
                    caption=request.caption
                )
            except Exception as e:
                raise to_http_exception(e)

        send_media.__name__ = f"send_{kind}"
        send_media.__doc__ = f"Send a {kind.replace('_', ' ')}."
        router.add_api_route(f"/{path}", send_media, methods=["POST"])

    for path, kind in MEDIA_ROUTES.items():
        add_media_route(path, kind)

    return router
