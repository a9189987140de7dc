"""Stats, upload, manual mode, settings, sync and health routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel

from api.application import ViewerApplication
from api.errors import to_http_exception


class ManualModeRequest(BaseModel):
    """Request model for toggling manual mode."""

    chat_id: int
    enabled: bool


def create_admin_router(app: ViewerApplication) -> APIRouter:
    """Create router for operator and maintenance endpoints."""
    router = APIRouter(tags=["admin"])

    @router.get("/api/stats")
    async def get_stats(days: int = 7) -> dict:
        try:
            return await app.stats_service.get_stats(days=days)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/api/upload")
    async def upload(file: UploadFile = File(...), convert: Optional[str] = None) -> dict:
        """Store an uploaded file, optionally converting it to a video note or voice."""
        try:
            app.upload_service.check_size(file.size)
            data = await app.upload_service.read_limited(file.read)
            return await app.upload_service.save_upload(
                data,
                file.content_type,
                original_name=file.filename,
                convert=convert
            )
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/api/get-manual-mode")
    async def get_manual_mode(chat_id: int) -> dict:
        try:
            enabled = await app.manual_mode_service.get(chat_id)
        except Exception as e:
            raise to_http_exception(e)
        return {"chat_id": chat_id, "enabled": enabled}

    @router.post("/api/set-manual-mode")
    async def set_manual_mode(request: ManualModeRequest) -> dict:
        try:
            await app.manual_mode_service.set(request.chat_id, request.enabled)
        except Exception as e:
            raise to_http_exception(e)
        return {"success": True, "chat_id": request.chat_id, "enabled": request.enabled}

    @router.get("/api/get-all-manual-modes")
    async def get_all_manual_modes() -> Dict[str, bool]:
        try:
            return await app.manual_mode_service.get_all()
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/api/v1/getSettings")
    async def get_settings() -> Dict[str, Any]:
        try:
            return await app.settings_service.get_settings()
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/api/v1/setSettings")
    async def set_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await app.settings_service.update_settings(changes)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/api/sync")
    async def trigger_sync(recent: bool = False, window_hours: Optional[int] = None) -> dict:
        """Run a full or recent sync and return its report."""
        if window_hours is not None and window_hours <= 0:
            raise HTTPException(status_code=400, detail="window_hours must be positive")
        try:
            if recent:
                report = await app.sync_service.sync_recent(
                    window_hours or app.config.sync_recent_window_hours
                )
            else:
                report = await app.sync_service.sync()
        except Exception as e:
            raise to_http_exception(e)
        return report.to_dict()

    @router.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "store_available": app.store.is_available,
            "bot_configured": app.telegram is not None,
            "sync_running": app.sync_service.is_running,
        }

    return router
