"""Translation of service errors into HTTP errors."""

import logging

from aiogram.exceptions import TelegramAPIError
from fastapi import HTTPException

from bot.telegram_client import BotNotConfiguredError
from database.store import StoreUnavailableError
from services.media_service import MediaConversionError, UploadRejectedError


logger = logging.getLogger(__name__)


def to_http_exception(error: Exception) -> HTTPException:
    """
    Map a service exception to an HTTP error.

    Args:
        error: Exception raised by a service

    Returns:
        HTTPException with a matching status code
    """
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, UploadRejectedError):
        return HTTPException(status_code=error.status_code, detail=str(error))
    if isinstance(error, ValueError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (BotNotConfiguredError, StoreUnavailableError)):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, TelegramAPIError):
        logger.warning(f"Telegram API error: {error}")
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, MediaConversionError):
        logger.error(f"Media conversion failed: {error}")
        return HTTPException(status_code=500, detail=f"Conversion failed: {error}")

    logger.error(f"Unhandled error: {error}", exc_info=error)
    return HTTPException(status_code=500, detail="Internal server error")
