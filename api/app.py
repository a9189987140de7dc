"""
Main entry point for the log viewer HTTP API.

This module configures logging, wires the application and serves it with uvicorn.
"""
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from api.application import ViewerApplication
from api.routes import create_actions_router, create_admin_router, create_messages_router
from config.settings import Config


def setup_logging(debug_mode: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        debug_mode: If True, set logging level to DEBUG, otherwise INFO
    """
    log_level = logging.DEBUG if debug_mode else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set specific log levels for noisy libraries
    logging.getLogger('aiogram').setLevel(logging.INFO)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {logging.getLevelName(log_level)}")


def create_app(
    config: Config,
    application: Optional[ViewerApplication] = None,
    run_background: bool = True
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Viewer configuration
        application: Pre-built application container (built from config if omitted)
        run_background: Start sync, archive and avatar loops with the app

    Returns:
        FastAPI app
    """
    viewer = application or ViewerApplication(config)

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        await viewer.start(run_background=run_background)
        yield
        await viewer.stop()

    fastapi_app = FastAPI(
        title="Telegram Log Viewer API",
        description="Timeline, chat list and operator actions over archived Telegram chats",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.viewer = viewer

    fastapi_app.include_router(create_messages_router(viewer))
    fastapi_app.include_router(create_actions_router(viewer))
    fastapi_app.include_router(create_admin_router(viewer))

    for mount, directory in (("/avatars", config.avatars_dir), ("/uploads", config.uploads_dir)):
        Path(directory).mkdir(parents=True, exist_ok=True)
        fastapi_app.mount(mount, StaticFiles(directory=directory), name=mount.strip("/"))

    return fastapi_app


def main() -> None:
    """Load configuration and serve the API."""
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ValueError as e:
        # Configuration error
        setup_logging()
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.debug_mode)
    logger.info("Configuration loaded successfully")
    logger.info(f"Messages path: {config.messages_path}")
    logger.info(f"Database path: {config.db_path}")
    if not config.bot_token:
        logger.warning("BOT_TOKEN is not set, send and reaction endpoints are disabled")

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level="debug" if config.debug_mode else "info",
    )


if __name__ == "__main__":
    main()
