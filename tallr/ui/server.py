"""FastAPI gateway for Tallr.

Binds to the loopback interface only. The only callers are the local CLI
wrapper and the desktop UI, so there is no CORS configuration.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tallr import __version__
from tallr.auth.token import TokenManager
from tallr.core.config import GlobalConfig, load_config
from tallr.core.errors import PersistenceError, TokenResolutionError
from tallr.core.state_store import StateStore
from tallr.notifications.desktop import DesktopNotificationService
from tallr.persistence.state_file import StateFile
from tallr.tasks.cleanup_sweep import periodic_cleanup, run_startup_cleanup
from tallr.ui.routers import debug, system, tasks, websocket
from tallr.ui.shared import ConnectionManager
from tallr.ui.websocket_broadcasts import EventPublisher

# Module logger
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and its collaborators, then tear them down on shutdown."""
    config: GlobalConfig = getattr(app.state, "config", None) or load_config()
    app.state.config = config

    # Raises DataDirectoryError when no data directory exists; nothing else
    # at startup is fatal
    data_dir = config.resolve_data_dir()
    try:
        config.ensure_directories()
    except OSError as e:
        logger.warning(f"Could not create data directories under {data_dir}: {e}")
    logger.info(f"Tallr gateway starting (data dir: {data_dir})")

    state_file = StateFile(config.sessions_file)
    store = StateStore(trace_transitions=config.debug)
    store.load(state_file.load_or_empty())
    run_startup_cleanup(store, state_file, config)

    token_manager = TokenManager(config.token_file)
    try:
        token_manager.get_or_create_token()
        logger.info("Auth token initialized successfully")
    except TokenResolutionError as e:
        logger.warning(f"Failed to initialize auth token: {e}")

    connection_manager = ConnectionManager()
    desktop = None
    if config.notifications_enabled:
        desktop = DesktopNotificationService()
        if not desktop.is_available():
            logger.info("Desktop notifications unavailable; alerts go to the UI only")
            desktop = None
    publisher = EventPublisher(connection_manager, desktop=desktop)

    app.state.store = store
    app.state.state_file = state_file
    app.state.token_manager = token_manager
    app.state.connection_manager = connection_manager
    app.state.publisher = publisher

    cleanup_task = asyncio.create_task(
        periodic_cleanup(store, state_file, config, publisher=publisher)
    )

    yield

    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task

    try:
        state_file.save_from(store)
    except PersistenceError as e:
        logger.error(f"Failed to save app state on shutdown: {e}")
    logger.info("Tallr gateway stopped")


def create_app(config: Optional[GlobalConfig] = None) -> FastAPI:
    """Build the gateway application.

    Args:
        config: Configuration to use; loaded from the environment at startup
            when omitted
    """
    app = FastAPI(
        title="Tallr Gateway",
        description="Live status of AI coding-agent sessions",
        version=__version__,
        lifespan=lifespan,
    )
    if config is not None:
        app.state.config = config

    app.include_router(system.router)
    app.include_router(tasks.router)
    app.include_router(debug.router)
    app.include_router(websocket.router)
    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 4317, config: Optional[GlobalConfig] = None):
    """Run the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
