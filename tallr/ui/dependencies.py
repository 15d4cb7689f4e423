"""FastAPI dependency injection providers.

Access to the objects built in the gateway lifespan and stored on
``app.state``.
"""

from fastapi import HTTPException, Request, status

from tallr.core.config import GlobalConfig
from tallr.core.state_store import StateStore
from tallr.persistence.state_file import StateFile


def get_store(request: Request) -> StateStore:
    """Usage:
        @router.get("/endpoint")
        async def endpoint(store: StateStore = Depends(get_store)):
            ...
    """
    return request.app.state.store


def get_config(request: Request) -> GlobalConfig:
    return request.app.state.config


def get_state_file(request: Request) -> StateFile:
    return request.app.state.state_file


def require_debug_mode(request: Request) -> None:
    """Hide diagnostic routes unless the gateway runs in debug mode.

    Raises:
        HTTPException: 404 when debug mode is off
    """
    if not request.app.state.config.debug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


__all__ = [
    "get_config",
    "get_state_file",
    "get_store",
    "require_debug_mode",
]
