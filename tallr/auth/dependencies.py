"""Authentication dependencies for route handlers.

Every gateway route except ``/v1/setup/status`` requires
``Authorization: Bearer <token>`` matching the shared secret. WebSocket
clients cannot set headers from the browser, so they pass ``?token=``.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tallr.auth.token import TokenManager

logger = logging.getLogger(__name__)

# Security scheme for extracting Bearer tokens from Authorization header
security = HTTPBearer(auto_error=False)


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.token_manager


async def require_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Reject the request with 401 unless it carries the shared secret.

    Raises:
        HTTPException: 401 if the token is missing or does not match
    """
    if not credentials or not credentials.credentials:
        logger.warning(f"Unauthorized access attempt to {request.url.path}: missing token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_manager = get_token_manager(request)
    if not token_manager.validate(credentials.credentials):
        logger.warning(f"Unauthorized access attempt to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def websocket_authorized(websocket: WebSocket) -> bool:
    """Validate the ``token`` query parameter of a WebSocket handshake."""
    token_manager: TokenManager = websocket.app.state.token_manager
    return token_manager.validate(websocket.query_params.get("token"))
