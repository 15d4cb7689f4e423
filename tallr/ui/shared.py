"""Shared state and utilities for the FastAPI gateway.

Holds the WebSocket connection manager and the post-mutation step every
route runs once the store lock has been released: push the new snapshot to
the UI, then write it to disk.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import FastAPI, WebSocket
from starlette.concurrency import run_in_threadpool

from tallr.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manage WebSocket connections of UI clients."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self._connections_lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._connections_lock:
            self.active_connections.append(websocket)

    async def disconnect(self, websocket: WebSocket):
        async with self._connections_lock:
            if websocket in self.active_connections:
                self.active_connections.remove(websocket)

    async def _send_to_connection(self, connection: WebSocket, message: dict) -> Optional[WebSocket]:
        """Send to one connection, returning it on failure for cleanup."""
        try:
            await connection.send_json(message)
            return None
        except Exception:
            return connection

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients concurrently."""
        async with self._connections_lock:
            connections = self.active_connections.copy()

        # No lock held during I/O
        tasks = [
            asyncio.create_task(self._send_to_connection(conn, message))
            for conn in connections
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for result in results:
            if result is not None and not isinstance(result, BaseException):
                await self.disconnect(result)


async def commit_mutation(app: FastAPI, notification: Optional[dict] = None) -> None:
    """Publish and persist the store after a successful mutation.

    Neither step can fail the request: the in-memory mutation already
    happened and stays authoritative.
    """
    store = app.state.store
    await app.state.publisher.publish(store.snapshot(), notification=notification)

    try:
        await run_in_threadpool(app.state.state_file.save_from, store)
    except PersistenceError as e:
        logger.error(f"Failed to save app state: {e}")
