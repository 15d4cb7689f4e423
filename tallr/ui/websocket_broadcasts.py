"""
Event publishing to the UI layer.

After each mutation the gateway hands the new snapshot to
``EventPublisher.publish``, which pushes, in order:

- tasks-updated: the full snapshot
- show-notification: an alert payload, when the notification policy fired
- tray-updated: aggregate state, icon name and tray menu

Delivery is best effort. A failed broadcast is logged and dropped; it never
propagates to the request that caused it.
"""

import logging
from datetime import UTC, datetime
from typing import Optional

from starlette.concurrency import run_in_threadpool

from tallr.core.models import AppState
from tallr.notifications.desktop import DesktopNotificationService
from tallr.ui.tray import build_tray_update

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


async def broadcast_tasks_updated(manager, snapshot: AppState) -> None:
    """Broadcast the full snapshot."""
    message = {
        "type": "tasks-updated",
        "state": snapshot.to_wire(),
        "timestamp": _timestamp(),
    }
    try:
        await manager.broadcast(message)
        logger.debug(f"Broadcast tasks-updated: {len(snapshot.tasks)} tasks")
    except Exception as e:
        logger.error(f"Failed to broadcast tasks update: {e}")


async def broadcast_notification(manager, notification: dict) -> None:
    """Broadcast an alert for the UI to display."""
    message = {"type": "show-notification", **notification, "timestamp": _timestamp()}
    try:
        await manager.broadcast(message)
        logger.debug(f"Broadcast show-notification: {notification.get('title')}")
    except Exception as e:
        logger.error(f"Failed to broadcast notification: {e}")


async def broadcast_tray_update(manager, snapshot: AppState) -> None:
    """Broadcast the regenerated tray icon and menu."""
    try:
        message = build_tray_update(snapshot)
        message["timestamp"] = _timestamp()
        await manager.broadcast(message)
        logger.debug(f"Broadcast tray-updated: {message['aggregateState']}")
    except Exception as e:
        logger.error(f"Failed to broadcast tray update: {e}")


class EventPublisher:
    """Pushes snapshots, alerts and tray updates after each mutation.

    Args:
        manager: ConnectionManager of the UI WebSocket clients
        desktop: Native notification service, or None to only broadcast alerts
    """

    def __init__(self, manager, desktop: Optional[DesktopNotificationService] = None):
        self.manager = manager
        self.desktop = desktop

    async def publish(self, snapshot: AppState, notification: Optional[dict] = None) -> None:
        await broadcast_tasks_updated(self.manager, snapshot)

        if notification is not None:
            await broadcast_notification(self.manager, notification)
            if self.desktop is not None:
                await run_in_threadpool(
                    self.desktop.send_notification,
                    notification.get("title", ""),
                    notification.get("body", ""),
                )

        await broadcast_tray_update(self.manager, snapshot)
