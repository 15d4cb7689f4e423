"""Tray indicator model.

The native tray lives in the desktop shell; this module only decides what
it should show. After every mutation the publisher pushes the icon name
and menu items built here.
"""

from typing import Dict, List

from tallr.core.aggregate import compute_aggregate_state
from tallr.core.models import AppState, CamelModel, TaskState

TRAY_ICONS: Dict[TaskState, str] = {
    TaskState.ERROR: "tray-error",
    TaskState.PENDING: "tray-pending",
    TaskState.WORKING: "tray-working",
}
DEFAULT_TRAY_ICON = "tray-default"

STATUS_ICONS: Dict[TaskState, str] = {
    TaskState.PENDING: "\U0001f7e1",  # yellow circle
    TaskState.WORKING: "\U0001f535",  # blue circle
    TaskState.ERROR: "\U0001f534",  # red circle
    TaskState.IDLE: "⚫",  # black circle
}
UNKNOWN_STATUS_ICON = "⚪"  # white circle


class TrayMenuItem(CamelModel):
    id: str
    label: str
    enabled: bool = True
    separator_before: bool = False


def tray_icon_for(state: TaskState) -> str:
    return TRAY_ICONS.get(state, DEFAULT_TRAY_ICON)


def build_tray_menu(snapshot: AppState) -> List[TrayMenuItem]:
    """One item per active task, then the static entries."""
    items: List[TrayMenuItem] = []

    active = [task for task in snapshot.tasks.values() if not task.kind.is_terminal]
    active.sort(key=lambda task: (task.created_at, task.id))

    for task in active:
        project = snapshot.projects.get(task.project_id)
        project_name = project.name if project else task.project_id
        icon = STATUS_ICONS.get(task.kind, UNKNOWN_STATUS_ICON)
        items.append(
            TrayMenuItem(
                id=f"session_{task.id}",
                label=f"{icon} {project_name} - {task.agent} - {task.state}",
            )
        )

    if not items:
        items.append(TrayMenuItem(id="no_sessions", label="No active sessions", enabled=False))

    items.append(TrayMenuItem(id="show_window", label="Show Tallr", separator_before=True))
    items.append(TrayMenuItem(id="quit", label="Quit"))
    return items


def build_tray_update(snapshot: AppState) -> dict:
    """Payload of a ``tray-updated`` event."""
    aggregate = compute_aggregate_state(snapshot.tasks.values())
    return {
        "type": "tray-updated",
        "aggregateState": aggregate.value,
        "icon": tray_icon_for(aggregate),
        "menu": [item.model_dump(by_alias=True) for item in build_tray_menu(snapshot)],
    }
