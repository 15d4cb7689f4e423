"""Aggregate state for the tray indicator.

The tray shows a single status: the "worst" state among all active tasks.
DONE tasks are ignored and states outside the known vocabulary never win.
"""

from typing import Iterable

from tallr.core.models import Task, TaskState

# Highest priority first
AGGREGATE_PRIORITY = (TaskState.ERROR, TaskState.PENDING, TaskState.WORKING)


def compute_aggregate_state(tasks: Iterable[Task]) -> TaskState:
    """Return ERROR, PENDING, WORKING or IDLE for a set of tasks.

    The result depends only on which states are present, never on the
    order the tasks are iterated in.
    """
    present = {task.kind for task in tasks if not task.kind.is_terminal}

    for state in AGGREGATE_PRIORITY:
        if state in present:
            return state
    return TaskState.IDLE
