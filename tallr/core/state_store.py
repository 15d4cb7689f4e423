"""Authoritative in-memory store of projects and tasks.

One ``StateStore`` is built at startup and handed to the gateway and the
cleanup sweep through ``app.state``. A single coarse lock guards the whole
snapshot. It is held only while the in-memory mutation runs; callers
publish events and write to disk after it has been released.

Readers never see live objects: ``snapshot()`` and every mutator return
deep copies.
"""

import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional

from tallr.core.aggregate import compute_aggregate_state
from tallr.core.errors import TaskNotFoundError
from tallr.core.models import (
    AppState,
    DebugData,
    DetectionHistoryEntry,
    EnhancedStateContext,
    Project,
    ProjectIn,
    Task,
    TaskIn,
    TaskState,
    current_timestamp,
)
from tallr.core.notification_policy import build_enhanced_details

logger = logging.getLogger(__name__)

# Debug trace retention
MAX_HISTORY_ENTRIES = 100
MAX_BUFFER_CHARS = 20_000

# A CLI that pinged within this window counts as connected
CLI_PING_WINDOW_SECONDS = 30


def bound_debug_data(debug_data: DebugData) -> DebugData:
    """Trim a debug trace to the retention limits, keeping the newest data."""
    if len(debug_data.detection_history) > MAX_HISTORY_ENTRIES:
        debug_data.detection_history = debug_data.detection_history[-MAX_HISTORY_ENTRIES:]
    if len(debug_data.cleaned_buffer) > MAX_BUFFER_CHARS:
        debug_data.cleaned_buffer = debug_data.cleaned_buffer[-MAX_BUFFER_CHARS:]
    return debug_data


class StateStore:
    """Owns the canonical snapshot of projects, tasks and debug traces.

    Args:
        clock: Returns the current Unix time in seconds
        trace_transitions: Append every state change to the task's debug trace
    """

    def __init__(
        self,
        clock: Callable[[], int] = current_timestamp,
        trace_transitions: bool = False,
    ):
        self._state = AppState()
        self._lock = threading.Lock()
        self._clock = clock
        self.trace_transitions = trace_transitions

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def snapshot(self) -> AppState:
        """Full deep copy of the current state."""
        with self._lock:
            return self._state.model_copy(deep=True)

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return self._require_task(task_id).model_copy(deep=True)

    def aggregate_state(self) -> TaskState:
        with self._lock:
            return compute_aggregate_state(self._state.tasks.values())

    def cli_connectivity(self, now: Optional[int] = None) -> Dict[str, Optional[int]]:
        """Report whether the CLI wrapper has pinged recently."""
        now = self._clock() if now is None else now
        with self._lock:
            last_ping = self._state.last_cli_ping
        connected = last_ping is not None and now - last_ping <= CLI_PING_WINDOW_SECONDS
        return {"connected": connected, "last_ping": last_ping, "current_time": now}

    def get_debug_data(self, task_id: str) -> Optional[DebugData]:
        with self._lock:
            debug_data = self._state.debug_data.get(task_id)
            return debug_data.model_copy(deep=True) if debug_data else None

    def latest_debug_data(self) -> Optional[DebugData]:
        """Debug trace with the most recent detection history entry."""
        with self._lock:
            if not self._state.debug_data:
                return None
            latest = max(self._state.debug_data.values(), key=lambda d: d.latest_timestamp())
            return latest.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def load(self, state: AppState) -> None:
        """Install a snapshot loaded from disk."""
        with self._lock:
            previous = self._state.updated_at
            self._state = state.model_copy(deep=True)
            self._state.updated_at = max(previous, self._state.updated_at)
        logger.info(
            f"Loaded state: {len(state.projects)} projects, {len(state.tasks)} tasks"
        )

    def upsert(self, project_in: ProjectIn, task_in: TaskIn) -> str:
        """Create or update a project and task reported by the wrapper.

        Projects are deduplicated by repository path. An existing task keeps
        its pinned flag and creation time.

        Returns:
            The task id
        """
        with self._lock:
            now = self._clock()
            project = self._find_project_by_repo(project_in.repo_path)
            if project is None:
                project = Project(
                    id=str(uuid.uuid4()),
                    name=project_in.name,
                    repo_path=project_in.repo_path,
                    preferred_ide=project_in.preferred_ide or "",
                    github_url=project_in.github_url,
                    created_at=now,
                    updated_at=now,
                )
                self._state.projects[project.id] = project
                logger.info(f"Created project {project.name} ({project.repo_path})")
            else:
                project.updated_at = max(project.created_at, now)

            existing = self._state.tasks.get(task_in.id)
            created_at = existing.created_at if existing else now
            task = Task(
                id=task_in.id,
                project_id=project.id,
                agent=task_in.agent,
                title=task_in.title,
                state=task_in.state,
                details=task_in.details,
                created_at=created_at,
                updated_at=max(created_at, now),
                pinned=existing.pinned if existing else False,
                detection_method=existing.detection_method if existing else None,
                confidence=existing.confidence if existing else None,
                network_context=existing.network_context if existing else None,
                session_context=existing.session_context if existing else None,
            )
            self._state.tasks[task.id] = task

            previous_state = existing.state if existing else TaskState.IDLE.value
            if previous_state != task.state:
                self._record_transition(task.id, previous_state, task.state, task.details, None)
            self._touch(now)

        logger.info(f"Upserted task {task_in.id} for project {project_in.name}")
        return task_in.id

    def update_state(
        self,
        task_id: str,
        new_state: str,
        details: Optional[str] = None,
        detection_method: Optional[str] = None,
    ) -> Task:
        """Set a task's state and details.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            now = self._clock()
            previous_state = task.state

            task.state = new_state
            task.details = details
            if detection_method is not None:
                task.detection_method = detection_method
            task.updated_at = max(task.created_at, now)

            self._record_transition(task_id, previous_state, new_state, details, None)
            self._touch(now)
            result = task.model_copy(deep=True)

        logger.info(
            f"State update for task {task_id} using {detection_method or 'unknown'} detection: "
            f"{previous_state} -> {new_state}"
        )
        return result

    def update_state_with_context(
        self,
        task_id: str,
        new_state: str,
        context: EnhancedStateContext,
    ) -> Task:
        """Set a task's state from a structured detection context.

        Details are replaced by a summary generated from the context.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            now = self._clock()
            previous_state = task.state

            task.state = new_state
            task.detection_method = context.detection_method
            task.confidence = context.confidence
            task.network_context = (
                context.network.model_copy(deep=True) if context.network else None
            )
            task.session_context = (
                context.session.model_copy(deep=True) if context.session else None
            )
            task.details = build_enhanced_details(context)
            task.updated_at = max(task.created_at, now)

            self._record_transition(
                task_id, previous_state, new_state, task.details, f"{context.confidence:.2f}"
            )
            self._touch(now)
            result = task.model_copy(deep=True)

        logger.info(
            f"Enhanced state update for task {task_id} using {context.detection_method} "
            f"detection (confidence: {context.confidence:.2f}): {previous_state} -> {new_state}"
        )
        return result

    def update_details(self, task_id: str, details: str) -> Task:
        """Replace a task's details without touching its state.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            now = self._clock()
            task.details = details
            task.updated_at = max(task.created_at, now)
            self._touch(now)
            return task.model_copy(deep=True)

    def mark_done(self, task_id: str, details: Optional[str] = None) -> Task:
        """Move a task to DONE.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            now = self._clock()
            previous_state = task.state

            task.state = TaskState.DONE.value
            task.details = details
            task.updated_at = max(task.created_at, now)

            self._record_transition(task_id, previous_state, task.state, details, None)
            self._touch(now)
            result = task.model_copy(deep=True)

        logger.info(f"Marked task as done: {result.title} ({task_id})")
        return result

    def delete(self, task_id: str) -> Task:
        """Remove a task and its debug trace.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            del self._state.tasks[task_id]
            self._state.debug_data.pop(task_id, None)
            self._touch(self._clock())

        logger.info(f"Deleted task: {task_id}")
        return task

    def set_pinned(self, task_id: str, pinned: bool) -> Task:
        """Pin or unpin a task. Pinned tasks survive the cleanup sweep.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._require_task(task_id)
            now = self._clock()
            task.pinned = pinned
            task.updated_at = max(task.created_at, now)
            self._touch(now)
            result = task.model_copy(deep=True)

        logger.info(f"{'Pinned' if pinned else 'Unpinned'} task: {result.title} ({task_id})")
        return result

    def record_ping(self, now: Optional[int] = None) -> int:
        """Record a health check from the CLI wrapper."""
        with self._lock:
            now = self._clock() if now is None else now
            self._state.last_cli_ping = now
        logger.debug(f"Health check: updated last_cli_ping to {now}")
        return now

    def update_debug_data(self, debug_data: DebugData) -> DebugData:
        """Replace the debug trace for ``debug_data.task_id``."""
        stored = bound_debug_data(debug_data.model_copy(deep=True))
        with self._lock:
            self._state.debug_data[stored.task_id] = stored
            return stored.model_copy(deep=True)

    def cleanup(
        self,
        now: Optional[int] = None,
        done_grace_seconds: int = 30,
        idle_max_age_seconds: int = 3600,
        include_idle: bool = True,
    ) -> List[str]:
        """Remove finished and stale tasks.

        Unpinned DONE tasks older than ``done_grace_seconds`` are removed, and
        with ``include_idle`` so are unpinned IDLE tasks older than
        ``idle_max_age_seconds``. Pinned tasks are never removed.

        Returns:
            Ids of the removed tasks
        """
        with self._lock:
            now = self._clock() if now is None else now
            removed = []
            for task_id, task in self._state.tasks.items():
                if task.pinned:
                    continue
                age = now - task.updated_at
                kind = task.kind
                if kind is TaskState.DONE and age > done_grace_seconds:
                    removed.append(task_id)
                elif include_idle and kind is TaskState.IDLE and age > idle_max_age_seconds:
                    removed.append(task_id)

            for task_id in removed:
                del self._state.tasks[task_id]
                self._state.debug_data.pop(task_id, None)

            if removed:
                self._touch(now)

        if removed:
            logger.info(f"Cleaned up {len(removed)} stale tasks")
        return removed

    # ------------------------------------------------------------------
    # Internals (lock must be held)
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> Task:
        task = self._state.tasks.get(task_id)
        if task is None:
            logger.warning(f"Task not found: {task_id}")
            raise TaskNotFoundError(task_id)
        return task

    def _find_project_by_repo(self, repo_path: str) -> Optional[Project]:
        for project in self._state.projects.values():
            if project.repo_path == repo_path:
                return project
        return None

    def _touch(self, now: int) -> None:
        self._state.updated_at = max(self._state.updated_at, now)

    def _record_transition(
        self,
        task_id: str,
        from_state: str,
        to_state: str,
        details: Optional[str],
        confidence: Optional[str],
    ) -> None:
        if not self.trace_transitions:
            return

        debug_data = self._state.debug_data.get(task_id)
        if debug_data is None:
            debug_data = DebugData(task_id=task_id, current_state=from_state)
            self._state.debug_data[task_id] = debug_data

        debug_data.detection_history.append(
            DetectionHistoryEntry(
                timestamp=self._clock(),
                from_state=from_state,
                to_state=to_state,
                details=details or "",
                confidence=confidence or "",
            )
        )
        debug_data.current_state = to_state
        if confidence:
            debug_data.confidence = confidence
        bound_debug_data(debug_data)
