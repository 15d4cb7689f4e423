"""Task mutation endpoints called by the CLI wrapper.

Endpoints:
    - POST /v1/tasks/upsert - Create or update a project and task
    - POST /v1/tasks/state - Update a task's state and details
    - POST /v1/tasks/state-enhanced - Update state with detection context
    - POST /v1/tasks/details - Update details only
    - POST /v1/tasks/done - Mark a task DONE
    - POST /v1/tasks/delete - Remove a task
    - POST /v1/tasks/pin - Pin or unpin a task

Each handler mutates the store (lock held only for the mutation), then
publishes and persists through ``commit_mutation``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from tallr.auth.dependencies import require_token
from tallr.core.errors import TaskNotFoundError
from tallr.core.models import AppState, EnhancedStateContext, Task
from tallr.core.notification_policy import (
    build_notification,
    resolve_detection_method,
    should_notify,
)
from tallr.core.state_store import StateStore
from tallr.ui.dependencies import get_store
from tallr.ui.models import (
    DetailsUpdateRequest,
    EnhancedStateUpdateRequest,
    StateUpdateRequest,
    TaskDeleteRequest,
    TaskDoneRequest,
    TaskMutationResponse,
    TaskPinRequest,
    UpsertRequest,
)
from tallr.ui.shared import commit_mutation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tasks", tags=["tasks"], dependencies=[Depends(require_token)])


def _not_found(e: TaskNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


def _project_name(snapshot: AppState, task: Task) -> str:
    project = snapshot.projects.get(task.project_id)
    if project is None:
        logger.warning(f"Project not found for task {task.id}")
        return "Unknown"
    return project.name


def _alert_for(
    request: Request,
    store: StateStore,
    task: Task,
    context: Optional[EnhancedStateContext] = None,
) -> Optional[dict]:
    confidence = context.confidence if context is not None else None
    if not should_notify(task.state, task.detection_method, confidence):
        return None
    return build_notification(
        _project_name(store.snapshot(), task),
        task.agent,
        task.state,
        context=context,
        debug=request.app.state.config.debug,
    )


@router.post("/upsert", response_model=TaskMutationResponse)
async def upsert_task(
    body: UpsertRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    """Create or update a task, deduplicating its project by repository path."""
    task_id = store.upsert(body.project, body.task)

    notification = None
    if should_notify(body.task.state):
        notification = build_notification(body.project.name, body.task.agent, body.task.state)

    await commit_mutation(request.app, notification=notification)

    snapshot = store.snapshot()
    task = snapshot.tasks.get(task_id)
    return TaskMutationResponse(task_id=task_id, project_id=task.project_id if task else None)


@router.post("/state", response_model=TaskMutationResponse)
async def update_task_state(
    body: StateUpdateRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    """Update a task's state; ``source`` decides the recorded detection method."""
    detection_method = resolve_detection_method(body.source, body.detection_method)
    try:
        task = store.update_state(body.task_id, body.state, body.details, detection_method)
    except TaskNotFoundError as e:
        raise _not_found(e)

    await commit_mutation(request.app, notification=_alert_for(request, store, task))
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)


@router.post("/state-enhanced", response_model=TaskMutationResponse)
async def update_task_state_enhanced(
    body: EnhancedStateUpdateRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    """Update a task's state with network/session detection context.

    The confidence score gates whether a notification is raised.
    """
    try:
        task = store.update_state_with_context(body.task_id, body.state, body.context)
    except TaskNotFoundError as e:
        raise _not_found(e)

    notification = _alert_for(request, store, task, context=body.context)
    await commit_mutation(request.app, notification=notification)
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)


@router.post("/details", response_model=TaskMutationResponse)
async def update_task_details(
    body: DetailsUpdateRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    try:
        task = store.update_details(body.task_id, body.details)
    except TaskNotFoundError as e:
        raise _not_found(e)

    await commit_mutation(request.app)
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)


@router.post("/done", response_model=TaskMutationResponse)
async def mark_task_done(
    body: TaskDoneRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    try:
        task = store.mark_done(body.task_id, body.details)
    except TaskNotFoundError as e:
        raise _not_found(e)

    await commit_mutation(request.app)
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)


@router.post("/delete", response_model=TaskMutationResponse)
async def delete_task(
    body: TaskDeleteRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    try:
        task = store.delete(body.task_id)
    except TaskNotFoundError as e:
        raise _not_found(e)

    await commit_mutation(request.app)
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)


@router.post("/pin", response_model=TaskMutationResponse)
async def pin_task(
    body: TaskPinRequest,
    request: Request,
    store: StateStore = Depends(get_store),
):
    """Pin or unpin a task. Pinned tasks are never removed by the cleanup sweep."""
    try:
        task = store.set_pinned(body.task_id, body.pinned)
    except TaskNotFoundError as e:
        raise _not_found(e)

    await commit_mutation(request.app)
    return TaskMutationResponse(task_id=task.id, project_id=task.project_id)
