"""Diagnostic trace endpoints, only served in debug mode.

Endpoints:
    - GET /v1/debug/patterns - Trace with the most recent detection
    - GET /v1/debug/patterns/{task_id} - Trace for one task
    - POST /v1/debug/update - Replace a task's trace
"""

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from tallr.auth.dependencies import require_token
from tallr.core.errors import PersistenceError
from tallr.core.models import DebugData
from tallr.core.state_store import StateStore
from tallr.persistence.state_file import StateFile
from tallr.ui.dependencies import get_state_file, get_store, require_debug_mode
from tallr.ui.models import DebugUpdateRequest, TaskMutationResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/debug",
    tags=["debug"],
    dependencies=[Depends(require_token), Depends(require_debug_mode)],
)


@router.get("/patterns", response_model=DebugData)
async def get_debug_patterns(store: StateStore = Depends(get_store)):
    latest = store.latest_debug_data()
    if latest is None:
        return DebugData(task_id="none")
    return latest


@router.get("/patterns/{task_id}", response_model=DebugData)
async def get_debug_patterns_for_task(task_id: str, store: StateStore = Depends(get_store)):
    debug_data = store.get_debug_data(task_id)
    if debug_data is None:
        return DebugData(task_id=task_id)
    return debug_data


@router.post("/update", response_model=TaskMutationResponse)
async def update_debug_data(
    body: DebugUpdateRequest,
    store: StateStore = Depends(get_store),
    state_file: StateFile = Depends(get_state_file),
):
    stored = store.update_debug_data(body.debug_data)

    try:
        await run_in_threadpool(state_file.save_from, store)
    except PersistenceError as e:
        logger.error(f"Failed to save debug data: {e}")

    return TaskMutationResponse(task_id=stored.task_id)
