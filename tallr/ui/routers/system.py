"""State, health and setup endpoints.

Endpoints:
    - GET /v1/state - Full snapshot
    - GET /v1/health - Liveness; records the CLI wrapper's ping
    - GET /v1/connectivity - Whether the CLI wrapper pinged recently
    - GET /v1/setup/status - First-launch and install flags (no auth)
"""

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from tallr.auth.dependencies import require_token
from tallr.core.config import GlobalConfig
from tallr.core.errors import PersistenceError
from tallr.core.models import AppState
from tallr.core.setup_status import SetupStatus, get_setup_status
from tallr.core.state_store import StateStore
from tallr.persistence.state_file import StateFile
from tallr.ui.dependencies import get_config, get_state_file, get_store
from tallr.ui.models import ConnectivityResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["system"])


@router.get("/state", response_model=AppState, dependencies=[Depends(require_token)])
async def get_state(store: StateStore = Depends(get_store)):
    """Return the current snapshot."""
    return store.snapshot()


@router.get("/health", response_model=HealthResponse, dependencies=[Depends(require_token)])
async def health_check(
    store: StateStore = Depends(get_store),
    state_file: StateFile = Depends(get_state_file),
):
    """Liveness check used by the CLI wrapper as its heartbeat."""
    now = store.record_ping()
    snapshot = store.snapshot()

    try:
        await run_in_threadpool(state_file.save_from, store)
    except PersistenceError as e:
        logger.error(f"Failed to save app state after health check: {e}")

    return HealthResponse(
        timestamp=now,
        tasks=len(snapshot.tasks),
        projects=len(snapshot.projects),
        aggregate_state=store.aggregate_state().value,
    )


@router.get(
    "/connectivity", response_model=ConnectivityResponse, dependencies=[Depends(require_token)]
)
async def cli_connectivity(store: StateStore = Depends(get_store)):
    return ConnectivityResponse(**store.cli_connectivity())


@router.get("/setup/status", response_model=SetupStatus)
async def setup_status(config: GlobalConfig = Depends(get_config)):
    return get_setup_status(config)
