"""Request and response models for the Tallr gateway.

Bodies use camelCase keys to match the CLI wrapper; snake_case keys are
accepted as well.
"""

from typing import Optional

from tallr.core.models import CamelModel, DebugData, EnhancedStateContext, ProjectIn, TaskIn


class UpsertRequest(CamelModel):
    project: ProjectIn
    task: TaskIn


class StateUpdateRequest(CamelModel):
    task_id: str
    state: str
    details: Optional[str] = None
    detection_method: Optional[str] = None
    source: Optional[str] = None


class EnhancedStateUpdateRequest(CamelModel):
    task_id: str
    state: str
    context: EnhancedStateContext


class DetailsUpdateRequest(CamelModel):
    task_id: str
    details: str


class TaskDoneRequest(CamelModel):
    task_id: str
    details: Optional[str] = None


class TaskDeleteRequest(CamelModel):
    task_id: str


class TaskPinRequest(CamelModel):
    task_id: str
    pinned: bool


class DebugUpdateRequest(CamelModel):
    debug_data: DebugData


class TaskMutationResponse(CamelModel):
    status: str = "ok"
    task_id: str
    project_id: Optional[str] = None


class HealthResponse(CamelModel):
    status: str = "ok"
    timestamp: int
    tasks: int
    projects: int
    aggregate_state: str


class ConnectivityResponse(CamelModel):
    connected: bool
    last_ping: Optional[int] = None
    current_time: int
