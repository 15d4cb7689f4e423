"""Core data models for Tallr.

Projects, tasks and debug traces use camelCase keys on the wire and on disk
(``repoPath``, ``projectId``...), while the top-level snapshot keeps
snake_case keys (``debug_data``, ``last_cli_ping``). Both spellings are
accepted on input.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def current_timestamp() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskState(str, Enum):
    """Task states the engine treats specially.

    Reported states are free-form strings and are stored verbatim on the
    task. ``classify`` maps them onto this closed set; anything outside the
    five known values becomes ``OTHER``, which aggregation treats as an
    active state that outranks nothing.
    """

    IDLE = "IDLE"
    WORKING = "WORKING"
    PENDING = "PENDING"
    ERROR = "ERROR"
    DONE = "DONE"
    OTHER = "OTHER"

    @classmethod
    def classify(cls, raw: Optional[str]) -> "TaskState":
        if raw is None:
            return cls.OTHER
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER

    @property
    def is_terminal(self) -> bool:
        return self is TaskState.DONE


# States that can raise a user-facing alert
ALERT_STATES: frozenset = frozenset({TaskState.PENDING, TaskState.ERROR})


class ProjectIn(CamelModel):
    """Project payload reported by the agent wrapper."""

    name: str
    repo_path: str
    preferred_ide: Optional[str] = None
    github_url: Optional[str] = None


class TaskIn(CamelModel):
    """Task payload reported by the agent wrapper."""

    id: str
    agent: str
    title: str
    state: str
    details: Optional[str] = None


class Project(CamelModel):
    """A repository-backed workspace containing tasks."""

    id: str
    name: str
    repo_path: str
    preferred_ide: str = ""
    github_url: Optional[str] = None
    created_at: int
    updated_at: int


class SessionMessage(CamelModel):
    message_type: str
    timestamp: str
    preview: str


class NetworkContext(CamelModel):
    """Network-interception view of an agent session."""

    active_requests: int = 0
    average_response_time: int = 0
    thinking_duration: Optional[int] = None  # milliseconds
    last_activity: Optional[int] = None
    request_types: Optional[List[str]] = None


class SessionContext(CamelModel):
    """Session-file view of an agent session."""

    session_id: Optional[str] = None
    message_count: Optional[int] = None
    last_message: Optional[SessionMessage] = None
    waiting_time: Optional[int] = None
    conversation_length: Optional[int] = None


class EnhancedStateContext(CamelModel):
    """Structured detection context sent with ``/tasks/state-enhanced``."""

    network: Optional[NetworkContext] = None
    session: Optional[SessionContext] = None
    detection_method: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: int
    raw_data: Optional[Any] = None


class Task(CamelModel):
    """One tracked agent session within a project."""

    id: str
    project_id: str
    agent: str
    title: str
    state: str
    details: Optional[str] = None
    created_at: int
    updated_at: int
    pinned: bool = False
    detection_method: Optional[str] = None
    confidence: Optional[float] = None
    network_context: Optional[NetworkContext] = None
    session_context: Optional[SessionContext] = None

    @property
    def kind(self) -> TaskState:
        return TaskState.classify(self.state)


class DetectionHistoryEntry(CamelModel):
    timestamp: int
    from_state: str = Field(alias="from")
    to_state: str = Field(alias="to")
    details: str = ""
    confidence: str = ""


class DebugData(CamelModel):
    """Diagnostic trace for a single task."""

    task_id: str
    cleaned_buffer: str = ""
    current_state: str = TaskState.IDLE.value
    detection_history: List[DetectionHistoryEntry] = Field(default_factory=list)
    pattern_tests: Optional[Any] = None
    confidence: Optional[str] = None
    is_active: Optional[bool] = None

    def latest_timestamp(self) -> int:
        return max((entry.timestamp for entry in self.detection_history), default=0)


class AppState(BaseModel):
    """Full snapshot of everything Tallr tracks.

    This is both the unit written to disk and the unit pushed to the UI.
    """

    model_config = ConfigDict(populate_by_name=True)

    projects: Dict[str, Project] = Field(default_factory=dict)
    tasks: Dict[str, Task] = Field(default_factory=dict)
    debug_data: Dict[str, DebugData] = Field(default_factory=dict)
    updated_at: int = 0
    last_cli_ping: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict using the wire key spelling."""
        return self.model_dump(mode="json", by_alias=True)
