"""Error taxonomy for the task-state engine.

Unauthorized requests are rejected by the auth layer before they reach the
store, so there is no exception for them here; everything else that can go
wrong while tracking tasks derives from ``TallrError``.
"""

from typing import Optional


class TallrError(Exception):
    """Base exception for Tallr."""


class TaskNotFoundError(TallrError):
    """Raised when an operation references a task id the store does not know."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class PersistenceError(TallrError):
    """Raised when the state file cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class CorruptStateError(PersistenceError):
    """Raised when the state file exists but does not parse.

    ``backup_path`` points at the quarantined copy, if the rename succeeded.
    """

    def __init__(self, message: str, path: Optional[str] = None, backup_path: Optional[str] = None):
        self.backup_path = backup_path
        super().__init__(message, path=path)


class TokenResolutionError(TallrError):
    """Raised when the shared bearer secret cannot be loaded or created."""


class DataDirectoryError(TallrError):
    """Raised when no application data directory can be resolved."""
