"""
Tallr: live status tracking for AI coding-agent sessions.

A local loopback service that receives task state reports from agent
wrappers, keeps the authoritative in-memory picture of every project and
task, and pushes updates to the tray indicator and desktop UI.
"""

__version__ = "0.1.0"

from tallr.core.models import AppState, Project, Task, TaskState
from tallr.core.state_store import StateStore

__all__ = ["AppState", "Project", "Task", "TaskState", "StateStore"]
