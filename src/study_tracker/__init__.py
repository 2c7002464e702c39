"""
Study Tracker task engine.

Checklist extraction, progress/status derivation, threaded activity logs and
the local/remote task stores with one-shot migration between them.
"""
from .accessor import TaskAccessor
from .activity import append_toggle_log, build_threads
from .checklist import extract
from .client import TrackerClient, create_client
from .errors import (
    AuthenticationError,
    MigrationError,
    NotFoundError,
    RemoteStoreError,
    TaskValidationError,
    ToggleInFlightError,
    TrackerError,
    TransportError,
)
from .migration import MigrationCoordinator, MigrationResult
from .progress import compute_progress, derive_status, toggle
from .schemas import (
    ActivityLogEntry,
    ProfileUpdate,
    Subtask,
    Task,
    TaskDraft,
    TaskStatus,
    TaskUpdate,
    ThreadedEntry,
    UserProfile,
)
from .session import AuthSession

__all__ = [
    "ActivityLogEntry",
    "AuthSession",
    "AuthenticationError",
    "MigrationCoordinator",
    "MigrationError",
    "MigrationResult",
    "NotFoundError",
    "ProfileUpdate",
    "RemoteStoreError",
    "Subtask",
    "Task",
    "TaskAccessor",
    "TaskDraft",
    "TaskStatus",
    "TaskUpdate",
    "TaskValidationError",
    "TrackerClient",
    "ThreadedEntry",
    "ToggleInFlightError",
    "TrackerError",
    "TransportError",
    "UserProfile",
    "append_toggle_log",
    "build_threads",
    "compute_progress",
    "create_client",
    "derive_status",
    "extract",
    "toggle",
]
