from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from threading import RLock
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..schemas import ActivityLogEntry, Task, UserProfile
from ..settings import get_settings
from .models import ActivityRecord


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """Abstract repository contract for per-user task storage backends."""

    @abstractmethod
    def list(self, user_id: str) -> List[Task]:
        """Return the user's tasks, newest createdAt first."""

    @abstractmethod
    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def save(self, user_id: str, task: Task) -> Task:
        """Insert or replace a task and return the stored copy."""

    @abstractmethod
    def delete(self, user_id: str, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""

    @abstractmethod
    def clear(self, user_id: str) -> int:
        """Delete every task of the user. Return the number removed."""


# PUBLIC_INTERFACE
class AuditRepository(ABC):
    """
    Abstract contract for the durable audit store. Records are append-only
    and are never removed together with their task.
    """

    @abstractmethod
    def record(self, entry: ActivityRecord) -> None:
        """Append one record."""

    @abstractmethod
    def recent(self, user_id: str, limit: int) -> List[ActivityRecord]:
        """Return the user's newest records, at most `limit`."""

    @abstractmethod
    def for_task(self, user_id: str, task_id: str) -> List[ActivityRecord]:
        """Return every record of one task, newest first."""


# PUBLIC_INTERFACE
class ProfileRepository(ABC):
    """Abstract contract for per-user display profiles."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserProfile]:
        """Return the user's profile, or None if none was saved."""

    @abstractmethod
    def save(self, user_id: str, profile: UserProfile) -> UserProfile:
        """Insert or replace the user's profile and return the stored copy."""


class UserAuditSink:
    """Feeds toggle log entries of one user into an AuditRepository."""

    def __init__(self, repo: AuditRepository, user_id: str) -> None:
        self._repo = repo
        self._user_id = user_id

    def record(self, task: Task, entry: ActivityLogEntry) -> None:
        self._repo.record(
            {
                "id": entry.id,
                "user_id": self._user_id,
                "task_id": task.id,
                "task_title": task.title,
                "message": entry.message,
                "progress": entry.progress,
                "timestamp": entry.timestamp,
                "parent_id": entry.parent_id,
                "is_system_log": entry.is_system_log,
            }
        )


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, Dict[str, Task]] = {}

    def list(self, user_id: str) -> List[Task]:
        with self._lock:
            items = list(self._items.get(user_id, {}).values())
            # Return copies to avoid external mutation
            return [t.model_copy(deep=True) for t in sorted(items, key=lambda t: t.created_at, reverse=True)]

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        with self._lock:
            item = self._items.get(user_id, {}).get(task_id)
            return None if item is None else item.model_copy(deep=True)

    def save(self, user_id: str, task: Task) -> Task:
        stored = task.model_copy(deep=True)
        with self._lock:
            self._items.setdefault(user_id, {})[stored.id] = stored
        return stored.model_copy(deep=True)

    def delete(self, user_id: str, task_id: str) -> bool:
        with self._lock:
            return self._items.get(user_id, {}).pop(task_id, None) is not None

    def clear(self, user_id: str) -> int:
        with self._lock:
            return len(self._items.pop(user_id, {}))


class InMemoryAuditRepository(AuditRepository):
    """
    Thread-safe in-memory audit store.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._records: List[Tuple[int, ActivityRecord]] = []
        self._seq = 0

    def record(self, entry: ActivityRecord) -> None:
        with self._lock:
            self._seq += 1
            self._records.append((self._seq, dict(entry)))  # type: ignore[arg-type]

    def _newest_first(self, rows: List[Tuple[int, ActivityRecord]]) -> List[ActivityRecord]:
        rows = sorted(rows, key=lambda r: (r[1]["timestamp"], r[0]), reverse=True)
        return [dict(r) for _, r in rows]  # type: ignore[misc]

    def recent(self, user_id: str, limit: int) -> List[ActivityRecord]:
        with self._lock:
            rows = [r for r in self._records if r[1]["user_id"] == user_id]
            return self._newest_first(rows)[: max(limit, 0)]

    def for_task(self, user_id: str, task_id: str) -> List[ActivityRecord]:
        with self._lock:
            rows = [r for r in self._records if r[1]["user_id"] == user_id and r[1]["task_id"] == task_id]
            return self._newest_first(rows)


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, UserProfile] = {}

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            item = self._items.get(user_id)
            return None if item is None else item.model_copy()

    def save(self, user_id: str, profile: UserProfile) -> UserProfile:
        with self._lock:
            self._items[user_id] = profile.model_copy()
        return profile.model_copy()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_task_repository() -> TaskRepository:
    """
    Factory to return the configured task repository based on settings.
    - memory: InMemoryTaskRepository
    - sqlite: SQLiteTaskRepository
    The instance is shared for the lifetime of the process.
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteTaskRepository

        logger.info("Task repository: sqlite at {}", settings.sqlite_db_path)
        return SQLiteTaskRepository(settings.sqlite_db_path)
    logger.info("Task repository: memory")
    return InMemoryTaskRepository()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_audit_repository() -> AuditRepository:
    """
    Factory to return the configured audit repository based on settings.
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteAuditRepository

        return SQLiteAuditRepository(settings.sqlite_db_path)
    return InMemoryAuditRepository()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_profile_repository() -> ProfileRepository:
    """
    Factory to return the configured profile repository based on settings.
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteProfileRepository

        return SQLiteProfileRepository(settings.sqlite_db_path)
    return InMemoryProfileRepository()
