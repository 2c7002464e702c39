from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..schemas import ProfileUpdate, Task, TaskUpdate, UserProfile


# PUBLIC_INTERFACE
class TaskBackend(ABC):
    """Task operation contract shared by the local-only and the remote store."""

    name: str = "backend"

    @abstractmethod
    async def list(self) -> List[Task]:
        """Return every task, newest first."""

    @abstractmethod
    async def get(self, task_id: str) -> Optional[Task]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    async def create(self, task: Task) -> Task:
        """Persist a fully materialised task and return the stored state."""

    @abstractmethod
    async def update(self, task_id: str, changes: TaskUpdate) -> Task:
        """Apply a partial update. Raise NotFoundError if the task is absent."""

    @abstractmethod
    async def toggle_subtask(
        self, task_id: str, subtask_id: str, completed: bool, note: Optional[str] = None
    ) -> Task:
        """Toggle one subtask and log it. Raise NotFoundError for an unknown task or subtask."""

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every task."""

    @abstractmethod
    async def fetch_profile(self) -> Optional[UserProfile]:
        """Return the user profile, or None if none was saved yet."""

    @abstractmethod
    async def update_profile(self, changes: ProfileUpdate) -> UserProfile:
        """Save the display name and mark the user as onboarded."""
