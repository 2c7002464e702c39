from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Union

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .. import progress
from ..errors import NotFoundError, TaskValidationError
from ..schemas import ProfileUpdate, Task, TaskUpdate, UserProfile
from ..tasks import apply_update
from ..utils import Clock, now_ms
from .base import TaskBackend

TASKS_KEY = "stt_guest_tasks"
PROFILE_KEY = "stt_guest_user"
API_KEY_KEY = "stt_guest_apikey"

_TASK_LIST = TypeAdapter(List[Task])


class KeyValueStorage(ABC):
    """String key/value storage scoped to one browsing context or user profile."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a string under key."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key if present."""


class MemoryStorage(KeyValueStorage):
    """
    Process-local storage suitable for testing and throwaway sessions.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """
    Durable storage keeping every key in one JSON object file. Writes go to a
    temporary file that atomically replaces the original.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Local storage file {} is not valid JSON; treating it as empty", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local storage file {} does not hold an object; treating it as empty", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, items: Dict[str, str]) -> None:
        fd, tmp = tempfile.mkstemp(dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, ensure_ascii=False)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._load()
            items[key] = value
            self._dump(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load()
            if items.pop(key, None) is not None:
                self._dump(items)


class LocalTaskStore(TaskBackend):
    """
    Local-only task store used while no authenticated session exists.

    The whole task collection lives as one JSON array under TASKS_KEY and is
    re-serialised on every write. Logs live only inside their task; there is
    no separate audit store in local mode.
    """

    name = "local"

    def __init__(self, storage: KeyValueStorage, *, clock: Clock = now_ms) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = asyncio.Lock()

    # ---- task collection ----

    def _read_tasks(self) -> List[Task]:
        raw = self._storage.get_item(TASKS_KEY)
        if not raw:
            return []
        try:
            return _TASK_LIST.validate_json(raw)
        except ValidationError as exc:
            logger.warning("Stored local tasks are unreadable, starting empty: {}", exc.errors(include_input=False))
            return []

    def _write_tasks(self, tasks: List[Task]) -> None:
        self._storage.set_item(TASKS_KEY, _TASK_LIST.dump_json(tasks, by_alias=True).decode("utf-8"))

    @staticmethod
    def _index_of(tasks: List[Task], task_id: str) -> int:
        for i, t in enumerate(tasks):
            if t.id == task_id:
                return i
        raise NotFoundError(f"Task {task_id} not found")

    async def list(self) -> List[Task]:
        return self._read_tasks()

    async def get(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._read_tasks() if t.id == task_id), None)

    async def save_all(self, tasks: List[Task]) -> None:
        """Replace the whole local task collection."""
        async with self._lock:
            self._write_tasks(list(tasks))

    async def create(self, task: Task) -> Task:
        stored = progress.normalize(task.model_copy(deep=True))
        async with self._lock:
            tasks = self._read_tasks()
            if any(t.id == stored.id for t in tasks):
                raise TaskValidationError(f"Task {stored.id} already exists")
            tasks.insert(0, stored)
            self._write_tasks(tasks)
        logger.debug("Local task created id={} subtasks={}", stored.id, len(stored.subtasks))
        return stored

    async def update(self, task_id: str, changes: TaskUpdate) -> Task:
        async with self._lock:
            tasks = self._read_tasks()
            i = self._index_of(tasks, task_id)
            tasks[i] = apply_update(tasks[i], changes)
            self._write_tasks(tasks)
            return tasks[i]

    async def toggle_subtask(
        self, task_id: str, subtask_id: str, completed: bool, note: Optional[str] = None
    ) -> Task:
        async with self._lock:
            tasks = self._read_tasks()
            i = self._index_of(tasks, task_id)
            tasks[i] = progress.toggle(tasks[i], subtask_id, completed, note, clock=self._clock)
            self._write_tasks(tasks)
            return tasks[i]

    async def delete(self, task_id: str) -> bool:
        async with self._lock:
            tasks = self._read_tasks()
            remaining = [t for t in tasks if t.id != task_id]
            self._write_tasks(remaining)
            return len(remaining) < len(tasks)

    async def clear_all(self) -> None:
        async with self._lock:
            self._storage.remove_item(TASKS_KEY)

    # ---- profile and credential ----

    def get_profile(self) -> Optional[UserProfile]:
        raw = self._storage.get_item(PROFILE_KEY)
        if not raw:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError:
            logger.warning("Stored local profile is unreadable; ignoring it")
            return None

    def save_profile(self, profile: UserProfile) -> None:
        self._storage.set_item(PROFILE_KEY, profile.model_dump_json(by_alias=True))

    def clear_profile(self) -> None:
        self._storage.remove_item(PROFILE_KEY)

    async def fetch_profile(self) -> Optional[UserProfile]:
        return self.get_profile()

    async def update_profile(self, changes: ProfileUpdate) -> UserProfile:
        profile = changes.to_profile()
        self.save_profile(profile)
        return profile

    def get_api_key(self) -> str:
        return self._storage.get_item(API_KEY_KEY) or ""

    def save_api_key(self, key: str) -> None:
        self._storage.set_item(API_KEY_KEY, key)

    def clear_api_key(self) -> None:
        self._storage.remove_item(API_KEY_KEY)

    def clear_guest_data(self) -> None:
        """Clear tasks, profile and API credential."""
        self._storage.remove_item(TASKS_KEY)
        self.clear_profile()
        self.clear_api_key()
