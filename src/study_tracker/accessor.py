from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Set, TypeVar

from loguru import logger
from pydantic import ValidationError

from .activity import build_threads
from .errors import AuthenticationError, NotFoundError, TaskValidationError, ToggleInFlightError
from .schemas import ProfileUpdate, Task, TaskDraft, TaskUpdate, ThreadedEntry, UserProfile
from .session import AuthSession
from .stores.base import TaskBackend
from .tasks import build_task, with_reextracted_checklist
from .utils import Clock, now_ms

T = TypeVar("T")


class TaskAccessor:
    """
    Single entry point for task operations over the local and remote backends.

    The backend is chosen per call from the session: remote when it holds a
    credential, local otherwise. When the remote rejects the credential the
    session is deauthenticated and the same operation is replayed locally, so
    a successful result does not say where it was stored; check
    `session.is_authenticated` before the call when that matters.
    """

    def __init__(
        self,
        local: TaskBackend,
        remote: TaskBackend,
        session: AuthSession,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self._local = local
        self._remote = remote
        self._session = session
        self._clock = clock
        self._in_flight: Set[str] = set()

    @property
    def session(self) -> AuthSession:
        return self._session

    def backend(self) -> TaskBackend:
        """The backend the next call would be dispatched to."""
        return self._remote if self._session.is_authenticated else self._local

    async def _dispatch(self, operation: str, call: Callable[[TaskBackend], Awaitable[T]]) -> T:
        if not self._session.is_authenticated:
            return await call(self._local)
        try:
            return await call(self._remote)
        except AuthenticationError:
            logger.info("Remote rejected the credential during {}; continuing with the local store", operation)
            self._session.deauthenticate()
            return await call(self._local)

    # ---- operations ----

    async def list(self) -> List[Task]:
        return await self._dispatch("list", lambda store: store.list())

    async def create(self, draft: TaskDraft) -> Task:
        task = build_task(draft, clock=self._clock)
        return await self._dispatch("create", lambda store: store.create(task))

    async def update(self, task_id: str, changes: TaskUpdate) -> Task:
        async def _update(store: TaskBackend) -> Task:
            current = await store.get(task_id)
            if current is None:
                raise NotFoundError(f"Task {task_id} not found")
            return await store.update(task_id, with_reextracted_checklist(current, changes))

        return await self._dispatch("update", _update)

    async def toggle_subtask(
        self, task_id: str, subtask_id: str, completed: bool, note: Optional[str] = None
    ) -> Task:
        """
        Toggle one subtask. A second toggle for a subtask whose first toggle
        has not resolved yet is rejected with ToggleInFlightError and never
        dispatched.
        """
        if subtask_id in self._in_flight:
            logger.debug("Toggle for subtask {} already in flight; rejected", subtask_id)
            raise ToggleInFlightError(subtask_id)
        self._in_flight.add(subtask_id)
        try:
            return await self._dispatch(
                "toggle_subtask",
                lambda store: store.toggle_subtask(task_id, subtask_id, completed, note),
            )
        finally:
            self._in_flight.discard(subtask_id)

    def is_in_flight(self, subtask_id: str) -> bool:
        return subtask_id in self._in_flight

    async def delete(self, task_id: str) -> bool:
        return await self._dispatch("delete", lambda store: store.delete(task_id))

    async def clear_all(self) -> None:
        await self._dispatch("clear_all", lambda store: store.clear_all())

    async def profile(self) -> Optional[UserProfile]:
        return await self._dispatch("profile", lambda store: store.fetch_profile())

    async def save_profile(self, name: str) -> UserProfile:
        """
        Save the display name (trimmed, at least 2 characters) and mark the
        user as onboarded. Invalid names raise TaskValidationError before any
        store is touched.
        """
        try:
            changes = ProfileUpdate(name=name)
        except ValidationError as exc:
            raise TaskValidationError(f"Invalid profile: {exc.errors(include_input=False)}") from exc
        return await self._dispatch("save_profile", lambda store: store.update_profile(changes))

    # ---- helpers ----

    @staticmethod
    def draft(**fields: object) -> TaskDraft:
        """Validate caller input into a TaskDraft, raising TaskValidationError."""
        try:
            return TaskDraft.model_validate(fields)
        except ValidationError as exc:
            raise TaskValidationError(f"Invalid task: {exc.errors(include_input=False)}") from exc

    @staticmethod
    def changes(**fields: object) -> TaskUpdate:
        """Validate caller input into a TaskUpdate, raising TaskValidationError."""
        try:
            return TaskUpdate.model_validate(fields)
        except ValidationError as exc:
            raise TaskValidationError(f"Invalid update: {exc.errors(include_input=False)}") from exc

    @staticmethod
    def threads(task: Task) -> List[ThreadedEntry]:
        return build_threads(task.logs)
