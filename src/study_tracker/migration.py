from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from loguru import logger

from .errors import MigrationError, TrackerError
from .session import AuthSession
from .stores.base import TaskBackend
from .stores.local import LocalTaskStore


@dataclass(frozen=True)
class MigrationResult:
    """
    Outcome of one migration pass.
    """
    success: int = 0
    failed: int = 0
    retained: Tuple[str, ...] = field(default_factory=tuple)  # ids still held locally


class MigrationCoordinator:
    """
    Moves local-only tasks into the remote backend after authentication.

    Tasks are sent one at a time straight to the remote backend (never through
    the accessor, whose local fallback would re-write a task it just read).
    Only tasks the server verifiably accepted leave local storage.
    """

    def __init__(self, local: LocalTaskStore, remote: TaskBackend, session: AuthSession) -> None:
        self._local = local
        self._remote = remote
        self._session = session

    async def migrate(self, *, raise_on_failure: bool = True) -> MigrationResult:
        """
        Run one migration pass.

        Every failure the remote store reports as a TrackerError (including
        transport and malformed-URL errors) is counted; anything else is a
        programming error and propagates.

        Raises:
            MigrationError: after the full pass, when at least one task failed
                and `raise_on_failure` is set. `exc.result` holds the counts.
        """
        if not self._session.is_authenticated:
            return MigrationResult()

        local_tasks = await self._local.list()
        if not local_tasks:
            return MigrationResult()

        migrated: List[str] = []
        retained: List[str] = []
        for task in local_tasks:
            try:
                await self._remote.create(task)
            except TrackerError as exc:
                logger.warning("Failed to migrate task {}: {}", task.id, exc)
                retained.append(task.id)
                continue
            migrated.append(task.id)

        if migrated:
            migrated_ids = set(migrated)
            await self._local.save_all([t for t in local_tasks if t.id not in migrated_ids])

        result = MigrationResult(success=len(migrated), failed=len(retained), retained=tuple(retained))
        logger.info("Migration finished: {} migrated, {} kept locally", result.success, result.failed)
        if result.failed and raise_on_failure:
            raise MigrationError(result)
        return result
