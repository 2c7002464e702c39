from __future__ import annotations

from typing import Optional, Sequence

from loguru import logger

from .activity import AuditSink, append_toggle_log
from .errors import NotFoundError
from .schemas import Subtask, Task, TaskStatus
from .utils import Clock, now_ms


# PUBLIC_INTERFACE
def compute_progress(subtasks: Sequence[Subtask]) -> Optional[int]:
    """
    Percentage of completed subtasks, rounded half up.

    Returns None for an empty checklist: progress is then caller-set.
    """
    total = len(subtasks)
    if total == 0:
        return None
    done = sum(1 for s in subtasks if s.completed)
    # floor(100 * done / total + 0.5) in integer arithmetic
    return (200 * done + total) // (2 * total)


# PUBLIC_INTERFACE
def derive_status(progress: int) -> TaskStatus:
    """Map progress to status: 100 Completed, 1..99 In Progress, 0 Pending."""
    if progress >= 100:
        return TaskStatus.COMPLETED
    if progress > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.PENDING


# PUBLIC_INTERFACE
def normalize(task: Task) -> Task:
    """
    Re-apply the progress/status invariant to `task` in place and return it.
    """
    derived = compute_progress(task.subtasks)
    if derived is not None:
        task.progress = derived
    task.status = derive_status(task.progress)
    return task


# PUBLIC_INTERFACE
def toggle(
    task: Task,
    subtask_id: str,
    completed: bool,
    note: Optional[str] = None,
    *,
    clock: Clock = now_ms,
    audit: Optional[AuditSink] = None,
) -> Task:
    """
    Set one subtask's completion and return the updated copy of `task`.

    Progress and status are recomputed and one log sequence is appended, even
    when the subtask already had the requested value. With an empty checklist
    the task is returned unchanged.

    Raises:
        NotFoundError: the checklist is non-empty and has no `subtask_id`.
    """
    updated = task.model_copy(deep=True)
    if not updated.subtasks:
        logger.warning("Toggle on task {} without a checklist ignored", task.id)
        return updated

    subtask = next((s for s in updated.subtasks if s.id == subtask_id), None)
    if subtask is None:
        raise NotFoundError(f"Subtask {subtask_id} not found in task {task.id}")

    subtask.completed = completed
    normalize(updated)
    append_toggle_log(updated, subtask, completed, note, clock=clock, audit=audit)
    return updated
