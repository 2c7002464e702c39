from __future__ import annotations

from typing import Optional

from .checklist import extract
from .progress import normalize
from .schemas import Task, TaskDraft, TaskUpdate
from .utils import Clock, new_id, now_ms

# Fields that may not be cleared by an explicit null in an update
_NON_NULLABLE = {"title", "deadline", "progress", "subtasks"}


# PUBLIC_INTERFACE
def build_task(draft: TaskDraft, *, clock: Clock = now_ms, task_id: Optional[str] = None) -> Task:
    """
    Materialise a draft into a full task: client-generated id, creation
    instant, empty log and the checklist extracted from the description.
    """
    task = Task(
        id=task_id or new_id(),
        title=draft.title,
        description=draft.description,
        subtasks=extract(draft.description),
        deadline=draft.deadline,
        progress=draft.progress,
        created_at=clock(),
        logs=[],
    )
    return normalize(task)


# PUBLIC_INTERFACE
def apply_update(task: Task, changes: TaskUpdate) -> Task:
    """
    Return a copy of `task` with the fields explicitly set in `changes`
    applied and the progress/status invariant re-established.

    A supplied status is ignored; it is always derived from progress.
    """
    updated = task.model_copy(deep=True)
    for name in changes.model_fields_set:
        if name == "status":
            continue
        value = getattr(changes, name)
        if value is None:
            if name in _NON_NULLABLE:
                continue
            if name == "description":
                value = ""
        setattr(updated, name, value)
    return normalize(updated)


# PUBLIC_INTERFACE
def with_reextracted_checklist(current: Task, changes: TaskUpdate) -> TaskUpdate:
    """
    Attach a re-extracted checklist to `changes` when the description changed.

    Lines whose text survives the edit keep their id and completion. An absent
    or unchanged description leaves `changes` as given.
    """
    if "description" not in changes.model_fields_set or changes.description is None:
        return changes
    if changes.description == current.description:
        return changes
    subtasks = extract(changes.description, current.subtasks)
    return changes.model_copy(update={"subtasks": subtasks})
