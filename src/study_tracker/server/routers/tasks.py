from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from ... import progress
from ...errors import NotFoundError
from ...schemas import Task, TaskUpdate, ToggleRequest
from ...tasks import apply_update
from ..auth import get_current_user
from ..repositories import (
    AuditRepository,
    TaskRepository,
    UserAuditSink,
    get_audit_repository,
    get_task_repository,
)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


def _not_found(detail: str = "Task not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[Task],
    summary="List Tasks",
    description="List the caller's tasks, newest first.",
    responses={
        200: {"description": "List retrieved successfully"},
        401: {"description": "Missing or invalid credential"},
    },
)
def list_tasks(
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> List[Task]:
    """
    List tasks of the authenticated user.
    """
    return repo.list(user_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=Task,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description=(
        "Store a fully materialised task sent by the client (client-generated id, "
        "checklist and log included). Progress and status are re-derived. Repeating "
        "an id the caller already owns returns the stored task with status 200."
    ),
    responses={
        201: {"description": "Task created successfully"},
        200: {"description": "Task already existed; stored state returned"},
        422: {"description": "Validation error"},
    },
)
def create_task(
    payload: Task,
    response: Response,
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> Task:
    """
    Create a task for the authenticated user.
    """
    existing = repo.get(user_id, payload.id)
    if existing is not None:
        logger.info("Task {} already stored for user {}; create is a no-op", payload.id, user_id)
        response.status_code = status.HTTP_200_OK
        return existing
    created = repo.save(user_id, progress.normalize(payload))
    logger.debug("Task created id={} user={}", created.id, user_id)
    return created


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=Task,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> Task:
    """
    Retrieve a single task by its ID.
    """
    task = repo.get(user_id, task_id)
    if task is None:
        raise _not_found()
    return task


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=Task,
    summary="Update Task",
    description=(
        "Partially update a task. Only fields present in the body are applied; "
        "progress and status are re-derived afterwards."
    ),
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
    },
)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> Task:
    """
    Partial update of a task.
    """
    current = repo.get(user_id, task_id)
    if current is None:
        raise _not_found()
    return repo.save(user_id, apply_update(current, payload))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/subtasks/{subtask_id}",
    response_model=Task,
    summary="Toggle Subtask",
    description=(
        "Set a subtask's completion. Recomputes progress and status, prepends an "
        "optional manual note and a system entry to the task log, and mirrors both "
        "into the durable audit store."
    ),
    responses={
        200: {"description": "Subtask toggled; full task returned"},
        404: {"description": "Task or subtask not found"},
    },
)
def toggle_subtask(
    task_id: str,
    subtask_id: str,
    payload: ToggleRequest,
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    audit: AuditRepository = Depends(get_audit_repository),
) -> Task:
    """
    Toggle a subtask with threaded logging.
    """
    task = repo.get(user_id, task_id)
    if task is None:
        raise _not_found()
    try:
        updated = progress.toggle(
            task,
            subtask_id,
            payload.completed,
            payload.log_message,
            audit=UserAuditSink(audit, user_id),
        )
    except NotFoundError:
        raise _not_found("Subtask not found") from None
    return repo.save(user_id, updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task by ID. Its audit records are kept.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    if not repo.delete(user_id, task_id):
        raise _not_found()
    return None


# PUBLIC_INTERFACE
@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear Tasks",
    description="Delete every task of the caller. The audit store is kept.",
    responses={204: {"description": "All tasks cleared"}},
)
def clear_tasks(
    user_id: str = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
) -> None:
    """
    Clear all tasks of the authenticated user.
    """
    removed = repo.clear(user_id)
    logger.info("Cleared {} task(s) for user {}", removed, user_id)
    return None
