from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ...schemas import ActivityRecordOut
from ...settings import get_settings
from ..auth import get_current_user
from ..models import ActivityRecord
from ..repositories import AuditRepository, get_audit_repository

router = APIRouter(
    prefix="/api/logs",
    tags=["logs"],
)


def _to_out(record: ActivityRecord) -> ActivityRecordOut:
    return ActivityRecordOut(
        id=record["id"],
        task_id=record["task_id"],
        task_title=record["task_title"],
        message=record["message"],
        progress=record["progress"],
        timestamp=record["timestamp"],
        parent_id=record["parent_id"],
        is_system_log=record["is_system_log"],
    )


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ActivityRecordOut],
    summary="Recent Activity",
    description="The caller's most recent audit records across all tasks, newest first.",
)
def recent_activity(
    user_id: str = Depends(get_current_user),
    audit: AuditRepository = Depends(get_audit_repository),
) -> List[ActivityRecordOut]:
    """
    Bounded recency window over the durable audit store.
    """
    limit = get_settings().audit_recent_limit
    return [_to_out(r) for r in audit.recent(user_id, limit)]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=List[ActivityRecordOut],
    summary="Task Activity",
    description="Every audit record of one task, newest first. Available after the task is deleted.",
)
def task_activity(
    task_id: str,
    user_id: str = Depends(get_current_user),
    audit: AuditRepository = Depends(get_audit_repository),
) -> List[ActivityRecordOut]:
    """
    Full audit history of a task.
    """
    return [_to_out(r) for r in audit.for_task(user_id, task_id)]
