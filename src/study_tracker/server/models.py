from __future__ import annotations

from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class ActivityRecord(TypedDict):
    """
    A durable audit record for non-ORM storage backends. Keyed by user and
    task; survives deletion of the task it describes.

    Fields:
    - id: Identifier shared with the entry embedded in the task log
    - user_id: Owner of the task when the entry was written
    - task_id: Task the entry belongs to
    - task_title: Task title at the time of the entry
    - message: Note text or system message
    - progress: Task progress snapshot (0..100)
    - timestamp: Epoch milliseconds
    - parent_id: Identifier of the parent note, if any
    - is_system_log: True for toggle-generated entries
    """

    id: str
    user_id: str
    task_id: str
    task_title: str
    message: str
    progress: int
    timestamp: int
    parent_id: Optional[str]
    is_system_log: bool
