from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from loguru import logger

from .schemas import ActivityLogEntry, Subtask, Task, ThreadedEntry
from .utils import Clock, new_id, now_ms


class AuditSink(Protocol):
    """Second home for toggle log entries; owned by the user, not the task."""

    def record(self, task: Task, entry: ActivityLogEntry) -> None:
        ...


def _next_timestamp(task: Task, clock: Clock) -> int:
    newest = task.logs[0].timestamp if task.logs else 0
    return max(clock(), newest)


def system_message(subtask: Subtask, completed: bool) -> str:
    return f"{'Completed' if completed else 'Unchecked'}: {subtask.text}"


# PUBLIC_INTERFACE
def append_toggle_log(
    task: Task,
    subtask: Subtask,
    completed: bool,
    note: Optional[str] = None,
    *,
    clock: Clock = now_ms,
    audit: Optional[AuditSink] = None,
) -> List[ActivityLogEntry]:
    """
    Prepend the log entries of one toggle to `task.logs`.

    A non-blank note becomes a manual entry and the parent of the system entry
    written right after it. `task.progress` must already hold the new value.
    Every entry is also handed to `audit` when given.

    Returns the new entries in creation order.
    """
    created: List[ActivityLogEntry] = []
    parent_id: Optional[str] = None

    text = (note or "").strip()
    if text:
        manual = ActivityLogEntry(
            id=new_id(),
            timestamp=_next_timestamp(task, clock),
            message=text,
            progress=task.progress,
            parent_id=None,
            is_system_log=False,
        )
        task.logs.insert(0, manual)
        created.append(manual)
        parent_id = manual.id

    system = ActivityLogEntry(
        id=new_id(),
        timestamp=_next_timestamp(task, clock),
        message=system_message(subtask, completed),
        progress=task.progress,
        parent_id=parent_id,
        is_system_log=True,
    )
    task.logs.insert(0, system)
    created.append(system)

    if audit is not None:
        for entry in created:
            audit.record(task, entry)

    logger.debug("Logged toggle task={} subtask={} entries={}", task.id, subtask.id, len(created))
    return created


def _as_thread(entry: ActivityLogEntry) -> ThreadedEntry:
    return ThreadedEntry.model_validate({**entry.model_dump(), "children": []})


# PUBLIC_INTERFACE
def build_threads(entries: Sequence[ActivityLogEntry]) -> List[ThreadedEntry]:
    """
    Group log entries into two-level threads for display.

    Entries without a parent become top-level threads; entries with a parent
    are attached to it in encounter order. A child whose parent is unknown is
    promoted to its own top-level thread instead of being dropped.

    Top-level threads are sorted newest first; equal timestamps keep their
    input order, which for a newest-first log puts the later insertion first.
    """
    order: Dict[str, int] = {}
    parents: Dict[str, ThreadedEntry] = {}
    top_level: List[ThreadedEntry] = []
    children: List[ActivityLogEntry] = []

    for position, entry in enumerate(entries):
        order[entry.id] = position
        if entry.parent_id is None:
            thread = _as_thread(entry)
            parents.setdefault(entry.id, thread)
            top_level.append(thread)
        else:
            children.append(entry)

    for child in children:
        parent = parents.get(child.parent_id)  # type: ignore[arg-type]
        if parent is not None:
            parent.children.append(child)
        else:
            logger.debug("Orphan log entry {} (parent {}) promoted to top level", child.id, child.parent_id)
            top_level.append(_as_thread(child))

    return sorted(top_level, key=lambda t: (-t.timestamp, order[t.id]))
