"""
Checklist extraction from free-text task descriptions.

Recognised line shapes, tried in order after trimming the line:

    1. Read chapter 4
    2) Do exercises
    - Past paper
    * Flashcards

Anything else is ignored. Extraction is pure: the same description with the
previous result passed back in yields identical identifiers and completion.
"""
from __future__ import annotations

import re
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from .schemas import Subtask
from .utils import new_id

_PATTERNS = (
    re.compile(r"^\d+\.\s+(.+)$"),
    re.compile(r"^\d+\)\s+(.+)$"),
    re.compile(r"^-\s+(.+)$"),
    re.compile(r"^\*\s+(.+)$"),
)


def _match_line(line: str) -> Optional[str]:
    trimmed = line.strip()
    for pattern in _PATTERNS:
        match = pattern.match(trimmed)
        if match:
            return match.group(1).strip()
    return None


# PUBLIC_INTERFACE
def extract(description: Optional[str], previous: Optional[Sequence[Subtask]] = None) -> List[Subtask]:
    """
    Parse a description into an ordered checklist.

    Lines whose trimmed text equals a subtask in `previous` keep that subtask's
    id and completion; other lines get a fresh id and completed=False. Each
    previous subtask is claimed at most once: repeated lines take repeated
    previous subtasks in order, and surplus repeats get fresh ids.
    """
    if not description:
        return []

    known: Dict[str, Deque[Subtask]] = {}
    for old in previous or ():
        known.setdefault(old.text.strip(), deque()).append(old)

    subtasks: List[Subtask] = []
    for line in description.splitlines():
        text = _match_line(line)
        if text is None:
            continue
        queue = known.get(text)
        if queue:
            existing = queue.popleft()
            subtasks.append(Subtask(id=existing.id, text=text, completed=existing.completed))
        else:
            subtasks.append(Subtask(id=new_id(), text=text, completed=False))
    return subtasks
