from __future__ import annotations

import time
import uuid
from typing import Callable

# Returns the current instant as integer epoch milliseconds
Clock = Callable[[], int]


# PUBLIC_INTERFACE
def now_ms() -> int:
    """Return the current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


# PUBLIC_INTERFACE
def new_id() -> str:
    """Return a fresh globally unique identifier."""
    return str(uuid.uuid4())
