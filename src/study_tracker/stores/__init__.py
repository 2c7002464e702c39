from .base import TaskBackend
from .local import JsonFileStorage, KeyValueStorage, LocalTaskStore, MemoryStorage
from .remote import RemoteTaskStore

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "LocalTaskStore",
    "MemoryStorage",
    "RemoteTaskStore",
    "TaskBackend",
]
