from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from .accessor import TaskAccessor
from .migration import MigrationCoordinator
from .session import AuthSession
from .settings import Settings, get_settings
from .stores.local import JsonFileStorage, KeyValueStorage, LocalTaskStore
from .stores.remote import RemoteTaskStore


@dataclass
class TrackerClient:
    """
    Client-side wiring: one session shared by the accessor and the migration
    coordinator, over one local and one remote store.
    """

    session: AuthSession
    local: LocalTaskStore
    remote: RemoteTaskStore
    accessor: TaskAccessor
    migration: MigrationCoordinator

    async def aclose(self) -> None:
        await self.remote.aclose()


# PUBLIC_INTERFACE
def create_client(
    session: Optional[AuthSession] = None,
    settings: Optional[Settings] = None,
    *,
    storage: Optional[KeyValueStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TrackerClient:
    """
    Build a TrackerClient from settings.

    `storage` defaults to a JsonFileStorage at LOCAL_STORE_PATH; `transport`
    is handed to the remote store's HTTP client (e.g. an ASGI transport).
    """
    settings = settings or get_settings()
    session = session or AuthSession()
    local = LocalTaskStore(storage or JsonFileStorage(settings.local_store_path))
    remote = RemoteTaskStore(settings.api_url, session, timeout=settings.request_timeout, transport=transport)
    return TrackerClient(
        session=session,
        local=local,
        remote=remote,
        accessor=TaskAccessor(local, remote, session),
        migration=MigrationCoordinator(local, remote, session),
    )
