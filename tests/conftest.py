import os
from typing import Iterator, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

# Default to the memory backend so importing the app never touches the filesystem
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from study_tracker.schemas import Task, TaskDraft  # noqa: E402
from study_tracker.server.main import app  # noqa: E402
from study_tracker.server.repositories import (  # noqa: E402
    InMemoryAuditRepository,
    InMemoryProfileRepository,
    InMemoryTaskRepository,
    get_audit_repository,
    get_profile_repository,
    get_task_repository,
)
from study_tracker.session import AuthSession  # noqa: E402
from study_tracker.stores.local import LocalTaskStore, MemoryStorage  # noqa: E402
from study_tracker.stores.remote import RemoteTaskStore  # noqa: E402
from study_tracker.tasks import build_task  # noqa: E402

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"
API_BASE = "http://testserver/api"


class StepClock:
    """Deterministic clock returning the given instants, then repeating the last one."""

    def __init__(self, *instants: int) -> None:
        self._instants: List[int] = list(instants) or [1_000]
        self._last = self._instants[0]

    def __call__(self) -> int:
        if self._instants:
            self._last = self._instants.pop(0)
        return self._last


def make_task(
    title: str = "Revise chemistry",
    description: str = "1. Read chapter 4\n2. Do exercises",
    deadline: str = "2099-01-31",
    progress: int = 0,
    created_at: Optional[int] = None,
) -> Task:
    draft = TaskDraft(title=title, description=description, deadline=deadline, progress=progress)
    clock = (lambda: created_at) if created_at is not None else StepClock(1_700_000_000_000)
    return build_task(draft, clock=clock)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_TOKENS", f"{ALICE_TOKEN}:alice,{BOB_TOKEN}:bob")
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")


@pytest.fixture
def repos() -> Iterator[tuple]:
    """Fresh in-memory repositories wired into the app for one test."""
    tasks = InMemoryTaskRepository()
    audit = InMemoryAuditRepository()
    profiles = InMemoryProfileRepository()
    app.dependency_overrides[get_task_repository] = lambda: tasks
    app.dependency_overrides[get_audit_repository] = lambda: audit
    app.dependency_overrides[get_profile_repository] = lambda: profiles
    yield tasks, audit, profiles
    app.dependency_overrides.clear()


@pytest.fixture
def client(repos) -> TestClient:
    return TestClient(app)


@pytest.fixture
def alice() -> dict:
    return bearer(ALICE_TOKEN)


@pytest.fixture
def session() -> AuthSession:
    return AuthSession()


@pytest.fixture
def local_store() -> LocalTaskStore:
    return LocalTaskStore(MemoryStorage())


@pytest.fixture
def remote_store(repos, session: AuthSession) -> RemoteTaskStore:
    """Remote store talking to the app in-process."""
    return RemoteTaskStore(API_BASE, session, transport=httpx.ASGITransport(app=app))
