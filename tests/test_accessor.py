import asyncio
from typing import List, Optional

import pytest

from study_tracker.accessor import TaskAccessor
from study_tracker.errors import NotFoundError, TaskValidationError, ToggleInFlightError
from study_tracker.schemas import ProfileUpdate, Task, TaskUpdate, UserProfile
from study_tracker.stores.base import TaskBackend
from study_tracker.stores.local import LocalTaskStore, MemoryStorage

from conftest import ALICE_TOKEN, StepClock, make_task


class BlockingBackend(TaskBackend):
    """Backend whose toggle waits until released."""

    name = "blocking"

    def __init__(self, task: Task) -> None:
        self.task = task
        self.release = asyncio.Event()
        self.toggles: List[str] = []

    async def list(self) -> List[Task]:
        return [self.task]

    async def get(self, task_id: str) -> Optional[Task]:
        return self.task if task_id == self.task.id else None

    async def create(self, task: Task) -> Task:
        return task

    async def update(self, task_id: str, changes: TaskUpdate) -> Task:
        return self.task

    async def toggle_subtask(self, task_id, subtask_id, completed, note=None) -> Task:
        self.toggles.append(subtask_id)
        await self.release.wait()
        return self.task

    async def delete(self, task_id: str) -> bool:
        return True

    async def clear_all(self) -> None:
        return None

    async def fetch_profile(self) -> Optional[UserProfile]:
        return None

    async def update_profile(self, changes: ProfileUpdate) -> UserProfile:
        return changes.to_profile()


@pytest.fixture
def accessor(local_store, remote_store, session) -> TaskAccessor:
    return TaskAccessor(local_store, remote_store, session, clock=StepClock(1_700_000_000_000))


class TestDispatch:
    @pytest.mark.asyncio
    async def test_guest_uses_local_store(self, accessor, local_store, repos):
        created = await accessor.create(accessor.draft(title="Guest task", description="- a", deadline="2099-01-01"))
        assert [t.id for t in await local_store.list()] == [created.id]
        assert repos[0].list("alice") == []
        assert accessor.backend() is local_store

    @pytest.mark.asyncio
    async def test_authenticated_uses_remote_store(self, accessor, local_store, remote_store, repos, session):
        session.authenticate(ALICE_TOKEN)
        created = await accessor.create(accessor.draft(title="Remote task", deadline="2099-01-01"))
        assert [t.id for t in repos[0].list("alice")] == [created.id]
        assert await local_store.list() == []
        assert accessor.backend() is remote_store
        await remote_store.aclose()

    @pytest.mark.asyncio
    async def test_rejected_credential_falls_back_to_local(self, accessor, local_store, remote_store, session):
        session.authenticate("expired-token")
        created = await accessor.create(accessor.draft(title="Fallback", deadline="2099-01-01"))
        assert session.is_authenticated is False
        assert [t.id for t in await local_store.list()] == [created.id]
        await remote_store.aclose()

    @pytest.mark.asyncio
    async def test_create_materialises_task(self, accessor):
        created = await accessor.create(
            accessor.draft(title="  Revise  ", description="1. Read\n2. Write", deadline="2099-01-01", status="Completed")
        )
        assert created.title == "Revise"
        assert [s.text for s in created.subtasks] == ["Read", "Write"]
        assert created.created_at == 1_700_000_000_000
        assert created.progress == 0
        assert created.status.value == "Pending"
        assert created.logs == []


class TestUpdate:
    @pytest.mark.asyncio
    async def test_description_edit_keeps_surviving_subtasks(self, accessor):
        created = await accessor.create(accessor.draft(title="T", description="1. Read\n2. Write", deadline="2099-01-01"))
        read = created.subtasks[0]
        await accessor.toggle_subtask(created.id, read.id, True)

        updated = await accessor.update(created.id, accessor.changes(description="1. Read\n2. Review\n3. Write"))
        assert [s.text for s in updated.subtasks] == ["Read", "Review", "Write"]
        assert updated.subtasks[0].id == read.id
        assert updated.subtasks[0].completed is True
        assert updated.subtasks[2].id == created.subtasks[1].id
        assert updated.progress == 33

    @pytest.mark.asyncio
    async def test_unchanged_description_leaves_checklist(self, accessor):
        created = await accessor.create(accessor.draft(title="T", description="- a\n- b", deadline="2099-01-01"))
        updated = await accessor.update(created.id, accessor.changes(title="New", description="- a\n- b"))
        assert updated.title == "New"
        assert updated.subtasks == created.subtasks

    @pytest.mark.asyncio
    async def test_removing_checklist_keeps_progress(self, accessor):
        created = await accessor.create(accessor.draft(title="T", description="- a\n- b", deadline="2099-01-01"))
        toggled = await accessor.toggle_subtask(created.id, created.subtasks[0].id, True)
        updated = await accessor.update(created.id, accessor.changes(description="now prose"))
        assert updated.subtasks == []
        assert updated.progress == toggled.progress == 50

    @pytest.mark.asyncio
    async def test_update_missing_task(self, accessor):
        with pytest.raises(NotFoundError):
            await accessor.update("missing", accessor.changes(title="x"))

    @pytest.mark.asyncio
    async def test_remote_update_reextracts(self, accessor, session, remote_store):
        session.authenticate(ALICE_TOKEN)
        created = await accessor.create(accessor.draft(title="T", description="- a", deadline="2099-01-01"))
        await accessor.toggle_subtask(created.id, created.subtasks[0].id, True)
        updated = await accessor.update(created.id, accessor.changes(description="- a\n- b"))
        assert [(s.text, s.completed) for s in updated.subtasks] == [("a", True), ("b", False)]
        assert updated.progress == 50
        await remote_store.aclose()


class TestValidation:
    def test_draft_requires_title_and_deadline(self):
        with pytest.raises(TaskValidationError):
            TaskAccessor.draft(title="   ", deadline="2099-01-01")
        with pytest.raises(TaskValidationError):
            TaskAccessor.draft(title="ok")
        with pytest.raises(TaskValidationError):
            TaskAccessor.draft(title="ok", deadline="not a date")

    def test_changes_rejects_bad_progress(self):
        with pytest.raises(TaskValidationError):
            TaskAccessor.changes(progress=101)


class TestProfile:
    @pytest.mark.asyncio
    async def test_guest_profile_is_local(self, accessor, local_store, repos):
        assert await accessor.profile() is None
        saved = await accessor.save_profile("  Sam ")
        assert saved == UserProfile(name="Sam", has_onboarded=True)
        assert local_store.get_profile() == saved
        assert await accessor.profile() == saved
        assert repos[2].get("alice") is None

    @pytest.mark.asyncio
    async def test_authenticated_profile_is_remote(self, accessor, local_store, remote_store, repos, session):
        session.authenticate(ALICE_TOKEN)
        saved = await accessor.save_profile("Sam")
        assert repos[2].get("alice") == saved
        assert local_store.get_profile() is None
        assert await accessor.profile() == saved
        await remote_store.aclose()

    @pytest.mark.asyncio
    async def test_rejected_credential_saves_locally(self, accessor, local_store, remote_store, session):
        session.authenticate("expired-token")
        saved = await accessor.save_profile("Sam")
        assert session.is_authenticated is False
        assert local_store.get_profile() == saved
        await remote_store.aclose()

    @pytest.mark.asyncio
    async def test_short_name_rejected_before_any_store(self, session):
        backend = BlockingBackend(make_task())
        calls = []

        async def update_profile(changes):
            calls.append(changes)
            return changes.to_profile()

        backend.update_profile = update_profile
        accessor = TaskAccessor(backend, backend, session)
        with pytest.raises(TaskValidationError):
            await accessor.save_profile(" x ")
        assert calls == []


class TestToggleGuard:
    @pytest.mark.asyncio
    async def test_second_toggle_rejected_while_first_in_flight(self, session):
        task = make_task()
        backend = BlockingBackend(task)
        accessor = TaskAccessor(backend, backend, session)
        sid = task.subtasks[0].id

        first = asyncio.create_task(accessor.toggle_subtask(task.id, sid, True))
        await asyncio.sleep(0)
        assert accessor.is_in_flight(sid)

        with pytest.raises(ToggleInFlightError):
            await accessor.toggle_subtask(task.id, sid, True)

        # other subtasks are not blocked
        other = asyncio.create_task(accessor.toggle_subtask(task.id, task.subtasks[1].id, True))
        await asyncio.sleep(0)

        backend.release.set()
        await asyncio.gather(first, other)
        assert backend.toggles == [sid, task.subtasks[1].id]
        assert not accessor.is_in_flight(sid)

        # released once resolved
        await accessor.toggle_subtask(task.id, sid, False)
        assert backend.toggles[-1] == sid

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, accessor):
        with pytest.raises(NotFoundError):
            await accessor.toggle_subtask("missing", "sub", True)
        assert not accessor.is_in_flight("sub")


class TestThreads:
    @pytest.mark.asyncio
    async def test_threads_of_task(self, accessor):
        created = await accessor.create(accessor.draft(title="T", description="- a", deadline="2099-01-01"))
        toggled = await accessor.toggle_subtask(created.id, created.subtasks[0].id, True, "note")
        threads = TaskAccessor.threads(toggled)
        assert len(threads) == 1
        assert threads[0].message == "note"
        assert threads[0].children[0].message == "Completed: a"

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, accessor, local_store):
        created = await accessor.create(accessor.draft(title="T", deadline="2099-01-01"))
        assert await accessor.delete(created.id) is True
        assert await accessor.delete(created.id) is False
        await accessor.create(accessor.draft(title="U", deadline="2099-01-01"))
        await accessor.clear_all()
        assert await local_store.list() == []


class SuspendingLocalStore(LocalTaskStore):
    """Real local store whose toggle waits until released before running."""

    def __init__(self) -> None:
        super().__init__(MemoryStorage())
        self.release = asyncio.Event()

    async def toggle_subtask(self, task_id, subtask_id, completed, note=None) -> Task:
        await self.release.wait()
        return await super().toggle_subtask(task_id, subtask_id, completed, note)


class TestConcurrentToggle:
    @pytest.mark.asyncio
    async def test_duplicate_toggle_appends_one_log_pair(self, session):
        store = SuspendingLocalStore()
        task = await store.create(make_task())
        accessor = TaskAccessor(store, store, session)
        sid = task.subtasks[0].id

        first = asyncio.create_task(accessor.toggle_subtask(task.id, sid, True, "first note"))
        second = asyncio.create_task(accessor.toggle_subtask(task.id, sid, True, "second note"))
        await asyncio.sleep(0)
        store.release.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert isinstance(results[0], Task)
        assert isinstance(results[1], ToggleInFlightError)

        stored = await store.get(task.id)
        assert len(stored.logs) == 2
        system, manual = stored.logs
        assert manual.message == "first note"
        assert manual.is_system_log is False
        assert system.is_system_log is True
        assert system.parent_id == manual.id
        assert stored.progress == 50
