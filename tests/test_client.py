import httpx
import pytest

from study_tracker import create_client
from study_tracker.server.main import app
from study_tracker.session import AuthSession
from study_tracker.settings import get_settings
from study_tracker.stores.local import MemoryStorage

from conftest import ALICE_TOKEN, API_BASE


class TestAuthSession:
    def test_lifecycle(self):
        session = AuthSession()
        assert session.is_authenticated is False
        assert session.auth_header() == {}
        session.authenticate("  abc  ")
        assert session.token == "abc"
        assert session.auth_header() == {"Authorization": "Bearer abc"}
        session.deauthenticate()
        assert session.token is None

    def test_blank_token_rejected(self):
        with pytest.raises(ValueError):
            AuthSession().authenticate("  ")


class TestCreateClient:
    def test_wiring_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("API_URL", "https://tracker.test/api/")
        monkeypatch.setenv("LOCAL_STORE_PATH", str(tmp_path / "local.json"))
        client = create_client()
        assert client.remote.base_url == "https://tracker.test/api"
        assert client.accessor.session is client.session
        assert client.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_guest_then_login_and_migrate(self, monkeypatch, repos):
        monkeypatch.setenv("API_URL", API_BASE)
        client = create_client(
            settings=get_settings(),
            storage=MemoryStorage(),
            transport=httpx.ASGITransport(app=app),
        )
        try:
            draft = client.accessor.draft(title="Guest work", description="- one\n- two", deadline="2099-01-01")
            task = await client.accessor.create(draft)
            await client.accessor.toggle_subtask(task.id, task.subtasks[0].id, True, "started")

            client.session.authenticate(ALICE_TOKEN)
            result = await client.migration.migrate()
            assert result.success == 1

            remote_tasks = await client.accessor.list()
            assert [t.id for t in remote_tasks] == [task.id]
            assert remote_tasks[0].progress == 50
            assert await client.local.list() == []
        finally:
            await client.aclose()
