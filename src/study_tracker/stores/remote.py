"""Asynchronous client store for the remote study tracker service."""
from __future__ import annotations

from typing import Any, List, NoReturn, Optional, Type

import httpx
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import (
    AuthenticationError,
    NotFoundError,
    RemoteStoreError,
    TaskValidationError,
    TransportError,
)
from ..schemas import ActivityRecordOut, ProfileUpdate, Task, TaskUpdate, ToggleRequest, UserProfile
from ..session import AuthSession
from .base import TaskBackend

CODE_UNAUTHORIZED = 401
CODE_NOT_FOUND = 404
CODES_VALIDATION = frozenset({400, 409, 422})
DEFAULT_TIMEOUT_SECONDS = 30.0

_TASK_LIST = TypeAdapter(List[Task])
_RECORD_LIST = TypeAdapter(List[ActivityRecordOut])


def _error_detail(response: httpx.Response) -> Any:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return data.get("detail") or data.get("error") or data
    return data


class RemoteTaskStore(TaskBackend):
    """
    Task backend talking to the remote service over HTTP/JSON.

    The server is authoritative for computed fields: every successful call
    returns the task exactly as the server materialised it. The bearer
    credential is read from the session on every request.
    """

    name = "remote"

    def __init__(
        self,
        base_url: str,
        session: AuthSession,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """The shared `httpx.AsyncClient`, created on first use."""
        if self._client is None or self._client.is_closed:
            logger.debug("Initializing new httpx.AsyncClient for {}", self.base_url)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> RemoteTaskStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # ---- request plumbing ----

    async def _request(self, method: str, path: str, json: Any = None) -> httpx.Response:
        endpoint = path.lstrip("/")
        logger.debug("Requesting {} {}/{}", method, self.base_url, endpoint)
        try:
            response = await self.http_client.request(
                method, endpoint, json=json, headers=self._session.auth_header()
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Transport error for {} {}: {}", method, endpoint, exc)
            raise TransportError(f"Remote unreachable: {exc.__class__.__name__} - {exc}") from exc
        if response.is_success:
            return response
        self._raise_for_status(response, method, endpoint)

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> NoReturn:
        status = response.status_code
        detail = _error_detail(response)
        logger.warning("{} {} failed: {} - {}", method, endpoint, status, detail)
        if status == CODE_UNAUTHORIZED:
            raise AuthenticationError(f"Not authenticated: {detail}", status, detail)
        if status == CODE_NOT_FOUND:
            raise NotFoundError(str(detail), status, detail)
        if status in CODES_VALIDATION:
            raise TaskValidationError(f"Rejected by server: {detail}", status, detail)
        raise RemoteStoreError(f"Request failed with HTTP status {status}: {detail}", status, detail)

    @staticmethod
    def _parse(response: httpx.Response, adapter: Any) -> Any:
        try:
            return adapter.validate_json(response.content)
        except ValidationError as exc:
            raise RemoteStoreError(
                f"Unexpected response body: {exc.errors(include_input=False)}",
                response.status_code,
                response.text[:200],
            ) from exc

    def _parse_model(self, response: httpx.Response, model: Type[BaseModel]) -> Any:
        return self._parse(response, TypeAdapter(model))

    @staticmethod
    def _body(model: BaseModel, **kwargs: Any) -> Any:
        return model.model_dump(by_alias=True, mode="json", **kwargs)

    # ---- task operations ----

    async def list(self) -> List[Task]:
        return self._parse(await self._request("GET", "tasks"), _TASK_LIST)

    async def get(self, task_id: str) -> Optional[Task]:
        try:
            response = await self._request("GET", f"tasks/{task_id}")
        except NotFoundError:
            return None
        return self._parse_model(response, Task)

    async def create(self, task: Task) -> Task:
        response = await self._request("POST", "tasks", json=self._body(task))
        return self._parse_model(response, Task)

    async def update(self, task_id: str, changes: TaskUpdate) -> Task:
        response = await self._request("PUT", f"tasks/{task_id}", json=self._body(changes, exclude_unset=True))
        return self._parse_model(response, Task)

    async def toggle_subtask(
        self, task_id: str, subtask_id: str, completed: bool, note: Optional[str] = None
    ) -> Task:
        body = ToggleRequest(completed=completed, log_message=note)
        response = await self._request("PATCH", f"tasks/{task_id}/subtasks/{subtask_id}", json=self._body(body))
        return self._parse_model(response, Task)

    async def delete(self, task_id: str) -> bool:
        try:
            await self._request("DELETE", f"tasks/{task_id}")
        except NotFoundError:
            return False
        return True

    async def clear_all(self) -> None:
        await self._request("DELETE", "tasks")

    # ---- account profile ----

    async def fetch_profile(self) -> Optional[UserProfile]:
        try:
            response = await self._request("GET", "user")
        except NotFoundError:
            return None
        return self._parse_model(response, UserProfile)

    async def update_profile(self, changes: ProfileUpdate) -> UserProfile:
        response = await self._request("POST", "user", json=self._body(changes))
        return self._parse_model(response, UserProfile)

    # ---- durable audit store ----

    async def activity(self, task_id: Optional[str] = None) -> List[ActivityRecordOut]:
        """
        Read the durable audit store: the most recent records of the user, or
        every record of one task (also after that task was deleted).
        """
        path = f"logs/{task_id}" if task_id else "logs"
        return self._parse(await self._request("GET", path), _RECORD_LIST)
