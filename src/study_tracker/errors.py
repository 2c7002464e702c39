from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .migration import MigrationResult


class TrackerError(Exception):
    """Base error for task engine and store failures.

    :param message: The primary error message.
    :param status_code: HTTP status of the remote response, if one was received.
    :param response_data: The decoded response body, if available.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data

    def __str__(self) -> str:
        base = self.args[0] if self.args else self.__class__.__name__
        if self.status_code is not None:
            return f"{base} (Status Code: {self.status_code})"
        return base


class TaskValidationError(TrackerError):
    """Malformed or missing fields, rejected before persistence."""


class NotFoundError(TrackerError):
    """A task or subtask id is absent from the target store."""


class AuthenticationError(TrackerError):
    """The remote rejected the credential as missing, expired or invalid."""


class TransportError(TrackerError):
    """The remote could not be reached."""


class RemoteStoreError(TrackerError):
    """The remote answered with a non-2xx status not covered by another error."""


class ToggleInFlightError(TrackerError):
    """A toggle for the same subtask is already being dispatched."""

    def __init__(self, subtask_id: str) -> None:
        super().__init__(f"Toggle already in flight for subtask {subtask_id}")
        self.subtask_id = subtask_id


class MigrationError(TrackerError):
    """Some local tasks could not be migrated; they remain in local storage."""

    def __init__(self, result: MigrationResult) -> None:
        super().__init__(
            f"Failed to migrate {result.failed} task(s). They remain in local storage."
        )
        self.result = result
