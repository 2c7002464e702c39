from __future__ import annotations

from typing import Dict, Optional

from loguru import logger


class AuthSession:
    """
    Explicit authentication state handed to the accessor and the migration
    coordinator. Holds the opaque bearer credential attached to remote calls.
    """

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def authenticate(self, token: str) -> None:
        if not token or not token.strip():
            raise ValueError("token is required")
        self._token = token.strip()
        logger.info("Session authenticated")

    def deauthenticate(self) -> None:
        if self._token is not None:
            logger.info("Session deauthenticated")
        self._token = None

    def auth_header(self) -> Dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}
