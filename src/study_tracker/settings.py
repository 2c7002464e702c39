from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite' for the remote service
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/study_tracker.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - AUTH_TOKENS: comma-separated 'token:user_id' pairs accepted by the service
    - AUDIT_RECENT_LIMIT: number of audit records returned by /api/logs (default 100)
    - API_URL: base URL of the remote service used by the client
    - LOCAL_STORE_PATH: JSON file backing the local-only store
    - REQUEST_TIMEOUT: client request timeout in seconds (default 30)
    - LOG_LEVEL: minimum log level (default INFO)
    - LOG_FILE: optional log file path
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    audit_recent_limit: int
    api_url: str
    local_store_path: str
    request_timeout: float
    log_level: str
    log_file: Optional[str]
    auth_tokens: Dict[str, str] = field(default_factory=dict)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_tokens(tokens_value: str) -> Dict[str, str]:
    """
    Parse 'token:user_id' pairs. Malformed pairs are skipped.
    """
    tokens: Dict[str, str] = {}
    for pair in tokens_value.split(","):
        token, sep, user_id = pair.strip().partition(":")
        if sep and token.strip() and user_id.strip():
            tokens[token.strip()] = user_id.strip()
    return tokens


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    log_file = os.getenv("LOG_FILE") or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/study_tracker.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        audit_recent_limit=_parse_int(_get_env("AUDIT_RECENT_LIMIT", "100"), 100),
        api_url=_get_env("API_URL", "http://localhost:5000/api").strip().rstrip("/"),
        local_store_path=_get_env("LOCAL_STORE_PATH", "./data/local_store.json").strip(),
        request_timeout=_parse_float(_get_env("REQUEST_TIMEOUT", "30"), 30.0),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_file=log_file.strip() if log_file else None,
        auth_tokens=_parse_tokens(_get_env("AUTH_TOKENS", "")),
    )
