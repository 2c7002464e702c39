from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, List, Optional

from ..schemas import Task, UserProfile
from .models import ActivityRecord
from .repositories import AuditRepository, ProfileRepository, TaskRepository


@dataclass(frozen=True)
class _TaskCols:
    table: str = "tasks"
    user_id: str = "user_id"
    id: str = "id"
    created_at: str = "created_at"
    body: str = "body"


@dataclass(frozen=True)
class _LogCols:
    table: str = "activity_log"
    seq: str = "seq"
    id: str = "id"
    user_id: str = "user_id"
    task_id: str = "task_id"
    task_title: str = "task_title"
    message: str = "message"
    progress: str = "progress"
    timestamp: str = "timestamp"
    parent_id: str = "parent_id"
    is_system_log: str = "is_system_log"


@dataclass(frozen=True)
class _ProfileCols:
    table: str = "profiles"
    user_id: str = "user_id"
    body: str = "body"


_T = _TaskCols()
_L = _LogCols()
_P = _ProfileCols()


class _SQLiteBase:
    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        raise NotImplementedError


class SQLiteTaskRepository(_SQLiteBase, TaskRepository):
    """
    Lightweight SQLite repository storing each task as a JSON document.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.table} (
                    {_T.user_id} TEXT NOT NULL,
                    {_T.id} TEXT NOT NULL,
                    {_T.created_at} INTEGER NOT NULL,
                    {_T.body} TEXT NOT NULL,
                    PRIMARY KEY ({_T.user_id}, {_T.id})
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_user_created ON {_T.table}({_T.user_id}, {_T.created_at})"
            )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task.model_validate_json(row[_T.body])

    def list(self, user_id: str) -> List[Task]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_T.body} FROM {_T.table} WHERE {_T.user_id} = ? ORDER BY {_T.created_at} DESC",
                (user_id,),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_T.body} FROM {_T.table} WHERE {_T.user_id} = ? AND {_T.id} = ?",
                (user_id, task_id),
            ).fetchone()
            return self._row_to_task(row) if row else None

    def save(self, user_id: str, task: Task) -> Task:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_T.table} ({_T.user_id}, {_T.id}, {_T.created_at}, {_T.body})
                VALUES (?, ?, ?, ?)
                ON CONFLICT({_T.user_id}, {_T.id}) DO UPDATE SET
                    {_T.created_at} = excluded.{_T.created_at},
                    {_T.body} = excluded.{_T.body}
                """,
                (user_id, task.id, task.created_at, task.model_dump_json(by_alias=True)),
            )
        return task.model_copy(deep=True)

    def delete(self, user_id: str, task_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_T.table} WHERE {_T.user_id} = ? AND {_T.id} = ?", (user_id, task_id)
            )
            return cur.rowcount > 0

    def clear(self, user_id: str) -> int:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_T.table} WHERE {_T.user_id} = ?", (user_id,))
            return cur.rowcount


class SQLiteAuditRepository(_SQLiteBase, AuditRepository):
    """
    SQLite audit store. Lives in its own table so clearing tasks never touches it.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_L.table} (
                    {_L.seq} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_L.id} TEXT NOT NULL,
                    {_L.user_id} TEXT NOT NULL,
                    {_L.task_id} TEXT NOT NULL,
                    {_L.task_title} TEXT NOT NULL,
                    {_L.message} TEXT NOT NULL,
                    {_L.progress} INTEGER NOT NULL,
                    {_L.timestamp} INTEGER NOT NULL,
                    {_L.parent_id} TEXT NULL,
                    {_L.is_system_log} INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_L.table}_user_task ON {_L.table}({_L.user_id}, {_L.task_id})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_L.table}_user_time ON {_L.table}({_L.user_id}, {_L.timestamp})"
            )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ActivityRecord:
        return {
            "id": str(row[_L.id]),
            "user_id": str(row[_L.user_id]),
            "task_id": str(row[_L.task_id]),
            "task_title": str(row[_L.task_title]),
            "message": str(row[_L.message]),
            "progress": int(row[_L.progress]),
            "timestamp": int(row[_L.timestamp]),
            "parent_id": row[_L.parent_id],
            "is_system_log": bool(row[_L.is_system_log]),
        }

    def record(self, entry: ActivityRecord) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_L.table} ({_L.id}, {_L.user_id}, {_L.task_id}, {_L.task_title}, {_L.message},
                    {_L.progress}, {_L.timestamp}, {_L.parent_id}, {_L.is_system_log})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry["id"],
                    entry["user_id"],
                    entry["task_id"],
                    entry["task_title"],
                    entry["message"],
                    entry["progress"],
                    entry["timestamp"],
                    entry["parent_id"],
                    1 if entry["is_system_log"] else 0,
                ),
            )

    def recent(self, user_id: str, limit: int) -> List[ActivityRecord]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_L.table}
                WHERE {_L.user_id} = ?
                ORDER BY {_L.timestamp} DESC, {_L.seq} DESC
                LIMIT ?
                """,
                (user_id, max(limit, 0)),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]

    def for_task(self, user_id: str, task_id: str) -> List[ActivityRecord]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_L.table}
                WHERE {_L.user_id} = ? AND {_L.task_id} = ?
                ORDER BY {_L.timestamp} DESC, {_L.seq} DESC
                """,
                (user_id, task_id),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]


class SQLiteProfileRepository(_SQLiteBase, ProfileRepository):
    """
    SQLite profile store, one JSON document per user.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_P.table} (
                    {_P.user_id} TEXT PRIMARY KEY,
                    {_P.body} TEXT NOT NULL
                )
                """
            )

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_P.body} FROM {_P.table} WHERE {_P.user_id} = ?", (user_id,)
            ).fetchone()
            return UserProfile.model_validate_json(row[_P.body]) if row else None

    def save(self, user_id: str, profile: UserProfile) -> UserProfile:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_P.table} ({_P.user_id}, {_P.body}) VALUES (?, ?)
                ON CONFLICT({_P.user_id}) DO UPDATE SET {_P.body} = excluded.{_P.body}
                """,
                (user_id, profile.model_dump_json(by_alias=True)),
            )
        return profile.model_copy()
