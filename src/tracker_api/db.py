from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generator, List, Optional, Tuple

from .completion import apply_update, normalize_text
from .errors import InternalError, NotFound, ValidationError
from .models import SessionEntity, TodoEntity, UserEntity
from .repositories import TODO_NOT_FOUND, Repository, UserRepository
from .schemas import TodoCreate, TodoUpdate
from .utils import Clock, MonotonicClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    user_id: str = "user_id"
    text: str = "text"
    completed: str = "completed"
    completed_at: str = "completed_at"
    created_at: str = "created_at"


_COLS = _Cols()


def _to_db(dt: Optional[datetime]) -> Optional[str]:
    # Fixed-width UTC strings so that text comparison orders chronologically
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class _SQLiteStore:
    """
    Connection handling and schema shared by the sqlite repositories.
    Connections run in autocommit mode; writes use explicit BEGIN IMMEDIATE
    transactions so a read-modify-write holds the database write lock throughout.
    """

    def __init__(self, db_path: str, clock: Optional[Clock] = None) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = clock or MonotonicClock()
        self._init_db()

    def now(self) -> datetime:
        return self._clock()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path, isolation_level=None, timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("SQLite operation failed on %s", self._db_path)
            raise InternalError("Storage failure") from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL REFERENCES users(id),
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.user_id} INTEGER NOT NULL,
                    {_COLS.text} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.completed_at} TEXT NULL,
                    {_COLS.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_owner_created "
                f"ON {_COLS.table}({_COLS.user_id}, {_COLS.created_at})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_owner_completed_at "
                f"ON {_COLS.table}({_COLS.user_id}, {_COLS.completed}, {_COLS.completed_at})"
            )


class SQLiteRepository(_SQLiteStore, Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.
    """

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_COLS.id]),
            "user_id": int(row[_COLS.user_id]),
            "text": str(row[_COLS.text]),
            "completed": bool(row[_COLS.completed]),
            "completed_at": _from_db(row[_COLS.completed_at]),
            "created_at": _from_db(row[_COLS.created_at]),  # type: ignore
        }  # type: ignore

    def _select_owned(self, conn: sqlite3.Connection, user_id: int, todo_id: int) -> TodoEntity:
        row = conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ? AND {_COLS.user_id} = ?",
            (todo_id, user_id),
        ).fetchone()
        if row is None:
            raise NotFound(TODO_NOT_FOUND)
        return self._row_to_entity(row)

    def create(self, user_id: int, data: TodoCreate) -> TodoEntity:
        text = normalize_text(data.text)
        with self._transaction() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.user_id}, {_COLS.text}, {_COLS.completed},
                    {_COLS.completed_at}, {_COLS.created_at})
                VALUES (?, ?, 0, NULL, ?)
                """,
                (user_id, text, _to_db(self.now())),
            )
            new_id = cur.lastrowid
            return self._select_owned(conn, user_id, int(new_id))  # type: ignore[arg-type]

    def list(self, user_id: int) -> List[TodoEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                WHERE {_COLS.user_id} = ?
                ORDER BY {_COLS.created_at} DESC, {_COLS.id} DESC
                """,
                (user_id,),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def get(self, user_id: int, todo_id: int) -> TodoEntity:
        with self._conn() as conn:
            return self._select_owned(conn, user_id, todo_id)

    def update(self, user_id: int, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._transaction() as conn:
            current = self._select_owned(conn, user_id, todo_id)
            updated = apply_update(current, data, self.now())
            conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.text} = ?, {_COLS.completed} = ?, {_COLS.completed_at} = ?
                WHERE {_COLS.id} = ? AND {_COLS.user_id} = ?
                """,
                (
                    updated["text"],
                    1 if updated["completed"] else 0,
                    _to_db(updated["completed_at"]),
                    todo_id,
                    user_id,
                ),
            )
            return updated

    def delete(self, user_id: int, todo_id: int) -> None:
        with self._transaction() as conn:
            cur = conn.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ? AND {_COLS.user_id} = ?",
                (todo_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFound(TODO_NOT_FOUND)

    def list_completed(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[TodoEntity]:
        clauses = [
            f"{_COLS.user_id} = ?",
            f"{_COLS.completed} = 1",
            f"{_COLS.completed_at} IS NOT NULL",
        ]
        params: list = [user_id]
        if start is not None:
            clauses.append(f"{_COLS.completed_at} >= ?")
            params.append(_to_db(start))
        if end is not None:
            clauses.append(f"{_COLS.completed_at} <= ?")
            params.append(_to_db(end))

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                WHERE {' AND '.join(clauses)}
                ORDER BY {_COLS.completed_at} DESC, {_COLS.id} DESC
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def stats(self, user_id: int) -> Tuple[int, int]:
        with self._conn() as conn:
            row = conn.execute(
                f"""
                SELECT COUNT(*) AS total, COALESCE(SUM({_COLS.completed}), 0) AS done
                FROM {_COLS.table} WHERE {_COLS.user_id} = ?
                """,
                (user_id,),
            ).fetchone()
            return int(row["total"]), int(row["done"])


class SQLiteUserRepository(_SQLiteStore, UserRepository):
    """
    SQLite storage for users and sessions.
    """

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> UserEntity:
        return {
            "id": int(row["id"]),
            "name": str(row["name"]),
            "email": str(row["email"]),
            "password_hash": str(row["password_hash"]),
            "created_at": _from_db(row["created_at"]),  # type: ignore
        }  # type: ignore

    def create_user(self, name: str, email: str, password_hash: str) -> UserEntity:
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
                raise ValidationError("Email already registered")
            cur = conn.execute(
                "INSERT INTO users (name, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (name, email, password_hash, _to_db(self.now())),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
            return self._row_to_user(row)

    def get_user(self, user_id: int) -> Optional[UserEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return self._row_to_user(row) if row else None

    def create_session(self, token: str, user_id: int) -> SessionEntity:
        created_at = self.now()
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?)",
                (token, user_id, _to_db(created_at)),
            )
        return {"token": token, "user_id": user_id, "created_at": created_at}

    def get_session(self, token: str) -> Optional[SessionEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE token = ?", (token,)).fetchone()
            if row is None:
                return None
            return {
                "token": str(row["token"]),
                "user_id": int(row["user_id"]),
                "created_at": _from_db(row["created_at"]),  # type: ignore
            }

    def delete_session(self, token: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
