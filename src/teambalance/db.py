from __future__ import annotations

import json
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Generator, List, Optional

from .errors import StoreUnavailableError
from .models import Evidence, TaskEntity, TaskPatch, TaskRecord
from .repositories import TaskRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    member: str = "member"
    weight: str = "weight"
    deadline: str = "deadline"
    status: str = "status"
    evidence: str = "evidence"
    created_at: str = "created_at"


_COLS = _Cols()


class SQLiteTaskRepository(TaskRepository):
    """
    Lightweight SQLite repository implementing the TaskRepository interface.

    Each operation opens its own connection and commits as one transaction, so a
    status change and its evidence are always written together. Any sqlite3
    error is raised as StoreUnavailableError.
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path, timeout=30.0)
        except sqlite3.Error as e:
            logger.error("Cannot open task store %s: %s", self._db_path, e)
            raise StoreUnavailableError(f"Task store unavailable: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Task store operation failed on %s: %s", self._db_path, e)
            raise StoreUnavailableError(f"Task store unavailable: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.member} TEXT NOT NULL,
                    {_COLS.weight} INTEGER NOT NULL,
                    {_COLS.deadline} TEXT NULL,
                    {_COLS.status} TEXT NOT NULL DEFAULT 'pending',
                    {_COLS.evidence} TEXT NULL,
                    {_COLS.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )
        logger.info("SQLite task store ready db=%s", self._db_path)

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        def parse_date(s: Optional[str]) -> Optional[date]:
            if s is None:
                return None
            return date.fromisoformat(s)

        def parse_evidence(s: Optional[str]) -> Optional[Evidence]:
            if s is None:
                return None
            return json.loads(s)

        return {
            "id": str(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "member": str(row[_COLS.member]),
            "weight": int(row[_COLS.weight]),
            "deadline": parse_date(row[_COLS.deadline]),
            "status": row[_COLS.status],
            "evidence": parse_evidence(row[_COLS.evidence]),
            "created_at": datetime.fromisoformat(row[_COLS.created_at]),
        }

    @staticmethod
    def _dump_evidence(evidence: Optional[Evidence]) -> Optional[str]:
        return None if evidence is None else json.dumps(evidence, sort_keys=True)

    def _select(self, conn: sqlite3.Connection, task_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()

    def create(self, record: TaskRecord) -> TaskEntity:
        new_id = uuid.uuid4().hex
        now = datetime.now().isoformat(timespec="microseconds")
        deadline = record["deadline"].isoformat() if record["deadline"] else None
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.member}, {_COLS.weight},
                    {_COLS.deadline}, {_COLS.status}, {_COLS.evidence}, {_COLS.created_at})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    new_id,
                    record["title"],
                    record["member"],
                    record["weight"],
                    deadline,
                    record["status"],
                    self._dump_evidence(record["evidence"]),
                    now,
                ),
            )
            row = self._select(conn, new_id)
            assert row is not None
            entity = self._row_to_entity(row)
        self._notify()
        return entity

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._conn() as conn:
            row = self._select(conn, task_id)
            return self._row_to_entity(row) if row else None

    def update(self, task_id: str, patch: TaskPatch) -> Optional[TaskEntity]:
        with self._conn() as conn:
            row = self._select(conn, task_id)
            if not row:
                return None
            current = self._row_to_entity(row)

            status = patch["status"] if "status" in patch else current["status"]
            evidence = patch["evidence"] if "evidence" in patch else current["evidence"]
            conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.status} = ?, {_COLS.evidence} = ?
                WHERE {_COLS.id} = ?
                """,
                (status, self._dump_evidence(evidence), task_id),
            )
            row2 = self._select(conn, task_id)
            assert row2 is not None
            entity = self._row_to_entity(row2)
        self._notify()
        return entity

    def delete(self, task_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            deleted = cur.rowcount > 0
        if deleted:
            self._notify()
        return deleted

    def snapshot(self) -> List[TaskEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.created_at} DESC, rowid DESC"
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
