from __future__ import annotations

from contextlib import contextmanager
from dataclasses import fields
from datetime import date, datetime, timezone
import json
import logging
import os
from pathlib import Path
import sqlite3
from typing import Any, Iterable, Iterator
import uuid

from .errors import StoreError
from .models import (
    Commitment,
    DailyLog,
    Goal,
    HistoryRecord,
    Project,
    Settings,
    Target,
    Task,
    normalize_tags,
    normalize_total_poms,
)

logger = logging.getLogger(__name__)


def _to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def _from_utc_text(text: str | None) -> datetime | None:
    if not text:
        return None
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def _from_date_text(text: str | None) -> date | None:
    if not text:
        return None
    return date.fromisoformat(text)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_utc_text(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value), ensure_ascii=False)
    if isinstance(value, bool):
        return 1 if value else 0
    return value


def _decode_list(text: str | None) -> tuple[str, ...]:
    if not text:
        return ()
    payload = json.loads(text)
    if not isinstance(payload, list):
        return ()
    return tuple(str(item) for item in payload)


def new_id() -> str:
    return uuid.uuid4().hex


SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    user_id TEXT PRIMARY KEY,
    focus_duration INTEGER NOT NULL CHECK (focus_duration > 0),
    break_duration INTEGER NOT NULL CHECK (break_duration > 0),
    sessions_per_cycle INTEGER NOT NULL CHECK (sessions_per_cycle > 0),
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    text TEXT NOT NULL,
    total_poms INTEGER,
    completed_poms INTEGER NOT NULL DEFAULT 0 CHECK (completed_poms >= 0),
    due_date TEXT NOT NULL,
    completed_at TEXT,
    project_id TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    custom_focus_duration INTEGER,
    custom_break_duration INTEGER,
    task_order INTEGER,
    comments TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_user_due ON tasks(user_id, due_date);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    deadline TEXT,
    completion_criteria_type TEXT NOT NULL DEFAULT 'manual'
        CHECK (completion_criteria_type IN ('manual', 'task_count', 'duration_minutes')),
    completion_criteria_value INTEGER,
    progress_value INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed', 'due')),
    completed_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS targets (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    text TEXT NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',
    target_minutes INTEGER NOT NULL,
    progress_minutes INTEGER NOT NULL DEFAULT 0,
    start_date TEXT,
    deadline TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS goals (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    text TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS commitments (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    text TEXT NOT NULL,
    due_date TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS daily_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    date TEXT NOT NULL,
    completed_sessions INTEGER NOT NULL DEFAULT 0,
    total_focus_minutes INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, date)
);

CREATE TABLE IF NOT EXISTS pomodoro_history (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    task_id TEXT,
    duration_minutes INTEGER NOT NULL CHECK (duration_minutes >= 0),
    ended_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_user_ended ON pomodoro_history(user_id, ended_at);
CREATE INDEX IF NOT EXISTS idx_history_task ON pomodoro_history(task_id);
"""

_TASK_COLUMNS = {f.name for f in fields(Task)} - {"id"}
_PROJECT_COLUMNS = {f.name for f in fields(Project)} - {"id"}
_TARGET_COLUMNS = {f.name for f in fields(Target)} - {"id"}


class FocusFlowStore:
    """SQLite-backed store; every read and write is scoped to ``user_id``."""

    def __init__(
        self,
        db_path: Path,
        user_id: str | None = None,
        journal_mode: str | None = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.user_id = user_id
        raw_mode = (journal_mode or os.getenv("FOCUSFLOW_JOURNAL_MODE") or "MEMORY").strip()
        self.journal_mode = raw_mode.upper() if raw_mode else "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    # -- identity -------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def sign_in(self, user_id: str) -> None:
        clean = user_id.strip()
        self.user_id = clean or None

    def sign_out(self) -> None:
        self.user_id = None

    # -- plumbing -------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._apply_journal_mode(conn)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _apply_journal_mode(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode=MEMORY")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn: sqlite3.Connection | None = None
        try:
            conn = self._connect()
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            if conn is not None:
                conn.close()

    def init_schema(self) -> None:
        with self._transaction() as conn:
            conn.executescript(SCHEMA)

    def _update(
        self,
        table: str,
        record_id: str,
        allowed: set[str],
        changes: dict[str, Any],
    ) -> bool:
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"unknown columns for {table}: {sorted(unknown)}")
        if not changes:
            return True
        columns = sorted(changes)
        assignments = ", ".join(f"{col} = ?" for col in columns)
        params = [_encode(changes[col]) for col in columns]
        params.extend([record_id, self.user_id])
        with self._transaction() as conn:
            cur = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ? AND user_id = ?",
                params,
            )
        return cur.rowcount > 0

    def _delete(self, table: str, record_id: str) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                f"DELETE FROM {table} WHERE id = ? AND user_id = ?",
                (record_id, self.user_id),
            )
        return cur.rowcount > 0

    def _select(self, query: str, params: Iterable[Any]) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute(query, list(params)).fetchall()

    # -- settings -------------------------------------------------------

    def get_settings(self) -> Settings | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT focus_duration, break_duration, sessions_per_cycle FROM settings WHERE user_id = ?",
            [self.user_id],
        )
        if not rows:
            return None
        row = rows[0]
        return Settings(
            focus_duration=int(row["focus_duration"]),
            break_duration=int(row["break_duration"]),
            sessions_per_cycle=int(row["sessions_per_cycle"]),
        )

    def save_settings(self, settings: Settings) -> None:
        if self.user_id is None:
            return
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO settings (user_id, focus_duration, break_duration, sessions_per_cycle, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    focus_duration = excluded.focus_duration,
                    break_duration = excluded.break_duration,
                    sessions_per_cycle = excluded.sessions_per_cycle,
                    updated_at = excluded.updated_at
                """,
                (
                    self.user_id,
                    int(settings.focus_duration),
                    int(settings.break_duration),
                    int(settings.sessions_per_cycle),
                    _to_utc_text(datetime.now(timezone.utc)),
                ),
            )

    # -- tasks ----------------------------------------------------------

    _TASK_ORDER = "ORDER BY due_date ASC, task_order IS NOT NULL, task_order ASC, created_at ASC"

    def list_tasks(self, start: date | None = None, end: date | None = None) -> list[Task]:
        if self.user_id is None:
            return []
        clauses = ["user_id = ?"]
        params: list[Any] = [self.user_id]
        if start is not None:
            clauses.append("due_date >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("due_date <= ?")
            params.append(end.isoformat())
        rows = self._select(
            f"SELECT * FROM tasks WHERE {' AND '.join(clauses)} {self._TASK_ORDER}",
            params,
        )
        return [_row_to_task(row) for row in rows]

    def list_tasks_for_project(self, project_id: str) -> list[Task]:
        if self.user_id is None:
            return []
        rows = self._select(
            f"SELECT * FROM tasks WHERE user_id = ? AND project_id = ? {self._TASK_ORDER}",
            [self.user_id, project_id],
        )
        return [_row_to_task(row) for row in rows]

    def list_completed_tasks(self) -> list[Task]:
        if self.user_id is None:
            return []
        rows = self._select(
            f"SELECT * FROM tasks WHERE user_id = ? AND completed_at IS NOT NULL {self._TASK_ORDER}",
            [self.user_id],
        )
        return [_row_to_task(row) for row in rows]

    def get_task(self, task_id: str) -> Task | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            [task_id, self.user_id],
        )
        return _row_to_task(rows[0]) if rows else None

    def next_task_order(self, due_date: date) -> int:
        if self.user_id is None:
            return 0
        rows = self._select(
            "SELECT MAX(task_order) AS max_order FROM tasks "
            "WHERE user_id = ? AND due_date = ? AND task_order IS NOT NULL",
            [self.user_id, due_date.isoformat()],
        )
        current = rows[0]["max_order"] if rows else None
        return (int(current) if current is not None else -1) + 1

    def insert_task(self, task: Task) -> Task | None:
        if self.user_id is None:
            return None
        created = task.created_at or datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO tasks (
                    id, user_id, text, total_poms, completed_poms, due_date, completed_at,
                    project_id, tags, custom_focus_duration, custom_break_duration,
                    task_order, comments, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    self.user_id,
                    task.text.strip(),
                    normalize_total_poms(task.total_poms),
                    int(max(0, task.completed_poms)),
                    task.due_date.isoformat(),
                    _encode(task.completed_at),
                    task.project_id,
                    _encode(normalize_tags(task.tags)),
                    task.custom_focus_duration,
                    task.custom_break_duration,
                    task.task_order,
                    _encode(task.comments),
                    _to_utc_text(created),
                ),
            )
        return self.get_task(task.id)

    def update_task(self, task_id: str, **changes: Any) -> Task | None:
        if self.user_id is None:
            return None
        if "total_poms" in changes:
            changes["total_poms"] = normalize_total_poms(changes["total_poms"])
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])
        if not self._update("tasks", task_id, _TASK_COLUMNS, changes):
            return None
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> list[HistoryRecord]:
        """Delete a task and its history; returns the removed history records."""
        if self.user_id is None:
            return []
        removed = self.list_history_for_tasks([task_id])
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM pomodoro_history WHERE task_id = ? AND user_id = ?",
                (task_id, self.user_id),
            )
            conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?",
                (task_id, self.user_id),
            )
        return removed

    # -- projects -------------------------------------------------------

    def list_projects(self) -> list[Project]:
        if self.user_id is None:
            return []
        rows = self._select(
            "SELECT * FROM projects WHERE user_id = ? ORDER BY name ASC",
            [self.user_id],
        )
        return [_row_to_project(row) for row in rows]

    def get_project(self, project_id: str) -> Project | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT * FROM projects WHERE id = ? AND user_id = ?",
            [project_id, self.user_id],
        )
        return _row_to_project(rows[0]) if rows else None

    def insert_project(self, project: Project) -> Project | None:
        if self.user_id is None:
            return None
        created = project.created_at or datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO projects (
                    id, user_id, name, deadline, completion_criteria_type,
                    completion_criteria_value, progress_value, status, completed_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project.id,
                    self.user_id,
                    project.name.strip(),
                    _encode(project.deadline),
                    project.completion_criteria_type,
                    project.completion_criteria_value,
                    int(project.progress_value),
                    project.status,
                    _encode(project.completed_at),
                    _to_utc_text(created),
                ),
            )
        return self.get_project(project.id)

    def update_project(self, project_id: str, **changes: Any) -> Project | None:
        if self.user_id is None:
            return None
        if not self._update("projects", project_id, _PROJECT_COLUMNS, changes):
            return None
        return self.get_project(project_id)

    def delete_project(self, project_id: str) -> bool:
        if self.user_id is None:
            return False
        with self._transaction() as conn:
            conn.execute(
                "UPDATE tasks SET project_id = NULL WHERE user_id = ? AND project_id = ?",
                (self.user_id, project_id),
            )
            cur = conn.execute(
                "DELETE FROM projects WHERE id = ? AND user_id = ?",
                (project_id, self.user_id),
            )
        return cur.rowcount > 0

    # -- targets --------------------------------------------------------

    def list_targets(self) -> list[Target]:
        if self.user_id is None:
            return []
        rows = self._select(
            "SELECT * FROM targets WHERE user_id = ? ORDER BY deadline IS NULL, deadline ASC, created_at ASC",
            [self.user_id],
        )
        return [_row_to_target(row) for row in rows]

    def get_target(self, target_id: str) -> Target | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT * FROM targets WHERE id = ? AND user_id = ?",
            [target_id, self.user_id],
        )
        return _row_to_target(rows[0]) if rows else None

    def insert_target(self, target: Target) -> Target | None:
        if self.user_id is None:
            return None
        created = target.created_at or datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO targets (
                    id, user_id, text, tags, target_minutes, progress_minutes,
                    start_date, deadline, completed_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    target.id,
                    self.user_id,
                    target.text.strip(),
                    _encode(normalize_tags(target.tags)),
                    int(target.target_minutes),
                    int(target.progress_minutes),
                    _encode(target.start_date),
                    _encode(target.deadline),
                    _encode(target.completed_at),
                    _to_utc_text(created),
                ),
            )
        return self.get_target(target.id)

    def update_target(self, target_id: str, **changes: Any) -> Target | None:
        if self.user_id is None:
            return None
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])
        if not self._update("targets", target_id, _TARGET_COLUMNS, changes):
            return None
        return self.get_target(target_id)

    def delete_target(self, target_id: str) -> bool:
        if self.user_id is None:
            return False
        return self._delete("targets", target_id)

    # -- goals & commitments -------------------------------------------

    def list_goals(self) -> list[Goal]:
        if self.user_id is None:
            return []
        rows = self._select(
            "SELECT id, text, created_at FROM goals WHERE user_id = ? ORDER BY created_at ASC",
            [self.user_id],
        )
        return [
            Goal(id=row["id"], text=row["text"], created_at=_from_utc_text(row["created_at"]))
            for row in rows
        ]

    def insert_goal(self, text: str) -> Goal | None:
        if self.user_id is None:
            return None
        goal = Goal(id=new_id(), text=text.strip(), created_at=datetime.now(timezone.utc))
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO goals (id, user_id, text, created_at) VALUES (?, ?, ?, ?)",
                (goal.id, self.user_id, goal.text, _encode(goal.created_at)),
            )
        return goal

    def delete_goal(self, goal_id: str) -> bool:
        if self.user_id is None:
            return False
        return self._delete("goals", goal_id)

    def list_commitments(self) -> list[Commitment]:
        if self.user_id is None:
            return []
        rows = self._select(
            "SELECT id, text, due_date, created_at FROM commitments WHERE user_id = ? "
            "ORDER BY due_date IS NULL, due_date ASC, created_at ASC",
            [self.user_id],
        )
        return [
            Commitment(
                id=row["id"],
                text=row["text"],
                due_date=_from_date_text(row["due_date"]),
                created_at=_from_utc_text(row["created_at"]),
            )
            for row in rows
        ]

    def insert_commitment(self, text: str, due_date: date | None = None) -> Commitment | None:
        if self.user_id is None:
            return None
        item = Commitment(
            id=new_id(),
            text=text.strip(),
            due_date=due_date,
            created_at=datetime.now(timezone.utc),
        )
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO commitments (id, user_id, text, due_date, created_at) VALUES (?, ?, ?, ?, ?)",
                (item.id, self.user_id, item.text, _encode(item.due_date), _encode(item.created_at)),
            )
        return item

    def delete_commitment(self, commitment_id: str) -> bool:
        if self.user_id is None:
            return False
        return self._delete("commitments", commitment_id)

    # -- daily logs -----------------------------------------------------

    def get_daily_log(self, day: date) -> DailyLog | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT date, completed_sessions, total_focus_minutes FROM daily_logs WHERE user_id = ? AND date = ?",
            [self.user_id, day.isoformat()],
        )
        if not rows:
            return DailyLog(date=day)
        return _row_to_log(rows[0])

    def upsert_daily_log(self, log: DailyLog) -> None:
        if self.user_id is None:
            return
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO daily_logs (user_id, date, completed_sessions, total_focus_minutes)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, date) DO UPDATE SET
                    completed_sessions = excluded.completed_sessions,
                    total_focus_minutes = excluded.total_focus_minutes
                """,
                (
                    self.user_id,
                    log.date.isoformat(),
                    int(log.completed_sessions),
                    int(log.total_focus_minutes),
                ),
            )

    def list_daily_logs(self, start: date, end: date) -> list[DailyLog]:
        if self.user_id is None:
            return []
        rows = self._select(
            "SELECT date, completed_sessions, total_focus_minutes FROM daily_logs "
            "WHERE user_id = ? AND date >= ? AND date <= ? ORDER BY date ASC",
            [self.user_id, start.isoformat(), end.isoformat()],
        )
        return [_row_to_log(row) for row in rows]

    # -- pomodoro history ----------------------------------------------

    def add_history(
        self,
        task_id: str | None,
        duration_minutes: int,
        ended_at: datetime,
    ) -> HistoryRecord | None:
        if self.user_id is None:
            return None
        record = HistoryRecord(
            id=new_id(),
            task_id=task_id,
            duration_minutes=int(max(0, duration_minutes)),
            ended_at=_from_utc_text(_to_utc_text(ended_at)) or ended_at,
        )
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO pomodoro_history (id, user_id, task_id, duration_minutes, ended_at) VALUES (?, ?, ?, ?, ?)",
                (
                    record.id,
                    self.user_id,
                    record.task_id,
                    record.duration_minutes,
                    _to_utc_text(record.ended_at),
                ),
            )
        return record

    def get_history(self, record_id: str) -> HistoryRecord | None:
        if self.user_id is None:
            return None
        rows = self._select(
            "SELECT id, task_id, duration_minutes, ended_at FROM pomodoro_history WHERE id = ? AND user_id = ?",
            [record_id, self.user_id],
        )
        return _row_to_history(rows[0]) if rows else None

    def list_history(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoryRecord]:
        """History with ``start <= ended_at < end``."""
        if self.user_id is None:
            return []
        clauses = ["user_id = ?"]
        params: list[Any] = [self.user_id]
        if start is not None:
            clauses.append("ended_at >= ?")
            params.append(_to_utc_text(start))
        if end is not None:
            clauses.append("ended_at < ?")
            params.append(_to_utc_text(end))
        rows = self._select(
            "SELECT id, task_id, duration_minutes, ended_at FROM pomodoro_history "
            f"WHERE {' AND '.join(clauses)} ORDER BY ended_at ASC",
            params,
        )
        return [_row_to_history(row) for row in rows]

    def list_history_for_tasks(
        self,
        task_ids: Iterable[str],
        since: datetime | None = None,
    ) -> list[HistoryRecord]:
        if self.user_id is None:
            return []
        ids = sorted(set(task_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        params: list[Any] = [self.user_id, *ids]
        query = (
            "SELECT id, task_id, duration_minutes, ended_at FROM pomodoro_history "
            f"WHERE user_id = ? AND task_id IN ({placeholders})"
        )
        if since is not None:
            query += " AND ended_at >= ?"
            params.append(_to_utc_text(since))
        rows = self._select(query + " ORDER BY ended_at ASC", params)
        return [_row_to_history(row) for row in rows]

    def delete_history(self, record_id: str) -> bool:
        if self.user_id is None:
            return False
        return self._delete("pomodoro_history", record_id)


def _row_to_task(row: sqlite3.Row) -> Task:
    total = row["total_poms"]
    return Task(
        id=row["id"],
        text=row["text"],
        due_date=date.fromisoformat(row["due_date"]),
        total_poms=int(total) if total is not None else None,
        completed_poms=int(row["completed_poms"]),
        completed_at=_from_utc_text(row["completed_at"]),
        project_id=row["project_id"],
        tags=_decode_list(row["tags"]),
        custom_focus_duration=row["custom_focus_duration"],
        custom_break_duration=row["custom_break_duration"],
        task_order=row["task_order"],
        comments=_decode_list(row["comments"]),
        created_at=_from_utc_text(row["created_at"]),
    )


def _row_to_project(row: sqlite3.Row) -> Project:
    value = row["completion_criteria_value"]
    return Project(
        id=row["id"],
        name=row["name"],
        deadline=_from_date_text(row["deadline"]),
        completion_criteria_type=row["completion_criteria_type"],
        completion_criteria_value=int(value) if value is not None else None,
        progress_value=int(row["progress_value"]),
        status=row["status"],
        completed_at=_from_utc_text(row["completed_at"]),
        created_at=_from_utc_text(row["created_at"]),
    )


def _row_to_target(row: sqlite3.Row) -> Target:
    return Target(
        id=row["id"],
        text=row["text"],
        tags=_decode_list(row["tags"]),
        target_minutes=int(row["target_minutes"]),
        progress_minutes=int(row["progress_minutes"]),
        start_date=_from_date_text(row["start_date"]),
        deadline=_from_date_text(row["deadline"]),
        completed_at=_from_utc_text(row["completed_at"]),
        created_at=_from_utc_text(row["created_at"]),
    )


def _row_to_log(row: sqlite3.Row) -> DailyLog:
    return DailyLog(
        date=date.fromisoformat(row["date"]),
        completed_sessions=int(row["completed_sessions"]),
        total_focus_minutes=int(row["total_focus_minutes"]),
    )


def _row_to_history(row: sqlite3.Row) -> HistoryRecord:
    ended = _from_utc_text(row["ended_at"])
    if ended is None:
        raise StoreError(f"history record {row['id']} has no end time")
    return HistoryRecord(
        id=row["id"],
        task_id=row["task_id"],
        duration_minutes=int(row["duration_minutes"]),
        ended_at=ended,
    )


def default_db_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "focusflow.sqlite"
