"""SQLite persistence layer."""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from taskflow.dates import to_utc_iso
from taskflow.priority import int_to_priority

SCHEMA_VERSION = 1


class Database:
    """Small SQLite wrapper with explicit schema management.

    Every read and write is scoped by ``user_id``: a row owned by another
    user behaves exactly like a missing row.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                color TEXT,
                is_archived INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS labels (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                color TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                project_id TEXT,
                content TEXT NOT NULL,
                priority INTEGER NOT NULL DEFAULT 4,
                due_date TEXT,
                recurrence TEXT,
                is_completed INTEGER NOT NULL DEFAULT 0,
                completed_at TEXT,
                order_index INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE SET NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tasks_user_project ON tasks(user_id, project_id);

            CREATE TABLE IF NOT EXISTS task_labels (
                task_id TEXT NOT NULL,
                label_id TEXT NOT NULL,
                PRIMARY KEY(task_id, label_id),
                FOREIGN KEY(task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                FOREIGN KEY(label_id) REFERENCES labels(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                tool_calls_json TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS tool_executions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                tool_name TEXT NOT NULL,
                input_json TEXT NOT NULL,
                output_json TEXT NOT NULL,
                succeeded INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )

    # Projects

    def create_project(self, user_id: str, name: str, color: str | None = None) -> dict[str, Any]:
        project_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO projects(id, user_id, name, color, created_at) VALUES (?, ?, ?, ?, ?)",
                (project_id, user_id, name, color, _utc_now_iso()),
            )
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return _project_to_dict(row)

    def get_project(self, user_id: str, project_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE id = ? AND user_id = ?", (project_id, user_id)
            ).fetchone()
        return _project_to_dict(row) if row else None

    def list_projects(self, user_id: str, include_archived: bool = False) -> list[dict[str, Any]]:
        query = "SELECT * FROM projects WHERE user_id = ?"
        if not include_archived:
            query += " AND is_archived = 0"
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY name ASC, rowid ASC", (user_id,)).fetchall()
        return [_project_to_dict(row) for row in rows]

    def set_project_archived(self, user_id: str, project_id: str, archived: bool) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE projects SET is_archived = ? WHERE id = ? AND user_id = ?",
                (int(archived), project_id, user_id),
            )
        return cur.rowcount > 0

    # Labels

    def create_label(self, user_id: str, name: str, color: str | None = None) -> dict[str, Any]:
        label_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO labels(id, user_id, name, color, created_at) VALUES (?, ?, ?, ?, ?)",
                (label_id, user_id, name, color, _utc_now_iso()),
            )
            row = conn.execute("SELECT * FROM labels WHERE id = ?", (label_id,)).fetchone()
        return _label_to_dict(row)

    def list_labels(self, user_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM labels WHERE user_id = ? ORDER BY name ASC, rowid ASC", (user_id,)
            ).fetchall()
        return [_label_to_dict(row) for row in rows]

    def owned_label_ids(self, user_id: str, label_ids: Iterable[str]) -> set[str]:
        ids = list(dict.fromkeys(label_ids))
        if not ids:
            return set()
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id FROM labels WHERE user_id = ? AND id IN ({placeholders})",
                (user_id, *ids),
            ).fetchall()
        return {row["id"] for row in rows}

    # Tasks

    def create_task(
        self,
        user_id: str,
        content: str,
        project_id: str | None = None,
        priority: int = 4,
        due_date: str | None = None,
        label_ids: Iterable[str] = (),
        recurrence: str | None = None,
    ) -> dict[str, Any]:
        """Insert a task at the end of its (user, project) ordering scope.

        The next order value is computed inside the INSERT itself so two
        concurrent creations cannot read the same maximum.
        """

        task_id = _new_id()
        now = _utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, user_id, project_id, content, priority, due_date, recurrence,
                    order_index, created_at, updated_at
                )
                SELECT ?, ?, ?, ?, ?, ?, ?, COALESCE(MAX(order_index), -1) + 1, ?, ?
                FROM tasks
                WHERE user_id = ? AND project_id IS ?
                """,
                (task_id, user_id, project_id, content, priority, due_date, recurrence, now, now, user_id, project_id),
            )
            conn.executemany(
                "INSERT OR IGNORE INTO task_labels(task_id, label_id) VALUES (?, ?)",
                [(task_id, label_id) for label_id in label_ids],
            )
            return self._fetch_task(conn, user_id, task_id)  # type: ignore[return-value]

    def get_task(self, user_id: str, task_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            return self._fetch_task(conn, user_id, task_id)

    def set_task_completed(self, user_id: str, task_id: str, completed: bool) -> dict[str, Any] | None:
        """Complete or reopen a task; completing twice keeps the first timestamp."""

        now = _utc_now_iso()
        with self._connect() as conn:
            if completed:
                cur = conn.execute(
                    """
                    UPDATE tasks SET is_completed = 1, completed_at = COALESCE(completed_at, ?), updated_at = ?
                    WHERE id = ? AND user_id = ?
                    """,
                    (now, now, task_id, user_id),
                )
            else:
                cur = conn.execute(
                    """
                    UPDATE tasks SET is_completed = 0, completed_at = NULL, updated_at = ?
                    WHERE id = ? AND user_id = ?
                    """,
                    (now, task_id, user_id),
                )
            if cur.rowcount == 0:
                return None
            return self._fetch_task(conn, user_id, task_id)

    def update_task(
        self,
        user_id: str,
        task_id: str,
        content: str | None = None,
        due_date: str | None = None,
        priority: int | None = None,
    ) -> dict[str, Any] | None:
        changes: dict[str, Any] = {}
        if content is not None:
            changes["content"] = content
        if due_date is not None:
            changes["due_date"] = due_date
        if priority is not None:
            changes["priority"] = priority
        changes["updated_at"] = _utc_now_iso()

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?",
                (*changes.values(), task_id, user_id),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_task(conn, user_id, task_id)

    def delete_task(self, user_id: str, task_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id))
        return cur.rowcount > 0

    def list_tasks(
        self,
        user_id: str,
        completed: bool = False,
        due_from: str | None = None,
        due_before: str | None = None,
        project_id: str | None = None,
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        """List tasks ordered by priority, due date, manual order, then creation time."""

        clauses = ["user_id = ?", "is_completed = ?"]
        params: list[Any] = [user_id, int(completed)]
        if project_id:
            clauses.append("project_id = ?")
            params.append(project_id)
        if due_from:
            clauses.append("due_date >= ?")
            params.append(due_from)
        if due_before:
            clauses.append("due_date < ?")
            params.append(due_before)
        query = (
            f"SELECT * FROM tasks WHERE {' AND '.join(clauses)} "
            "ORDER BY priority ASC, due_date IS NULL, due_date ASC, order_index ASC, created_at ASC, rowid ASC "
            "LIMIT ?"
        )
        with self._connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
            return self._hydrate_tasks(conn, rows)

    def search_tasks(self, user_id: str, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Case-insensitive substring search over task content."""

        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE user_id = ? AND lower(content) LIKE ? ESCAPE '\\'
                ORDER BY created_at ASC, rowid ASC
                LIMIT ?
                """,
                (user_id, f"%{escaped}%", limit),
            ).fetchall()
            return self._hydrate_tasks(conn, rows)

    def _fetch_task(self, conn: sqlite3.Connection, user_id: str, task_id: str) -> dict[str, Any] | None:
        row = conn.execute("SELECT * FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)).fetchone()
        if row is None:
            return None
        return self._hydrate_tasks(conn, [row])[0]

    def _hydrate_tasks(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[dict[str, Any]]:
        if not rows:
            return []
        task_ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in task_ids)
        labels_by_task: dict[str, list[dict[str, Any]]] = {task_id: [] for task_id in task_ids}
        for label in conn.execute(
            f"""
            SELECT tl.task_id, l.id, l.name, l.color
            FROM task_labels tl JOIN labels l ON l.id = tl.label_id
            WHERE tl.task_id IN ({placeholders})
            ORDER BY l.name ASC
            """,
            task_ids,
        ):
            labels_by_task[label["task_id"]].append(
                {"id": label["id"], "name": label["name"], "color": label["color"]}
            )

        project_ids = {row["project_id"] for row in rows if row["project_id"]}
        projects: dict[str, dict[str, Any]] = {}
        if project_ids:
            marks = ", ".join("?" for _ in project_ids)
            for project in conn.execute(
                f"SELECT id, name, color FROM projects WHERE id IN ({marks})", list(project_ids)
            ):
                projects[project["id"]] = dict(project)

        return [
            {
                "id": row["id"],
                "userId": row["user_id"],
                "projectId": row["project_id"],
                "content": row["content"],
                "priority": int_to_priority(row["priority"]),
                "dueDate": row["due_date"],
                "recurrence": row["recurrence"],
                "isCompleted": bool(row["is_completed"]),
                "completedAt": row["completed_at"],
                "order": row["order_index"],
                "createdAt": row["created_at"],
                "updatedAt": row["updated_at"],
                "labels": labels_by_task[row["id"]],
                "project": projects.get(row["project_id"]),
            }
            for row in rows
        ]

    # Conversations

    def create_conversation(self, user_id: str) -> dict[str, Any]:
        conversation_id = _new_id()
        now = _utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO conversations(id, user_id, title, created_at, updated_at) VALUES (?, ?, NULL, ?, ?)",
                (conversation_id, user_id, now, now),
            )
        return {"id": conversation_id, "userId": user_id, "title": None, "createdAt": now, "updatedAt": now}

    def get_conversation(self, user_id: str, conversation_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ? AND user_id = ?", (conversation_id, user_id)
            ).fetchone()
        return _conversation_to_dict(row) if row else None

    def list_conversations(self, user_id: str, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT c.*, COUNT(m.id) AS message_count
                FROM conversations c LEFT JOIN messages m ON m.conversation_id = c.id
                WHERE c.user_id = ?
                GROUP BY c.id
                ORDER BY c.updated_at DESC, c.rowid DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            ).fetchall()
        return [{**_conversation_to_dict(row), "messageCount": row["message_count"]} for row in rows]

    def update_conversation(self, conversation_id: str, title: str | None = None) -> None:
        """Bump ``updated_at`` and optionally set the title."""

        with self._connect() as conn:
            if title is None:
                conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?", (_utc_now_iso(), conversation_id)
                )
            else:
                conn.execute(
                    "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                    (title, _utc_now_iso(), conversation_id),
                )

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM conversations WHERE id = ? AND user_id = ?", (conversation_id, user_id)
            )
        return cur.rowcount > 0

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO messages(conversation_id, role, content, tool_calls_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    conversation_id,
                    role,
                    content,
                    json.dumps(tool_calls) if tool_calls else None,
                    _utc_now_iso(),
                ),
            )

    def get_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY id ASC", (conversation_id,)
            ).fetchall()
        return [
            {
                "id": row["id"],
                "role": row["role"],
                "content": row["content"],
                "toolCalls": json.loads(row["tool_calls_json"]) if row["tool_calls_json"] else None,
                "createdAt": row["created_at"],
            }
            for row in rows
        ]

    # Tool executions

    def log_tool_execution(
        self,
        user_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        tool_output: Any,
        succeeded: bool,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tool_executions(user_id, tool_name, input_json, output_json, succeeded, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    tool_name,
                    json.dumps(tool_input),
                    json.dumps(tool_output, default=str),
                    int(succeeded),
                    _utc_now_iso(),
                ),
            )

    def list_tool_executions(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tool_name, input_json, output_json, succeeded, created_at
                FROM tool_executions WHERE user_id = ? ORDER BY id DESC LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [
            {
                "tool": row["tool_name"],
                "input": json.loads(row["input_json"]),
                "output": json.loads(row["output_json"]),
                "succeeded": bool(row["succeeded"]),
                "createdAt": row["created_at"],
            }
            for row in rows
        ]


def _project_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "name": row["name"],
        "color": row["color"],
        "isArchived": bool(row["is_archived"]),
        "createdAt": row["created_at"],
    }


def _label_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "name": row["name"],
        "color": row["color"],
        "createdAt": row["created_at"],
    }


def _conversation_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "title": row["title"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now_iso() -> str:
    return to_utc_iso(datetime.now(timezone.utc))
