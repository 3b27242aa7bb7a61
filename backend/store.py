"""SQLite-backed task repository and history log."""
import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

from errors import PersistenceError

logger = logging.getLogger(__name__)

TASK_COLUMNS = ("title", "description", "status", "priority", "momentum_score",
                "created_at", "updated_at", "completed_at")

SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    status TEXT NOT NULL DEFAULT 'queued',
    priority TEXT NOT NULL DEFAULT 'medium',
    momentum_score INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_tasks_status_updated ON tasks (status, updated_at);
CREATE TABLE IF NOT EXISTS task_history (
    id TEXT PRIMARY KEY,
    task_id TEXT NOT NULL,
    action TEXT NOT NULL,
    changed_by TEXT DEFAULT '',
    changes TEXT DEFAULT '{}',
    created_at TEXT NOT NULL,
    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
);
"""


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def new_id():
    return str(uuid.uuid4())[:8]


def get_db(db_path):
    parent = os.path.dirname(db_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def connect(db_path):
    """get_db() with connection failures raised as PersistenceError."""
    try:
        return get_db(db_path)
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not open {db_path}: {e}") from e


def init_db(db_path):
    conn = get_db(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


class TaskRepository:
    """Row-level access to the ``tasks`` table.

    Every method opens its own connection and runs a single statement, so a
    repository instance can be shared across request threads. sqlite3 errors
    surface as PersistenceError.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.supports_completed_at = False

    def _conn(self):
        return connect(self.db_path)

    def resolve_capabilities(self):
        """Check once which optional columns the tasks table has."""
        conn = self._conn()
        try:
            cols = {r["name"] for r in conn.execute("PRAGMA table_info(tasks)").fetchall()}
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not inspect tasks table: {e}") from e
        finally:
            conn.close()
        self.supports_completed_at = "completed_at" in cols
        if not self.supports_completed_at:
            logger.info("tasks table has no completed_at column; completions will not record it")

    def _query(self, sql, params=()) -> List[Dict[str, Any]]:
        conn = self._conn()
        try:
            return [dict(r) for r in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _execute(self, sql, params=()) -> int:
        conn = self._conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    # ── Reads ───────────────────────────────────────────────────
    def get_by_id(self, task_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return rows[0] if rows else None

    def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        return self._query("SELECT * FROM tasks WHERE status = ? ORDER BY created_at ASC", (status,))

    def list_done_most_recent(self, limit: int) -> List[Dict[str, Any]]:
        return self._query(
            "SELECT * FROM tasks WHERE status = 'done' ORDER BY updated_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )

    def list_tasks(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        q = "SELECT * FROM tasks"
        params = []
        if status:
            q += " WHERE status = ?"
            params.append(status)
        q += (" ORDER BY momentum_score DESC,"
              " CASE priority WHEN 'high' THEN 0 WHEN 'medium' THEN 1 ELSE 2 END,"
              " created_at DESC")
        return self._query(q, params)

    # ── Writes ──────────────────────────────────────────────────
    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        tid = new_id()
        ts = now_iso()
        row = {
            "title": fields["title"],
            "description": fields.get("description", ""),
            "status": fields.get("status", "queued"),
            "priority": fields.get("priority", "medium"),
            "momentum_score": fields.get("momentum_score", 0),
            "created_at": ts,
            "updated_at": ts,
        }
        cols = ", ".join(["id"] + list(row))
        marks = ",".join("?" * (len(row) + 1))
        self._execute(f"INSERT INTO tasks ({cols}) VALUES ({marks})", [tid] + list(row.values()))
        return dict(row, id=tid)

    def _set_clause(self, fields):
        unknown = set(fields) - set(TASK_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown task columns: {sorted(unknown)}")
        return ", ".join(f"{k} = ?" for k in fields)

    def update_fields(self, task_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Write ``fields`` to one task. Returns the updated row, or None if it is gone."""
        set_clause = self._set_clause(fields)
        changed = self._execute(f"UPDATE tasks SET {set_clause} WHERE id = ?",
                                list(fields.values()) + [task_id])
        if not changed:
            return None
        return self.get_by_id(task_id)

    def update_if_status(self, task_id: str, expected_status: str, fields: Dict[str, Any]) -> bool:
        """Write ``fields`` only while the task still has ``expected_status``.

        Returns True when exactly this call changed the row.
        """
        set_clause = self._set_clause(fields)
        changed = self._execute(f"UPDATE tasks SET {set_clause} WHERE id = ? AND status = ?",
                                list(fields.values()) + [task_id, expected_status])
        return changed == 1

    def delete(self, task_id: str) -> bool:
        return self._execute("DELETE FROM tasks WHERE id = ?", (task_id,)) > 0


class HistoryLog:
    """Append-only ``task_history`` table."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def append(self, task_id: str, from_status: str, to_status: str, changed_by: str,
               action: str = "status_change") -> None:
        ts = now_iso()
        changes = {"from": from_status, "to": to_status, "timestamp": ts}
        conn = connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO task_history (id, task_id, action, changed_by, changes, created_at) VALUES (?,?,?,?,?,?)",
                (str(uuid.uuid4()), task_id, action, changed_by, json.dumps(changes), ts),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"History append failed: {e}") from e
        finally:
            conn.close()

    def list_for_task(self, task_id: str) -> List[Dict[str, Any]]:
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM task_history WHERE task_id = ? ORDER BY created_at ASC, rowid ASC",
                (task_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()
        entries = []
        for r in rows:
            d = dict(r)
            d["changes"] = json.loads(d.get("changes") or "{}")
            entries.append(d)
        return entries
