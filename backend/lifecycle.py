"""Task lifecycle: queued -> in_progress -> done.

The controller is the only writer of ``status`` and ``updated_at``. Side
effects that follow a transition (history entry, pending-task file for the
executor, momentum pass) are best-effort: a failure is logged and the
transition still stands.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from errors import InvalidState, NotFound, PersistenceError, ValidationError
from models import Priority, TaskStatus
from momentum import MomentumUpdate, momentum_band, recalculate_momentum
from store import HistoryLog, TaskRepository, now_iso

logger = logging.getLogger(__name__)


def _require_id(task_id: Optional[str]) -> str:
    if not task_id or not task_id.strip():
        raise ValidationError("task_id is required")
    return task_id.strip()


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")
    return title


def _priority_value(priority) -> str:
    if isinstance(priority, Priority):
        return priority.value
    try:
        return Priority(priority).value
    except ValueError:
        raise ValidationError(f"Invalid priority: {priority}")


def with_band(task: Dict[str, Any]) -> Dict[str, Any]:
    task["momentum_band"] = momentum_band(task.get("momentum_score") or 0)
    return task


class TaskController:
    def __init__(self, repo: TaskRepository, history: HistoryLog,
                 pending_task_path: Optional[str] = None, corpus_size: int = 10,
                 executor_actor: str = "clawdbot"):
        self.repo = repo
        self.history = history
        self.pending_task_path = pending_task_path
        self.corpus_size = corpus_size
        self.executor_actor = executor_actor

    # ── Queries ─────────────────────────────────────────────────
    def get(self, task_id: str) -> Dict[str, Any]:
        task = self.repo.get_by_id(_require_id(task_id))
        if task is None:
            raise NotFound()
        task = with_band(task)
        task["history"] = self.history.list_for_task(task["id"])
        return task

    def list_tasks(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status is not None:
            try:
                status = TaskStatus(status).value
            except ValueError:
                raise ValidationError(f"Invalid status: {status}")
        return [with_band(t) for t in self.repo.list_tasks(status)]

    def next_task(self) -> Dict[str, Any]:
        """Highest-momentum queued task. Advisory: any queued task may be assigned."""
        queued = self.repo.list_tasks(TaskStatus.QUEUED.value)
        if not queued:
            raise NotFound("No queued tasks")
        return with_band(queued[0])

    # ── Momentum ────────────────────────────────────────────────
    def recalculate(self) -> List[MomentumUpdate]:
        return recalculate_momentum(self.repo, self.corpus_size)

    def _recalculate_best_effort(self, reason: str):
        # momentum is advisory; a failed pass never fails the triggering operation
        try:
            self.recalculate()
        except Exception:
            logger.warning("Momentum recalculation after %s failed", reason, exc_info=True)

    # ── Lifecycle ───────────────────────────────────────────────
    def create(self, title: str, description: Optional[str] = "",
               priority=Priority.MEDIUM) -> Dict[str, Any]:
        task = self.repo.insert({
            "title": _clean_title(title),
            "description": (description or "").strip(),
            "priority": _priority_value(priority),
            "status": TaskStatus.QUEUED.value,
            "momentum_score": 0,
        })
        logger.info("Task %s created: %s", task["id"], task["title"])
        self._recalculate_best_effort("create")
        return self._reread(task["id"], task)

    def update(self, task_id: str, title: Optional[str] = None,
               description: Optional[str] = None, priority=None) -> Dict[str, Any]:
        task_id = _require_id(task_id)
        updates = {}
        if title is not None:
            updates["title"] = _clean_title(title)
        if description is not None:
            updates["description"] = description.strip()
        if priority is not None:
            updates["priority"] = _priority_value(priority)
        if not updates:
            task = self.repo.get_by_id(task_id)
            if task is None:
                raise NotFound()
            return task
        updates["updated_at"] = now_iso()
        task = self.repo.update_fields(task_id, updates)
        if task is None:
            raise NotFound()
        return task

    def assign(self, task_id: str, actor: Optional[str] = None) -> Dict[str, Any]:
        task_id = _require_id(task_id)
        task = self.repo.get_by_id(task_id)
        if task is None:
            raise NotFound()
        if task["status"] != TaskStatus.QUEUED.value:
            raise InvalidState(f"Task is already {task['status']}", task["status"])

        ts = now_iso()
        won = self.repo.update_if_status(task_id, TaskStatus.QUEUED.value, {
            "status": TaskStatus.IN_PROGRESS.value,
            "updated_at": ts,
        })
        if not won:
            self._raise_lost_race(task_id)

        actor = actor or self.executor_actor
        self._append_history(task_id, TaskStatus.QUEUED.value, TaskStatus.IN_PROGRESS.value, actor)
        assigned = self._reread(task_id, dict(task, status=TaskStatus.IN_PROGRESS.value, updated_at=ts))
        self._write_pending_task(assigned, ts)
        logger.info("Task %s assigned to %s", task_id, actor)
        return assigned

    def complete(self, task_id: str, actor: Optional[str] = None) -> Dict[str, Any]:
        task_id = _require_id(task_id)
        task = self.repo.get_by_id(task_id)
        if task is None:
            raise NotFound()
        previous = task["status"]
        if previous == TaskStatus.DONE.value:
            raise InvalidState("Task is already done", previous)

        ts = now_iso()
        fields = {"status": TaskStatus.DONE.value, "updated_at": ts}
        if self.repo.supports_completed_at:
            fields["completed_at"] = ts
        if not self.repo.update_if_status(task_id, previous, fields):
            self._raise_lost_race(task_id)

        self._append_history(task_id, previous, TaskStatus.DONE.value, actor or "manual")
        logger.info("Task %s completed (was %s)", task_id, previous)
        self._recalculate_best_effort("complete")
        return self._reread(task_id, dict(task, **fields))

    def delete(self, task_id: str) -> None:
        task_id = _require_id(task_id)
        # history rows go with the task through ON DELETE CASCADE
        if not self.repo.delete(task_id):
            raise NotFound()
        logger.info("Task %s deleted", task_id)

    # ── Helpers ─────────────────────────────────────────────────
    def _reread(self, task_id: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
        """Fresh copy of a row that was just written, or ``fallback`` if it cannot be read."""
        # the write is committed; a failed read-back must not turn it into an error
        try:
            return self.repo.get_by_id(task_id) or fallback
        except PersistenceError:
            logger.warning("Could not re-read task %s after write", task_id, exc_info=True)
            return fallback

    def _raise_lost_race(self, task_id: str):
        current = self.repo.get_by_id(task_id)
        if current is None:
            raise NotFound()
        raise InvalidState(f"Task is already {current['status']}", current["status"])

    def _append_history(self, task_id, from_status, to_status, actor):
        try:
            self.history.append(task_id, from_status, to_status, actor)
        except Exception:
            logger.warning("task_history insert failed for %s (%s -> %s)",
                           task_id, from_status, to_status, exc_info=True)

    def _write_pending_task(self, task: Dict[str, Any], assigned_at: str) -> bool:
        """Drop the pending-work descriptor where the executor picks it up."""
        if not self.pending_task_path:
            return False
        pending = {
            "taskId": task["id"],
            "title": task["title"],
            "description": task.get("description"),
            "priority": task.get("priority"),
            "momentum_score": task.get("momentum_score"),
            "assigned_at": assigned_at,
        }
        try:
            path = Path(self.pending_task_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(pending, indent=2), encoding="utf-8")
        except OSError:
            logger.warning("Could not write %s", self.pending_task_path, exc_info=True)
            return False
        return True
