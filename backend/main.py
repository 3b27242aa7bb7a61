"""Mission Control: FastAPI backend for the task queue and momentum scoring"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

import config
from errors import PersistenceError, TaskError
from lifecycle import TaskController
from logging_setup import configure_logging
from models import TaskAction, TaskCreate, TaskUpdate
from store import HistoryLog, TaskRepository, get_db, init_db

logger = logging.getLogger(__name__)

_controller: Optional[TaskController] = None


def build_controller(db_path: str = None, pending_task_path: str = None) -> TaskController:
    """Create the schema if needed and wire a controller to it."""
    db_path = db_path or config.DB_PATH
    init_db(db_path)
    repo = TaskRepository(db_path)
    repo.resolve_capabilities()
    return TaskController(
        repo,
        HistoryLog(db_path),
        pending_task_path=pending_task_path if pending_task_path is not None else config.PENDING_TASK_PATH,
        corpus_size=config.MOMENTUM_CORPUS_SIZE,
        executor_actor=config.EXECUTOR_ACTOR,
    )


def get_controller() -> TaskController:
    global _controller
    if _controller is None:
        _controller = build_controller()
    return _controller


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.LOG_LEVEL, config.LOG_FILE or None)
    get_controller()
    logger.info("Mission Control backend ready (db=%s)", config.DB_PATH)
    yield


app = FastAPI(title="Mission Control", lifespan=lifespan)


@app.exception_handler(TaskError)
async def task_error_handler(request: Request, exc: TaskError):
    if isinstance(exc, PersistenceError):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Health ──────────────────────────────────────────────────────
@app.get("/api/health")
def health(ctl: TaskController = Depends(get_controller)):
    try:
        conn = get_db(ctl.repo.db_path)
        conn.execute("SELECT 1").fetchone()
        conn.close()
    except Exception as e:
        raise HTTPException(503, f"Database unavailable: {e}")
    return {"ok": True, "completed_at_column": ctl.repo.supports_completed_at}


# ── Task lifecycle ──────────────────────────────────────────────
@app.post("/api/tasks/assign")
def assign_task(body: TaskAction, ctl: TaskController = Depends(get_controller)):
    return ctl.assign(body.task_id, body.actor)


@app.post("/api/tasks/complete")
def complete_task(body: TaskAction, ctl: TaskController = Depends(get_controller)):
    return ctl.complete(body.task_id, body.actor)


@app.post("/api/tasks/calculate-momentum")
def calculate_momentum(ctl: TaskController = Depends(get_controller)):
    return [r.to_dict() for r in ctl.recalculate()]


# ── Task CRUD ───────────────────────────────────────────────────
@app.get("/api/tasks")
def list_tasks(status: Optional[str] = None, ctl: TaskController = Depends(get_controller)):
    return ctl.list_tasks(status)


@app.post("/api/tasks", status_code=201)
def create_task(t: TaskCreate, ctl: TaskController = Depends(get_controller)):
    return ctl.create(t.title, t.description, t.priority)


@app.get("/api/tasks/next")
def next_task(ctl: TaskController = Depends(get_controller)):
    return ctl.next_task()


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, ctl: TaskController = Depends(get_controller)):
    return ctl.get(task_id)


@app.patch("/api/tasks/{task_id}")
def update_task(task_id: str, t: TaskUpdate, ctl: TaskController = Depends(get_controller)):
    return ctl.update(task_id, t.title, t.description, t.priority)


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, ctl: TaskController = Depends(get_controller)):
    ctl.delete(task_id)
    return {"ok": True}


# ── Request logging ─────────────────────────────────────────────
class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            logger.info("%s %s -> %d (%.1fms)", request.method, request.url.path,
                        response.status_code, (time.perf_counter() - start) * 1000)
        return response


app.add_middleware(RequestLogMiddleware)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=3335, reload=True)
