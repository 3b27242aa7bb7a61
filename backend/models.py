"""Task enums and request bodies."""
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class TaskStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Request bodies ──────────────────────────────────────────────
class TaskCreate(BaseModel):
    title: str = ""
    description: str = ""
    priority: Priority = Priority.MEDIUM


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None


class TaskAction(BaseModel):
    # older board builds post camelCase "taskId"
    task_id: str = Field("", validation_alias=AliasChoices("task_id", "taskId"))
    actor: Optional[str] = None
