"""Task queue errors, each carrying the HTTP status it maps to."""
from typing import Optional


class TaskError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind}


class ValidationError(TaskError):
    status_code = 400
    kind = "validation_error"


class NotFound(TaskError):
    status_code = 404
    kind = "not_found"

    def __init__(self, message: str = "Task not found"):
        super().__init__(message)


class InvalidState(TaskError):
    status_code = 400
    kind = "invalid_state"

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["status"] = self.current_status
        return d


class PersistenceError(TaskError):
    status_code = 500
    kind = "persistence_error"
