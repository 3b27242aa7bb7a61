"""Mission Control settings, read once from the environment."""
import os

DB_PATH = os.environ.get("MC_DB", "/data/mission_control.db")
PENDING_TASK_PATH = os.environ.get("MC_PENDING_TASK", "/data/pending-task.json")
MOMENTUM_CORPUS_SIZE = int(os.environ.get("MC_MOMENTUM_CORPUS", "10"))
EXECUTOR_ACTOR = os.environ.get("MC_EXECUTOR_ACTOR", "clawdbot")
LOG_LEVEL = os.environ.get("MC_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("MC_LOG_FILE", "")
