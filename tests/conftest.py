"""Shared fixtures for Mission Control tests."""
import os
import sys
import tempfile

import pytest

# Set env BEFORE any imports
_tmpdir = tempfile.mkdtemp()
os.environ["MC_DB"] = os.path.join(_tmpdir, "test_mc.db")
os.environ["MC_PENDING_TASK"] = os.path.join(_tmpdir, "pending-task.json")
os.environ["MC_LOG_LEVEL"] = "DEBUG"

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from main import build_controller


@pytest.fixture
def controller(tmp_path):
    """A controller on its own empty database."""
    return build_controller(str(tmp_path / "mc.db"),
                            pending_task_path=str(tmp_path / "pending-task.json"))


@pytest.fixture
def repo(controller):
    return controller.repo


@pytest.fixture
def add_done(repo):
    """Insert a done task directly, with an explicit updated_at."""
    counter = {"n": 0}

    def _add(title, description="", updated_at=None):
        counter["n"] += 1
        task = repo.insert({"title": title, "description": description, "status": "done"})
        ts = updated_at or "2026-01-01T00:00:%02d+00:00" % counter["n"]
        return repo.update_fields(task["id"], {"updated_at": ts})

    return _add
