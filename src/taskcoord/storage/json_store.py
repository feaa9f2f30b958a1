"""JSON document store for the task tracker and agent registry.

Both documents are replaced whole on every save. There is no locking:
two processes sharing a data directory race and the last writer wins.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from taskcoord.errors import StoreError
from taskcoord.models import ALGORITHM_VERSION, DEFAULT_PHASE, now_iso

log = logging.getLogger(__name__)

TRACKER_FILE = "task-tracker.json"
AGENTS_FILE = "agents.json"

_README = """# Task Manager Data

- `task-tracker.json`: project, tasks, progress and recommendation history
- `agents.json`: agent registry

Both files are rewritten in full on every change. Do not point two
running task managers at the same directory.
"""


def new_tracker(project_name: str = "New Project", max_recommendations: int = 3) -> dict[str, Any]:
    """Empty task tracker document."""
    now = now_iso()
    return {
        "project": {
            "name": project_name,
            "code": "NEW-PROJ",
            "version": "1.0.0",
            "created": now,
            "updated": now,
            "status": "active",
            "description": "Project managed by Task Manager",
        },
        "progress": {
            "total_tasks": 0,
            "completed": 0,
            "in_progress": 0,
            "todo": 0,
            "completion_percentage": 0,
        },
        "current_state": {
            "active_phase": DEFAULT_PHASE,
            "active_tasks": [],
            "next_recommended_tasks": [],
            "blocking_issues": [],
            "latest_update": now,
            "recommendation_algorithm": {
                "version": ALGORITHM_VERSION,
                "max_recommendations": max_recommendations,
            },
        },
        "phases": {},
        "tasks": {},
        "recommendation_history": [],
        "notifications": {},
        "metrics": {
            "velocity": {"tasks_per_day": 0, "completion_rate": 0},
            "quality": {"bugs_found": 0, "test_coverage": 0},
            "performance": {},
        },
    }


def new_agents() -> dict[str, Any]:
    """Empty agent registry document."""
    now = now_iso()
    return {
        "registry": {},
        "types": {
            "human": {"capabilities": ["all"]},
            "ai": {"capabilities": ["code", "analysis", "documentation"]},
        },
        "created": now,
        "updated": now,
    }


class Store(ABC):
    """Holder of the two persisted documents."""

    @abstractmethod
    def load_tasks(self) -> dict[str, Any]:
        """Return the task tracker document."""

    @abstractmethod
    def load_agents(self) -> dict[str, Any]:
        """Return the agent registry document."""

    @abstractmethod
    def save(self, tasks: dict[str, Any], agents: dict[str, Any]) -> None:
        """Replace both documents."""


class MemoryStore(Store):
    """Store kept in process memory. Loads and saves deep-copy."""

    def __init__(
        self,
        tasks: dict[str, Any] | None = None,
        agents: dict[str, Any] | None = None,
    ) -> None:
        self._tasks = copy.deepcopy(tasks) if tasks is not None else new_tracker()
        self._agents = copy.deepcopy(agents) if agents is not None else new_agents()
        self.save_count = 0

    def load_tasks(self) -> dict[str, Any]:
        return copy.deepcopy(self._tasks)

    def load_agents(self) -> dict[str, Any]:
        return copy.deepcopy(self._agents)

    def save(self, tasks: dict[str, Any], agents: dict[str, Any]) -> None:
        self._tasks = copy.deepcopy(tasks)
        self._agents = copy.deepcopy(agents)
        self.save_count += 1


class JsonStore(Store):
    """Store backed by two JSON files in a data directory."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.tracker_path = self.data_dir / TRACKER_FILE
        self.agents_path = self.data_dir / AGENTS_FILE

    def exists(self) -> bool:
        return self.tracker_path.exists()

    def initialize(self, project_name: str = "New Project", max_recommendations: int = 3) -> bool:
        """Create the data directory and empty documents.

        Returns:
            True if anything was created, False if both files already existed.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        created = False
        if not self.tracker_path.exists():
            self._write(self.tracker_path, new_tracker(project_name, max_recommendations))
            created = True
        if not self.agents_path.exists():
            self._write(self.agents_path, new_agents())
            created = True
        readme = self.data_dir / "README.md"
        if not readme.exists():
            readme.write_text(_README)
        if created:
            log.info("Initialized task data in %s", self.data_dir)
        return created

    def load_tasks(self) -> dict[str, Any]:
        return self._read(self.tracker_path) or new_tracker()

    def load_agents(self) -> dict[str, Any]:
        return self._read(self.agents_path) or new_agents()

    def save(self, tasks: dict[str, Any], agents: dict[str, Any]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        now = now_iso()
        tasks.setdefault("project", {})["updated"] = now
        agents["updated"] = now
        self._write(self.tracker_path, tasks)
        self._write(self.agents_path, agents)

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt JSON in {path}: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Expected a JSON object in {path}")
        log.debug("Loaded %s", path)
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        # Write beside the target then rename, so readers never see a torn file.
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StoreError(f"Cannot write {path}: {exc}") from exc
        log.debug("Wrote %s", path)
