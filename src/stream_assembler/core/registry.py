"""In-process registry of acquisition tasks.

The registry is an injected collaborator: the engine records tasks in
whichever registry it was given, and there is no module-level instance.
"""

from __future__ import annotations

import logging
import threading

from stream_assembler.core.models import AcquisitionTask, TaskState

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Thread-safe lookup of tasks by id."""

    def __init__(self) -> None:
        self._tasks: dict[str, AcquisitionTask] = {}
        self._lock = threading.Lock()

    def register(self, task: AcquisitionTask) -> AcquisitionTask:
        with self._lock:
            self._tasks[task.id] = task
        logger.debug("Registered task %s for %s", task.id, task.source)
        return task

    def get(self, task_id: str) -> AcquisitionTask | None:
        with self._lock:
            return self._tasks.get(task_id)

    def remove(self, task_id: str) -> AcquisitionTask | None:
        with self._lock:
            return self._tasks.pop(task_id, None)

    def active(self) -> list[AcquisitionTask]:
        """Tasks that have not reached a terminal state."""
        with self._lock:
            return [t for t in self._tasks.values() if not t.state.is_terminal]

    def by_state(self, state: TaskState) -> list[AcquisitionTask]:
        with self._lock:
            return [t for t in self._tasks.values() if t.state is state]

    def cleanup_old_tasks(self, keep: int = 100) -> int:
        """Drop all but the *keep* most recently created tasks.

        Returns the number of tasks removed.
        """
        with self._lock:
            if len(self._tasks) <= keep:
                return 0
            ordered = sorted(self._tasks.values(), key=lambda t: t.created_at, reverse=True)
            stale = ordered[keep:]
            for task in stale:
                del self._tasks[task.id]
        logger.info("Removed %d old tasks", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks
