from __future__ import annotations

import threading
from typing import Protocol, Sequence

from .errors import TaskNotFoundError
from .models.task import TaskRow, TaskStatus


class TaskStore(Protocol):
    def append_tasks(self, tasks: Sequence[TaskRow]) -> None:
        ...

    def list_tasks(self, *, job_id: str | None = None) -> list[TaskRow]:
        ...

    def update_task_status(self, job_id: str, task: str, status: TaskStatus) -> TaskRow:
        ...


class InMemoryTaskStore:
    def __init__(self) -> None:
        self._rows: list[TaskRow] = []
        self._lock = threading.Lock()

    def append_tasks(self, tasks: Sequence[TaskRow]) -> None:
        with self._lock:
            self._rows.extend(task.model_copy() for task in tasks)

    def list_tasks(self, *, job_id: str | None = None) -> list[TaskRow]:
        with self._lock:
            return [
                row.model_copy()
                for row in self._rows
                if job_id is None or row.job_id == job_id
            ]

    def update_task_status(self, job_id: str, task: str, status: TaskStatus) -> TaskRow:
        with self._lock:
            for row in self._rows:
                if row.job_id == job_id and row.task == task:
                    row.status = status
                    return row.model_copy()
        raise TaskNotFoundError(f"Task {task!r} for job {job_id} not found")


__all__ = ["TaskStore", "InMemoryTaskStore"]
