from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date
from typing import Iterable, Sequence

from .dictionaries import HOURS_PER_WORKDAY
from .errors import ProjectCreationError, QuoteExpiredError
from .models.quote import QuoteData, QuoteStatus
from .models.task import (
    ProjectResult,
    ProjectState,
    ProjectStatusReport,
    ProjectSummary,
    SchedulingOptions,
    TaskMetrics,
    TaskRow,
    TaskStatus,
)
from .scheduler import TaskScheduler
from .task_store import TaskStore
from .validator import validate_and_recalculate

logger = logging.getLogger(__name__)


def summarize_tasks(tasks: Sequence[TaskRow]) -> ProjectSummary:
    total_hours = sum(task.estimated_hours for task in tasks)
    categories = list(dict.fromkeys(task.category for task in tasks if task.category))
    work_days = math.ceil(total_hours / HOURS_PER_WORKDAY)
    return ProjectSummary(
        total_tasks=len(tasks),
        estimated_duration="1 day" if work_days == 1 else f"{work_days} days",
        total_hours=total_hours,
        categories=categories,
    )


class ProjectOrchestrator:
    def __init__(self, *, task_store: TaskStore, scheduler: TaskScheduler | None = None) -> None:
        self._task_store = task_store
        self._scheduler = scheduler or TaskScheduler()

    def create_project(
        self,
        quote: QuoteData,
        options: SchedulingOptions | None = None,
    ) -> ProjectResult:
        logger.info("Creating project from quote", extra={"quote_id": quote.id})
        tasks = self._scheduler.schedule(quote, options)

        try:
            self._task_store.append_tasks(tasks)
        except Exception as exc:
            logger.error(
                "Failed to write project tasks",
                exc_info=True,
                extra={"quote_id": quote.id, "tasks_count": len(tasks)},
            )
            raise ProjectCreationError(f"Project creation failed: {exc}") from exc

        summary = summarize_tasks(tasks)
        logger.info(
            "Project created",
            extra={
                "quote_id": quote.id,
                "tasks_count": summary.total_tasks,
                "total_hours": summary.total_hours,
                "estimated_duration": summary.estimated_duration,
            },
        )
        return ProjectResult(job_id=quote.id, tasks_created=len(tasks), summary=summary)

    def accept_quote(
        self,
        quote: QuoteData,
        options: SchedulingOptions | None = None,
        *,
        today: date | None = None,
    ) -> ProjectResult:
        """Accept a client-approved quote and schedule its work.

        Totals are recomputed first since the quote comes back from the
        caller. Expired quotes are refused.
        """
        validate_and_recalculate(quote)
        if quote.is_expired(today):
            quote.transition(QuoteStatus.expired)
            raise QuoteExpiredError(f"Quote {quote.id} expired on {quote.valid_until.isoformat()}")
        quote.transition(QuoteStatus.accepted)
        return self.create_project(quote, options)


def project_status(tasks: Iterable[TaskRow]) -> ProjectStatusReport:
    statuses = [task.status for task in tasks]
    total = len(statuses)
    counts = Counter(statuses)
    completed = counts[TaskStatus.completed]

    if total and completed == total:
        status = ProjectState.completed
    elif counts[TaskStatus.on_hold]:
        status = ProjectState.on_hold
    elif counts[TaskStatus.in_progress] or completed:
        status = ProjectState.in_progress
    else:
        status = ProjectState.not_started

    progress = math.floor(100 * completed / total + 0.5) if total else 0
    return ProjectStatusReport(
        status=status,
        progress_percent=progress,
        completed_count=completed,
        total_count=total,
    )


def task_metrics(tasks: Sequence[TaskRow]) -> TaskMetrics:
    return TaskMetrics(
        total_tasks=len(tasks),
        tasks_by_status=dict(Counter(task.status.value for task in tasks)),
        tasks_by_priority=dict(Counter(task.priority.value for task in tasks)),
        tasks_by_assignee=dict(Counter(task.assignee for task in tasks if task.assignee)),
    )


__all__ = [
    "ProjectOrchestrator",
    "summarize_tasks",
    "project_status",
    "task_metrics",
]
