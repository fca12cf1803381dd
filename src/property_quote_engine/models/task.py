from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Mapping, Sequence

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from ..dictionaries import DEFAULT_CATEGORY_ASSIGNEES


class TaskStatus(str, Enum):
    pending = "Pending"
    in_progress = "In Progress"
    completed = "Completed"
    on_hold = "On Hold"


class TaskPriority(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
    urgent = "Urgent"


class ProjectState(str, Enum):
    not_started = "Not Started"
    in_progress = "In Progress"
    completed = "Completed"
    on_hold = "On Hold"


class TaskRow(BaseModel):
    job_id: str
    task: str
    assignee: str
    status: TaskStatus = TaskStatus.pending
    due: date
    category: str = ""
    priority: TaskPriority = TaskPriority.medium
    estimated_hours: float = Field(default=0.0, ge=0)
    notes: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SchedulingOptions(BaseModel):
    default_assignee: str = "Team Lead"
    project_manager: str | None = None
    accounts_assignee: str = "Accounts"
    buffer_days: int = Field(default=2, ge=0)
    category_assignees: Mapping[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_ASSIGNEES),
        alias="autoAssignByCategory",
    )

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @property
    def manager(self) -> str:
        return self.project_manager or self.default_assignee


class ProjectSummary(BaseModel):
    total_tasks: int
    estimated_duration: str
    total_hours: float
    categories: Sequence[str] = Field(default_factory=list)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProjectResult(BaseModel):
    job_id: str
    tasks_created: int
    summary: ProjectSummary

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProjectStatusReport(BaseModel):
    status: ProjectState
    progress_percent: int
    completed_count: int
    total_count: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class TaskMetrics(BaseModel):
    total_tasks: int
    tasks_by_status: Mapping[str, int] = Field(default_factory=dict)
    tasks_by_priority: Mapping[str, int] = Field(default_factory=dict)
    tasks_by_assignee: Mapping[str, int] = Field(default_factory=dict)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


__all__ = [
    "TaskStatus",
    "TaskPriority",
    "ProjectState",
    "TaskRow",
    "SchedulingOptions",
    "ProjectSummary",
    "ProjectResult",
    "ProjectStatusReport",
    "TaskMetrics",
]
