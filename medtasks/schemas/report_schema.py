# medtasks/schemas/report_schema.py
from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

OrganizationSortKey = Literal[
    "name",
    "tasks_total",
    "tasks_completed",
    "tasks_in_progress",
    "tasks_overdue",
    "completion_percent",
]


class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0


class OrganizationTaskStats(BaseModel):
    id: int
    name: str
    task_ids: list[int] = Field(default_factory=list)
    tasks_total: int = 0
    tasks_completed: int = 0
    tasks_in_progress: int = 0
    tasks_overdue: int = 0
    completion_percent: int = 0


class TaskFilter(BaseModel):
    completed: Optional[bool] = None        # None = both
    organization_id: Optional[int] = None
    assigned_by: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None
