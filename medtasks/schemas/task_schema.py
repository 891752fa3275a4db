# medtasks/schemas/task_schema.py

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

Percentage = Annotated[int, Field(ge=0, le=100)]


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # stored as naive UTC: SQLite drops the offset, so both backends must agree
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]


class TaskStatus(str, Enum):
    # informational label, not enforced against completion_percentage
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


# --------- Per-organization status ----------
class OrganizationStatusIn(BaseModel):
    organization_id: int
    completion_percentage: Percentage = 0
    comment: Optional[str] = None
    last_updated: Optional[UtcDateTime] = None   # stamped by the storage when missing


class OrganizationStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: int
    completion_percentage: int
    comment: Optional[str] = None
    last_updated: UtcDateTime


class OrganizationStatusUpdate(BaseModel):
    completion_percentage: Percentage
    comment: Optional[str] = None


# --------- Base schema (common fields) ----------
class TaskBase(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    start_date: UtcDateTime
    end_date: UtcDateTime
    assigned_by: str = ""
    completion_percentage: Percentage = 0
    status: TaskStatus = TaskStatus.NOT_STARTED
    result: Optional[str] = None
    comment: Optional[str] = None


# --------- For CREATE ----------
class TaskCreate(TaskBase):
    """
    Either a single primary organization_id, or a list of organization_ids
    for the bulk path (one status entry per organization, first one is primary).
    """

    organization_id: Optional[int] = None
    organization_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_targets_and_dates(self):
        if self.organization_id is None and not self.organization_ids:
            raise ValueError("organization_id or organization_ids is required")
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def target_organization_ids(self) -> list[int]:
        """Bulk targets with duplicates collapsed, order kept."""
        seen: list[int] = []
        for org_id in self.organization_ids:
            if org_id not in seen:
                seen.append(org_id)
        return seen


# --------- For UPDATE (PATCH) ----------
class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    organization_id: Optional[int] = None
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None
    assigned_by: Optional[str] = None
    completion_percentage: Optional[Percentage] = None
    status: Optional[TaskStatus] = None
    result: Optional[str] = None
    comment: Optional[str] = None

    # when given, replaces the whole status set of the task
    organization_statuses: Optional[list[OrganizationStatusIn]] = None


# --------- For READ ----------
class TaskRead(TaskBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    organization_statuses: list[OrganizationStatusRead] = Field(default_factory=list)

    def organization_ids(self) -> list[int]:
        """Primary organization followed by every organization with a status entry."""
        ids = [self.organization_id]
        for entry in self.organization_statuses:
            if entry.organization_id not in ids:
                ids.append(entry.organization_id)
        return ids
