# medtasks/models/task.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from medtasks.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")

    # primary organization; multi-organization tasks also carry status rows
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    assigned_by = Column(String, nullable=False)

    # cached mean of organization_statuses when any exist
    completion_percentage = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="NotStarted")

    result = Column(String, nullable=True)
    comment = Column(String, nullable=True)

    organization_statuses = relationship(
        "TaskOrganizationStatus",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TaskOrganizationStatus.id",
    )


class TaskOrganizationStatus(Base):
    __tablename__ = "task_organization_statuses"
    __table_args__ = (UniqueConstraint("task_id", "organization_id", name="uq_task_organization"),)

    id = Column(Integer, primary_key=True, index=True)

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    completion_percentage = Column(Integer, nullable=False, default=0)
    comment = Column(String, nullable=True)
    last_updated = Column(DateTime, nullable=False, default=_utcnow)

    task = relationship("Task", back_populates="organization_statuses")
