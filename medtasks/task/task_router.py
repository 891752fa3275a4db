# medtasks/task/task_router.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from medtasks.deps import get_current_user, get_storage
from medtasks.report.report_service import assigner_options, filter_tasks, task_stats
from medtasks.schemas.report_schema import TaskFilter, TaskStats
from medtasks.schemas.task_schema import OrganizationStatusUpdate, TaskCreate, TaskRead, TaskUpdate
from medtasks.schemas.user_schema import UserSummary
from medtasks.storage.base import StorageBackend

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


def task_filter(
    completed: Optional[bool] = None,
    organization_id: Optional[int] = None,
    assigned_by: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
) -> TaskFilter:
    return TaskFilter(
        completed=completed,
        organization_id=organization_id,
        assigned_by=assigned_by,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.get("/", response_model=list[TaskRead])
def get_all_tasks(
    criteria: TaskFilter = Depends(task_filter),
    storage: StorageBackend = Depends(get_storage),
):
    return filter_tasks(storage.list_tasks(), criteria)


@router.get("/stats", response_model=TaskStats)
def get_task_stats(storage: StorageBackend = Depends(get_storage)):
    return task_stats(storage.list_tasks(), date.today())


@router.get("/assigners", response_model=list[str])
def get_assigners(storage: StorageBackend = Depends(get_storage)):
    return assigner_options(storage.list_tasks())


@router.get("/{task_id}", response_model=TaskRead)
def get_task(task_id: int, storage: StorageBackend = Depends(get_storage)):
    return storage.get_task(task_id)


@router.post("/", response_model=TaskRead, status_code=201)
def create_task(
    data: TaskCreate,
    user: UserSummary = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    if not data.assigned_by:
        data = data.model_copy(update={"assigned_by": user.full_name or user.username})
    return storage.create_task(data)


@router.patch("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int,
    data: TaskUpdate,
    user: UserSummary = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return storage.update_task(task_id, data)


@router.put("/{task_id}/organizations/{org_id}/status", response_model=TaskRead)
def update_organization_status(
    task_id: int,
    org_id: int,
    data: OrganizationStatusUpdate,
    user: UserSummary = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return storage.update_organization_status(task_id, org_id, data.completion_percentage, data.comment)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    user: UserSummary = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    storage.delete_task(task_id)
    return
