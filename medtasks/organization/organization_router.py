# medtasks/organization/organization_router.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from medtasks.deps import get_storage
from medtasks.report.report_service import (
    filter_organization_stats,
    organization_stats,
    sort_organization_stats,
)
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.report_schema import OrganizationSortKey, OrganizationTaskStats
from medtasks.schemas.task_schema import TaskRead
from medtasks.storage.base import StorageBackend

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("/", response_model=list[OrganizationRead])
def list_organizations(storage: StorageBackend = Depends(get_storage)):
    return storage.list_organizations()


@router.get("/stats", response_model=list[OrganizationTaskStats])
def get_organization_stats(
    search: Optional[str] = None,
    type_code: Optional[str] = None,
    only_with_tasks: bool = False,
    sort: OrganizationSortKey = "name",
    descending: bool = False,
    storage: StorageBackend = Depends(get_storage),
):
    stats = organization_stats(storage.list_organizations(), storage.list_tasks(), date.today())
    stats = filter_organization_stats(stats, search=search, type_code=type_code, only_with_tasks=only_with_tasks)
    return sort_organization_stats(stats, sort, descending)


@router.get("/{org_id}", response_model=OrganizationRead)
def get_organization(org_id: int, storage: StorageBackend = Depends(get_storage)):
    return storage.get_organization(org_id)


@router.get("/{org_id}/tasks", response_model=list[TaskRead])
def get_organization_tasks(org_id: int, storage: StorageBackend = Depends(get_storage)):
    storage.get_organization(org_id)
    return storage.list_tasks_by_organization(org_id)
