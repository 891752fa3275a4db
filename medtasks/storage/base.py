# medtasks/storage/base.py

"""
Storage port shared by the relational backend, the object-store backend and
the fallback orchestrator. Callers depend on this Protocol only, so a backend
can be swapped by configuration.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from medtasks.errors import ValidationFailure
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.task_schema import TaskCreate, TaskRead, TaskUpdate
from medtasks.schemas.user_schema import UserSummary

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageBackend(Protocol):
    name: str

    def initialize(self) -> None: ...
    def reset(self) -> None: ...

    def authenticate(self, username: str, password: str) -> Optional[UserSummary]: ...
    def get_user(self, user_id: int) -> UserSummary: ...
    def list_users(self) -> list[UserSummary]: ...

    def list_organizations(self) -> list[OrganizationRead]: ...
    def get_organization(self, org_id: int) -> OrganizationRead: ...

    def list_tasks(self) -> list[TaskRead]: ...
    def get_task(self, task_id: int) -> TaskRead: ...
    def list_tasks_by_organization(self, org_id: int) -> list[TaskRead]: ...

    def create_task(self, data: TaskCreate | dict[str, Any]) -> TaskRead: ...
    def update_task(self, task_id: int, data: TaskUpdate | dict[str, Any]) -> TaskRead: ...
    def delete_task(self, task_id: int) -> None: ...

    def update_organization_status(
            self,
            task_id: int,
            org_id: int,
            percentage: Any,
            comment: Optional[str] = None,
    ) -> TaskRead: ...

    def export_tasks(self) -> list[TaskRead]: ...
    def replace_tasks(self, tasks: list[TaskRead]) -> None: ...
    def put_task(self, task: TaskRead, task_id: Optional[int] = None) -> TaskRead: ...


def parse_model(model_cls: type[ModelT], data: ModelT | dict[str, Any]) -> ModelT:
    """Validate caller input before any write; pydantic errors become ValidationFailure."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or model_cls.__name__
        raise ValidationFailure(f"{where}: {first.get('msg', 'invalid value')}") from exc
