# medtasks/storage/fallback.py

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

from medtasks.errors import BackendUnavailable, InitializationFailure, NotFound
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.task_schema import TaskCreate, TaskRead, TaskUpdate
from medtasks.schemas.user_schema import UserSummary
from medtasks.storage.base import StorageBackend

logger = logging.getLogger("medtasks.storage.fallback")

T = TypeVar("T")


class FallbackStorage:
    """
    Prefers the primary backend and falls back to the secondary one when the
    primary raises BackendUnavailable.

    Writes served by the secondary are remembered by task id. reconcile()
    replays exactly those tasks into the primary: tasks the primary already
    held stay untouched, and a secondary task gets a fresh primary id the first
    time it is copied (later copies overwrite that id). NotFound and
    ValidationFailure are caller errors and never trigger a fallback.
    """

    name = "fallback"

    def __init__(self, primary: StorageBackend, secondary: StorageBackend) -> None:
        self.primary = primary
        self.secondary = secondary
        self.primary_available = True
        self.diverged = False

        # secondary task id -> primary task id, for tasks copied by reconcile()
        self._id_map: dict[int, int] = {}
        self._pending: set[int] = set()
        self._deleted: set[int] = set()
        self._full_copy = False

    # ---- dispatch ----

    def _read(self, action: str, call: Callable[[StorageBackend], T]) -> T:
        if self.primary_available:
            try:
                return call(self.primary)
            except BackendUnavailable as exc:
                logger.warning(
                    "fallback_read",
                    extra={"action": action, "primary": self.primary.name, "error": exc.message},
                )
        return call(self.secondary)

    def _write(
            self,
            action: str,
            call: Callable[[StorageBackend], T],
            track: Optional[Callable[[T], None]] = None,
    ) -> T:
        if self.primary_available:
            try:
                return call(self.primary)
            except BackendUnavailable as exc:
                logger.warning(
                    "fallback_write",
                    extra={"action": action, "primary": self.primary.name, "error": exc.message},
                )
        result = call(self.secondary)
        if not self.diverged:
            logger.warning(
                "backends_diverged",
                extra={"action": action, "primary": self.primary.name, "secondary": self.secondary.name},
            )
        self.diverged = True
        if track is not None:
            track(result)
        return result

    def _track_task(self, task: TaskRead) -> None:
        self._pending.add(task.id)

    def _track_delete(self, task_id: int) -> None:
        self._pending.discard(task_id)
        self._deleted.add(task_id)

    def _track_full_copy(self, _result: Any = None) -> None:
        self._full_copy = True
        self._pending.clear()
        self._deleted.clear()

    # ---- schema & seed ----

    def initialize(self) -> None:
        try:
            self.primary.initialize()
            self.primary_available = True
        except InitializationFailure as exc:
            self.primary_available = False
            logger.error("primary_unavailable", extra={"primary": self.primary.name, "error": exc.message})

        try:
            self.secondary.initialize()
        except InitializationFailure:
            if not self.primary_available:
                raise
            logger.exception("secondary_unavailable", extra={"secondary": self.secondary.name})

    def reset(self) -> None:
        self._write("reset", lambda b: b.reset(), self._track_full_copy)

    def reconcile(self) -> int:
        """Replay the writes the secondary served into the primary; returns tasks copied or deleted."""
        if not self.diverged:
            return 0
        if not self.primary_available:
            raise BackendUnavailable(f"Primary backend {self.primary.name} is not available")

        if self._full_copy:
            count = self._copy_everything()
        else:
            count = self._replay()

        self.diverged = False
        logger.info(
            "backends_reconciled",
            extra={"from": self.secondary.name, "to": self.primary.name, "count": count},
        )
        return count

    def _copy_everything(self) -> int:
        tasks = self.secondary.export_tasks()
        self.primary.replace_tasks(tasks)
        self._id_map = {t.id: t.id for t in tasks}
        self._pending.clear()
        self._deleted.clear()
        self._full_copy = False
        return len(tasks)

    def _replay(self) -> int:
        count = 0
        for task_id in sorted(self._deleted):
            primary_id = self._id_map.pop(task_id, None)
            if primary_id is not None:
                try:
                    self.primary.delete_task(primary_id)
                    count += 1
                except NotFound:
                    logger.info("reconcile_delete_skipped", extra={"task_id": primary_id})
            self._deleted.discard(task_id)

        for task_id in sorted(self._pending):
            try:
                task = self.secondary.get_task(task_id)
            except NotFound:
                self._pending.discard(task_id)
                continue
            stored = self.primary.put_task(task, self._id_map.get(task_id))
            self._id_map[task_id] = stored.id
            self._pending.discard(task_id)
            count += 1
        return count

    # ---- users ----

    def authenticate(self, username: str, password: str) -> Optional[UserSummary]:
        return self._read("authenticate", lambda b: b.authenticate(username, password))

    def get_user(self, user_id: int) -> UserSummary:
        return self._read("load user", lambda b: b.get_user(user_id))

    def list_users(self) -> list[UserSummary]:
        return self._read("list users", lambda b: b.list_users())

    # ---- organizations ----

    def list_organizations(self) -> list[OrganizationRead]:
        return self._read("list organizations", lambda b: b.list_organizations())

    def get_organization(self, org_id: int) -> OrganizationRead:
        return self._read("load organization", lambda b: b.get_organization(org_id))

    # ---- tasks ----

    def list_tasks(self) -> list[TaskRead]:
        return self._read("list tasks", lambda b: b.list_tasks())

    def get_task(self, task_id: int) -> TaskRead:
        return self._read("load task", lambda b: b.get_task(task_id))

    def list_tasks_by_organization(self, org_id: int) -> list[TaskRead]:
        return self._read("list organization tasks", lambda b: b.list_tasks_by_organization(org_id))

    def create_task(self, data: TaskCreate | dict[str, Any]) -> TaskRead:
        return self._write("create task", lambda b: b.create_task(data), self._track_task)

    def update_task(self, task_id: int, data: TaskUpdate | dict[str, Any]) -> TaskRead:
        return self._write("update task", lambda b: b.update_task(task_id, data), self._track_task)

    def delete_task(self, task_id: int) -> None:
        self._write("delete task", lambda b: b.delete_task(task_id), lambda _: self._track_delete(task_id))

    def update_organization_status(
            self,
            task_id: int,
            org_id: int,
            percentage: Any,
            comment: Optional[str] = None,
    ) -> TaskRead:
        return self._write(
            "update organization status",
            lambda b: b.update_organization_status(task_id, org_id, percentage, comment),
            self._track_task,
        )

    def export_tasks(self) -> list[TaskRead]:
        return self._read("export tasks", lambda b: b.export_tasks())

    def replace_tasks(self, tasks: list[TaskRead]) -> None:
        self._write("replace tasks", lambda b: b.replace_tasks(tasks), self._track_full_copy)

    def put_task(self, task: TaskRead, task_id: Optional[int] = None) -> TaskRead:
        return self._write("put task", lambda b: b.put_task(task, task_id), self._track_task)
