# medtasks/storage/object_backend.py

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from medtasks.auth.security import hash_password, verify_password
from medtasks.errors import BackendUnavailable, InitializationFailure, NotFound, ValidationFailure
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.task_schema import TaskCreate, TaskRead, TaskUpdate
from medtasks.schemas.user_schema import UserSummary
from medtasks.seed import ADMIN_USERS, ORGANIZATIONS
from medtasks.storage.base import parse_model
from medtasks.storage.rollup import overall_percentage, validate_percentage

logger = logging.getLogger("medtasks.storage.object")

SCHEMA_VERSION = 1
STORES = ("users", "organizations", "tasks")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _empty_store() -> dict[str, Any]:
    return {"next_id": 1, "records": {}}


class ObjectStorage:
    """
    Object-store backend: named stores of JSON records keyed by auto-increment
    ids, kept in one document file with a schema version.

    Secondary indexes (rebuilt on load, never persisted):
    - users.by-username (unique)
    - tasks.by-organization (primary organization and every status organization)

    Writes work on a copy of the document and only replace the in-memory state
    once the file was written, so a failed write leaves nothing half-applied.
    """

    name = "object"

    def __init__(
            self,
            path: str | Path,
            *,
            admin_users: Sequence[tuple[str, str]] = ADMIN_USERS,
            organizations: Sequence[str] = ORGANIZATIONS,
    ) -> None:
        self.path = Path(path)
        self._admin_users = list(admin_users)
        self._organizations = list(organizations)
        self._doc: Optional[dict[str, Any]] = None
        self._by_username: dict[str, int] = {}
        self._by_organization: dict[int, set[int]] = {}
        self._lock = threading.RLock()

    # ---- document I/O ----

    def _read_document(self) -> dict[str, Any]:
        with self.path.open("r", encoding="utf-8") as fh:
            doc = json.load(fh)
        if not isinstance(doc, dict) or not isinstance(doc.get("stores"), dict):
            raise ValueError("object store document has no stores")
        return doc

    def _write_document(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(doc, fh, ensure_ascii=False, indent=1)
        os.replace(tmp, self.path)

    def _commit(self, doc: dict[str, Any], action: str) -> None:
        try:
            self._write_document(doc)
        except OSError as exc:
            logger.error("object_write_failed", extra={"action": action, "path": str(self.path), "error": str(exc)})
            raise BackendUnavailable(f"Object storage failed to {action}") from exc
        self._doc = doc
        self._rebuild_indexes()

    def _rebuild_indexes(self) -> None:
        assert self._doc is not None
        self._by_username, self._by_organization = self._indexes(self._doc)

    @staticmethod
    def _indexes(doc: dict[str, Any]) -> tuple[dict[str, int], dict[int, set[int]]]:
        stores = doc["stores"]
        by_username = {u["username"]: int(uid) for uid, u in stores["users"]["records"].items()}

        by_org: dict[int, set[int]] = {}
        for tid, record in stores["tasks"]["records"].items():
            org_ids = {record["organization_id"]}
            org_ids.update(s["organization_id"] for s in record.get("organization_statuses", []))
            for org_id in org_ids:
                by_org.setdefault(org_id, set()).add(int(tid))
        return by_username, by_org

    # ---- schema & seed ----

    def initialize(self) -> None:
        with self._lock:
            if self._doc is not None:
                return

            try:
                doc = self._read_document() if self.path.exists() else {"version": 0, "stores": {}}
            except (OSError, ValueError) as exc:
                logger.error("object_open_failed", extra={"path": str(self.path), "error": str(exc)})
                raise InitializationFailure(f"Object storage {self.path} could not be opened") from exc

            version = doc.get("version", 0)
            if not isinstance(version, int) or isinstance(version, bool):
                raise InitializationFailure(f"Object storage {self.path} has an invalid schema version {version!r}")
            if version > SCHEMA_VERSION:
                raise InitializationFailure(
                    f"Object storage {self.path} has schema version {version}, expected {SCHEMA_VERSION}"
                )

            try:
                created = self._upgrade(doc)
                indexes = self._indexes(doc)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.error("object_document_invalid", extra={"path": str(self.path), "error": repr(exc)})
                raise InitializationFailure(f"Object storage {self.path} holds malformed records") from exc

            if created or version != SCHEMA_VERSION:
                doc["version"] = SCHEMA_VERSION
                try:
                    self._write_document(doc)
                except OSError as exc:
                    raise InitializationFailure(f"Object storage {self.path} could not be created") from exc
                logger.info("object_initialized", extra={"path": str(self.path), "created_stores": created})

            self._doc = doc
            self._by_username, self._by_organization = indexes

    def _upgrade(self, doc: dict[str, Any]) -> list[str]:
        """Create missing stores; a freshly created store gets its seed records."""
        stores = doc["stores"]
        created = [name for name in STORES if name not in stores]
        for name in created:
            stores[name] = _empty_store()

        if "users" in created:
            for username, full_name in self._admin_users:
                self._insert(stores["users"], {
                    "username": username,
                    "password_hash": hash_password(username),
                    "full_name": full_name,
                    "is_admin": True,
                })
        if "organizations" in created:
            for name in self._organizations:
                self._insert(stores["organizations"], {"name": name})
        return created

    @staticmethod
    def _insert(store: dict[str, Any], record: dict[str, Any]) -> int:
        new_id = store["next_id"]
        store["next_id"] = new_id + 1
        store["records"][str(new_id)] = {"id": new_id, **record}
        return new_id

    def reset(self) -> None:
        with self._lock:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as exc:
                raise BackendUnavailable("Object storage could not be reset") from exc
            self._doc = None
            logger.warning("object_reset", extra={"path": str(self.path)})
            self.initialize()

    def _stores(self) -> dict[str, Any]:
        if self._doc is None:
            self.initialize()
        assert self._doc is not None
        return self._doc["stores"]

    def _record(self, store: str, record_id: int) -> Optional[dict[str, Any]]:
        return self._stores()[store]["records"].get(str(record_id))

    # ---- users ----

    def authenticate(self, username: str, password: str) -> Optional[UserSummary]:
        with self._lock:
            self._stores()
            user_id = self._by_username.get(username)
            user = self._record("users", user_id) if user_id is not None else None
            if not user or not verify_password(password, user["password_hash"]):
                return None
            return UserSummary.model_validate(user)

    def get_user(self, user_id: int) -> UserSummary:
        with self._lock:
            user = self._record("users", user_id)
            if not user:
                raise NotFound(f"User {user_id} not found")
            return UserSummary.model_validate(user)

    def list_users(self) -> list[UserSummary]:
        with self._lock:
            users = self._stores()["users"]["records"].values()
            return sorted((UserSummary.model_validate(u) for u in users), key=lambda u: u.id)

    # ---- organizations ----

    def list_organizations(self) -> list[OrganizationRead]:
        with self._lock:
            orgs = self._stores()["organizations"]["records"].values()
            return sorted((OrganizationRead.model_validate(o) for o in orgs), key=lambda o: o.name)

    def get_organization(self, org_id: int) -> OrganizationRead:
        with self._lock:
            org = self._record("organizations", org_id)
            if not org:
                raise NotFound(f"Organization {org_id} not found")
            return OrganizationRead.model_validate(org)

    def _require_organizations(self, org_ids: Sequence[int]) -> None:
        records = self._stores()["organizations"]["records"]
        for org_id in org_ids:
            if str(org_id) not in records:
                raise NotFound(f"Organization {org_id} not found")

    # ---- tasks ----

    def _load_task(self, task_id: int) -> TaskRead:
        record = self._record("tasks", task_id)
        if not record:
            raise NotFound(f"Task {task_id} not found")
        return TaskRead.model_validate(record)

    def list_tasks(self) -> list[TaskRead]:
        with self._lock:
            records = self._stores()["tasks"]["records"].values()
            return sorted((TaskRead.model_validate(r) for r in records), key=lambda t: t.id)

    def get_task(self, task_id: int) -> TaskRead:
        with self._lock:
            return self._load_task(task_id)

    def list_tasks_by_organization(self, org_id: int) -> list[TaskRead]:
        with self._lock:
            self._stores()
            task_ids = sorted(self._by_organization.get(org_id, ()))
            return [self._load_task(tid) for tid in task_ids]

    def create_task(self, data: TaskCreate | dict[str, Any]) -> TaskRead:
        data = parse_model(TaskCreate, data)
        targets = data.target_organization_ids()
        primary = targets[0] if targets else data.organization_id

        with self._lock:
            self._require_organizations(targets or [primary])

            stamp = _now()
            fields = data.model_dump(exclude={"organization_id", "organization_ids"})
            fields.update(
                organization_id=primary,
                completion_percentage=0 if targets else data.completion_percentage,
                organization_statuses=[
                    {"organization_id": org_id, "completion_percentage": 0, "comment": None, "last_updated": stamp}
                    for org_id in targets
                ],
            )

            doc = copy.deepcopy(self._doc)
            store = doc["stores"]["tasks"]
            task_id = store["next_id"]
            task = TaskRead.model_validate({"id": task_id, **fields})
            self._insert(store, task.model_dump(mode="json", exclude={"id"}))
            self._commit(doc, "create task")

            logger.info("task_created", extra={"task_id": task_id, "organizations": len(targets) or 1})
            return task

    def update_task(self, task_id: int, data: TaskUpdate | dict[str, Any]) -> TaskRead:
        data = parse_model(TaskUpdate, data)
        fields = data.model_dump(exclude_unset=True, exclude={"organization_statuses"})
        statuses = data.organization_statuses

        with self._lock:
            current = self._load_task(task_id)

            if fields.get("organization_id") is not None:
                self._require_organizations([fields["organization_id"]])

            merged = current.model_dump()
            for key, value in fields.items():
                if value is None and key not in ("result", "comment"):
                    continue
                merged[key] = value

            if statuses is not None:
                org_ids = [s.organization_id for s in statuses]
                if len(set(org_ids)) != len(org_ids):
                    raise ValidationFailure("Each organization may appear only once in organization_statuses")
                self._require_organizations(org_ids)

                stamp = _now()
                merged["organization_statuses"] = [
                    {**s.model_dump(), "last_updated": s.last_updated or stamp} for s in statuses
                ]

            # entries own the overall value; a direct completion_percentage only sticks without them
            if merged["organization_statuses"]:
                merged["completion_percentage"] = overall_percentage(
                    s["completion_percentage"] for s in merged["organization_statuses"]
                )

            try:
                task = TaskRead.model_validate(merged)
            except ValidationError as exc:
                raise ValidationFailure(f"Task {task_id}: {exc.errors()[0].get('msg', 'invalid value')}") from exc
            if task.end_date < task.start_date:
                raise ValidationFailure("end_date must not be before start_date")

            self._save_task(task, "update task")
            return task

    def _save_task(self, task: TaskRead, action: str) -> None:
        doc = copy.deepcopy(self._doc)
        doc["stores"]["tasks"]["records"][str(task.id)] = task.model_dump(mode="json")
        self._commit(doc, action)

    def update_organization_status(
            self,
            task_id: int,
            org_id: int,
            percentage: Any,
            comment: Optional[str] = None,
    ) -> TaskRead:
        percentage = validate_percentage(percentage)

        with self._lock:
            task = self._load_task(task_id)
            self._require_organizations([org_id])

            statuses = [s.model_dump() for s in task.organization_statuses if s.organization_id != org_id]
            position = next(
                (i for i, s in enumerate(task.organization_statuses) if s.organization_id == org_id),
                len(statuses),
            )
            statuses.insert(position, {
                "organization_id": org_id,
                "completion_percentage": percentage,
                "comment": comment,
                "last_updated": _now(),
            })

            task = TaskRead.model_validate({
                **task.model_dump(),
                "organization_statuses": statuses,
                "completion_percentage": overall_percentage(s["completion_percentage"] for s in statuses),
            })
            self._save_task(task, "update organization status")

            logger.info(
                "organization_status_updated",
                extra={"task_id": task_id, "organization_id": org_id, "overall": task.completion_percentage},
            )
            return task

    def delete_task(self, task_id: int) -> None:
        with self._lock:
            self._load_task(task_id)
            doc = copy.deepcopy(self._doc)
            # status entries live inside the task record and go with it
            del doc["stores"]["tasks"]["records"][str(task_id)]
            self._commit(doc, "delete task")
        logger.info("task_deleted", extra={"task_id": task_id})

    # ---- reconciliation ----

    def export_tasks(self) -> list[TaskRead]:
        return self.list_tasks()

    def replace_tasks(self, tasks: list[TaskRead]) -> None:
        with self._lock:
            self._stores()
            doc = copy.deepcopy(self._doc)
            store = doc["stores"]["tasks"]
            store["records"] = {str(t.id): t.model_dump(mode="json") for t in tasks}
            store["next_id"] = max((t.id for t in tasks), default=0) + 1
            self._commit(doc, "replace tasks")
        logger.info("object_tasks_replaced", extra={"count": len(tasks)})

    def put_task(self, task: TaskRead, task_id: Optional[int] = None) -> TaskRead:
        """Store a task as given, under task_id (replacing any record there) or under a fresh id."""
        with self._lock:
            self._require_organizations(task.organization_ids())
            doc = copy.deepcopy(self._doc)
            store = doc["stores"]["tasks"]
            if task_id is None:
                task_id = store["next_id"]
            store["next_id"] = max(store["next_id"], task_id + 1)

            stored = task.model_copy(update={"id": task_id})
            store["records"][str(task_id)] = stored.model_dump(mode="json")
            self._commit(doc, "put task")
            return stored
