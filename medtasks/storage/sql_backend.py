# medtasks/storage/sql_backend.py

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import inspect, or_
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from medtasks.auth.security import hash_password, verify_password
from medtasks.database import Base, make_engine, make_session_factory
from medtasks.errors import BackendUnavailable, InitializationFailure, NotFound, ValidationFailure
from medtasks.models.organization import Organization
from medtasks.models.task import Task, TaskOrganizationStatus
from medtasks.models.user import User
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.task_schema import OrganizationStatusIn, TaskCreate, TaskRead, TaskUpdate
from medtasks.schemas.user_schema import UserSummary
from medtasks.seed import ADMIN_USERS, ORGANIZATIONS
from medtasks.storage.base import parse_model
from medtasks.storage.rollup import overall_percentage, validate_percentage

logger = logging.getLogger("medtasks.storage.sql")

SQLITE_HEADER = b"SQLite format 3\x00"
REQUIRED_TABLES = {"users", "organizations", "tasks", "task_organization_statuses"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlStorage:
    """
    Relational backend: the four record kinds as SQL tables behind SQLAlchemy.

    Every public method runs in its own session and commits once, so a status
    upsert and the recomputed overall percentage land in the same transaction.
    """

    name = "sql"

    def __init__(
            self,
            database_url: str,
            *,
            echo: bool = False,
            admin_users: Sequence[tuple[str, str]] = ADMIN_USERS,
            organizations: Sequence[str] = ORGANIZATIONS,
    ) -> None:
        self.database_url = database_url
        self._admin_users = list(admin_users)
        self._organizations = list(organizations)
        try:
            self.engine = make_engine(database_url, echo=echo)
        except (ArgumentError, SQLAlchemyError, ImportError) as exc:
            raise InitializationFailure(f"Cannot create database engine for {database_url!r}") from exc
        self.SessionLocal = make_session_factory(self.engine)
        self._ready = False

    # ---- low-level helpers ----

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        if not self._ready:
            self.initialize()
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("sql_operation_failed", extra={"action": action, "error": str(exc)})
            raise BackendUnavailable(f"Relational storage failed to {action}") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _task_query(db: Session):
        return db.query(Task).options(selectinload(Task.organization_statuses))

    def _load_task(self, db: Session, task_id: int) -> Task:
        task = self._task_query(db).filter(Task.id == task_id).first()
        if not task:
            raise NotFound(f"Task {task_id} not found")
        return task

    @staticmethod
    def _require_organizations(db: Session, org_ids: Sequence[int]) -> None:
        wanted = set(org_ids)
        if not wanted:
            return
        found = {row[0] for row in db.query(Organization.id).filter(Organization.id.in_(wanted))}
        missing = sorted(wanted - found)
        if missing:
            raise NotFound(f"Organization {missing[0]} not found")

    @staticmethod
    def _to_read(task: Task) -> TaskRead:
        return TaskRead.model_validate(task)

    # ---- schema & seed ----

    def initialize(self) -> None:
        try:
            existing = set(inspect(self.engine).get_table_names())
            missing = REQUIRED_TABLES - existing
            if not missing:
                self._ready = True
                return

            Base.metadata.create_all(bind=self.engine)
            with self.SessionLocal() as db:
                if "users" in missing:
                    self._seed_users(db)
                if "organizations" in missing:
                    self._seed_organizations(db)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("sql_initialize_failed", extra={"database_url": self.database_url, "error": str(exc)})
            raise InitializationFailure("Relational storage could not be opened") from exc

        self._ready = True
        logger.info("sql_initialized", extra={"created_tables": sorted(missing)})

    def _seed_users(self, db: Session) -> None:
        for username, full_name in self._admin_users:
            db.add(
                User(
                    username=username,
                    password_hash=hash_password(username),
                    full_name=full_name,
                    is_admin=True,
                )
            )

    def _seed_organizations(self, db: Session) -> None:
        for name in self._organizations:
            db.add(Organization(name=name))

    def reset(self) -> None:
        try:
            Base.metadata.drop_all(bind=self.engine)
            self._ready = False
        except SQLAlchemyError as exc:
            raise BackendUnavailable("Relational storage could not be reset") from exc
        logger.warning("sql_reset", extra={"database_url": self.database_url})
        self.initialize()

    # ---- database image ----

    def _require_sqlite(self) -> None:
        if self.engine.dialect.name != "sqlite":
            raise BackendUnavailable("Database images are only available for SQLite storage")

    def export_image(self) -> bytes:
        """The whole database in SQLite's native file format."""
        self._require_sqlite()
        raw = self.engine.raw_connection()
        try:
            return bytes(raw.driver_connection.serialize())
        except sqlite3.Error as exc:
            raise BackendUnavailable("Database image could not be exported") from exc
        finally:
            raw.close()

    def import_image(self, data: bytes) -> None:
        """Replace the whole database with an exported image."""
        self._require_sqlite()
        if not data.startswith(SQLITE_HEADER):
            raise ValidationFailure("File is not a SQLite database image")

        source = sqlite3.connect(":memory:")
        try:
            source.deserialize(data)
            source.execute("SELECT count(*) FROM sqlite_master").fetchone()
            raw = self.engine.raw_connection()
            try:
                source.backup(raw.driver_connection)
            finally:
                raw.close()
        except sqlite3.DatabaseError as exc:
            raise ValidationFailure("Database image is corrupted") from exc
        finally:
            source.close()

        logger.info("sql_image_imported", extra={"size": len(data)})
        self.initialize()

    # ---- users ----

    def authenticate(self, username: str, password: str) -> Optional[UserSummary]:
        with self._session("authenticate") as db:
            user = db.query(User).filter(User.username == username).first()
            if not user or not verify_password(password, user.password_hash):
                return None
            return UserSummary.model_validate(user)

    def get_user(self, user_id: int) -> UserSummary:
        with self._session("load user") as db:
            user = db.get(User, user_id)
            if not user:
                raise NotFound(f"User {user_id} not found")
            return UserSummary.model_validate(user)

    def list_users(self) -> list[UserSummary]:
        with self._session("list users") as db:
            return [UserSummary.model_validate(u) for u in db.query(User).order_by(User.id).all()]

    # ---- organizations ----

    def list_organizations(self) -> list[OrganizationRead]:
        with self._session("list organizations") as db:
            rows = db.query(Organization).order_by(Organization.name).all()
            return [OrganizationRead.model_validate(o) for o in rows]

    def get_organization(self, org_id: int) -> OrganizationRead:
        with self._session("load organization") as db:
            org = db.get(Organization, org_id)
            if not org:
                raise NotFound(f"Organization {org_id} not found")
            return OrganizationRead.model_validate(org)

    # ---- tasks ----

    def list_tasks(self) -> list[TaskRead]:
        with self._session("list tasks") as db:
            return [self._to_read(t) for t in self._task_query(db).order_by(Task.id).all()]

    def get_task(self, task_id: int) -> TaskRead:
        with self._session("load task") as db:
            return self._to_read(self._load_task(db, task_id))

    def list_tasks_by_organization(self, org_id: int) -> list[TaskRead]:
        with self._session("list organization tasks") as db:
            rows = (
                self._task_query(db)
                .filter(
                    or_(
                        Task.organization_id == org_id,
                        Task.organization_statuses.any(TaskOrganizationStatus.organization_id == org_id),
                    )
                )
                .order_by(Task.id)
                .all()
            )
            return [self._to_read(t) for t in rows]

    def create_task(self, data: TaskCreate | dict[str, Any]) -> TaskRead:
        data = parse_model(TaskCreate, data)
        targets = data.target_organization_ids()
        primary = targets[0] if targets else data.organization_id

        with self._session("create task") as db:
            self._require_organizations(db, targets or [primary])

            task = Task(
                title=data.title,
                description=data.description,
                organization_id=primary,
                start_date=data.start_date,
                end_date=data.end_date,
                assigned_by=data.assigned_by,
                completion_percentage=0 if targets else data.completion_percentage,
                status=data.status.value,
                result=data.result,
                comment=data.comment,
            )
            stamp = _now()
            for org_id in targets:
                task.organization_statuses.append(
                    TaskOrganizationStatus(organization_id=org_id, completion_percentage=0, last_updated=stamp)
                )
            db.add(task)
            db.flush()

            logger.info("task_created", extra={"task_id": task.id, "organizations": len(targets) or 1})
            return self._to_read(task)

    def update_task(self, task_id: int, data: TaskUpdate | dict[str, Any]) -> TaskRead:
        data = parse_model(TaskUpdate, data)
        fields = data.model_dump(exclude_unset=True, exclude={"organization_statuses"})
        statuses = data.organization_statuses

        with self._session("update task") as db:
            task = self._load_task(db, task_id)

            if fields.get("organization_id") is not None:
                self._require_organizations(db, [fields["organization_id"]])

            for key, value in fields.items():
                # "is not None" so that empty strings and 0 are still saved
                if value is None and key not in ("result", "comment"):
                    continue
                if key == "status":
                    value = value.value
                setattr(task, key, value)

            if task.end_date < task.start_date:
                raise ValidationFailure("end_date must not be before start_date")

            if statuses is not None:
                self._replace_statuses(db, task, statuses)

            # entries own the overall value; a direct completion_percentage only sticks without them
            if task.organization_statuses:
                task.completion_percentage = overall_percentage(
                    s.completion_percentage for s in task.organization_statuses
                )

            db.flush()
            return self._to_read(task)

    def _replace_statuses(self, db: Session, task: Task, statuses: list[OrganizationStatusIn]) -> None:
        org_ids = [s.organization_id for s in statuses]
        if len(set(org_ids)) != len(org_ids):
            raise ValidationFailure("Each organization may appear only once in organization_statuses")
        self._require_organizations(db, org_ids)

        # delete first: the unit of work would otherwise insert before deleting
        task.organization_statuses.clear()
        db.flush()

        stamp = _now()
        for s in statuses:
            task.organization_statuses.append(
                TaskOrganizationStatus(
                    organization_id=s.organization_id,
                    completion_percentage=s.completion_percentage,
                    comment=s.comment,
                    last_updated=s.last_updated or stamp,
                )
            )

    def update_organization_status(
            self,
            task_id: int,
            org_id: int,
            percentage: Any,
            comment: Optional[str] = None,
    ) -> TaskRead:
        percentage = validate_percentage(percentage)

        with self._session("update organization status") as db:
            task = self._load_task(db, task_id)
            self._require_organizations(db, [org_id])

            entry = next((s for s in task.organization_statuses if s.organization_id == org_id), None)
            if entry is None:
                entry = TaskOrganizationStatus(organization_id=org_id)
                task.organization_statuses.append(entry)
            entry.completion_percentage = percentage
            entry.comment = comment
            entry.last_updated = _now()

            task.completion_percentage = overall_percentage(
                s.completion_percentage for s in task.organization_statuses
            )
            db.flush()

            logger.info(
                "organization_status_updated",
                extra={"task_id": task_id, "organization_id": org_id, "overall": task.completion_percentage},
            )
            return self._to_read(task)

    def delete_task(self, task_id: int) -> None:
        with self._session("delete task") as db:
            task = self._load_task(db, task_id)
            db.delete(task)
        logger.info("task_deleted", extra={"task_id": task_id})

    # ---- reconciliation ----

    def export_tasks(self) -> list[TaskRead]:
        return self.list_tasks()

    @staticmethod
    def _task_row(t: TaskRead, task_id: Optional[int]) -> Task:
        task = Task(
            id=task_id,
            title=t.title,
            description=t.description,
            organization_id=t.organization_id,
            start_date=t.start_date,
            end_date=t.end_date,
            assigned_by=t.assigned_by,
            completion_percentage=t.completion_percentage,
            status=t.status.value,
            result=t.result,
            comment=t.comment,
        )
        for s in t.organization_statuses:
            task.organization_statuses.append(
                TaskOrganizationStatus(
                    organization_id=s.organization_id,
                    completion_percentage=s.completion_percentage,
                    comment=s.comment,
                    last_updated=s.last_updated,
                )
            )
        return task

    def replace_tasks(self, tasks: list[TaskRead]) -> None:
        with self._session("replace tasks") as db:
            db.query(TaskOrganizationStatus).delete()
            db.query(Task).delete()
            for t in tasks:
                db.add(self._task_row(t, t.id))
        logger.info("sql_tasks_replaced", extra={"count": len(tasks)})

    def put_task(self, task: TaskRead, task_id: Optional[int] = None) -> TaskRead:
        """Store a task as given, under task_id (replacing any row there) or under a fresh id."""
        with self._session("put task") as db:
            self._require_organizations(db, task.organization_ids())
            if task_id is not None:
                existing = db.get(Task, task_id)
                if existing is not None:
                    db.delete(existing)
                    db.flush()
            row = self._task_row(task, task_id)
            db.add(row)
            db.flush()
            return self._to_read(row)
