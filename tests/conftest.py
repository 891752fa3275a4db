# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from medtasks.storage.object_backend import ObjectStorage
from medtasks.storage.sql_backend import SqlStorage

USERS = [("alice", "Alice Adminova"), ("bob", "Bob Builder")]
ORGS = ["Org B", "Org A", 'ГБУЗ НСО "ГКБ №1" КДЦ']


def make_sql(tmp_path: Path, name: str = "medtasks.db") -> SqlStorage:
    return SqlStorage(f"sqlite:///{tmp_path / name}", admin_users=USERS, organizations=ORGS)


def make_object(tmp_path: Path, name: str = "objects.json") -> ObjectStorage:
    return ObjectStorage(tmp_path / name, admin_users=USERS, organizations=ORGS)


@pytest.fixture()
def sql_storage(tmp_path: Path) -> SqlStorage:
    storage = make_sql(tmp_path)
    storage.initialize()
    return storage


@pytest.fixture()
def object_storage(tmp_path: Path) -> ObjectStorage:
    storage = make_object(tmp_path)
    storage.initialize()
    return storage


@pytest.fixture(params=["sql", "object"])
def storage(request, tmp_path: Path):
    """Both backends must honour the same contract."""
    storage = make_sql(tmp_path) if request.param == "sql" else make_object(tmp_path)
    storage.initialize()
    return storage


@pytest.fixture()
def orgs(storage) -> dict[str, int]:
    return {o.name: o.id for o in storage.list_organizations()}


def task_payload(**overrides) -> dict:
    payload = {
        "title": "T1",
        "description": "Quarterly report",
        "start_date": datetime(2024, 1, 1),
        "end_date": datetime(2024, 1, 10),
        "assigned_by": "Alice Adminova",
    }
    payload.update(overrides)
    return payload
