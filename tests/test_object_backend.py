# tests/test_object_backend.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from medtasks.errors import BackendUnavailable, InitializationFailure
from medtasks.storage.object_backend import SCHEMA_VERSION, ObjectStorage

from .conftest import ORGS, make_object, task_payload


def test_document_layout(object_storage: ObjectStorage) -> None:
    doc = json.loads(object_storage.path.read_text(encoding="utf-8"))

    assert doc["version"] == SCHEMA_VERSION
    assert set(doc["stores"]) == {"users", "organizations", "tasks"}
    assert doc["stores"]["organizations"]["next_id"] == len(ORGS) + 1
    user = next(iter(doc["stores"]["users"]["records"].values()))
    assert user["password_hash"] != user["username"]


def test_records_survive_reopen(tmp_path: Path, object_storage: ObjectStorage) -> None:
    orgs = {o.name: o.id for o in object_storage.list_organizations()}
    task = object_storage.create_task(task_payload(organization_ids=[orgs["Org A"], orgs["Org B"]]))
    task = object_storage.update_organization_status(task.id, orgs["Org B"], 60)

    reopened = make_object(tmp_path)
    reopened.initialize()

    assert reopened.list_tasks() == [task]
    assert [t.id for t in reopened.list_tasks_by_organization(orgs["Org B"])] == [task.id]
    assert reopened.authenticate("bob", "bob") is not None


def test_missing_store_is_created_and_seeded(tmp_path: Path) -> None:
    path = tmp_path / "objects.json"
    path.write_text(json.dumps({"version": 1, "stores": {"users": {"next_id": 1, "records": {}}}}), encoding="utf-8")

    storage = ObjectStorage(path, admin_users=[], organizations=ORGS)
    storage.initialize()

    assert storage.list_users() == []
    assert len(storage.list_organizations()) == len(ORGS)
    assert storage.list_tasks() == []


def test_newer_schema_version_is_refused(tmp_path: Path) -> None:
    path = tmp_path / "objects.json"
    path.write_text(json.dumps({"version": SCHEMA_VERSION + 1, "stores": {}}), encoding="utf-8")

    with pytest.raises(InitializationFailure):
        ObjectStorage(path).initialize()


def test_corrupted_document_is_refused(tmp_path: Path) -> None:
    path = tmp_path / "objects.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InitializationFailure):
        ObjectStorage(path).initialize()


def test_failed_write_changes_nothing(object_storage: ObjectStorage, monkeypatch) -> None:
    orgs = {o.name: o.id for o in object_storage.list_organizations()}
    task = object_storage.create_task(task_payload(organization_ids=[orgs["Org A"]]))

    def broken_write(doc):
        raise OSError("disk full")

    monkeypatch.setattr(object_storage, "_write_document", broken_write)

    with pytest.raises(BackendUnavailable):
        object_storage.update_organization_status(task.id, orgs["Org A"], 75)
    with pytest.raises(BackendUnavailable):
        object_storage.delete_task(task.id)

    assert object_storage.list_tasks() == [task]


@pytest.mark.parametrize("doc", [
    {"version": "1", "stores": {}},
    {"version": 1, "stores": {"users": {"next_id": 2, "records": {"1": {"full_name": "no username"}}}}},
    {"version": 1, "stores": {"tasks": {"next_id": 2, "records": {"1": {"title": "no organization"}}}}},
    {"version": 1, "stores": {"users": []}},
])
def test_malformed_document_is_refused(tmp_path: Path, doc) -> None:
    path = tmp_path / "objects.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    with pytest.raises(InitializationFailure):
        ObjectStorage(path).initialize()
