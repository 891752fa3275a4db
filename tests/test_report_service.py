# tests/test_report_service.py

from __future__ import annotations

from datetime import date, datetime

import pytest

from medtasks.errors import ValidationFailure
from medtasks.report.report_service import (
    assigner_options,
    filter_organization_stats,
    filter_tasks,
    group_organizations_by_type,
    organization_stats,
    organization_type,
    sort_organization_stats,
    task_percentage_for,
    task_stats,
)
from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.report_schema import TaskFilter
from medtasks.schemas.task_schema import TaskRead
from medtasks.storage.rollup import overall_percentage, round_half_up, validate_percentage

TODAY = date(2024, 3, 1)

ORG_A = OrganizationRead(id=1, name='ГАУЗ НСО "ГКП №1" ВПО')
ORG_B = OrganizationRead(id=2, name='ГБУЗ НСО "ГКБ №1" КДЦ')
ORG_C = OrganizationRead(id=3, name="Областной центр")


def make_task(task_id: int, org_id: int, percent: int, end: date, statuses=(), **fields) -> TaskRead:
    return TaskRead.model_validate({
        "id": task_id,
        "title": fields.pop("title", f"Task {task_id}"),
        "description": fields.pop("description", ""),
        "organization_id": org_id,
        "start_date": fields.pop("start", datetime(2024, 1, 1)),
        "end_date": datetime.combine(end, datetime.min.time()),
        "assigned_by": fields.pop("assigned_by", "Кноль Анна Сергеевна"),
        "completion_percentage": percent,
        "organization_statuses": [
            {"organization_id": o, "completion_percentage": p, "last_updated": datetime(2024, 1, 2)}
            for o, p in statuses
        ],
        **fields,
    })


def test_round_half_up_matches_browser_rounding() -> None:
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(40.0) == 40
    assert round_half_up(49.49) == 49


def test_overall_percentage() -> None:
    assert overall_percentage([]) == 0
    assert overall_percentage([80, 0]) == 40
    assert overall_percentage([80, 20]) == 50
    assert overall_percentage([33, 33, 34]) == 33


@pytest.mark.parametrize("value,expected", [(0, 0), (100, 100), (55, 55), (70.0, 70)])
def test_validate_percentage_accepts(value, expected) -> None:
    assert validate_percentage(value) == expected


@pytest.mark.parametrize("value", [-1, 101, 12.5, "12", None, False, float("inf")])
def test_validate_percentage_rejects(value) -> None:
    with pytest.raises(ValidationFailure):
        validate_percentage(value)


def test_organization_type_codes() -> None:
    assert organization_type(ORG_A.name) == "ВПО"
    assert organization_type(ORG_B.name) == "КДЦ"
    assert organization_type(ORG_C.name) is None

    groups = group_organizations_by_type([ORG_A, ORG_B, ORG_C])
    assert groups["ВПО"] == [ORG_A]
    assert groups["КДЦ"] == [ORG_B]
    assert groups["other"] == [ORG_C]
    assert groups["ДПО"] == []


def test_task_stats_counts_overdue_only_for_open_tasks() -> None:
    tasks = [
        make_task(1, 1, 100, date(2024, 1, 10)),   # completed, past end
        make_task(2, 1, 50, date(2024, 2, 1)),     # overdue
        make_task(3, 1, 0, date(2024, 3, 1)),      # ends today: not overdue
        make_task(4, 1, 10, date(2024, 4, 1)),
    ]

    stats = task_stats(tasks, TODAY)

    assert stats.total == 4
    assert stats.completed == 1
    assert stats.in_progress == 3
    assert stats.overdue == 1


def test_task_stats_empty() -> None:
    stats = task_stats([], TODAY)
    assert (stats.total, stats.completed, stats.in_progress, stats.overdue) == (0, 0, 0, 0)


def test_status_aware_percentage() -> None:
    task = make_task(1, 1, 40, date(2024, 4, 1), statuses=[(1, 80), (2, 0)])
    assert task_percentage_for(task, 1) == 80
    assert task_percentage_for(task, 2) == 0
    assert task_percentage_for(task, 3) == 40


def test_organization_stats() -> None:
    tasks = [
        make_task(1, 1, 50, date(2024, 4, 1), statuses=[(1, 100), (2, 0)]),
        make_task(2, 1, 20, date(2024, 2, 1)),
    ]

    stats = {s.id: s for s in organization_stats([ORG_A, ORG_B, ORG_C], tasks, TODAY)}

    assert stats[1].task_ids == [1, 2]
    assert stats[1].tasks_completed == 1
    assert stats[1].tasks_in_progress == 1
    assert stats[1].tasks_overdue == 1
    assert stats[1].completion_percent == 60

    assert stats[2].task_ids == [1]
    assert stats[2].completion_percent == 0
    assert stats[2].tasks_overdue == 0

    assert stats[3].tasks_total == 0
    assert stats[3].completion_percent == 0
    assert stats[3].tasks_overdue == 0


def test_filter_tasks() -> None:
    tasks = [
        make_task(1, 1, 100, date(2024, 1, 31), title="Отчёт", start=datetime(2024, 1, 1)),
        make_task(2, 2, 30, date(2024, 2, 28), start=datetime(2024, 2, 1), comment="ждём ответа"),
        make_task(3, 3, 0, date(2024, 3, 31), start=datetime(2024, 3, 1), statuses=[(1, 0)],
                  assigned_by="Бакулина Наталья Евгеньевна"),
    ]

    def ids(**criteria) -> list[int]:
        return [t.id for t in filter_tasks(tasks, TaskFilter(**criteria))]

    assert ids() == [1, 2, 3]
    assert ids(completed=True) == [1]
    assert ids(completed=False) == [2, 3]
    assert ids(organization_id=1) == [1, 3]
    assert ids(assigned_by="Бакулина Наталья Евгеньевна") == [3]
    assert ids(search="ОТЧЁТ") == [1]
    assert ids(search="ответа") == [2]
    assert ids(start_date=date(2024, 2, 15)) == [2, 3]
    assert ids(end_date=date(2024, 1, 15)) == [1]
    assert ids(start_date=date(2024, 2, 10), end_date=date(2024, 2, 20)) == [2]
    assert ids(start_date=date(2024, 1, 20), end_date=date(2024, 3, 5)) == [1, 2, 3]


def test_filter_and_sort_organization_stats() -> None:
    tasks = [
        make_task(1, 1, 10, date(2024, 4, 1)),
        make_task(2, 1, 90, date(2024, 4, 1)),
        make_task(3, 2, 100, date(2024, 4, 1)),
    ]
    stats = organization_stats([ORG_A, ORG_B, ORG_C], tasks, TODAY)

    assert [s.id for s in filter_organization_stats(stats, type_code="КДЦ")] == [2]
    assert [s.id for s in filter_organization_stats(stats, search="гкп")] == [1]
    assert [s.id for s in filter_organization_stats(stats, only_with_tasks=True)] == [1, 2]

    assert [s.id for s in sort_organization_stats(stats)] == [1, 2, 3]
    assert [s.id for s in sort_organization_stats(stats, "name", descending=True)] == [3, 2, 1]
    assert [s.id for s in sort_organization_stats(stats, "tasks_total", descending=True)] == [1, 2, 3]
    assert [s.id for s in sort_organization_stats(stats, "completion_percent")] == [3, 1, 2]


def test_assigner_options_lists_known_assigners_first() -> None:
    tasks = [
        make_task(1, 1, 0, date(2024, 4, 1), assigned_by="Кноль Анна Сергеевна"),
        make_task(2, 1, 0, date(2024, 4, 1), assigned_by="Zed Outsider"),
        make_task(3, 1, 0, date(2024, 4, 1), assigned_by="Adam Outsider"),
        make_task(4, 1, 0, date(2024, 4, 1), assigned_by=""),
    ]

    options = assigner_options(tasks, known=["Кноль Анна Сергеевна", "Бакулина Наталья Евгеньевна"])

    assert options == ["Кноль Анна Сергеевна", "Бакулина Наталья Евгеньевна", "Adam Outsider", "Zed Outsider"]
    assert assigner_options([])[0] == "Белугина Елена Владимировна"
