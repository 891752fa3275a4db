# medtasks/report/report_service.py

"""Dashboard statistics and list filters computed over already loaded tasks."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Optional

from medtasks.schemas.organization_schema import OrganizationRead
from medtasks.schemas.report_schema import OrganizationSortKey, OrganizationTaskStats, TaskFilter, TaskStats
from medtasks.schemas.task_schema import TaskRead
from medtasks.seed import ORGANIZATION_TYPES, TASK_ASSIGNERS
from medtasks.storage.rollup import overall_percentage

OTHER_TYPE = "other"


def organization_type(name: str) -> Optional[str]:
    for code in ORGANIZATION_TYPES:
        if code in name:
            return code
    return None


def group_organizations_by_type(organizations: Iterable[OrganizationRead]) -> dict[str, list[OrganizationRead]]:
    groups: dict[str, list[OrganizationRead]] = {code: [] for code in ORGANIZATION_TYPES}
    groups[OTHER_TYPE] = []
    for org in organizations:
        groups[organization_type(org.name) or OTHER_TYPE].append(org)
    return groups


def task_percentage_for(task: TaskRead, org_id: int) -> int:
    """The organization's own status entry when it has one, else the task overall value."""
    for entry in task.organization_statuses:
        if entry.organization_id == org_id:
            return entry.completion_percentage
    return task.completion_percentage


def _is_overdue(end: date, today: date) -> bool:
    return end < today


def task_stats(tasks: Iterable[TaskRead], today: date) -> TaskStats:
    stats = TaskStats()
    for task in tasks:
        stats.total += 1
        if task.completion_percentage == 100:
            stats.completed += 1
            continue
        stats.in_progress += 1
        if _is_overdue(task.end_date.date(), today):
            stats.overdue += 1
    return stats


def organization_stats(
        organizations: Iterable[OrganizationRead],
        tasks: Sequence[TaskRead],
        today: date,
) -> list[OrganizationTaskStats]:
    result = []
    for org in organizations:
        item = OrganizationTaskStats(id=org.id, name=org.name)
        percentages = []
        for task in tasks:
            if org.id not in task.organization_ids():
                continue
            percent = task_percentage_for(task, org.id)
            percentages.append(percent)
            item.task_ids.append(task.id)
            if percent == 100:
                item.tasks_completed += 1
            else:
                item.tasks_in_progress += 1
                if _is_overdue(task.end_date.date(), today):
                    item.tasks_overdue += 1

        item.tasks_total = len(percentages)
        item.completion_percent = overall_percentage(percentages)
        result.append(item)
    return result


def assigner_options(tasks: Iterable[TaskRead], known: Sequence[str] = TASK_ASSIGNERS) -> list[str]:
    """Choices for the assigner filter: the known assigners, then any other assigned_by found on tasks."""
    options = list(dict.fromkeys(known))
    seen = set(options)
    for name in sorted({t.assigned_by for t in tasks if t.assigned_by} - seen):
        options.append(name)
    return options


def filter_tasks(tasks: Iterable[TaskRead], criteria: TaskFilter) -> list[TaskRead]:
    result = []
    needle = (criteria.search or "").strip().lower()

    for task in tasks:
        if criteria.completed is True and task.completion_percentage != 100:
            continue
        if criteria.completed is False and task.completion_percentage == 100:
            continue

        if criteria.organization_id is not None and criteria.organization_id not in task.organization_ids():
            continue

        if criteria.assigned_by and task.assigned_by != criteria.assigned_by:
            continue

        if not _in_date_range(task, criteria.start_date, criteria.end_date):
            continue

        if needle:
            haystack = (task.title, task.description, task.assigned_by, task.result or "", task.comment or "")
            if not any(needle in text.lower() for text in haystack):
                continue

        result.append(task)
    return result


def _in_date_range(task: TaskRead, start: Optional[date], end: Optional[date]) -> bool:
    task_start = task.start_date.date()
    task_end = task.end_date.date()

    if start and not end:
        return task_start >= start or task_end >= start
    if end and not start:
        return task_start <= end or task_end <= end
    if start and end:
        return (
            start <= task_start <= end
            or start <= task_end <= end
            or (task_start <= start and task_end >= end)
        )
    return True


def filter_organization_stats(
        stats: Iterable[OrganizationTaskStats],
        *,
        search: Optional[str] = None,
        type_code: Optional[str] = None,
        only_with_tasks: bool = False,
) -> list[OrganizationTaskStats]:
    needle = (search or "").strip().lower()
    result = []
    for item in stats:
        if needle and needle not in item.name.lower():
            continue
        if type_code and type_code not in item.name:
            continue
        if only_with_tasks and item.tasks_total == 0:
            continue
        result.append(item)
    return result


def sort_organization_stats(
        stats: Iterable[OrganizationTaskStats],
        key: OrganizationSortKey = "name",
        descending: bool = False,
) -> list[OrganizationTaskStats]:
    if key == "name":
        return sorted(stats, key=lambda s: s.name.lower(), reverse=descending)
    return sorted(stats, key=lambda s: (getattr(s, key), s.name.lower()), reverse=descending)
