"""Per-entry cost/revenue report and contractor hours for a pay period."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from staffplan.engine.rates import ZERO, resolve_rate
from staffplan.engine.types import (
    Approval,
    ApprovalStatus,
    Period,
    Person,
    Project,
    TimeEntry,
)


@dataclass(frozen=True, slots=True)
class TimeReportEntry:
    id: str
    entry_date: date
    person_id: str
    person_name: str
    project_id: str
    project_name: str
    task_id: str
    task_name: str
    approval_status: ApprovalStatus
    hours: Decimal
    sell_rate: Decimal
    cost_rate: Decimal
    cost: Decimal
    revenue: Decimal
    profit: Decimal


@dataclass(frozen=True, slots=True)
class TimeReportSummary:
    total_hours: Decimal
    total_cost: Decimal
    total_revenue: Decimal
    profit_margin: int


@dataclass(frozen=True, slots=True)
class TimeReport:
    entries: tuple[TimeReportEntry, ...]
    summary: TimeReportSummary


@dataclass(frozen=True, slots=True)
class TaskHours:
    project_id: str
    project_name: str
    task_id: str
    task_name: str
    hours: Decimal
    approval_status: ApprovalStatus


@dataclass(frozen=True, slots=True)
class ContractorHours:
    person_id: str
    name: str
    payroll_ref: str | None
    hours: Decimal
    projects: tuple[TaskHours, ...]


def _entry_approval_status(
    approvals: Sequence[Approval],
    project: Project,
    person_id: str,
    entry_date: date,
) -> ApprovalStatus:
    if not project.requires_approval:
        return ApprovalStatus.NOT_REQUIRED
    for approval in approvals:
        if (
            approval.project_id == project.id
            and approval.person_id == person_id
            and approval.start_date <= entry_date <= approval.end_date
        ):
            return approval.status
    return ApprovalStatus.NO_APPROVAL


def build_time_report(
    entries: Sequence[TimeEntry],
    people: Sequence[Person],
    projects: Sequence[Project],
    approvals: Sequence[Approval],
) -> TimeReport:
    """Price every time entry at the rates in force on its own date.

    Entries whose person, project or task cannot be found are left out.
    A task with a positive fixed cost rate overrides the person's cost history.
    """

    people_by_id = {person.id: person for person in people}
    projects_by_id = {project.id: project for project in projects}

    rows: list[TimeReportEntry] = []
    for entry in entries:
        person = people_by_id.get(entry.person_id)
        project = projects_by_id.get(entry.project_id)
        task = project.find_task(entry.task_id) if project is not None and entry.task_id else None
        if person is None or project is None or task is None:
            continue

        sell_rate = resolve_rate(task.sell_rates, entry.entry_date) if task.billable else ZERO
        if task.cost_rate > ZERO:
            cost_rate = task.cost_rate
        else:
            cost_rate = resolve_rate(person.cost_rates, entry.entry_date)
        cost = entry.hours * cost_rate
        revenue = entry.hours * sell_rate
        rows.append(
            TimeReportEntry(
                id=entry.id,
                entry_date=entry.entry_date,
                person_id=person.id,
                person_name=person.name,
                project_id=project.id,
                project_name=project.name,
                task_id=task.id,
                task_name=task.name,
                approval_status=_entry_approval_status(approvals, project, person.id, entry.entry_date),
                hours=entry.hours,
                sell_rate=sell_rate,
                cost_rate=cost_rate,
                cost=cost,
                revenue=revenue,
                profit=revenue - cost,
            )
        )

    rows.sort(key=lambda row: row.entry_date)
    total_hours = sum((row.hours for row in rows), ZERO)
    total_cost = sum((row.cost for row in rows), ZERO)
    total_revenue = sum((row.revenue for row in rows), ZERO)
    if total_revenue > ZERO:
        ratio = (total_revenue - total_cost) / total_revenue * Decimal("100")
        profit_margin = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    else:
        profit_margin = 0

    return TimeReport(
        entries=tuple(rows),
        summary=TimeReportSummary(
            total_hours=total_hours,
            total_cost=total_cost,
            total_revenue=total_revenue,
            profit_margin=profit_margin,
        ),
    )


def contractor_hours(
    people: Sequence[Person],
    entries: Sequence[TimeEntry],
    projects: Sequence[Project],
    approvals: Sequence[Approval],
    period: Period,
) -> list[ContractorHours]:
    """Hours per contractor in ``period`` with a project/task breakdown."""

    projects_by_id = {project.id: project for project in projects}
    results: list[ContractorHours] = []

    for person in people:
        if not person.is_contractor:
            continue
        own_entries = [
            entry for entry in entries if entry.person_id == person.id and period.contains(entry.entry_date)
        ]
        breakdown: dict[tuple[str, str], dict] = {}
        for entry in own_entries:
            project = projects_by_id.get(entry.project_id)
            task = project.find_task(entry.task_id) if project is not None and entry.task_id else None
            if project is None or task is None:
                continue
            key = (project.id, task.id)
            if key not in breakdown:
                breakdown[key] = {
                    "project_id": project.id,
                    "project_name": project.name,
                    "task_id": task.id,
                    "task_name": task.name,
                    "hours": ZERO,
                    "approval_status": _period_approval_status(approvals, project, person.id, period),
                }
            breakdown[key]["hours"] += entry.hours

        task_hours = sorted(
            (TaskHours(**values) for values in breakdown.values()),
            key=lambda item: item.hours,
            reverse=True,
        )
        results.append(
            ContractorHours(
                person_id=person.id,
                name=person.name,
                payroll_ref=person.payroll_ref,
                hours=sum((entry.hours for entry in own_entries), ZERO),
                projects=tuple(task_hours),
            )
        )
    return results


def _period_approval_status(
    approvals: Sequence[Approval],
    project: Project,
    person_id: str,
    period: Period,
) -> ApprovalStatus:
    if not project.requires_approval:
        return ApprovalStatus.NOT_REQUIRED
    for approval in approvals:
        if (
            approval.project_id == project.id
            and approval.person_id == person_id
            and approval.start_date <= period.end
            and approval.end_date >= period.start
        ):
            return approval.status
    return ApprovalStatus.PENDING
