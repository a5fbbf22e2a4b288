"""Proportional overtime allocation over a pay period."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from staffplan.engine.rates import ZERO
from staffplan.engine.temporal import DEFAULT_HOURS_PER_WEEK, WORK_WEEK_DAYS, working_days_in_range
from staffplan.engine.types import (
    Approval,
    ApprovalStatus,
    OvertimeMode,
    Period,
    Person,
    Project,
    TimeEntry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProjectOvertime:
    project_id: str
    project_name: str
    hours: Decimal
    overtime_hours: Decimal
    requires_approval: bool
    approval_status: ApprovalStatus


@dataclass(frozen=True, slots=True)
class OvertimeEntry:
    person_id: str
    name: str
    overtime_mode: OvertimeMode
    hours_per_week: Decimal
    standard_hours: Decimal
    total_hours: Decimal
    overtime_hours: Decimal
    projects: tuple[ProjectOvertime, ...]


@dataclass(frozen=True, slots=True)
class OvertimeSummary:
    total_overtime_hours: Decimal
    total_users: int
    working_days: int
    has_pending_approvals: bool


@dataclass(frozen=True, slots=True)
class OvertimeReport:
    period: Period
    entries: tuple[OvertimeEntry, ...]
    summary: OvertimeSummary


def is_overtime_eligible(person: Person | None, project: Project | None) -> bool:
    if person is None or project is None:
        return False
    if not person.is_employee or person.overtime_mode is OvertimeMode.NONE:
        return False
    return person.overtime_mode is OvertimeMode.ALL or project.overtime_inclusive


def approval_status_for_period(
    approvals: Sequence[Approval],
    project: Project,
    person_id: str,
    period: Period,
) -> ApprovalStatus:
    """Status of the first approval covering the whole pay period."""

    if not project.requires_approval:
        return ApprovalStatus.NOT_REQUIRED
    for approval in approvals:
        if (
            approval.project_id == project.id
            and approval.person_id == person_id
            and approval.start_date <= period.start
            and approval.end_date >= period.end
        ):
            return approval.status
    return ApprovalStatus.UNSUBMITTED


def allocate_overtime(project_hours: dict[str, Decimal], overtime_hours: Decimal) -> dict[str, Decimal]:
    """Split ``overtime_hours`` across projects in proportion to hours worked.

    An empty or zero-hour basis yields an empty allocation; the caller decides
    how to report it.
    """

    basis = sum(project_hours.values(), ZERO)
    if basis <= ZERO:
        return {}
    return {project_id: hours / basis * overtime_hours for project_id, hours in project_hours.items()}


def compute_overtime(
    employees: Sequence[Person],
    time_entries: Sequence[TimeEntry],
    projects: Sequence[Project],
    approvals: Sequence[Approval],
    period: Period,
    *,
    default_hours_per_week: Decimal = DEFAULT_HOURS_PER_WEEK,
) -> OvertimeReport:
    """Build the overtime report for ``period``.

    Only time entries dated inside the period count. Allocated project shares
    of each person always add up to that person's overtime hours.
    """

    people = {person.id: person for person in employees}
    projects_by_id = {project.id: project for project in projects}
    working_days = working_days_in_range(period.start, period.end)

    totals: dict[str, Decimal] = {}
    per_project: dict[str, dict[str, Decimal]] = {}
    for entry in time_entries:
        if not period.contains(entry.entry_date):
            continue
        person = people.get(entry.person_id)
        project = projects_by_id.get(entry.project_id)
        if not is_overtime_eligible(person, project):
            continue
        totals[entry.person_id] = totals.get(entry.person_id, ZERO) + entry.hours
        bucket = per_project.setdefault(entry.person_id, {})
        bucket[entry.project_id] = bucket.get(entry.project_id, ZERO) + entry.hours

    entries: list[OvertimeEntry] = []
    for person in employees:
        if not person.is_employee or person.overtime_mode is OvertimeMode.NONE:
            continue
        hours_per_week = person.hours_per_week or default_hours_per_week
        standard_hours = hours_per_week / WORK_WEEK_DAYS * Decimal(working_days)
        total_hours = totals.get(person.id, ZERO)
        overtime_hours = max(ZERO, total_hours - standard_hours)
        if overtime_hours <= ZERO:
            continue

        project_hours = per_project.get(person.id, {})
        shares = allocate_overtime(project_hours, overtime_hours)
        if not shares:
            logger.warning(
                "Overtime of %s hours for person %s has no project hours to allocate against.",
                overtime_hours,
                person.id,
            )

        breakdown = []
        for project_id, share in shares.items():
            project = projects_by_id[project_id]
            breakdown.append(
                ProjectOvertime(
                    project_id=project_id,
                    project_name=project.name,
                    hours=project_hours[project_id],
                    overtime_hours=share,
                    requires_approval=project.requires_approval,
                    approval_status=approval_status_for_period(approvals, project, person.id, period),
                )
            )
        breakdown.sort(key=lambda item: item.hours, reverse=True)

        entries.append(
            OvertimeEntry(
                person_id=person.id,
                name=person.name,
                overtime_mode=person.overtime_mode,
                hours_per_week=hours_per_week,
                standard_hours=standard_hours,
                total_hours=total_hours,
                overtime_hours=overtime_hours,
                projects=tuple(breakdown),
            )
        )

    entries.sort(key=lambda item: item.overtime_hours, reverse=True)
    pending = any(
        project.approval_status in (ApprovalStatus.PENDING, ApprovalStatus.UNSUBMITTED)
        for entry in entries
        for project in entry.projects
    )
    summary = OvertimeSummary(
        total_overtime_hours=sum((entry.overtime_hours for entry in entries), ZERO),
        total_users=len(entries),
        working_days=working_days,
        has_pending_approvals=pending,
    )
    logger.debug(
        "Overtime %s..%s: %d people, %s hours",
        period.start.isoformat(),
        period.end.isoformat(),
        summary.total_users,
        summary.total_overtime_hours,
    )
    return OvertimeReport(period=period, entries=tuple(entries), summary=summary)
