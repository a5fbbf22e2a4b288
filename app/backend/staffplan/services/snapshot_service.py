"""Translate persisted rows into immutable engine snapshots."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from staffplan.engine.overlay import DeltaOverlay, OverlayKey, OverlayValue
from staffplan.engine.temporal import parse_year_month
from staffplan.engine.types import (
    Approval,
    Assignment,
    LeaveRecord,
    Person,
    Project,
    RateEntry,
    RateKind,
    Task,
    TimeEntry,
)
from staffplan.models.entities import ForecastDelta
from staffplan.repositories.staffing_repository import StaffingRepository

Q2 = Decimal("0.01")


def q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def money(value: Decimal) -> str:
    return str(q2(value))


def parse_month_or_422(value: str) -> date:
    try:
        return parse_year_month(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="month must use the YYYY-MM format.",
        ) from exc


def ensure_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must not be before start_date.",
        )


def parse_uuid_or_404(value: str, detail: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail) from exc


def overlay_from_rows(rows: list[ForecastDelta]) -> DeltaOverlay:
    return DeltaOverlay(
        {
            OverlayKey(row.subject, row.entity_id, row.field): OverlayValue(row.value, row.updated_at)
            for row in rows
        }
    )


class SnapshotService:
    """Loads engine inputs for one request; every loader queries once."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = StaffingRepository(db)

    def people(self) -> list[Person]:
        cost_rates: dict[UUID, list[RateEntry]] = defaultdict(list)
        sell_rates: dict[UUID, list[RateEntry]] = defaultdict(list)
        for rate in self.repo.list_staff_rates():
            target = cost_rates if rate.rate_kind is RateKind.COST else sell_rates
            target[rate.staff_member_id].append(RateEntry(amount=rate.amount, effective_date=rate.effective_date))

        return [
            Person(
                id=str(member.id),
                name=member.name,
                employment_type=member.employment_type,
                hours_per_week=member.hours_per_week,
                billable_percentage=member.billable_percentage,
                start_date=member.start_date,
                end_date=member.end_date,
                is_potential=member.is_potential,
                payroll_ref=member.payroll_ref,
                overtime_mode=member.overtime_mode,
                cost_rates=tuple(cost_rates.get(member.id, ())),
                sell_rates=tuple(sell_rates.get(member.id, ())),
            )
            for member in self.repo.list_staff_members()
        ]

    def projects(self) -> list[Project]:
        sell_rates: dict[UUID, list[RateEntry]] = defaultdict(list)
        for rate in self.repo.list_task_sell_rates():
            sell_rates[rate.task_id].append(RateEntry(amount=rate.amount, effective_date=rate.effective_date))

        assignments: dict[UUID, list[Assignment]] = defaultdict(list)
        for assignment in self.repo.list_task_assignments():
            assignments[assignment.task_id].append(
                Assignment(person_id=str(assignment.staff_member_id), active=assignment.active)
            )

        tasks_by_project: dict[UUID, list[Task]] = defaultdict(list)
        for task in self.repo.list_tasks():
            tasks_by_project[task.project_id].append(
                Task(
                    id=str(task.id),
                    name=task.name,
                    billable=task.billable,
                    active=task.active,
                    sell_rates=tuple(sell_rates.get(task.id, ())),
                    cost_rate=task.cost_rate,
                    assignments=tuple(assignments.get(task.id, ())),
                )
            )

        return [
            Project(
                id=str(project.id),
                name=project.name,
                active=project.active,
                end_date=project.end_date,
                overtime_inclusive=project.overtime_inclusive,
                requires_approval=project.requires_approval,
                tasks=tuple(tasks_by_project.get(project.id, ())),
            )
            for project in self.repo.list_projects()
        ]

    def leave(self, start_date: date, end_date: date, people: list[Person]) -> list[LeaveRecord]:
        """Leave records mapped to people by payroll reference; unmatched records are dropped."""

        by_payroll_ref = {person.payroll_ref: person.id for person in people if person.payroll_ref}
        records: list[LeaveRecord] = []
        for row in self.repo.list_leave_overlapping(start_date, end_date):
            person_id = by_payroll_ref.get(row.payroll_ref)
            if person_id is None:
                continue
            records.append(
                LeaveRecord(
                    person_id=person_id,
                    start_date=row.start_date,
                    end_date=row.end_date,
                    units=row.units,
                    status=row.status,
                )
            )
        return records

    def approvals(self, start_date: date, end_date: date) -> list[Approval]:
        return [
            Approval(
                project_id=str(row.project_id),
                person_id=str(row.staff_member_id),
                start_date=row.start_date,
                end_date=row.end_date,
                status=row.status,
            )
            for row in self.repo.list_approvals_overlapping(start_date, end_date)
        ]

    def time_entries(
        self,
        start_date: date,
        end_date: date,
        *,
        staff_member_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> list[TimeEntry]:
        return [
            TimeEntry(
                id=str(row.id),
                person_id=str(row.staff_member_id),
                project_id=str(row.project_id),
                task_id=str(row.task_id) if row.task_id is not None else None,
                entry_date=row.entry_date,
                hours=row.hours,
            )
            for row in self.repo.list_time_entries(
                start_date,
                end_date,
                staff_member_id=staff_member_id,
                project_id=project_id,
            )
        ]

    def bonuses_by_person(self, start_date: date, end_date: date) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for bonus in self.repo.list_bonuses(start_date, end_date):
            key = str(bonus.staff_member_id)
            totals[key] = totals.get(key, Decimal("0")) + bonus.amount
        return totals

    def overlay(self, month_start: date) -> DeltaOverlay:
        return overlay_from_rows(self.repo.list_forecast_deltas(month_start))
