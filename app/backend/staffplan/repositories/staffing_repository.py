"""Repository helpers for staffing, time and forecast state."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session

from staffplan.engine.overlay import ForecastField, OverlaySubject
from staffplan.models.entities import (
    Approval,
    Bonus,
    ForecastDelta,
    LeaveRecord,
    OvertimeSubmission,
    Project,
    PublicHoliday,
    StaffMember,
    StaffRate,
    Task,
    TaskAssignment,
    TaskSellRate,
    TimeEntry,
)


class StaffingRepository:
    """Persistence operations used by forecast, overtime and report services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Staff ----------
    def list_staff_members(self) -> list[StaffMember]:
        return self.db.scalars(select(StaffMember).order_by(StaffMember.name.asc(), StaffMember.id.asc())).all()

    def get_staff_member(self, staff_member_id: UUID) -> StaffMember | None:
        return self.db.scalar(select(StaffMember).where(StaffMember.id == staff_member_id))

    def list_staff_rates(self) -> list[StaffRate]:
        return self.db.scalars(
            select(StaffRate).order_by(
                StaffRate.staff_member_id.asc(),
                StaffRate.rate_kind.asc(),
                StaffRate.sequence_no.asc(),
            )
        ).all()

    # ---------- Projects and tasks ----------
    def list_projects(self) -> list[Project]:
        return self.db.scalars(select(Project).order_by(Project.name.asc(), Project.id.asc())).all()

    def list_tasks(self) -> list[Task]:
        return self.db.scalars(select(Task).order_by(Task.project_id.asc(), Task.name.asc())).all()

    def list_task_sell_rates(self) -> list[TaskSellRate]:
        return self.db.scalars(
            select(TaskSellRate).order_by(TaskSellRate.task_id.asc(), TaskSellRate.sequence_no.asc())
        ).all()

    def list_task_assignments(self) -> list[TaskAssignment]:
        return self.db.scalars(
            select(TaskAssignment).order_by(TaskAssignment.task_id.asc(), TaskAssignment.staff_member_id.asc())
        ).all()

    # ---------- Time, leave and holidays ----------
    def list_time_entries(
        self,
        start_date: date,
        end_date: date,
        *,
        staff_member_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> list[TimeEntry]:
        stmt = select(TimeEntry).where(and_(TimeEntry.entry_date >= start_date, TimeEntry.entry_date <= end_date))
        if staff_member_id is not None:
            stmt = stmt.where(TimeEntry.staff_member_id == staff_member_id)
        if project_id is not None:
            stmt = stmt.where(TimeEntry.project_id == project_id)
        return self.db.scalars(stmt.order_by(TimeEntry.entry_date.asc(), TimeEntry.id.asc())).all()

    def list_leave_overlapping(self, start_date: date, end_date: date) -> list[LeaveRecord]:
        return self.db.scalars(
            select(LeaveRecord)
            .where(and_(LeaveRecord.start_date <= end_date, LeaveRecord.end_date >= start_date))
            .order_by(LeaveRecord.start_date.asc())
        ).all()

    def count_public_holidays(self, start_date: date, end_date: date) -> int:
        return int(
            self.db.scalar(
                select(func.count(PublicHoliday.id)).where(
                    and_(PublicHoliday.holiday_date >= start_date, PublicHoliday.holiday_date <= end_date)
                )
            )
            or 0
        )

    def list_approvals_overlapping(self, start_date: date, end_date: date) -> list[Approval]:
        return self.db.scalars(
            select(Approval)
            .where(and_(Approval.start_date <= end_date, Approval.end_date >= start_date))
            .order_by(Approval.created_at.asc(), Approval.id.asc())
        ).all()

    # ---------- Bonuses ----------
    def list_bonuses(self, start_date: date, end_date: date) -> list[Bonus]:
        return self.db.scalars(
            select(Bonus)
            .where(and_(Bonus.bonus_date >= start_date, Bonus.bonus_date <= end_date))
            .order_by(Bonus.bonus_date.asc(), Bonus.id.asc())
        ).all()

    def get_bonus(self, bonus_id: UUID) -> Bonus | None:
        return self.db.scalar(select(Bonus).where(Bonus.id == bonus_id))

    def mark_bonus_paid(self, bonus_id: UUID, *, paid_at: datetime, payslip_ref: str | None) -> bool:
        """Flip an unpaid bonus to paid; False when another writer got there first."""

        result = self.db.execute(
            update(Bonus)
            .where(and_(Bonus.id == bonus_id, Bonus.paid.is_(False)))
            .values(paid=True, paid_at=paid_at, payslip_ref=payslip_ref)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---------- Forecast overlay ----------
    def list_forecast_deltas(self, month_start: date) -> list[ForecastDelta]:
        return self.db.scalars(
            select(ForecastDelta)
            .where(ForecastDelta.month_start == month_start)
            .order_by(ForecastDelta.updated_at.asc(), ForecastDelta.id.asc())
        ).all()

    def get_forecast_delta(
        self,
        month_start: date,
        subject: OverlaySubject,
        entity_id: str,
        field: ForecastField,
    ) -> ForecastDelta | None:
        return self.db.scalar(
            select(ForecastDelta).where(
                and_(
                    ForecastDelta.month_start == month_start,
                    ForecastDelta.subject == subject,
                    ForecastDelta.entity_id == entity_id,
                    ForecastDelta.field == field,
                )
            )
        )

    def add_forecast_delta(self, delta: ForecastDelta) -> ForecastDelta:
        self.db.add(delta)
        self.db.flush()
        return delta

    def delete_forecast_delta(self, delta: ForecastDelta) -> None:
        self.db.delete(delta)
        self.db.flush()

    def delete_forecast_deltas(self, month_start: date) -> int:
        result = self.db.execute(delete(ForecastDelta).where(ForecastDelta.month_start == month_start))
        self.db.flush()
        return result.rowcount or 0

    # ---------- Overtime submissions ----------
    def get_overtime_submission(self, submission_month: date) -> OvertimeSubmission | None:
        return self.db.scalar(
            select(OvertimeSubmission).where(OvertimeSubmission.submission_month == submission_month)
        )

    def add_overtime_submission(self, submission: OvertimeSubmission) -> OvertimeSubmission:
        self.db.add(submission)
        self.db.flush()
        return submission

    def staff_members_by_ids(self, ids: Iterable[UUID]) -> dict[UUID, StaffMember]:
        wanted = list(ids)
        if not wanted:
            return {}
        rows = self.db.scalars(select(StaffMember).where(StaffMember.id.in_(wanted))).all()
        return {row.id: row for row in rows}
