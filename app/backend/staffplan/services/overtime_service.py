"""Overtime report and once-per-month submission ledger."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from staffplan.core.config import get_settings
from staffplan.engine.overtime import OvertimeEntry, OvertimeReport, compute_overtime
from staffplan.engine.temporal import format_year_month, month_bounds
from staffplan.engine.types import Period
from staffplan.models.entities import OvertimeSubmission
from staffplan.repositories.staffing_repository import StaffingRepository
from staffplan.services.snapshot_service import (
    SnapshotService,
    ensure_date_range,
    money,
    parse_month_or_422,
    q2,
)

logger = logging.getLogger(__name__)

DUPLICATE_SUBMISSION_DETAIL = "Overtime has already been submitted for this month."


class OvertimeService:
    """Computes overtime allocations and records payroll submissions."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = StaffingRepository(db)
        self.snapshots = SnapshotService(db)
        self.settings = get_settings()

    @staticmethod
    def serialize_entry(entry: OvertimeEntry) -> dict[str, object]:
        return {
            "person_id": entry.person_id,
            "name": entry.name,
            "overtime_mode": entry.overtime_mode.value,
            "hours_per_week": money(entry.hours_per_week),
            "standard_hours": money(entry.standard_hours),
            "total_hours": money(entry.total_hours),
            "overtime_hours": money(entry.overtime_hours),
            "projects": [
                {
                    "project_id": item.project_id,
                    "project_name": item.project_name,
                    "hours": money(item.hours),
                    "overtime_hours": money(item.overtime_hours),
                    "requires_approval": item.requires_approval,
                    "approval_status": item.approval_status.value,
                }
                for item in entry.projects
            ],
        }

    def serialize_report(self, report: OvertimeReport) -> dict[str, object]:
        return {
            "start_date": report.period.start.isoformat(),
            "end_date": report.period.end.isoformat(),
            "entries": [self.serialize_entry(entry) for entry in report.entries],
            "summary": {
                "total_overtime_hours": money(report.summary.total_overtime_hours),
                "total_users": report.summary.total_users,
                "working_days": report.summary.working_days,
                "has_pending_approvals": report.summary.has_pending_approvals,
            },
        }

    @staticmethod
    def serialize_submission(submission: OvertimeSubmission) -> dict[str, object]:
        return {
            "id": str(submission.id),
            "month": format_year_month(submission.submission_month),
            "period_start": submission.period_start.isoformat(),
            "period_end": submission.period_end.isoformat(),
            "pay_run_ref": submission.pay_run_ref,
            "total_overtime_hours": money(submission.total_overtime_hours),
            "user_count": submission.user_count,
            "entries": submission.entries_payload,
            "submitted_at": submission.submitted_at.isoformat(),
        }

    def build_report(self, start_date: date, end_date: date) -> OvertimeReport:
        ensure_date_range(start_date, end_date)
        period = Period(start=start_date, end=end_date)
        people = self.snapshots.people()
        return compute_overtime(
            people,
            self.snapshots.time_entries(start_date, end_date),
            self.snapshots.projects(),
            self.snapshots.approvals(start_date, end_date),
            period,
            default_hours_per_week=self.settings.default_hours_per_week,
        )

    def submit(
        self,
        *,
        month: str,
        pay_run_ref: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> OvertimeSubmission:
        """Record the overtime of one pay period against its submission month.

        The ledger check runs before anything is computed or written; the
        unique constraint on the month catches concurrent submissions.
        """

        month_start = parse_month_or_422(month)
        if self.repo.get_overtime_submission(month_start) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_SUBMISSION_DETAIL)

        default_start, default_end = month_bounds(month_start)
        period_start = start_date or default_start
        period_end = end_date or default_end
        report = self.build_report(period_start, period_end)
        if not report.entries:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="There is no overtime to submit for this period.",
            )

        payroll_refs = {person.id: person.payroll_ref for person in self.snapshots.people()}
        submission = OvertimeSubmission(
            submission_month=month_start,
            period_start=period_start,
            period_end=period_end,
            pay_run_ref=pay_run_ref,
            total_overtime_hours=q2(report.summary.total_overtime_hours),
            user_count=report.summary.total_users,
            entries_payload=[
                {
                    "person_id": entry.person_id,
                    "name": entry.name,
                    "payroll_ref": payroll_refs.get(entry.person_id),
                    "overtime_hours": money(entry.overtime_hours),
                }
                for entry in report.entries
            ],
        )
        try:
            self.repo.add_overtime_submission(submission)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_SUBMISSION_DETAIL) from exc

        self.db.refresh(submission)
        logger.info(
            "Submitted %s overtime hours for %d people in %s",
            submission.total_overtime_hours,
            submission.user_count,
            format_year_month(month_start),
            extra={"month": format_year_month(month_start), "submission_id": str(submission.id)},
        )
        return submission

    def get_submission(self, month: str) -> OvertimeSubmission | None:
        return self.repo.get_overtime_submission(parse_month_or_422(month))
