"""Time report, contractor hours and report export."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date
from io import BytesIO

from fastapi import HTTPException, status
from openpyxl import Workbook
from sqlalchemy.orm import Session

from staffplan.engine.time_report import (
    ContractorHours,
    TimeReport,
    TimeReportEntry,
    build_time_report,
    contractor_hours,
)
from staffplan.engine.types import Period
from staffplan.services.snapshot_service import SnapshotService, ensure_date_range, money, parse_uuid_or_404

EXPORT_COLUMNS = [
    "date",
    "person_name",
    "project_name",
    "task_name",
    "approval_status",
    "hours",
    "sell_rate",
    "cost_rate",
    "cost",
    "revenue",
    "profit",
]


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


class ReportService:
    """Read-only reporting over time entries."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.snapshots = SnapshotService(db)

    @staticmethod
    def serialize_entry(entry: TimeReportEntry) -> dict[str, object]:
        return {
            "id": entry.id,
            "date": entry.entry_date.isoformat(),
            "person_id": entry.person_id,
            "person_name": entry.person_name,
            "project_id": entry.project_id,
            "project_name": entry.project_name,
            "task_id": entry.task_id,
            "task_name": entry.task_name,
            "approval_status": entry.approval_status.value,
            "hours": money(entry.hours),
            "sell_rate": money(entry.sell_rate),
            "cost_rate": money(entry.cost_rate),
            "cost": money(entry.cost),
            "revenue": money(entry.revenue),
            "profit": money(entry.profit),
        }

    def serialize_report(self, report: TimeReport) -> dict[str, object]:
        return {
            "entries": [self.serialize_entry(entry) for entry in report.entries],
            "summary": {
                "total_hours": money(report.summary.total_hours),
                "total_cost": money(report.summary.total_cost),
                "total_revenue": money(report.summary.total_revenue),
                "profit_margin": report.summary.profit_margin,
            },
        }

    @staticmethod
    def serialize_contractor(item: ContractorHours) -> dict[str, object]:
        return {
            "person_id": item.person_id,
            "name": item.name,
            "payroll_ref": item.payroll_ref,
            "hours": money(item.hours),
            "projects": [
                {
                    "project_id": task.project_id,
                    "project_name": task.project_name,
                    "task_id": task.task_id,
                    "task_name": task.task_name,
                    "hours": money(task.hours),
                    "approval_status": task.approval_status.value,
                }
                for task in item.projects
            ],
        }

    def time_report(
        self,
        *,
        start_date: date,
        end_date: date,
        person_id: str | None = None,
        project_id: str | None = None,
    ) -> TimeReport:
        ensure_date_range(start_date, end_date)
        entries = self.snapshots.time_entries(
            start_date,
            end_date,
            staff_member_id=parse_uuid_or_404(person_id, "Staff member not found.") if person_id else None,
            project_id=parse_uuid_or_404(project_id, "Project not found.") if project_id else None,
        )
        return build_time_report(
            entries,
            self.snapshots.people(),
            self.snapshots.projects(),
            self.snapshots.approvals(start_date, end_date),
        )

    def contractor_hours(self, start_date: date, end_date: date) -> list[ContractorHours]:
        ensure_date_range(start_date, end_date)
        return contractor_hours(
            self.snapshots.people(),
            self.snapshots.time_entries(start_date, end_date),
            self.snapshots.projects(),
            self.snapshots.approvals(start_date, end_date),
            Period(start=start_date, end=end_date),
        )

    def export_time_report(
        self,
        *,
        format_name: str,
        start_date: date,
        end_date: date,
        person_id: str | None = None,
        project_id: str | None = None,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        report = self.time_report(
            start_date=start_date,
            end_date=end_date,
            person_id=person_id,
            project_id=project_id,
        )
        rows = [self.serialize_entry(entry) for entry in report.entries]
        base_filename = f"time-report-{start_date.isoformat()}-{end_date.isoformat()}"

        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.DictWriter(sio, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=sio.getvalue().encode("utf-8"),
            )

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "time report"
        sheet.append(EXPORT_COLUMNS)
        for row in rows:
            sheet.append([row.get(column, "") for column in EXPORT_COLUMNS])

        output = BytesIO()
        workbook.save(output)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=output.getvalue(),
        )
