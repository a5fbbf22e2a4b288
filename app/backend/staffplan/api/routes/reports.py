"""Reporting endpoints for time, cost and contractor hours."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from staffplan.db.dependencies import get_db_session
from staffplan.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


def _service(db: Session) -> ReportService:
    return ReportService(db)


@router.get("/time")
def report_time(
    start_date: date = Query(...),
    end_date: date = Query(...),
    person_id: str | None = None,
    project_id: str | None = None,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    report = service.time_report(
        start_date=start_date,
        end_date=end_date,
        person_id=person_id,
        project_id=project_id,
    )
    return service.serialize_report(report)


@router.get("/time/export")
def export_time_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    format: str = Query(default="xlsx"),
    person_id: str | None = None,
    project_id: str | None = None,
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_time_report(
        format_name=format,
        start_date=start_date,
        end_date=end_date,
        person_id=person_id,
        project_id=project_id,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get("/contractor-hours")
def report_contractor_hours(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "items": [service.serialize_contractor(item) for item in service.contractor_hours(start_date, end_date)],
    }
