"""Overtime report and submission endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffplan.db.dependencies import get_db_session
from staffplan.services.overtime_service import OvertimeService

router = APIRouter(prefix="/overtime", tags=["overtime"])


class OvertimeSubmissionPayload(BaseModel):
    month: str = Field(min_length=7, max_length=7)
    pay_run_ref: str = Field(min_length=1, max_length=128)
    start_date: date | None = None
    end_date: date | None = None


def _service(db: Session) -> OvertimeService:
    return OvertimeService(db)


@router.get("")
def get_overtime_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_report(service.build_report(start_date, end_date))


@router.get("/submissions/{month}")
def get_overtime_submission(month: str, db: Session = Depends(get_db_session)) -> dict[str, object]:
    service = _service(db)
    submission = service.get_submission(month)
    return {
        "month": month,
        "submitted": submission is not None,
        "submission": service.serialize_submission(submission) if submission is not None else None,
    }


@router.post("/submissions", status_code=status.HTTP_201_CREATED)
def post_overtime_submission(
    payload: OvertimeSubmissionPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    submission = service.submit(
        month=payload.month,
        pay_run_ref=payload.pay_run_ref,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return service.serialize_submission(submission)
