"""Forecast endpoints and overlay editing."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffplan.db.dependencies import get_db_session
from staffplan.engine.overlay import ForecastField, OverlaySubject
from staffplan.engine.temporal import format_year_month
from staffplan.services.forecast_service import DeltaEditResult, ForecastService

router = APIRouter(prefix="/forecasts", tags=["forecasts"])


class DeltaPayload(BaseModel):
    subject: OverlaySubject = OverlaySubject.PERSON
    entity_id: str = Field(min_length=1, max_length=128)
    field: ForecastField
    # null clears the override and restores the computed default.
    value: Decimal | None = Field(default=None, ge=0)


def _service(db: Session) -> ForecastService:
    return ForecastService(db)


def _edit_response(service: ForecastService, result: DeltaEditResult) -> dict[str, object]:
    return {
        "month": format_year_month(result.month_start),
        "touched": [key.storage_key for key in result.touched],
        "deltas": [service.serialize_delta(row) for row in result.deltas],
    }


@router.get("")
def get_forecast_range(
    from_month: str = Query(...),
    to_month: str = Query(...),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).range_forecast(from_month, to_month)


@router.get("/{month}")
def get_monthly_forecast(month: str, db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _service(db).monthly_forecast(month)


@router.put("/{month}/deltas")
def put_forecast_delta(
    month: str,
    payload: DeltaPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    result = service.edit_delta(
        month=month,
        subject=payload.subject,
        entity_id=payload.entity_id,
        field=payload.field,
        value=payload.value,
    )
    return _edit_response(service, result)


@router.delete("/{month}/deltas/{subject}/{entity_id}/{field}")
def delete_forecast_delta(
    month: str,
    subject: OverlaySubject,
    entity_id: str,
    field: ForecastField,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    result = service.edit_delta(month=month, subject=subject, entity_id=entity_id, field=field, value=None)
    return _edit_response(service, result)


@router.delete("/{month}/deltas")
def delete_month_deltas(month: str, db: Session = Depends(get_db_session)) -> dict[str, object]:
    removed = _service(db).clear_month(month)
    return {"month": month, "removed": removed}
