"""Bonus endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffplan.db.dependencies import get_db_session
from staffplan.services.bonus_service import BonusService

router = APIRouter(prefix="/bonuses", tags=["bonuses"])


class BonusPaidPayload(BaseModel):
    payslip_ref: str | None = Field(default=None, max_length=128)


@router.get("")
def list_bonuses(month: str = Query(...), db: Session = Depends(get_db_session)) -> dict[str, object]:
    return BonusService(db).list_for_month(month)


@router.post("/{bonus_id}/paid")
def mark_bonus_paid(
    bonus_id: str,
    payload: BonusPaidPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = BonusService(db)
    return service.serialize_bonus(service.mark_paid(bonus_id, payload.payslip_ref))
